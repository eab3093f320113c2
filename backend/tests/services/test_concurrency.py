"""
并发测试：多个线程各自持有会话，操作同一个文件型 SQLite 数据库
"""
import pytest
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta
from decimal import Decimal
from threading import Barrier

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.database import Base
from app.models import ontology  # noqa
from app.models.ontology import (
    GroceryItem, GroceryOrder, Invoice, ItemCategory, ItemUnit, OrderPaymentMethod, OrderStatus,
    User, UserType,
)
from app.models.schemas import InvoiceCreate, InvoiceLineCreate, OrderCreate, OrderLineCreate
from app.security.auth import get_password_hash
from app.services.invoice_service import InvoiceService
from app.services.order_service import OrderService
from app.services.sequence_service import INVOICE, format_number, scope_key
from app.housing.errors import InvalidTransition


def _ignore(event):
    pass


@pytest.fixture
def session_factory(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'hms.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def seeded(session_factory):
    """管理员、住户和库存 10 的大米；返回各自的 id"""
    with session_factory() as session:
        admin = User(username="admin", password_hash=get_password_hash("123456"), name="Admin",
                     type=UserType.ADMIN, active=True)
        resident = User(username="johnsmith101", password_hash=get_password_hash("123456"), name="John Smith",
                        type=UserType.RESIDENT, room_number="101", active=True)
        rice = GroceryItem(name="Rice", name_ar="أرز", category=ItemCategory.FOOD, price=Decimal("2.50"),
                           unit=ItemUnit.KG, stock=10, is_available=True)
        session.add_all([admin, resident, rice])
        session.commit()
        return {"admin": admin.id, "resident": resident.id, "rice": rice.id}


def _run(session_factory, num_threads, work):
    """各线程在屏障处对齐后执行 work(session)，返回结果或异常类名"""
    barrier = Barrier(num_threads, timeout=30)

    def attempt(thread_id):
        session = session_factory()
        try:
            barrier.wait()
            return work(session)
        except Exception as e:
            return type(e).__name__
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=num_threads) as executor:
        futures = [executor.submit(attempt, i) for i in range(num_threads)]
        return [f.result() for f in futures]


def test_concurrent_processing_reserves_stock_once(session_factory, seeded):
    with session_factory() as session:
        resident = session.get(User, seeded["resident"])
        order = OrderService(session, event_publisher=_ignore).create_order(resident, OrderCreate(
            items=[OrderLineCreate(item_id=seeded["rice"], quantity=3)],
            payment_method=OrderPaymentMethod.CASH,
        ))
        order_id = order.id

    def process(session):
        admin = session.get(User, seeded["admin"])
        OrderService(session, event_publisher=_ignore).update_status(admin, order_id, OrderStatus.PROCESSING)
        return "ok"

    results = _run(session_factory, 4, process)

    assert results.count("ok") == 1
    assert results.count(InvalidTransition.__name__) == 3
    with session_factory() as session:
        assert session.get(GroceryItem, seeded["rice"]).stock == 7
        assert session.get(GroceryOrder, order_id).status == OrderStatus.PROCESSING


def test_concurrent_invoices_get_unique_numbers(session_factory, seeded):
    def create(session):
        admin = session.get(User, seeded["admin"])
        invoice = InvoiceService(session, event_publisher=_ignore).create_invoice(admin, InvoiceCreate(
            user_id=seeded["resident"],
            items=[InvoiceLineCreate(description="Room rent", amount=Decimal("500.00"), quantity=1)],
            due_date=datetime.now() + timedelta(days=10),
        ))
        return invoice.invoice_number

    results = _run(session_factory, 6, create)

    key = scope_key(INVOICE)
    assert sorted(results) == [format_number(INVOICE, key, n) for n in range(1, 7)]
    with session_factory() as session:
        assert session.query(Invoice).count() == 6
