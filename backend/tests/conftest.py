"""
Pytest 配置和共享 fixtures
"""
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient
from decimal import Decimal

from app.database import Base, get_db
from app.models import ontology  # noqa
from app.models.ontology import User, UserType, GroceryItem, ItemCategory, ItemUnit
from app.security.auth import get_password_hash, create_access_token
from app.services.event_bus import event_bus
from app.services.event_handlers import event_handlers
from app.main import app


@pytest.fixture(scope="function")
def db_engine():
    """创建内存数据库引擎"""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(db_engine):
    """创建数据库会话"""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture(scope="function")
def client(db_engine, db_session):
    """创建测试客户端；事件处理器使用同一个测试数据库"""
    def override_get_db():
        yield db_session

    original_factory = event_handlers._db_session_factory
    event_handlers._db_session_factory = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    event_handlers._db_session_factory = original_factory


@pytest.fixture(autouse=True)
def _reset_event_bus():
    """每个测试结束后清空事件总线订阅"""
    yield
    event_bus.reset()
    event_handlers._registered = False


@pytest.fixture
def published():
    """收集服务发布的事件（代替真实事件总线）"""
    return []


# ============== 用户 Fixtures ==============

def _user(db, username, name, user_type, room_number=None, **extra):
    user = User(
        username=username,
        password_hash=get_password_hash("123456"),
        name=name,
        type=user_type,
        room_number=room_number,
        active=True,
        **extra
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def admin_user(db_session):
    return _user(db_session, "admin", "Admin", UserType.ADMIN)


@pytest.fixture
def second_admin(db_session):
    return _user(db_session, "facilities", "Facilities Manager", UserType.ADMIN)


@pytest.fixture
def resident_user(db_session):
    return _user(db_session, "johnsmith101", "John Smith", UserType.RESIDENT,
                 room_number="101", contact_number="0500000001", days=30)


@pytest.fixture
def other_resident(db_session):
    return _user(db_session, "alidawood102", "Ali Dawood", UserType.RESIDENT,
                 room_number="102", contact_number="0500000002", days=30)


@pytest.fixture
def worker_user(db_session):
    return _user(db_session, "samirw1", "Samir", UserType.WORKER,
                 room_number="W1", contact_number="0500000003")


# ============== 认证相关 Fixtures ==============

@pytest.fixture
def admin_headers(admin_user):
    return {"Authorization": f"Bearer {create_access_token(admin_user.id, admin_user.type)}"}


@pytest.fixture
def resident_headers(resident_user):
    return {"Authorization": f"Bearer {create_access_token(resident_user.id, resident_user.type)}"}


@pytest.fixture
def other_resident_headers(other_resident):
    return {"Authorization": f"Bearer {create_access_token(other_resident.id, other_resident.type)}"}


@pytest.fixture
def worker_headers(worker_user):
    return {"Authorization": f"Bearer {create_access_token(worker_user.id, worker_user.type)}"}


# ============== 商品 Fixtures ==============

def _item(db, name, name_ar, category, price, stock, unit=ItemUnit.PIECE, is_available=True):
    item = GroceryItem(
        name=name,
        name_ar=name_ar,
        category=category,
        price=Decimal(price),
        unit=unit,
        stock=stock,
        is_available=is_available,
    )
    db.add(item)
    db.commit()
    db.refresh(item)
    return item


@pytest.fixture
def rice(db_session):
    return _item(db_session, "Rice", "أرز", ItemCategory.FOOD, "2.50", 10, unit=ItemUnit.KG)


@pytest.fixture
def milk(db_session):
    return _item(db_session, "Milk", "حليب", ItemCategory.BEVERAGES, "4.00", 5, unit=ItemUnit.LITER)


@pytest.fixture
def soap(db_session):
    """已下架商品"""
    return _item(db_session, "Soap", "صابون", ItemCategory.CLEANING, "1.25", 20, is_available=False)
