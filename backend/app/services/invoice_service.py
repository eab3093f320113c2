"""
账单服务 - 账单台账

- 创建：仅管理员；校验目标用户存在，分配月度序号，冻结金额，写入系统备注
- overdue 在读取时计算：已过到期日的 pending 账单归类为 overdue，不回写数据库
- 状态：管理员只能标记 paid（需支付方式和凭证）或 cancelled
- 备注只追加，账单所有人或管理员可添加
"""
from typing import List, Optional, Callable
from datetime import datetime
import logging

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session, selectinload

from app.models.ontology import (
    Invoice, InvoiceLine, InvoiceNote, InvoiceReminder, InvoiceStatus, User
)
from app.models.schemas import InvoiceCreate, InvoiceStatusUpdate
from app.models.events import (
    EventType, InvoiceCreatedData, InvoiceStatusChangedData, InvoiceReminderData
)
from app.services.event_bus import event_bus, Event
from app.services.sequence_service import SequenceService, INVOICE
from app.services.user_service import UserService
from app.housing.domain.invoice import (
    OUTSTANDING_STATES, check_transition, compute_amount, effective_status
)
from app.housing.domain.access import ensure_admin, ensure_owner_or_admin, owner_scope
from app.housing.errors import NotFound, InvalidTransition, ValidationError

logger = logging.getLogger(__name__)

CREATED_NOTE = "Invoice created"


class InvoiceService:
    """账单服务"""

    def __init__(self, db: Session, event_publisher: Callable[[Event], None] = None):
        self.db = db
        self._publish_event = event_publisher or event_bus.publish
        self.sequence = SequenceService(db)
        self.users = UserService(db)

    # ============== 查询 ==============

    def _query(self):
        return self.db.query(Invoice).options(
            selectinload(Invoice.lines),
            selectinload(Invoice.notes).selectinload(InvoiceNote.author),
            selectinload(Invoice.reminders),
        )

    def _load(self, invoice_id: int) -> Invoice:
        invoice = self._query().filter(Invoice.id == invoice_id).first()
        if not invoice:
            raise NotFound(f"Invoice not found: {invoice_id}", entity_id=invoice_id)
        return invoice

    def get_invoice(self, caller: User, invoice_id: int) -> Invoice:
        invoice = self._load(invoice_id)
        ensure_owner_or_admin(caller, invoice.user_id, "view this invoice")
        return invoice

    @staticmethod
    def _overdue_clause(now: datetime):
        return or_(
            and_(Invoice.status == InvoiceStatus.PENDING, Invoice.due_date < now),
            Invoice.status == InvoiceStatus.OVERDUE,
        )

    def list_invoices(self, caller: User,
                      status: Optional[InvoiceStatus] = None,
                      room_number: Optional[str] = None,
                      start_date: Optional[datetime] = None,
                      end_date: Optional[datetime] = None,
                      now: Optional[datetime] = None) -> List[Invoice]:
        """
        账单列表，最新的在前

        status 按读取时状态过滤：pending 不含已过期账单，overdue 包含过期未付的 pending 账单。
        """
        now = now or datetime.now()
        query = self._query()

        owner_id = owner_scope(caller)
        if owner_id is not None:
            query = query.filter(Invoice.user_id == owner_id)

        if status == InvoiceStatus.OVERDUE:
            query = query.filter(self._overdue_clause(now))
        elif status == InvoiceStatus.PENDING:
            query = query.filter(Invoice.status == InvoiceStatus.PENDING, Invoice.due_date >= now)
        elif status:
            query = query.filter(Invoice.status == status)

        if room_number:
            query = query.filter(Invoice.room_number == room_number)
        if start_date:
            query = query.filter(Invoice.created_at >= start_date)
        if end_date:
            query = query.filter(Invoice.created_at <= end_date)

        return query.order_by(Invoice.created_at.desc(), Invoice.id.desc()).all()

    def list_overdue(self, caller: User, now: Optional[datetime] = None) -> List[Invoice]:
        """逾期账单，到期最早的在前"""
        now = now or datetime.now()
        query = self._query().filter(self._overdue_clause(now))
        owner_id = owner_scope(caller)
        if owner_id is not None:
            query = query.filter(Invoice.user_id == owner_id)
        return query.order_by(Invoice.due_date.asc(), Invoice.id.asc()).all()

    # ============== 创建 ==============

    def create_invoice(self, caller: User, data: InvoiceCreate) -> Invoice:
        """管理员为用户创建账单"""
        ensure_admin(caller, "create invoices")
        user = self.users.get_user(data.user_id)
        if not user.room_number:
            raise ValidationError(f"User {user.id} has no room number", entity_id=user.id)

        amount = compute_amount((line.amount, line.quantity) for line in data.items)

        try:
            invoice = Invoice(
                user_id=user.id,
                room_number=user.room_number,
                invoice_number=self.sequence.next_number(INVOICE),
                amount=amount,
                due_date=data.due_date,
                status=InvoiceStatus.PENDING,
            )
            invoice.lines = [
                InvoiceLine(description=line.description, amount=line.amount, quantity=line.quantity)
                for line in data.items
            ]
            # 系统备注：user_id 为空
            invoice.notes = [InvoiceNote(user_id=None, content=CREATED_NOTE)]
            self.db.add(invoice)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(invoice)
        logger.info(f"Invoice {invoice.invoice_number} created for user {user.id}, amount {invoice.amount}")

        self._publish_event(Event(
            event_type=EventType.INVOICE_CREATED,
            timestamp=datetime.now(),
            data=InvoiceCreatedData(
                invoice_id=invoice.id,
                invoice_number=invoice.invoice_number,
                user_id=invoice.user_id,
                amount=invoice.amount,
                due_date=invoice.due_date,
                created_by=caller.id,
            ).to_dict(),
            source="invoice_service"
        ))
        return invoice

    # ============== 状态转换 ==============

    def update_status(self, caller: User, invoice_id: int, data: InvoiceStatusUpdate) -> Invoice:
        """
        管理员变更账单状态

        Raises:
            Unauthorized: 非管理员
            NotFound: 账单不存在
            InvalidTransition: 目标状态不允许，或账单已被并发修改
            ValidationError: 标记已支付但缺少支付信息
        """
        ensure_admin(caller, "update invoice status")
        invoice = self._load(invoice_id)
        from_status = InvoiceStatus(invoice.status)
        to_status = InvoiceStatus(data.status)

        try:
            check_transition(from_status, to_status, data.payment_method, data.payment_reference)
        except InvalidTransition:
            logger.warning(
                f"Rejected invoice {invoice.invoice_number} transition {from_status.value} -> {to_status.value}"
            )
            raise

        values = {Invoice.status: to_status}
        if to_status == InvoiceStatus.PAID:
            values[Invoice.payment_method] = data.payment_method
            values[Invoice.payment_reference] = data.payment_reference.strip()
            values[Invoice.payment_date] = datetime.now()

        note = (data.note or "").strip()
        try:
            updated = self.db.query(Invoice).filter(
                Invoice.id == invoice_id,
                Invoice.status == from_status,
            ).update(values, synchronize_session=False)
            if not updated:
                raise InvalidTransition("invoice", from_status.value, to_status.value)
            if note:
                self.db.add(InvoiceNote(invoice_id=invoice_id, user_id=caller.id, content=note))
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        invoice = self._load(invoice_id)
        logger.info(
            f"Invoice {invoice.invoice_number} {from_status.value} -> {to_status.value} by user {caller.id}"
        )

        event_type = EventType.INVOICE_PAID if to_status == InvoiceStatus.PAID else EventType.INVOICE_CANCELLED
        self._publish_event(Event(
            event_type=event_type,
            timestamp=datetime.now(),
            data=InvoiceStatusChangedData(
                invoice_id=invoice.id,
                invoice_number=invoice.invoice_number,
                user_id=invoice.user_id,
                old_status=from_status.value,
                new_status=to_status.value,
                payment_method=invoice.payment_method.value if invoice.payment_method else None,
                payment_reference=invoice.payment_reference,
                changed_by=caller.id,
            ).to_dict(),
            source="invoice_service"
        ))
        return invoice

    # ============== 备注与催缴 ==============

    def add_note(self, caller: User, invoice_id: int, content: str) -> Invoice:
        """追加备注（所有人或管理员）"""
        invoice = self._load(invoice_id)
        ensure_owner_or_admin(caller, invoice.user_id, "add notes to this invoice")
        content = (content or "").strip()
        if not content:
            raise ValidationError("Note content cannot be empty", entity_id=invoice_id)

        self.db.add(InvoiceNote(invoice_id=invoice.id, user_id=caller.id, content=content))
        self.db.commit()
        return self._load(invoice_id)

    def send_reminder(self, caller: User, invoice_id: int, now: Optional[datetime] = None) -> Invoice:
        """管理员对未付账单发送催缴提醒"""
        ensure_admin(caller, "send invoice reminders")
        invoice = self._load(invoice_id)
        if InvoiceStatus(invoice.status) not in OUTSTANDING_STATES:
            raise ValidationError(
                f"Invoice {invoice.invoice_number} is {invoice.status.value}; reminders apply to unpaid invoices",
                entity_id=invoice_id,
            )

        now = now or datetime.now()
        overdue = effective_status(invoice.status, invoice.due_date, now) == InvoiceStatus.OVERDUE
        self.db.add(InvoiceReminder(invoice_id=invoice.id, sent_at=now))
        self.db.commit()
        invoice = self._load(invoice_id)
        logger.info(f"Reminder recorded for invoice {invoice.invoice_number} (overdue={overdue})")

        self._publish_event(Event(
            event_type=EventType.INVOICE_REMINDER,
            timestamp=now,
            data=InvoiceReminderData(
                invoice_id=invoice.id,
                invoice_number=invoice.invoice_number,
                user_id=invoice.user_id,
                amount=invoice.amount,
                overdue=overdue,
            ).to_dict(),
            source="invoice_service"
        ))
        return invoice

    def record_pdf(self, invoice_id: int, pdf_url: str) -> Invoice:
        """记录已生成的 PDF 地址"""
        invoice = self._load(invoice_id)
        invoice.pdf_url = pdf_url
        self.db.commit()
        return invoice

    # ============== 响应 ==============

    @staticmethod
    def to_detail(invoice: Invoice, now: Optional[datetime] = None) -> dict:
        return {
            "id": invoice.id,
            "invoice_number": invoice.invoice_number,
            "user_id": invoice.user_id,
            "user_name": invoice.user.name if invoice.user else None,
            "room_number": invoice.room_number,
            "amount": invoice.amount,
            "due_date": invoice.due_date,
            "status": invoice.status,
            "effective_status": effective_status(invoice.status, invoice.due_date, now),
            "items": [
                {"description": line.description, "amount": line.amount, "quantity": line.quantity}
                for line in invoice.lines
            ],
            "payment_method": invoice.payment_method,
            "payment_reference": invoice.payment_reference,
            "payment_date": invoice.payment_date,
            "notes": [
                {
                    "user_id": note.user_id,
                    "author_name": note.author.name if note.author else None,
                    "content": note.content,
                    "timestamp": note.timestamp,
                }
                for note in invoice.notes
            ],
            "reminders_sent": [r.sent_at for r in invoice.reminders],
            "pdf_url": invoice.pdf_url,
            "created_at": invoice.created_at,
        }
