"""
账单状态守卫

overdue 不持久化：pending 且已过到期日的账单在读取时归类为 overdue。
管理员只能把账单标记为 paid 或 cancelled；paid / cancelled 为终态。
"""
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional, Tuple

from core.engine.state_machine import TransitionTable
from app.models.ontology import InvoiceStatus
from app.housing.errors import InvalidTransition, ValidationError

INVOICE_TRANSITIONS = TransitionTable.from_edges(
    "Invoice",
    initial_state=InvoiceStatus.PENDING,
    edges={
        InvoiceStatus.PENDING: [InvoiceStatus.PAID, InvoiceStatus.CANCELLED],
        # 历史数据中可能存在已持久化的 overdue
        InvoiceStatus.OVERDUE: [InvoiceStatus.PAID, InvoiceStatus.CANCELLED],
        InvoiceStatus.PAID: [],
        InvoiceStatus.CANCELLED: [],
    },
)

OUTSTANDING_STATES = frozenset({InvoiceStatus.PENDING, InvoiceStatus.OVERDUE})

_CENT = Decimal("0.01")


def compute_amount(lines: Iterable[Tuple[Decimal, int]]) -> Decimal:
    """账单金额 = Σ 单项金额 × 数量"""
    total = sum((Decimal(amount) * quantity for amount, quantity in lines), Decimal("0"))
    return total.quantize(_CENT, rounding=ROUND_HALF_UP)


def is_overdue(status: InvoiceStatus, due_date: datetime, now: Optional[datetime] = None) -> bool:
    now = now or datetime.now()
    return InvoiceStatus(status) == InvoiceStatus.PENDING and due_date < now


def effective_status(status: InvoiceStatus, due_date: datetime,
                     now: Optional[datetime] = None) -> InvoiceStatus:
    """读取时的账单状态：过期未付的 pending 归类为 overdue"""
    if is_overdue(status, due_date, now):
        return InvoiceStatus.OVERDUE
    return InvoiceStatus(status)


def check_transition(from_status: InvoiceStatus, to_status: InvoiceStatus,
                     payment_method=None, payment_reference: Optional[str] = None) -> None:
    """
    校验管理员发起的账单状态变更

    Raises:
        InvalidTransition: 目标状态不允许（包括手动设置 overdue）
        ValidationError: 标记已支付但缺少支付方式或支付凭证
    """
    from_status = InvoiceStatus(from_status)
    to_status = InvoiceStatus(to_status)

    if not INVOICE_TRANSITIONS.is_valid_transition(from_status, to_status):
        raise InvalidTransition("invoice", from_status.value, to_status.value)

    if to_status == InvoiceStatus.PAID:
        if payment_method is None:
            raise ValidationError("Payment method is required to mark an invoice as paid")
        if not (payment_reference or "").strip():
            raise ValidationError("Payment reference is required to mark an invoice as paid")
