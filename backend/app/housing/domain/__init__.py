"""
app/housing/domain - 状态守卫与访问控制（纯函数，不访问数据库）
"""
from app.housing.domain.order import (
    ORDER_TRANSITIONS, IN_FLIGHT_STATES, StockMove, TransitionPlan,
    apply_transition, compute_total, check_payment_transition,
)
from app.housing.domain.invoice import (
    INVOICE_TRANSITIONS, compute_amount, effective_status, is_overdue, check_transition,
)
from app.housing.domain.maintenance import (
    MAINTENANCE_TRANSITIONS, completion_timestamp, check_assignee,
)
from app.housing.domain.access import is_admin, ensure_admin, ensure_owner_or_admin, owner_scope

__all__ = [
    "ORDER_TRANSITIONS", "IN_FLIGHT_STATES", "StockMove", "TransitionPlan",
    "apply_transition", "compute_total", "check_payment_transition",
    "INVOICE_TRANSITIONS", "compute_amount", "effective_status", "is_overdue", "check_transition",
    "MAINTENANCE_TRANSITIONS", "completion_timestamp", "check_assignee",
    "is_admin", "ensure_admin", "ensure_owner_or_admin", "owner_scope",
]
