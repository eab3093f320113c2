"""
领域事件定义 (Domain Events)
服务层在事务提交后发布事件，通知等尽力而为的副作用由事件处理器完成
"""
from enum import Enum
from dataclasses import dataclass, field, asdict
from datetime import datetime
from decimal import Decimal
from typing import Optional, Dict, Any


class EventType(str, Enum):
    """事件类型枚举"""
    # 订单相关
    ORDER_CREATED = "order.created"
    ORDER_STATUS_CHANGED = "order.status_changed"
    ORDER_PAYMENT_CHANGED = "order.payment_changed"

    # 账单相关
    INVOICE_CREATED = "invoice.created"
    INVOICE_PAID = "invoice.paid"
    INVOICE_CANCELLED = "invoice.cancelled"
    INVOICE_REMINDER = "invoice.reminder"

    # 报修相关
    MAINTENANCE_CREATED = "maintenance.created"
    MAINTENANCE_STATUS_CHANGED = "maintenance.status_changed"
    MAINTENANCE_ASSIGNED = "maintenance.assigned"

    # 库存相关
    STOCK_ADJUSTED = "stock.adjusted"


@dataclass
class BaseEventData:
    """事件数据基类"""
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典"""
        result = asdict(self)
        # 处理 datetime / Decimal 序列化
        for key, value in result.items():
            if isinstance(value, datetime):
                result[key] = value.isoformat()
            elif isinstance(value, Decimal):
                result[key] = str(value)
        return result


@dataclass
class OrderCreatedData(BaseEventData):
    """订单创建事件数据"""
    order_id: int = 0
    order_number: str = ""
    user_id: int = 0
    room_number: str = ""
    total_amount: Decimal = Decimal("0")
    line_count: int = 0


@dataclass
class OrderStatusChangedData(BaseEventData):
    """订单状态变更事件数据"""
    order_id: int = 0
    order_number: str = ""
    user_id: int = 0
    old_status: str = ""
    new_status: str = ""
    changed_by: Optional[int] = None
    stock_restored: bool = False
    stock_reserved: bool = False


@dataclass
class OrderPaymentChangedData(BaseEventData):
    """订单支付状态变更事件数据"""
    order_id: int = 0
    order_number: str = ""
    user_id: int = 0
    payment_status: str = ""
    changed_by: Optional[int] = None


@dataclass
class InvoiceCreatedData(BaseEventData):
    """账单创建事件数据"""
    invoice_id: int = 0
    invoice_number: str = ""
    user_id: int = 0
    amount: Decimal = Decimal("0")
    due_date: Optional[datetime] = None
    created_by: Optional[int] = None


@dataclass
class InvoiceStatusChangedData(BaseEventData):
    """账单状态变更事件数据（支付 / 取消）"""
    invoice_id: int = 0
    invoice_number: str = ""
    user_id: int = 0
    old_status: str = ""
    new_status: str = ""
    payment_method: Optional[str] = None
    payment_reference: Optional[str] = None
    changed_by: Optional[int] = None


@dataclass
class InvoiceReminderData(BaseEventData):
    """催缴事件数据"""
    invoice_id: int = 0
    invoice_number: str = ""
    user_id: int = 0
    amount: Decimal = Decimal("0")
    overdue: bool = False


@dataclass
class MaintenanceCreatedData(BaseEventData):
    """报修创建事件数据"""
    ticket_id: int = 0
    user_id: int = 0
    room_number: str = ""
    ticket_type: str = ""
    priority: str = ""


@dataclass
class MaintenanceStatusChangedData(BaseEventData):
    """报修状态变更事件数据"""
    ticket_id: int = 0
    user_id: int = 0
    ticket_type: str = ""
    old_status: str = ""
    new_status: str = ""
    changed_by: Optional[int] = None


@dataclass
class MaintenanceAssignedData(BaseEventData):
    """报修指派事件数据"""
    ticket_id: int = 0
    user_id: int = 0
    ticket_type: str = ""
    assignee_id: int = 0
    assignee_name: str = ""
    assigned_by: Optional[int] = None


@dataclass
class StockAdjustedData(BaseEventData):
    """库存调整事件数据"""
    item_id: int = 0
    item_name: str = ""
    delta: int = 0
    stock: int = 0
    reason: str = ""
