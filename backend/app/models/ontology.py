"""
本体对象定义 (Ontology Objects)
住房管理系统的全部持久化实体：用户、商品、订单、账单、报修、通知、编号计数器
"""
from datetime import datetime
from enum import Enum
from sqlalchemy import (
    Column, Integer, String, DateTime, ForeignKey, Text, Enum as SQLEnum,
    Boolean, Numeric, JSON, CheckConstraint, UniqueConstraint, event, inspect
)
from sqlalchemy.orm import relationship
from app.database import Base


# ============== 枚举定义 ==============

class UserType(str, Enum):
    """用户角色"""
    ADMIN = "admin"            # 管理员
    RESIDENT = "resident"      # 住户
    WORKER = "worker"          # 工人


class ItemCategory(str, Enum):
    """商品分类"""
    FOOD = "food"
    BEVERAGES = "beverages"
    CLEANING = "cleaning"
    OTHER = "other"


class ItemUnit(str, Enum):
    """计量单位"""
    PIECE = "piece"
    KG = "kg"
    LITER = "liter"
    PACK = "pack"


class OrderStatus(str, Enum):
    """订单状态"""
    PENDING = "pending"          # 待处理
    PROCESSING = "processing"    # 备货中（已扣库存）
    READY = "ready"              # 待取货
    DELIVERED = "delivered"      # 已送达
    CANCELLED = "cancelled"      # 已取消


class OrderPaymentStatus(str, Enum):
    """订单支付状态"""
    PENDING = "pending"
    PAID = "paid"


class OrderPaymentMethod(str, Enum):
    """订单支付方式"""
    CASH = "cash"
    ROOM_CHARGE = "room_charge"


class InvoiceStatus(str, Enum):
    """账单状态"""
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class InvoicePaymentMethod(str, Enum):
    """账单支付方式"""
    CASH = "cash"
    CARD = "card"
    BANK_TRANSFER = "bank_transfer"


class MaintenanceType(str, Enum):
    """报修类型"""
    PLUMBING = "plumbing"
    ELECTRICAL = "electrical"
    FURNITURE = "furniture"
    APPLIANCE = "appliance"
    OTHER = "other"


class MaintenancePriority(str, Enum):
    """报修优先级"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class MaintenanceStatus(str, Enum):
    """报修状态"""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class NotificationType(str, Enum):
    """通知类型"""
    MAINTENANCE = "maintenance"
    INVOICE = "invoice"
    GROCERY = "grocery"
    SYSTEM = "system"


# ============== 本体对象定义 ==============

class User(Base):
    """
    用户对象 - 管理员 / 住户 / 工人
    住户和工人必须有房间号，角色相关的必填项在注册 schema 中校验
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(100), unique=True, nullable=False)  # 登录账号
    password_hash = Column(String(255), nullable=False)          # 密码哈希
    name = Column(String(100), nullable=False)                   # 姓名
    type = Column(SQLEnum(UserType), nullable=False, default=UserType.RESIDENT)
    room_number = Column(String(20), index=True)                 # 房间号
    contact_number = Column(String(30))                          # 联系电话
    email = Column(String(100))                                  # 邮箱
    days = Column(Integer)                                       # 入住天数
    start_date = Column(DateTime, default=datetime.utcnow)       # 入住日期
    push_token = Column(String(255))                             # 推送设备令牌
    active = Column(Boolean, default=True)                       # 是否启用
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def is_admin(self) -> bool:
        return self.type == UserType.ADMIN


class GroceryItem(Base):
    """
    商品对象
    库存永不为负，由数据库约束与条件更新共同保证
    """
    __tablename__ = "grocery_items"
    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_grocery_items_stock_non_negative"),
        CheckConstraint("price >= 0", name="ck_grocery_items_price_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False, index=True)
    name_ar = Column(String(100), nullable=False)
    category = Column(SQLEnum(ItemCategory), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    unit = Column(SQLEnum(ItemUnit), nullable=False)
    stock = Column(Integer, nullable=False, default=0)
    image = Column(String(255))
    description = Column(Text)
    description_ar = Column(Text)
    is_available = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class GroceryOrder(Base):
    """
    订单对象 - 订单生命周期的聚合根
    total_amount 在创建时冻结；订单永不删除
    """
    __tablename__ = "grocery_orders"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    room_number = Column(String(20), nullable=False, index=True)
    order_number = Column(String(30), unique=True, nullable=False)  # ORD-YYYYMMDD-NNN
    total_amount = Column(Numeric(10, 2), nullable=False)
    status = Column(SQLEnum(OrderStatus), nullable=False, default=OrderStatus.PENDING)
    payment_method = Column(SQLEnum(OrderPaymentMethod), nullable=False)
    payment_status = Column(SQLEnum(OrderPaymentStatus), nullable=False, default=OrderPaymentStatus.PENDING)
    notes = Column(Text)
    delivery_time = Column(DateTime)                                # 仅在送达时设置
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # 链接
    user = relationship("User")
    lines = relationship("GroceryOrderLine", back_populates="order",
                         order_by="GroceryOrderLine.id", cascade="all, delete-orphan")


class GroceryOrderLine(Base):
    """订单行 - 下单时复制单价"""
    __tablename__ = "grocery_order_lines"
    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_order_lines_quantity_positive"),
    )

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("grocery_orders.id"), nullable=False, index=True)
    item_id = Column(Integer, ForeignKey("grocery_items.id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)

    order = relationship("GroceryOrder", back_populates="lines")
    item = relationship("GroceryItem")


class Invoice(Base):
    """
    账单对象
    amount 在创建时冻结；overdue 为读取时计算的派生状态，不持久化
    """
    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    room_number = Column(String(20), nullable=False, index=True)
    invoice_number = Column(String(30), unique=True, nullable=False)  # INV-YYYYMM-NNNN
    amount = Column(Numeric(10, 2), nullable=False)
    due_date = Column(DateTime, nullable=False, index=True)
    status = Column(SQLEnum(InvoiceStatus), nullable=False, default=InvoiceStatus.PENDING)
    payment_method = Column(SQLEnum(InvoicePaymentMethod))
    payment_reference = Column(String(100))
    payment_date = Column(DateTime)
    pdf_url = Column(String(255))
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # 链接
    user = relationship("User")
    lines = relationship("InvoiceLine", back_populates="invoice",
                         order_by="InvoiceLine.id", cascade="all, delete-orphan")
    notes = relationship("InvoiceNote", back_populates="invoice",
                         order_by="InvoiceNote.id", cascade="all, delete-orphan")
    reminders = relationship("InvoiceReminder", back_populates="invoice",
                             order_by="InvoiceReminder.id", cascade="all, delete-orphan")


class InvoiceLine(Base):
    """账单明细"""
    __tablename__ = "invoice_lines"
    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_invoice_lines_amount_non_negative"),
        CheckConstraint("quantity >= 1", name="ck_invoice_lines_quantity_positive"),
    )

    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=False, index=True)
    description = Column(String(255), nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    quantity = Column(Integer, nullable=False)

    invoice = relationship("Invoice", back_populates="lines")


class InvoiceNote(Base):
    """账单备注 - 只追加"""
    __tablename__ = "invoice_notes"

    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)  # null=系统备注
    content = Column(Text, nullable=False)
    timestamp = Column(DateTime, default=datetime.now)

    invoice = relationship("Invoice", back_populates="notes")
    author = relationship("User")


class InvoiceReminder(Base):
    """催缴记录"""
    __tablename__ = "invoice_reminders"

    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=False, index=True)
    sent_at = Column(DateTime, default=datetime.now)

    invoice = relationship("Invoice", back_populates="reminders")


class MaintenanceTicket(Base):
    """报修单对象"""
    __tablename__ = "maintenance_tickets"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    room_number = Column(String(20), nullable=False, index=True)
    type = Column(SQLEnum(MaintenanceType), nullable=False)
    description = Column(Text, nullable=False)
    priority = Column(SQLEnum(MaintenancePriority), nullable=False, default=MaintenancePriority.MEDIUM)
    status = Column(SQLEnum(MaintenanceStatus), nullable=False, default=MaintenanceStatus.PENDING)
    assigned_to_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    images = Column(JSON, default=list)
    completed_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # 链接
    user = relationship("User", foreign_keys=[user_id])
    assignee = relationship("User", foreign_keys=[assigned_to_id])
    notes = relationship("MaintenanceNote", back_populates="ticket",
                         order_by="MaintenanceNote.id", cascade="all, delete-orphan")


class MaintenanceNote(Base):
    """报修备注 - 只追加"""
    __tablename__ = "maintenance_notes"

    id = Column(Integer, primary_key=True, index=True)
    ticket_id = Column(Integer, ForeignKey("maintenance_tickets.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    content = Column(Text, nullable=False)
    timestamp = Column(DateTime, default=datetime.now)

    ticket = relationship("MaintenanceTicket", back_populates="notes")
    author = relationship("User")


class Notification(Base):
    """通知记录"""
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    body = Column(Text, nullable=False)
    type = Column(SQLEnum(NotificationType), nullable=False)
    template_key = Column(String(50))
    data = Column(JSON, default=dict)
    is_read = Column(Boolean, default=False, index=True)
    read_at = Column(DateTime)
    sent_via_push = Column(Boolean, default=False)
    sent_via_email = Column(Boolean, default=False)
    error = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)


class SequenceCounter(Base):
    """
    编号计数器 - 每个 (实体类, 时间窗口) 一行
    通过原子 UPDATE 递增，保证同一窗口内编号唯一
    """
    __tablename__ = "sequence_counters"
    __table_args__ = (
        UniqueConstraint("entity_class", "scope_key", name="uq_sequence_counters_scope"),
    )

    id = Column(Integer, primary_key=True, index=True)
    entity_class = Column(String(30), nullable=False)
    scope_key = Column(String(20), nullable=False)
    value = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


# ============== 不可变字段守卫 ==============

_FROZEN_FIELDS = {
    GroceryOrder: ("total_amount", "order_number", "user_id"),
    Invoice: ("amount", "invoice_number", "user_id"),
}


def _guard_frozen_fields(mapper, connection, target):
    state = inspect(target)
    for field_name in _FROZEN_FIELDS[type(target)]:
        if state.attrs[field_name].history.has_changes():
            raise ValueError(f"{type(target).__name__}.{field_name} is immutable once created")


def _reject_note_update(mapper, connection, target):
    raise ValueError(f"{type(target).__name__} entries are append-only")


for _model in _FROZEN_FIELDS:
    event.listen(_model, "before_update", _guard_frozen_fields)

for _model in (InvoiceNote, MaintenanceNote, InvoiceLine, GroceryOrderLine):
    event.listen(_model, "before_update", _reject_note_update)
    event.listen(_model, "before_delete", _reject_note_update)
