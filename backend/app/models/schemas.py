"""
Pydantic 模式定义
用于 API 请求/响应验证
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional, List, Union, Literal, Dict, Any, Annotated
from pydantic import BaseModel, Field, field_validator, ConfigDict
from app.models.ontology import (
    UserType, ItemCategory, ItemUnit, OrderStatus, OrderPaymentStatus,
    OrderPaymentMethod, InvoiceStatus, InvoicePaymentMethod,
    MaintenanceType, MaintenancePriority, MaintenanceStatus, NotificationType
)


# ============== 用户 Schemas ==============

class ResidentRegistration(BaseModel):
    """住户注册：房间号、联系电话、入住天数必填"""
    type: Literal["resident"]
    name: str = Field(..., min_length=1, max_length=100)
    room_number: str = Field(..., min_length=1, max_length=20)
    contact_number: str = Field(..., min_length=1, max_length=30)
    days: int = Field(..., ge=1)
    email: Optional[str] = Field(None, max_length=100)


class WorkerRegistration(BaseModel):
    """工人注册：房间号、联系电话必填"""
    type: Literal["worker"]
    name: str = Field(..., min_length=1, max_length=100)
    room_number: str = Field(..., min_length=1, max_length=20)
    contact_number: str = Field(..., min_length=1, max_length=30)
    email: Optional[str] = Field(None, max_length=100)


class AdminRegistration(BaseModel):
    """管理员注册：自定义账号和密码，无房间"""
    type: Literal["admin"]
    name: str = Field(..., min_length=1, max_length=100)
    username: str = Field(..., min_length=3, max_length=100)
    password: str = Field(..., min_length=6)
    email: Optional[str] = Field(None, max_length=100)
    contact_number: Optional[str] = Field(None, max_length=30)


UserRegistration = Annotated[
    Union[ResidentRegistration, WorkerRegistration, AdminRegistration],
    Field(discriminator="type")
]


class LoginRequest(BaseModel):
    username: str
    password: str


class PushTokenUpdate(BaseModel):
    push_token: str = Field(..., min_length=1, max_length=255)


class UserResponse(BaseModel):
    id: int
    username: str
    name: str
    type: UserType
    room_number: Optional[str] = None
    contact_number: Optional[str] = None
    email: Optional[str] = None
    days: Optional[int] = None
    active: bool
    model_config = ConfigDict(from_attributes=True)


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


# ============== 商品 Schemas ==============

class GroceryItemBase(BaseModel):
    name: str = Field(..., max_length=100)
    name_ar: str = Field(..., max_length=100)
    category: ItemCategory
    price: Decimal = Field(..., ge=0)
    unit: ItemUnit
    stock: int = Field(default=0, ge=0)
    image: Optional[str] = None
    description: Optional[str] = None
    description_ar: Optional[str] = None
    is_available: bool = True


class GroceryItemCreate(GroceryItemBase):
    pass


class GroceryItemUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=100)
    name_ar: Optional[str] = Field(None, max_length=100)
    category: Optional[ItemCategory] = None
    price: Optional[Decimal] = Field(None, ge=0)
    unit: Optional[ItemUnit] = None
    image: Optional[str] = None
    description: Optional[str] = None
    description_ar: Optional[str] = None
    is_available: Optional[bool] = None


class StockUpdate(BaseModel):
    stock: int = Field(..., ge=0)


class GroceryItemResponse(GroceryItemBase):
    id: int
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


# ============== 订单 Schemas ==============

class OrderLineCreate(BaseModel):
    item_id: int
    quantity: int = Field(..., ge=1)


class OrderCreate(BaseModel):
    items: List[OrderLineCreate] = Field(..., min_length=1)
    payment_method: OrderPaymentMethod
    notes: Optional[str] = None


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class OrderPaymentStatusUpdate(BaseModel):
    payment_status: OrderPaymentStatus


class OrderLineResponse(BaseModel):
    item_id: int
    item_name: Optional[str] = None
    quantity: int
    price: Decimal


class OrderResponse(BaseModel):
    id: int
    order_number: str
    user_id: int
    user_name: Optional[str] = None
    room_number: str
    items: List[OrderLineResponse]
    total_amount: Decimal
    status: OrderStatus
    payment_method: OrderPaymentMethod
    payment_status: OrderPaymentStatus
    notes: Optional[str] = None
    delivery_time: Optional[datetime] = None
    created_at: datetime


# ============== 账单 Schemas ==============

class InvoiceLineCreate(BaseModel):
    description: str = Field(..., min_length=1, max_length=255)
    amount: Decimal = Field(..., ge=0)
    quantity: int = Field(..., ge=1)


class InvoiceCreate(BaseModel):
    user_id: int
    items: List[InvoiceLineCreate] = Field(..., min_length=1)
    due_date: datetime


class InvoiceStatusUpdate(BaseModel):
    status: InvoiceStatus
    payment_method: Optional[InvoicePaymentMethod] = None
    payment_reference: Optional[str] = Field(None, max_length=100)
    note: Optional[str] = None


class NoteCreate(BaseModel):
    content: str = Field(..., min_length=1)

    @field_validator('content')
    @classmethod
    def strip_content(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("备注内容不能为空")
        return v


class NoteResponse(BaseModel):
    user_id: Optional[int] = None
    author_name: Optional[str] = None
    content: str
    timestamp: datetime


class InvoiceLineResponse(BaseModel):
    description: str
    amount: Decimal
    quantity: int
    model_config = ConfigDict(from_attributes=True)


class InvoiceResponse(BaseModel):
    id: int
    invoice_number: str
    user_id: int
    user_name: Optional[str] = None
    room_number: str
    amount: Decimal
    due_date: datetime
    status: InvoiceStatus
    effective_status: InvoiceStatus
    items: List[InvoiceLineResponse]
    payment_method: Optional[InvoicePaymentMethod] = None
    payment_reference: Optional[str] = None
    payment_date: Optional[datetime] = None
    notes: List[NoteResponse] = []
    reminders_sent: List[datetime] = []
    pdf_url: Optional[str] = None
    created_at: datetime


# ============== 报修 Schemas ==============

class MaintenanceCreate(BaseModel):
    type: MaintenanceType
    description: str = Field(..., min_length=1)
    priority: MaintenancePriority = MaintenancePriority.MEDIUM
    images: List[str] = []


class MaintenanceStatusUpdate(BaseModel):
    status: MaintenanceStatus
    note: Optional[str] = None


class MaintenanceAssign(BaseModel):
    assigned_to: int


class MaintenanceResponse(BaseModel):
    id: int
    user_id: int
    user_name: Optional[str] = None
    room_number: str
    type: MaintenanceType
    description: str
    priority: MaintenancePriority
    status: MaintenanceStatus
    assigned_to: Optional[int] = None
    assignee_name: Optional[str] = None
    images: List[str] = []
    completed_at: Optional[datetime] = None
    notes: List[NoteResponse] = []
    created_at: datetime


# ============== 通知 Schemas ==============

class NotificationResponse(BaseModel):
    id: int
    title: str
    body: str
    type: NotificationType
    data: Optional[Dict[str, Any]] = None
    is_read: bool
    read_at: Optional[datetime] = None
    sent_via_push: bool
    sent_via_email: bool
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class NotificationPage(BaseModel):
    notifications: List[NotificationResponse]
    total: int
    page: int
    total_pages: int


class NotificationSendRequest(BaseModel):
    user_id: int
    title: str = Field(..., min_length=1, max_length=200)
    body: str = Field(..., min_length=1)
    type: NotificationType = NotificationType.SYSTEM


class DeliveryResultResponse(BaseModel):
    notification_id: Optional[int] = None
    push: bool = False
    email: bool = False
    error: Optional[str] = None


# ============== 文档 Schemas ==============

class FileHandleResponse(BaseModel):
    file_name: str
    pdf_url: str
