"""
商品与订单路由
"""
from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from app.database import get_db
from app.models.ontology import User, ItemCategory, OrderStatus
from app.models.schemas import (
    GroceryItemCreate, GroceryItemUpdate, GroceryItemResponse, StockUpdate,
    OrderCreate, OrderStatusUpdate, OrderPaymentStatusUpdate, OrderResponse, FileHandleResponse
)
from app.services.catalog_service import CatalogService
from app.services.order_service import OrderService
from app.services.document_service import DocumentRenderer, ORDER
from app.security.auth import get_current_user, require_admin

router = APIRouter(prefix="/grocery", tags=["商品与订单"])


# ============== 商品 ==============

@router.get("/items", response_model=List[GroceryItemResponse])
def list_items(
    category: Optional[ItemCategory] = None,
    available_only: bool = False,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """获取商品列表"""
    return CatalogService(db).list_items(category, available_only)


@router.get("/items/{item_id}", response_model=GroceryItemResponse)
def get_item(
    item_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return CatalogService(db).get_item(item_id)


@router.post("/items", response_model=GroceryItemResponse, status_code=status.HTTP_201_CREATED)
def create_item(
    data: GroceryItemCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """新增商品（管理员）"""
    return CatalogService(db).create_item(data)


@router.put("/items/{item_id}", response_model=GroceryItemResponse)
def update_item(
    item_id: int,
    data: GroceryItemUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """更新商品（管理员）"""
    return CatalogService(db).update_item(item_id, data)


@router.delete("/items/{item_id}")
def delete_item(
    item_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """删除商品（管理员）"""
    CatalogService(db).delete_item(item_id)
    return {"message": "Item deleted successfully"}


@router.put("/items/{item_id}/stock", response_model=GroceryItemResponse)
def update_stock(
    item_id: int,
    data: StockUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """设置库存（管理员）"""
    return CatalogService(db).set_stock(item_id, data.stock, changed_by=current_user.id)


@router.patch("/items/{item_id}/toggle-availability", response_model=GroceryItemResponse)
def toggle_availability(
    item_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """上架 / 下架（管理员）"""
    return CatalogService(db).toggle_availability(item_id)


# ============== 订单 ==============

@router.post("/orders", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
def create_order(
    data: OrderCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """下单"""
    service = OrderService(db)
    return OrderResponse(**service.to_detail(service.create_order(current_user, data)))


@router.get("/orders", response_model=List[OrderResponse])
def list_orders(
    status: Optional[OrderStatus] = None,
    room_number: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """订单列表（非管理员只返回自己的订单）"""
    service = OrderService(db)
    orders = service.list_orders(current_user, status, room_number, start_date, end_date)
    return [OrderResponse(**service.to_detail(o)) for o in orders]


@router.get("/orders/{order_id}", response_model=OrderResponse)
def get_order(
    order_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    service = OrderService(db)
    return OrderResponse(**service.to_detail(service.get_order(current_user, order_id)))


@router.put("/orders/{order_id}/status", response_model=OrderResponse)
def update_order_status(
    order_id: int,
    data: OrderStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """变更订单状态（管理员）"""
    service = OrderService(db)
    order = service.update_status(current_user, order_id, data.status)
    return OrderResponse(**service.to_detail(order))


@router.put("/orders/{order_id}/payment-status", response_model=OrderResponse)
def update_payment_status(
    order_id: int,
    data: OrderPaymentStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """标记订单已支付（管理员）"""
    service = OrderService(db)
    order = service.update_payment_status(current_user, order_id, data.payment_status)
    return OrderResponse(**service.to_detail(order))


@router.get("/orders/{order_id}/pdf", response_model=FileHandleResponse)
def generate_order_pdf(
    order_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """生成订单 PDF"""
    handle = DocumentRenderer(db).render_for(current_user, ORDER, order_id)
    return FileHandleResponse(file_name=handle.file_name, pdf_url=handle.url)
