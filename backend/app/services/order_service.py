"""
订单服务 - 订单生命周期与库存预留

- 创建订单：逐行校验商品存在、上架、库存充足，全部通过后才落库；总价在此刻冻结
- 状态转换：仅管理员；pending -> processing 扣减库存，在途状态取消时归还库存
- 状态写入使用 (id, 旧状态) 条件 UPDATE，并发的相同转换只有一个能成功
- 库存变动与状态写入在同一事务中提交，任何失败整体回滚
"""
from typing import List, Optional, Callable
from datetime import datetime
from collections import defaultdict
import logging

from sqlalchemy.orm import Session, selectinload

from app.models.ontology import (
    GroceryItem, GroceryOrder, GroceryOrderLine, OrderStatus, OrderPaymentStatus, User
)
from app.models.schemas import OrderCreate
from app.models.events import (
    EventType, OrderCreatedData, OrderStatusChangedData, OrderPaymentChangedData
)
from app.services.event_bus import event_bus, Event
from app.services.catalog_service import CatalogService
from app.services.sequence_service import SequenceService, ORDER
from app.housing.domain.order import apply_transition, check_payment_transition, compute_total
from app.housing.domain.access import ensure_admin, ensure_owner_or_admin, owner_scope
from app.housing.errors import (
    NotFound, ItemNotFound, ItemUnavailable, InsufficientStock, InvalidTransition, ValidationError
)

logger = logging.getLogger(__name__)


class OrderService:
    """订单服务"""

    def __init__(self, db: Session, event_publisher: Callable[[Event], None] = None):
        self.db = db
        self._publish_event = event_publisher or event_bus.publish
        self.catalog = CatalogService(db, event_publisher=self._publish_event)
        self.sequence = SequenceService(db)

    # ============== 查询 ==============

    def _load(self, order_id: int) -> GroceryOrder:
        order = self.db.query(GroceryOrder).options(
            selectinload(GroceryOrder.lines).selectinload(GroceryOrderLine.item)
        ).filter(GroceryOrder.id == order_id).first()
        if not order:
            raise NotFound(f"Order not found: {order_id}", entity_id=order_id)
        return order

    def get_order(self, caller: User, order_id: int) -> GroceryOrder:
        """获取订单；非管理员只能读取自己的订单"""
        order = self._load(order_id)
        ensure_owner_or_admin(caller, order.user_id, "view this order")
        return order

    def list_orders(self, caller: User,
                    status: Optional[OrderStatus] = None,
                    room_number: Optional[str] = None,
                    start_date: Optional[datetime] = None,
                    end_date: Optional[datetime] = None) -> List[GroceryOrder]:
        """订单列表，最新的在前；非管理员只返回自己的订单"""
        query = self.db.query(GroceryOrder).options(
            selectinload(GroceryOrder.lines).selectinload(GroceryOrderLine.item)
        )

        owner_id = owner_scope(caller)
        if owner_id is not None:
            query = query.filter(GroceryOrder.user_id == owner_id)
        if status:
            query = query.filter(GroceryOrder.status == status)
        if room_number:
            query = query.filter(GroceryOrder.room_number == room_number)
        if start_date:
            query = query.filter(GroceryOrder.created_at >= start_date)
        if end_date:
            query = query.filter(GroceryOrder.created_at <= end_date)

        return query.order_by(GroceryOrder.created_at.desc(), GroceryOrder.id.desc()).all()

    # ============== 创建 ==============

    def _validate_lines(self, data: OrderCreate) -> List[tuple]:
        """校验全部订单行，返回 (商品, 数量) 列表；任一行失败则不做任何修改"""
        requested = defaultdict(int)
        for line in data.items:
            requested[line.item_id] += line.quantity

        validated = []
        for line in data.items:
            item = self.db.get(GroceryItem, line.item_id)
            if not item:
                raise ItemNotFound(f"Item not found: {line.item_id}", entity_id=line.item_id)
            if not item.is_available:
                raise ItemUnavailable(item.name, item_id=item.id)
            if requested[item.id] > item.stock:
                raise InsufficientStock(item.name, requested=requested[item.id],
                                        available=item.stock, item_id=item.id)
            validated.append((item, line.quantity))
        return validated

    def create_order(self, caller: User, data: OrderCreate) -> GroceryOrder:
        """
        创建订单

        库存在此时只做校验，不扣减；扣减发生在 pending -> processing。
        """
        if not caller.room_number:
            raise ValidationError("A room number is required to place an order")

        validated = self._validate_lines(data)
        total = compute_total((item.price, quantity) for item, quantity in validated)

        try:
            order = GroceryOrder(
                user_id=caller.id,
                room_number=caller.room_number,
                order_number=self.sequence.next_number(ORDER),
                total_amount=total,
                status=OrderStatus.PENDING,
                payment_method=data.payment_method,
                payment_status=OrderPaymentStatus.PENDING,
                notes=data.notes,
            )
            order.lines = [
                GroceryOrderLine(item_id=item.id, quantity=quantity, price=item.price)
                for item, quantity in validated
            ]
            self.db.add(order)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(order)
        logger.info(f"Order {order.order_number} created by user {caller.id}, total {order.total_amount}")

        self._publish_event(Event(
            event_type=EventType.ORDER_CREATED,
            timestamp=datetime.now(),
            data=OrderCreatedData(
                order_id=order.id,
                order_number=order.order_number,
                user_id=order.user_id,
                room_number=order.room_number,
                total_amount=order.total_amount,
                line_count=len(order.lines),
            ).to_dict(),
            source="order_service"
        ))
        return order

    # ============== 状态转换 ==============

    def update_status(self, caller: User, order_id: int, new_status: OrderStatus) -> GroceryOrder:
        """
        管理员变更订单状态

        Raises:
            Unauthorized: 非管理员
            NotFound: 订单不存在
            InvalidTransition: 转换不允许，或并发请求已先完成同一转换
            InsufficientStock: 转入 processing 时库存不足
        """
        ensure_admin(caller, "update order status")
        order = self._load(order_id)
        from_status = OrderStatus(order.status)
        new_status = OrderStatus(new_status)

        try:
            plan = apply_transition(order, from_status, new_status)
        except InvalidTransition:
            logger.warning(f"Rejected order {order.order_number} transition {from_status.value} -> {new_status.value}")
            raise

        values = {GroceryOrder.status: new_status}
        if plan.set_delivery_time:
            values[GroceryOrder.delivery_time] = datetime.now()

        try:
            updated = self.db.query(GroceryOrder).filter(
                GroceryOrder.id == order_id,
                GroceryOrder.status == from_status,
            ).update(values, synchronize_session=False)
            if not updated:
                raise InvalidTransition("order", from_status.value, new_status.value)

            for move in plan.stock_moves:
                self.catalog.adjust_stock(move.item_id, move.delta)

            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(order)
        logger.info(
            f"Order {order.order_number} {from_status.value} -> {new_status.value} by user {caller.id}"
        )

        self._publish_event(Event(
            event_type=EventType.ORDER_STATUS_CHANGED,
            timestamp=datetime.now(),
            data=OrderStatusChangedData(
                order_id=order.id,
                order_number=order.order_number,
                user_id=order.user_id,
                old_status=from_status.value,
                new_status=new_status.value,
                changed_by=caller.id,
                stock_reserved=plan.reserves_stock,
                stock_restored=plan.restores_stock,
            ).to_dict(),
            source="order_service"
        ))
        return order

    def update_payment_status(self, caller: User, order_id: int,
                              payment_status: OrderPaymentStatus) -> GroceryOrder:
        """管理员更新订单支付状态（只能 pending -> paid）"""
        ensure_admin(caller, "update order payment status")
        order = self._load(order_id)
        from_status = OrderPaymentStatus(order.payment_status)
        payment_status = OrderPaymentStatus(payment_status)

        check_payment_transition(from_status, payment_status)

        try:
            updated = self.db.query(GroceryOrder).filter(
                GroceryOrder.id == order_id,
                GroceryOrder.payment_status == from_status,
            ).update({GroceryOrder.payment_status: payment_status}, synchronize_session=False)
            if not updated:
                raise InvalidTransition("order payment", from_status.value, payment_status.value)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(order)
        logger.info(f"Order {order.order_number} payment marked {payment_status.value}")

        self._publish_event(Event(
            event_type=EventType.ORDER_PAYMENT_CHANGED,
            timestamp=datetime.now(),
            data=OrderPaymentChangedData(
                order_id=order.id,
                order_number=order.order_number,
                user_id=order.user_id,
                payment_status=payment_status.value,
                changed_by=caller.id,
            ).to_dict(),
            source="order_service"
        ))
        return order

    # ============== 响应 ==============

    @staticmethod
    def to_detail(order: GroceryOrder) -> dict:
        """订单详情（含商品名称和下单人姓名）"""
        return {
            "id": order.id,
            "order_number": order.order_number,
            "user_id": order.user_id,
            "user_name": order.user.name if order.user else None,
            "room_number": order.room_number,
            "items": [
                {
                    "item_id": line.item_id,
                    "item_name": line.item.name if line.item else None,
                    "quantity": line.quantity,
                    "price": line.price,
                }
                for line in order.lines
            ],
            "total_amount": order.total_amount,
            "status": order.status,
            "payment_method": order.payment_method,
            "payment_status": order.payment_status,
            "notes": order.notes,
            "delivery_time": order.delivery_time,
            "created_at": order.created_at,
        }
