"""
事件处理器 - 把领域事件转成用户通知

处理器在事务提交之后运行，失败只记录日志，不影响已提交的状态转换。

支持依赖注入以便于测试：
- db_session_factory: 数据库会话工厂
- dispatcher_factory: 通知分发器工厂
"""
from typing import Any, Callable, Dict, Optional
import logging

from app.config import settings
from app.database import SessionLocal
from app.models.events import EventType
from app.models.ontology import MaintenanceTicket
from app.services.event_bus import event_bus, Event
from app.services.notification_service import NotificationDispatcher, TEMPLATES

logger = logging.getLogger(__name__)


class EventHandlers:
    """事件处理器集合"""

    def __init__(
        self,
        db_session_factory: Callable = None,
        dispatcher_factory: Callable = None
    ):
        self._db_session_factory = db_session_factory or SessionLocal
        self._dispatcher_factory = dispatcher_factory
        self._registered = False

    def _get_db(self):
        return self._db_session_factory()

    def _get_dispatcher(self, db) -> NotificationDispatcher:
        if self._dispatcher_factory:
            return self._dispatcher_factory(db)
        return NotificationDispatcher(db)

    def _notify(self, user_id: Optional[int], template_key: str, context: Dict[str, Any]) -> None:
        if not user_id:
            logger.warning(f"Notification {template_key} skipped: event has no user")
            return
        if template_key not in TEMPLATES:
            return

        db = self._get_db()
        try:
            result = self._get_dispatcher(db).notify(user_id, template_key, context)
            if result.error:
                logger.warning(f"Notification {template_key} for user {user_id} delivered with errors: {result.error}")
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to notify user {user_id} ({template_key}): {e}", exc_info=True)
        finally:
            db.close()

    # ============== 订单 ==============

    def handle_order_created(self, event: Event) -> None:
        data = event.data
        self._notify(data.get("user_id"), "order.created", {"order_number": data.get("order_number")})

    def handle_order_status_changed(self, event: Event) -> None:
        """订单状态变化：按新状态选择模板"""
        data = event.data
        self._notify(
            data.get("user_id"),
            f"order.{data.get('new_status')}",
            {"order_number": data.get("order_number")},
        )

    def handle_order_payment_changed(self, event: Event) -> None:
        data = event.data
        self._notify(
            data.get("user_id"),
            f"order.{data.get('payment_status')}",
            {"order_number": data.get("order_number")},
        )

    # ============== 账单 ==============

    def handle_invoice_created(self, event: Event) -> None:
        data = event.data
        self._notify(data.get("user_id"), "invoice.created", {
            "invoice_number": data.get("invoice_number"),
            "amount": data.get("amount"),
            "currency": settings.CURRENCY,
        })

    def handle_invoice_status_changed(self, event: Event) -> None:
        """账单支付 / 取消"""
        data = event.data
        self._notify(
            data.get("user_id"),
            f"invoice.{data.get('new_status')}",
            {"invoice_number": data.get("invoice_number")},
        )

    def handle_invoice_reminder(self, event: Event) -> None:
        data = event.data
        template_key = "invoice.overdue" if data.get("overdue") else "invoice.reminder"
        self._notify(data.get("user_id"), template_key, {
            "invoice_number": data.get("invoice_number"),
            "amount": data.get("amount"),
            "currency": settings.CURRENCY,
        })

    # ============== 报修 ==============

    def handle_maintenance_created(self, event: Event) -> None:
        data = event.data
        self._notify(data.get("user_id"), "maintenance.created", {
            "ticket_type": data.get("ticket_type"),
            "room_number": data.get("room_number"),
        })

    def handle_maintenance_status_changed(self, event: Event) -> None:
        data = event.data
        self._notify(
            data.get("user_id"),
            f"maintenance.{data.get('new_status')}",
            {"ticket_type": data.get("ticket_type")},
        )

    def handle_maintenance_assigned(self, event: Event) -> None:
        """通知被指派的管理员"""
        data = event.data
        db = self._get_db()
        try:
            ticket = db.get(MaintenanceTicket, data.get("ticket_id"))
            room_number = ticket.room_number if ticket else ""
        finally:
            db.close()
        self._notify(data.get("assignee_id"), "maintenance.assigned", {
            "ticket_type": data.get("ticket_type"),
            "room_number": room_number,
        })

    # ============== 注册 ==============

    def _subscriptions(self):
        return [
            (EventType.ORDER_CREATED, self.handle_order_created),
            (EventType.ORDER_STATUS_CHANGED, self.handle_order_status_changed),
            (EventType.ORDER_PAYMENT_CHANGED, self.handle_order_payment_changed),
            (EventType.INVOICE_CREATED, self.handle_invoice_created),
            (EventType.INVOICE_PAID, self.handle_invoice_status_changed),
            (EventType.INVOICE_CANCELLED, self.handle_invoice_status_changed),
            (EventType.INVOICE_REMINDER, self.handle_invoice_reminder),
            (EventType.MAINTENANCE_CREATED, self.handle_maintenance_created),
            (EventType.MAINTENANCE_STATUS_CHANGED, self.handle_maintenance_status_changed),
            (EventType.MAINTENANCE_ASSIGNED, self.handle_maintenance_assigned),
        ]

    def register_handlers(self, event_bus_instance=None) -> None:
        """注册所有事件处理器"""
        if self._registered:
            return

        bus = event_bus_instance or event_bus
        for event_type, handler in self._subscriptions():
            bus.subscribe(event_type, handler)

        self._registered = True
        logger.info("Event handlers registered successfully")

    def unregister_handlers(self, event_bus_instance=None) -> None:
        """取消注册所有事件处理器（用于测试）"""
        bus = event_bus_instance or event_bus
        for event_type, handler in self._subscriptions():
            bus.unsubscribe(event_type, handler)

        self._registered = False
        logger.info("Event handlers unregistered")


# 全局事件处理器实例
event_handlers = EventHandlers()


def register_event_handlers():
    """注册所有事件处理器（应用启动时调用）"""
    event_handlers.register_handlers()
