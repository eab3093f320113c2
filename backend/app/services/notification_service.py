"""
通知服务 - 模板化通知的记录与投递

notify() 渲染固定模板、写入通知记录，再尝试推送和邮件两个渠道。
投递是尽力而为：渠道未配置、用户缺少推送令牌或邮箱、渠道抛出异常，
都只记录在 DeliveryResult 和通知记录上，不向调用方抛出。
"""
from typing import Any, Dict, Optional
from dataclasses import dataclass
from datetime import datetime
import logging
import math

from sqlalchemy.orm import Session

from core.notification.channel import NotificationChannelRegistry
from app.models.ontology import Notification, NotificationType, User
from app.housing.errors import NotFound, UserNotFound, ValidationError

logger = logging.getLogger(__name__)


# 模板键 -> (通知类型, 标题, 正文)；正文使用 str.format 占位符
TEMPLATES: Dict[str, tuple] = {
    "order.created": (NotificationType.GROCERY, "New Grocery Order",
                      "Your order #{order_number} has been received"),
    "order.processing": (NotificationType.GROCERY, "Order Processing",
                         "Your order #{order_number} is being prepared"),
    "order.ready": (NotificationType.GROCERY, "Order Ready",
                    "Your order #{order_number} is ready for pickup"),
    "order.delivered": (NotificationType.GROCERY, "Order Delivered",
                        "Your order #{order_number} has been delivered"),
    "order.cancelled": (NotificationType.GROCERY, "Order Cancelled",
                        "Your order #{order_number} has been cancelled"),
    "order.paid": (NotificationType.GROCERY, "Order Paid",
                   "Payment for order #{order_number} has been received"),
    "invoice.created": (NotificationType.INVOICE, "New Invoice",
                        "New invoice #{invoice_number} for {currency} {amount}"),
    "invoice.paid": (NotificationType.INVOICE, "Invoice Paid",
                     "Invoice #{invoice_number} has been paid"),
    "invoice.cancelled": (NotificationType.INVOICE, "Invoice Cancelled",
                          "Invoice #{invoice_number} has been cancelled"),
    "invoice.reminder": (NotificationType.INVOICE, "Payment Reminder",
                         "Invoice #{invoice_number} for {currency} {amount} is awaiting payment"),
    "invoice.overdue": (NotificationType.INVOICE, "Invoice Overdue",
                        "Invoice #{invoice_number} is overdue"),
    "maintenance.created": (NotificationType.MAINTENANCE, "New Maintenance Request",
                            "New {ticket_type} maintenance request for room {room_number}"),
    "maintenance.in_progress": (NotificationType.MAINTENANCE, "Maintenance Request Update",
                                "Your {ticket_type} maintenance request is being processed"),
    "maintenance.completed": (NotificationType.MAINTENANCE, "Maintenance Request Completed",
                              "Your {ticket_type} maintenance request has been completed"),
    "maintenance.cancelled": (NotificationType.MAINTENANCE, "Maintenance Request Cancelled",
                              "Your {ticket_type} maintenance request has been cancelled"),
    "maintenance.assigned": (NotificationType.MAINTENANCE, "Maintenance Request Assigned",
                             "A {ticket_type} maintenance request for room {room_number} was assigned to you"),
}


@dataclass
class DeliveryResult:
    """一次通知投递的结果"""
    notification_id: Optional[int] = None
    push: bool = False
    email: bool = False
    error: Optional[str] = None

    @property
    def delivered(self) -> bool:
        return self.push or self.email


def render_template(template_key: str, context: Dict[str, Any]) -> tuple:
    """返回 (通知类型, 标题, 正文)"""
    if template_key not in TEMPLATES:
        raise ValidationError(f"Unknown notification template: {template_key}")
    notification_type, title, body = TEMPLATES[template_key]
    try:
        return notification_type, title, body.format(**context)
    except KeyError as e:
        raise ValidationError(f"Missing value {e} for notification template {template_key}")


class NotificationDispatcher:
    """通知分发器"""

    def __init__(self, db: Session, registry: NotificationChannelRegistry = None):
        self.db = db
        self.registry = registry or NotificationChannelRegistry()

    def _deliver(self, channel_type: str, recipient: str, title: str, content: str,
                 extra: Optional[Dict] = None) -> tuple:
        """返回 (是否成功, 错误信息)"""
        try:
            return self.registry.send(channel_type, recipient, title, content, extra), None
        except Exception as e:
            logger.error(f"Notification channel {channel_type} raised: {e}", exc_info=True)
            return False, f"{channel_type}: {e}"

    def send(self, user_id: int, title: str, body: str,
             notification_type: NotificationType = NotificationType.SYSTEM,
             data: Optional[Dict[str, Any]] = None,
             template_key: Optional[str] = None) -> DeliveryResult:
        """记录通知并尝试推送和邮件投递"""
        user = self.db.get(User, user_id)
        if not user:
            raise UserNotFound(f"User not found: {user_id}", entity_id=user_id)

        data = {k: str(v) for k, v in (data or {}).items()}
        result = DeliveryResult()
        errors = []

        if user.push_token:
            result.push, error = self._deliver("push", user.push_token, title, body, data)
            if error:
                errors.append(error)
        if user.email:
            result.email, error = self._deliver(
                "email", user.email, title, f"<h1>{title}</h1><p>{body}</p>",
                {"content_type": "html"},
            )
            if error:
                errors.append(error)
        result.error = "; ".join(errors) or None

        notification = Notification(
            user_id=user.id,
            title=title,
            body=body,
            type=notification_type,
            template_key=template_key,
            data=data,
            sent_via_push=result.push,
            sent_via_email=result.email,
            error=result.error,
        )
        self.db.add(notification)
        self.db.commit()
        result.notification_id = notification.id

        logger.info(
            f"Notification {notification.id} for user {user.id}: push={result.push} email={result.email}"
        )
        return result

    def notify(self, user_id: int, template_key: str, context: Dict[str, Any]) -> DeliveryResult:
        """按模板通知用户"""
        notification_type, title, body = render_template(template_key, context)
        return self.send(user_id, title, body, notification_type,
                         data=context, template_key=template_key)

    # ============== 用户端 ==============

    def list_notifications(self, user_id: int, page: int = 1, limit: int = 20,
                           notification_type: Optional[NotificationType] = None,
                           is_read: Optional[bool] = None) -> Dict[str, Any]:
        query = self.db.query(Notification).filter(Notification.user_id == user_id)
        if notification_type:
            query = query.filter(Notification.type == notification_type)
        if is_read is not None:
            query = query.filter(Notification.is_read == is_read)

        total = query.count()
        notifications = query.order_by(
            Notification.created_at.desc(), Notification.id.desc()
        ).offset((page - 1) * limit).limit(limit).all()

        return {
            "notifications": notifications,
            "total": total,
            "page": page,
            "total_pages": math.ceil(total / limit) if limit else 0,
        }

    def mark_as_read(self, user_id: int, notification_id: int) -> Notification:
        notification = self.db.query(Notification).filter(
            Notification.id == notification_id,
            Notification.user_id == user_id,
        ).first()
        if not notification:
            raise NotFound(f"Notification not found: {notification_id}", entity_id=notification_id)
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = datetime.now()
            self.db.commit()
            self.db.refresh(notification)
        return notification

    def mark_all_as_read(self, user_id: int) -> int:
        count = self.db.query(Notification).filter(
            Notification.user_id == user_id,
            Notification.is_read == False,
        ).update({Notification.is_read: True, Notification.read_at: datetime.now()},
                 synchronize_session=False)
        self.db.commit()
        return count
