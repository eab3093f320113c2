"""
通知渠道实现：推送与邮件
"""
from core.notification.channel import NotificationChannelRegistry
from app.config import settings
from app.system.notification.email_channel import EmailChannel
from app.system.notification.push_channel import PushChannel


def register_notification_channels(registry: NotificationChannelRegistry = None) -> NotificationChannelRegistry:
    """按配置注册推送和邮件渠道（应用启动时调用）"""
    registry = registry or NotificationChannelRegistry()
    registry.register(PushChannel(
        project_id=settings.FIREBASE_PROJECT_ID,
        client_email=settings.FIREBASE_CLIENT_EMAIL,
        private_key=settings.FIREBASE_PRIVATE_KEY,
    ))
    registry.register(EmailChannel(
        smtp_host=settings.SMTP_HOST,
        smtp_port=settings.SMTP_PORT,
        smtp_user=settings.SMTP_USER,
        smtp_password=settings.SMTP_PASSWORD,
        sender_email=settings.SMTP_SENDER,
    ))
    return registry


__all__ = ["EmailChannel", "PushChannel", "register_notification_channels"]
