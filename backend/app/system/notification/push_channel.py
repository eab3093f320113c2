"""
推送通知渠道：经 Firebase Cloud Messaging 发送到设备令牌

服务账号凭据来自配置；Firebase 应用在首次发送时初始化，按名称复用。
"""
import logging
from typing import Dict, Optional

import firebase_admin
from firebase_admin import credentials, exceptions, messaging

from core.notification.channel import INotificationChannel

logger = logging.getLogger(__name__)

APP_NAME = "hms-push"
TOKEN_URI = "https://oauth2.googleapis.com/token"


class PushChannel(INotificationChannel):
    """设备推送渠道"""

    channel_type = "push"

    def __init__(
        self,
        project_id: Optional[str] = None,
        client_email: Optional[str] = None,
        private_key: Optional[str] = None,
        app_name: str = APP_NAME,
    ):
        self.project_id = project_id
        self.client_email = client_email
        # .env 中的私钥通常以字面量 \n 换行
        self.private_key = private_key.replace("\\n", "\n") if private_key else None
        self.app_name = app_name
        self._app = None

    @property
    def enabled(self) -> bool:
        return bool(self.project_id and self.client_email and self.private_key)

    def _service_account(self) -> Dict[str, str]:
        return {
            "type": "service_account",
            "project_id": self.project_id,
            "client_email": self.client_email,
            "private_key": self.private_key,
            "token_uri": TOKEN_URI,
        }

    def _get_app(self):
        if self._app is None:
            try:
                self._app = firebase_admin.get_app(self.app_name)
            except ValueError:
                cred = credentials.Certificate(self._service_account())
                self._app = firebase_admin.initialize_app(cred, name=self.app_name)
                logger.info(f"Firebase app '{self.app_name}' initialized for project {self.project_id}")
        return self._app

    def build_message(self, recipient: str, subject: str, content: str,
                      extra: Optional[Dict] = None) -> messaging.Message:
        """FCM 的 data 负载只接受字符串值"""
        return messaging.Message(
            token=recipient,
            notification=messaging.Notification(title=subject, body=content),
            data={str(k): str(v) for k, v in (extra or {}).items()},
        )

    def send(
        self,
        recipient: str,
        subject: str,
        content: str,
        extra: Optional[Dict] = None,
    ) -> bool:
        """发送推送

        Args:
            recipient: 设备推送令牌
            subject: 推送标题
            content: 推送正文
            extra: 随推送下发的数据负载
        """
        if not self.enabled:
            logger.warning("Push notification skipped: Firebase credentials are not configured")
            return False

        try:
            message_id = messaging.send(
                self.build_message(recipient, subject, content, extra),
                app=self._get_app(),
            )
        except (exceptions.FirebaseError, ValueError) as e:
            logger.error(f"Failed to send push notification: {e}")
            return False

        logger.info(f"Push sent: {subject} ({message_id})")
        return True
