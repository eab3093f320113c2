"""
通知渠道抽象

推送、邮件等具体渠道由 app 层实现并在启动时注册。
渠道只负责把一条消息送到一个接收方；是否需要发、发给谁由通知分发器决定。
"""
from abc import ABC, abstractmethod
from typing import Dict, List, Optional
import logging

logger = logging.getLogger(__name__)


class INotificationChannel(ABC):
    """通知渠道接口

    实现约定：发送失败返回 False，不抛异常；未配置的渠道 enabled 为 False。
    """

    channel_type: str = ""

    @abstractmethod
    def send(self, recipient: str, subject: str, content: str,
             extra: Optional[Dict] = None) -> bool:
        """发送一条通知

        Args:
            recipient: 推送令牌或邮箱地址
            subject: 标题
            content: 正文
            extra: 渠道相关的附加参数（推送数据负载、邮件正文格式）
        """

    def get_channel_type(self) -> str:
        return self.channel_type

    @property
    def enabled(self) -> bool:
        return True


class NotificationChannelRegistry:
    """渠道注册表（进程内单例）"""

    _instance: Optional["NotificationChannelRegistry"] = None

    def __new__(cls) -> "NotificationChannelRegistry":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._channels = {}
        return cls._instance

    def register(self, channel: INotificationChannel) -> None:
        """注册渠道；同类型的旧渠道被替换"""
        channel_type = channel.get_channel_type()
        if channel_type in self._channels:
            logger.info(f"Replacing notification channel '{channel_type}'")
        self._channels[channel_type] = channel
        if not channel.enabled:
            logger.warning(f"Notification channel '{channel_type}' registered but not configured")

    def get_channel(self, channel_type: str) -> Optional[INotificationChannel]:
        return self._channels.get(channel_type)

    def get_all_channels(self) -> List[INotificationChannel]:
        return list(self._channels.values())

    def status(self) -> Dict[str, bool]:
        """渠道类型 -> 是否可用"""
        return {channel_type: channel.enabled for channel_type, channel in self._channels.items()}

    def send(self, channel_type: str, recipient: str, subject: str, content: str,
             extra: Optional[Dict] = None) -> bool:
        """经指定渠道发送；渠道缺失或未配置时返回 False"""
        channel = self._channels.get(channel_type)
        if channel is None or not channel.enabled:
            logger.warning(f"Notification skipped: channel '{channel_type}' is not configured")
            return False
        return channel.send(recipient, subject, content, extra)

    def clear(self) -> None:
        """清空已注册渠道（测试用）"""
        self._channels.clear()
