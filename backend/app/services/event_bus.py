"""
事件总线 - 进程内发布/订阅

服务层在事务提交之后发布领域事件，通知等尽力而为的副作用由订阅者完成。
订阅者抛出的异常只记录日志，不会传回发布方，也不会影响其他订阅者。
"""
from typing import Callable, Dict, List, Any, Optional
from dataclasses import dataclass, field
from datetime import datetime
from collections import deque
import logging
import threading
import uuid

logger = logging.getLogger(__name__)


@dataclass
class Event:
    """领域事件"""
    event_type: str
    timestamp: datetime
    data: Dict[str, Any]
    source: str  # 发布方（服务名）
    event_id: str = field(default_factory=lambda: uuid.uuid4().hex)


class EventBus:
    """
    线程安全的单例事件总线

    订阅：event_bus.subscribe(EventType.ORDER_CREATED, handler)
    发布：event_bus.publish(Event(...))
    """

    _instance = None
    _lock = threading.Lock()

    def __new__(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return
        self._subscribers: Dict[str, List[Callable]] = {}
        self._recent: deque = deque(maxlen=50)
        self._subscriber_lock = threading.Lock()
        self._initialized = True

    @staticmethod
    def _key(event_type) -> str:
        return getattr(event_type, "value", event_type)

    def subscribe(self, event_type: str, handler: Callable[[Event], None]) -> None:
        key = self._key(event_type)
        with self._subscriber_lock:
            handlers = self._subscribers.setdefault(key, [])
            if handler not in handlers:
                handlers.append(handler)
                logger.debug(f"Handler {handler.__name__} subscribed to {key}")

    def unsubscribe(self, event_type: str, handler: Callable[[Event], None]) -> None:
        key = self._key(event_type)
        with self._subscriber_lock:
            handlers = self._subscribers.get(key, [])
            if handler in handlers:
                handlers.remove(handler)

    def publish(self, event: Event) -> int:
        """
        同步分发事件

        Returns:
            成功执行的处理器数量
        """
        key = self._key(event.event_type)
        self._recent.append(event)

        with self._subscriber_lock:
            handlers = list(self._subscribers.get(key, []))

        delivered = 0
        for handler in handlers:
            try:
                handler(event)
                delivered += 1
            except Exception as e:
                logger.error(f"Event handler {handler.__name__} failed for {key}: {e}", exc_info=True)
        return delivered

    def recent_events(self, event_type: Optional[str] = None) -> List[Event]:
        """最近发布的事件，最新的在前"""
        events = list(reversed(self._recent))
        if event_type:
            key = self._key(event_type)
            events = [e for e in events if self._key(e.event_type) == key]
        return events

    def subscriber_count(self, event_type: str) -> int:
        with self._subscriber_lock:
            return len(self._subscribers.get(self._key(event_type), []))

    def reset(self) -> None:
        """清空订阅和事件记录（用于测试）"""
        with self._subscriber_lock:
            self._subscribers.clear()
        self._recent.clear()


# 全局事件总线实例
event_bus = EventBus()
