"""
编号生成服务

每个 (实体类, 时间窗口) 对应 sequence_counters 表中的一行计数器，
通过条件 UPDATE 原子递增，与业务实体在同一事务中提交。
两个并发请求在同一窗口内不会拿到相同的序号；
唯一索引兜底，计数器首次创建时的插入冲突会重试。
"""
from datetime import datetime
from typing import Optional
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import settings
from app.models.ontology import SequenceCounter

logger = logging.getLogger(__name__)

ORDER = "order"
INVOICE = "invoice"

# 实体类 -> (前缀, 窗口格式, 补零位数)
_FORMATS = {
    ORDER: ("ORD", "%Y%m%d", lambda: settings.ORDER_SEQUENCE_PAD),
    INVOICE: ("INV", "%Y%m", lambda: settings.INVOICE_SEQUENCE_PAD),
}


def scope_key(entity_class: str, now: Optional[datetime] = None) -> str:
    """时间窗口键：订单按天，账单按月"""
    _, fmt, _ = _FORMATS[entity_class]
    return (now or datetime.now()).strftime(fmt)


def format_number(entity_class: str, key: str, ordinal: int) -> str:
    prefix, _, pad = _FORMATS[entity_class]
    return f"{prefix}-{key}-{ordinal:0{pad()}d}"


class SequenceService:
    """编号生成服务"""

    MAX_ATTEMPTS = 3

    def __init__(self, db: Session):
        self.db = db

    def _increment(self, entity_class: str, key: str) -> Optional[int]:
        updated = self.db.query(SequenceCounter).filter(
            SequenceCounter.entity_class == entity_class,
            SequenceCounter.scope_key == key,
        ).update({SequenceCounter.value: SequenceCounter.value + 1}, synchronize_session=False)
        if not updated:
            return None
        return self.db.query(SequenceCounter.value).filter(
            SequenceCounter.entity_class == entity_class,
            SequenceCounter.scope_key == key,
        ).scalar()

    def next_value(self, entity_class: str, key: str) -> int:
        """
        递增并返回窗口内的下一个序号（从 1 开始）

        不提交事务；调用方在同一事务中写入实体后一起提交。
        """
        for _ in range(self.MAX_ATTEMPTS):
            value = self._increment(entity_class, key)
            if value is not None:
                return value
            try:
                with self.db.begin_nested():
                    self.db.add(SequenceCounter(entity_class=entity_class, scope_key=key, value=1))
                return 1
            except IntegrityError:
                # 并发请求抢先创建了计数器，回到 UPDATE 分支
                logger.info(f"Sequence counter {entity_class}/{key} created concurrently, retrying")
        raise RuntimeError(f"Unable to allocate sequence number for {entity_class}/{key}")

    def next_number(self, entity_class: str, key: Optional[str] = None) -> str:
        """生成下一个编号，如 ORD-20240115-001、INV-202401-0001"""
        key = key or scope_key(entity_class)
        return format_number(entity_class, key, self.next_value(entity_class, key))
