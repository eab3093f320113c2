"""
商品目录服务

库存只通过 adjust_stock 的条件 UPDATE 变动，不在进程内缓存；
每次订单状态转换都重新读取持久化的库存。
"""
from typing import List, Optional, Callable
from datetime import datetime
import logging

from sqlalchemy.orm import Session

from app.models.ontology import GroceryItem, GroceryOrderLine, ItemCategory
from app.models.schemas import GroceryItemCreate, GroceryItemUpdate
from app.models.events import EventType, StockAdjustedData
from app.services.event_bus import event_bus, Event
from app.housing.errors import ItemNotFound, InsufficientStock, ValidationError

logger = logging.getLogger(__name__)


class CatalogService:
    """商品目录服务"""

    def __init__(self, db: Session, event_publisher: Callable[[Event], None] = None):
        self.db = db
        self._publish_event = event_publisher or event_bus.publish

    def list_items(self, category: Optional[ItemCategory] = None,
                   available_only: bool = False) -> List[GroceryItem]:
        query = self.db.query(GroceryItem)
        if category:
            query = query.filter(GroceryItem.category == category)
        if available_only:
            query = query.filter(GroceryItem.is_available == True, GroceryItem.stock > 0)
        return query.order_by(GroceryItem.category, GroceryItem.name).all()

    def get_item(self, item_id: int) -> GroceryItem:
        item = self.db.get(GroceryItem, item_id)
        if not item:
            raise ItemNotFound(f"Item not found: {item_id}", entity_id=item_id)
        return item

    def is_available(self, item_id: int) -> bool:
        """商品存在、已上架且有库存"""
        item = self.db.get(GroceryItem, item_id)
        return bool(item and item.is_available and item.stock > 0)

    def create_item(self, data: GroceryItemCreate) -> GroceryItem:
        item = GroceryItem(**data.model_dump())
        self.db.add(item)
        self.db.commit()
        self.db.refresh(item)
        logger.info(f"Grocery item created: {item.name} (id={item.id})")
        return item

    def update_item(self, item_id: int, data: GroceryItemUpdate) -> GroceryItem:
        """部分更新；库存通过 set_stock 单独修改"""
        item = self.get_item(item_id)
        for field_name, value in data.model_dump(exclude_unset=True).items():
            setattr(item, field_name, value)
        self.db.commit()
        self.db.refresh(item)
        return item

    def delete_item(self, item_id: int) -> None:
        item = self.get_item(item_id)
        referenced = self.db.query(GroceryOrderLine.id).filter(
            GroceryOrderLine.item_id == item_id
        ).first()
        if referenced:
            raise ValidationError(
                f"Item {item.name} is referenced by existing orders; mark it unavailable instead",
                entity_id=item_id,
            )
        self.db.delete(item)
        self.db.commit()
        logger.info(f"Grocery item deleted: {item_id}")

    def toggle_availability(self, item_id: int) -> GroceryItem:
        item = self.get_item(item_id)
        item.is_available = not item.is_available
        self.db.commit()
        self.db.refresh(item)
        return item

    def adjust_stock(self, item_id: int, delta: int) -> GroceryItem:
        """
        原子调整库存（不提交事务）

        单条条件 UPDATE：stock = stock + delta WHERE stock + delta >= 0。
        条件不满足时抛出 InsufficientStock，库存保持不变。
        """
        updated = self.db.query(GroceryItem).filter(
            GroceryItem.id == item_id,
            GroceryItem.stock + delta >= 0,
        ).update({GroceryItem.stock: GroceryItem.stock + delta}, synchronize_session=False)

        item = self.db.get(GroceryItem, item_id, populate_existing=True)
        if item is None:
            raise ItemNotFound(f"Item not found: {item_id}", entity_id=item_id)
        if not updated:
            raise InsufficientStock(item.name, requested=-delta, available=item.stock, item_id=item_id)
        return item

    def set_stock(self, item_id: int, stock: int, changed_by: Optional[int] = None) -> GroceryItem:
        """
        管理员直接设置库存

        单条 UPDATE 写入绝对值，并发的订单预留不会改变最终结果；
        事件中的 delta 相对写入前读到的库存。
        """
        if stock < 0:
            raise ValidationError("Stock cannot be negative", entity_id=item_id)
        previous = self.get_item(item_id).stock
        try:
            self.db.query(GroceryItem).filter(GroceryItem.id == item_id).update(
                {GroceryItem.stock: stock}, synchronize_session=False
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        item = self.db.get(GroceryItem, item_id, populate_existing=True)
        delta = stock - previous

        self._publish_event(Event(
            event_type=EventType.STOCK_ADJUSTED,
            timestamp=datetime.now(),
            data=StockAdjustedData(
                item_id=item.id,
                item_name=item.name,
                delta=delta,
                stock=item.stock,
                reason=f"set by user {changed_by}" if changed_by else "set",
            ).to_dict(),
            source="catalog_service"
        ))
        return item
