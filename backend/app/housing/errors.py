"""
领域错误分类

服务层抛出这些异常，由 app.main 中注册的统一异常处理器转换为 HTTP 响应。
"""
from typing import Optional


class HousingError(Exception):
    """领域错误基类"""

    status_code: int = 400

    def __init__(self, message: str, entity_id: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.entity_id = entity_id

    def __str__(self) -> str:
        return self.message


class NotFound(HousingError):
    """实体不存在"""
    status_code = 404


class UserNotFound(NotFound):
    """用户不存在"""


class ItemNotFound(NotFound):
    """商品不存在"""


class Unauthorized(HousingError):
    """角色不允许该操作"""
    status_code = 403


class InvalidTransition(HousingError):
    """请求的状态变更不在允许集合中"""
    status_code = 409

    def __init__(self, entity: str, from_status: str, to_status: str):
        super().__init__(f"Invalid {entity} status transition from {from_status} to {to_status}")
        self.entity = entity
        self.from_status = from_status
        self.to_status = to_status


class InsufficientStock(HousingError):
    """库存不足"""
    status_code = 409

    def __init__(self, item_name: str, requested: int, available: Optional[int] = None,
                 item_id: Optional[int] = None):
        super().__init__(f"Insufficient stock for item: {item_name}", entity_id=item_id)
        self.item_name = item_name
        self.requested = requested
        self.available = available


class ItemUnavailable(HousingError):
    """商品已下架"""
    status_code = 409

    def __init__(self, item_name: str, item_id: Optional[int] = None):
        super().__init__(f"Item is not available: {item_name}", entity_id=item_id)
        self.item_name = item_name


class InvalidAssignee(HousingError):
    """指派对象不存在或不是管理员"""
    status_code = 400


class ValidationError(HousingError):
    """输入格式错误，在修改持久化状态之前拦截"""
    status_code = 422
