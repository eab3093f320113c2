"""
访问控制守卫

管理员可以读写全部实体；住户和工人只能访问自己的实体。
"""
from app.models.ontology import User, UserType
from app.housing.errors import Unauthorized


def is_admin(caller: User) -> bool:
    return caller is not None and caller.type == UserType.ADMIN


def ensure_admin(caller: User, action: str) -> None:
    if not is_admin(caller):
        raise Unauthorized(f"Not authorized to {action}")


def ensure_owner_or_admin(caller: User, owner_id: int, action: str) -> None:
    if is_admin(caller):
        return
    if caller is None or caller.id != owner_id:
        raise Unauthorized(f"Not authorized to {action}")


def owner_scope(caller: User):
    """列表查询的归属过滤：管理员返回 None（不过滤），其他人返回自己的 id"""
    return None if is_admin(caller) else caller.id
