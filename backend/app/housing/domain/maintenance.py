"""
报修单守卫

报修状态不限制转换顺序；完成时间只在变为 completed 时记录，
指派对象必须是管理员。
"""
from datetime import datetime
from typing import Optional

from core.engine.state_machine import TransitionTable
from app.models.ontology import MaintenanceStatus, User, UserType
from app.housing.errors import InvalidAssignee

MAINTENANCE_TRANSITIONS = TransitionTable.permissive(
    "MaintenanceTicket",
    initial_state=MaintenanceStatus.PENDING,
    states=list(MaintenanceStatus),
)


def completion_timestamp(old_status: MaintenanceStatus, new_status: MaintenanceStatus,
                         current: Optional[datetime],
                         now: Optional[datetime] = None) -> Optional[datetime]:
    """从其他状态变为 completed 时返回当前时间，否则保持原值"""
    if (MaintenanceStatus(new_status) == MaintenanceStatus.COMPLETED
            and MaintenanceStatus(old_status) != MaintenanceStatus.COMPLETED):
        return now or datetime.now()
    return current


def check_assignee(assignee: Optional[User]) -> User:
    """指派对象必须存在且为管理员"""
    if assignee is None or assignee.type != UserType.ADMIN:
        raise InvalidAssignee("Invalid assigned user")
    return assignee
