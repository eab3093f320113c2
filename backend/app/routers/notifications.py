"""
通知路由
"""
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from app.database import get_db
from app.models.ontology import User, NotificationType
from app.models.schemas import (
    NotificationPage, NotificationResponse, NotificationSendRequest, DeliveryResultResponse
)
from app.services.notification_service import NotificationDispatcher
from app.security.auth import get_current_user, require_admin

router = APIRouter(prefix="/notifications", tags=["通知"])


@router.get("", response_model=NotificationPage)
def list_notifications(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    type: Optional[NotificationType] = None,
    is_read: Optional[bool] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """我的通知（分页）"""
    result = NotificationDispatcher(db).list_notifications(current_user.id, page, limit, type, is_read)
    return NotificationPage(
        notifications=[NotificationResponse.model_validate(n) for n in result["notifications"]],
        total=result["total"],
        page=result["page"],
        total_pages=result["total_pages"],
    )


@router.put("/read-all")
def mark_all_as_read(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """全部标为已读"""
    updated = NotificationDispatcher(db).mark_all_as_read(current_user.id)
    return {"message": "All notifications marked as read", "updated": updated}


@router.put("/{notification_id}/read", response_model=NotificationResponse)
def mark_as_read(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return NotificationDispatcher(db).mark_as_read(current_user.id, notification_id)


@router.post("/test", response_model=DeliveryResultResponse)
def send_test_notification(
    data: NotificationSendRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """发送测试通知（管理员）"""
    result = NotificationDispatcher(db).send(data.user_id, data.title, data.body, data.type)
    return DeliveryResultResponse(
        notification_id=result.notification_id,
        push=result.push,
        email=result.email,
        error=result.error,
    )
