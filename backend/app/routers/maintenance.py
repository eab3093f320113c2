"""
报修路由
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from app.database import get_db
from app.models.ontology import User, MaintenanceStatus, MaintenanceType
from app.models.schemas import (
    MaintenanceCreate, MaintenanceStatusUpdate, MaintenanceAssign, MaintenanceResponse, NoteCreate
)
from app.services.maintenance_service import MaintenanceService
from app.security.auth import get_current_user

router = APIRouter(prefix="/maintenance", tags=["报修管理"])


@router.post("", response_model=MaintenanceResponse, status_code=status.HTTP_201_CREATED)
def create_request(
    data: MaintenanceCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """提交报修"""
    service = MaintenanceService(db)
    return MaintenanceResponse(**service.to_detail(service.create_ticket(current_user, data)))


@router.get("", response_model=List[MaintenanceResponse])
def list_requests(
    status: Optional[MaintenanceStatus] = None,
    room_number: Optional[str] = None,
    type: Optional[MaintenanceType] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    service = MaintenanceService(db)
    tickets = service.list_tickets(current_user, status, room_number, type)
    return [MaintenanceResponse(**service.to_detail(t)) for t in tickets]


@router.get("/{ticket_id}", response_model=MaintenanceResponse)
def get_request(
    ticket_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    service = MaintenanceService(db)
    return MaintenanceResponse(**service.to_detail(service.get_ticket(current_user, ticket_id)))


@router.put("/{ticket_id}/status", response_model=MaintenanceResponse)
def update_request_status(
    ticket_id: int,
    data: MaintenanceStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """更新报修状态（管理员）"""
    service = MaintenanceService(db)
    ticket = service.update_status(current_user, ticket_id, data.status, data.note)
    return MaintenanceResponse(**service.to_detail(ticket))


@router.put("/{ticket_id}/assign", response_model=MaintenanceResponse)
def assign_request(
    ticket_id: int,
    data: MaintenanceAssign,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """指派处理人（管理员）"""
    service = MaintenanceService(db)
    return MaintenanceResponse(**service.to_detail(service.assign(current_user, ticket_id, data.assigned_to)))


@router.post("/{ticket_id}/notes", response_model=MaintenanceResponse)
def add_request_note(
    ticket_id: int,
    data: NoteCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    service = MaintenanceService(db)
    return MaintenanceResponse(**service.to_detail(service.add_note(current_user, ticket_id, data.content)))
