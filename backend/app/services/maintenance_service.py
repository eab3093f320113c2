"""
报修服务
状态不限制转换顺序；完成时间只在变为 completed 时记录；指派对象必须是管理员
"""
from typing import List, Optional, Callable
from datetime import datetime
import logging

from sqlalchemy.orm import Session, selectinload

from app.models.ontology import (
    MaintenanceTicket, MaintenanceNote, MaintenanceStatus, MaintenanceType, User
)
from app.models.schemas import MaintenanceCreate
from app.models.events import (
    EventType, MaintenanceCreatedData, MaintenanceStatusChangedData, MaintenanceAssignedData
)
from app.services.event_bus import event_bus, Event
from app.housing.domain.maintenance import completion_timestamp, check_assignee
from app.housing.domain.access import ensure_admin, ensure_owner_or_admin, owner_scope
from app.housing.errors import NotFound, ValidationError

logger = logging.getLogger(__name__)


class MaintenanceService:
    """报修服务"""

    def __init__(self, db: Session, event_publisher: Callable[[Event], None] = None):
        self.db = db
        self._publish_event = event_publisher or event_bus.publish

    def _load(self, ticket_id: int) -> MaintenanceTicket:
        ticket = self.db.query(MaintenanceTicket).options(
            selectinload(MaintenanceTicket.notes).selectinload(MaintenanceNote.author)
        ).filter(MaintenanceTicket.id == ticket_id).first()
        if not ticket:
            raise NotFound(f"Maintenance request not found: {ticket_id}", entity_id=ticket_id)
        return ticket

    def get_ticket(self, caller: User, ticket_id: int) -> MaintenanceTicket:
        ticket = self._load(ticket_id)
        ensure_owner_or_admin(caller, ticket.user_id, "view this maintenance request")
        return ticket

    def list_tickets(self, caller: User,
                     status: Optional[MaintenanceStatus] = None,
                     room_number: Optional[str] = None,
                     ticket_type: Optional[MaintenanceType] = None) -> List[MaintenanceTicket]:
        query = self.db.query(MaintenanceTicket).options(
            selectinload(MaintenanceTicket.notes).selectinload(MaintenanceNote.author)
        )
        owner_id = owner_scope(caller)
        if owner_id is not None:
            query = query.filter(MaintenanceTicket.user_id == owner_id)
        if status:
            query = query.filter(MaintenanceTicket.status == status)
        if room_number:
            query = query.filter(MaintenanceTicket.room_number == room_number)
        if ticket_type:
            query = query.filter(MaintenanceTicket.type == ticket_type)
        return query.order_by(MaintenanceTicket.created_at.desc(), MaintenanceTicket.id.desc()).all()

    def create_ticket(self, caller: User, data: MaintenanceCreate) -> MaintenanceTicket:
        """住户提交报修"""
        if not caller.room_number:
            raise ValidationError("A room number is required to submit a maintenance request")

        ticket = MaintenanceTicket(
            user_id=caller.id,
            room_number=caller.room_number,
            type=data.type,
            description=data.description,
            priority=data.priority,
            status=MaintenanceStatus.PENDING,
            images=list(data.images),
        )
        ticket.notes = [MaintenanceNote(
            user_id=caller.id,
            content=f"Maintenance request created for {data.type.value}",
        )]
        self.db.add(ticket)
        self.db.commit()
        self.db.refresh(ticket)
        logger.info(f"Maintenance request {ticket.id} ({ticket.type.value}) created by user {caller.id}")

        self._publish_event(Event(
            event_type=EventType.MAINTENANCE_CREATED,
            timestamp=datetime.now(),
            data=MaintenanceCreatedData(
                ticket_id=ticket.id,
                user_id=ticket.user_id,
                room_number=ticket.room_number,
                ticket_type=ticket.type.value,
                priority=ticket.priority.value,
            ).to_dict(),
            source="maintenance_service"
        ))
        return ticket

    def update_status(self, caller: User, ticket_id: int, status: MaintenanceStatus,
                      note: Optional[str] = None) -> MaintenanceTicket:
        """管理员更新报修状态，可同时追加备注"""
        ensure_admin(caller, "update maintenance status")
        ticket = self._load(ticket_id)
        old_status = MaintenanceStatus(ticket.status)
        status = MaintenanceStatus(status)

        ticket.status = status
        ticket.completed_at = completion_timestamp(old_status, status, ticket.completed_at)
        if note and note.strip():
            ticket.notes.append(MaintenanceNote(user_id=caller.id, content=note.strip()))
        self.db.commit()
        ticket = self._load(ticket_id)
        logger.info(f"Maintenance request {ticket.id} {old_status.value} -> {status.value}")

        self._publish_event(Event(
            event_type=EventType.MAINTENANCE_STATUS_CHANGED,
            timestamp=datetime.now(),
            data=MaintenanceStatusChangedData(
                ticket_id=ticket.id,
                user_id=ticket.user_id,
                ticket_type=ticket.type.value,
                old_status=old_status.value,
                new_status=status.value,
                changed_by=caller.id,
            ).to_dict(),
            source="maintenance_service"
        ))
        return ticket

    def assign(self, caller: User, ticket_id: int, assignee_id: int) -> MaintenanceTicket:
        """管理员指派处理人（必须是管理员）"""
        ensure_admin(caller, "assign maintenance requests")
        ticket = self._load(ticket_id)
        assignee = check_assignee(self.db.get(User, assignee_id))

        ticket.assigned_to_id = assignee.id
        ticket.notes.append(MaintenanceNote(user_id=caller.id, content=f"Request assigned to {assignee.name}"))
        self.db.commit()
        ticket = self._load(ticket_id)
        logger.info(f"Maintenance request {ticket.id} assigned to user {assignee.id}")

        self._publish_event(Event(
            event_type=EventType.MAINTENANCE_ASSIGNED,
            timestamp=datetime.now(),
            data=MaintenanceAssignedData(
                ticket_id=ticket.id,
                user_id=ticket.user_id,
                ticket_type=ticket.type.value,
                assignee_id=assignee.id,
                assignee_name=assignee.name,
                assigned_by=caller.id,
            ).to_dict(),
            source="maintenance_service"
        ))
        return ticket

    def add_note(self, caller: User, ticket_id: int, content: str) -> MaintenanceTicket:
        ticket = self._load(ticket_id)
        ensure_owner_or_admin(caller, ticket.user_id, "add notes to this maintenance request")
        content = (content or "").strip()
        if not content:
            raise ValidationError("Note content cannot be empty", entity_id=ticket_id)
        ticket.notes.append(MaintenanceNote(user_id=caller.id, content=content))
        self.db.commit()
        return self._load(ticket_id)

    @staticmethod
    def to_detail(ticket: MaintenanceTicket) -> dict:
        return {
            "id": ticket.id,
            "user_id": ticket.user_id,
            "user_name": ticket.user.name if ticket.user else None,
            "room_number": ticket.room_number,
            "type": ticket.type,
            "description": ticket.description,
            "priority": ticket.priority,
            "status": ticket.status,
            "assigned_to": ticket.assigned_to_id,
            "assignee_name": ticket.assignee.name if ticket.assignee else None,
            "images": ticket.images or [],
            "completed_at": ticket.completed_at,
            "notes": [
                {
                    "user_id": note.user_id,
                    "author_name": note.author.name if note.author else None,
                    "content": note.content,
                    "timestamp": note.timestamp,
                }
                for note in ticket.notes
            ],
            "created_at": ticket.created_at,
        }
