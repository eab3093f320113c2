"""
Tests for app/services/maintenance_service.py
"""
import pytest

from app.models.ontology import MaintenanceStatus, MaintenanceType, MaintenancePriority
from app.models.schemas import MaintenanceCreate
from app.models.events import EventType
from app.services.maintenance_service import MaintenanceService
from app.housing.errors import InvalidAssignee, NotFound, Unauthorized, ValidationError


@pytest.fixture
def service(db_session, published):
    return MaintenanceService(db_session, event_publisher=published.append)


def _ticket(service, user, ticket_type=MaintenanceType.PLUMBING):
    return service.create_ticket(user, MaintenanceCreate(
        type=ticket_type, description="Kitchen sink is leaking", images=["/uploads/sink.jpg"],
    ))


class TestCreate:

    def test_create_seeds_note(self, service, resident_user, published):
        ticket = _ticket(service, resident_user)

        assert ticket.status == MaintenanceStatus.PENDING
        assert ticket.priority == MaintenancePriority.MEDIUM
        assert ticket.room_number == "101"
        assert ticket.images == ["/uploads/sink.jpg"]
        assert ticket.notes[0].content == "Maintenance request created for plumbing"
        assert ticket.notes[0].user_id == resident_user.id
        assert published[-1].event_type == EventType.MAINTENANCE_CREATED

    def test_requires_room(self, service, admin_user):
        with pytest.raises(ValidationError):
            _ticket(service, admin_user)


class TestStatus:

    def test_any_order_of_statuses(self, service, resident_user, admin_user):
        ticket = _ticket(service, resident_user)
        ticket = service.update_status(admin_user, ticket.id, MaintenanceStatus.CANCELLED)
        ticket = service.update_status(admin_user, ticket.id, MaintenanceStatus.IN_PROGRESS, note="Plumber on the way")

        assert ticket.status == MaintenanceStatus.IN_PROGRESS
        assert ticket.completed_at is None
        assert ticket.notes[-1].content == "Plumber on the way"

    def test_completed_sets_timestamp(self, service, resident_user, admin_user, published):
        ticket = _ticket(service, resident_user)
        ticket = service.update_status(admin_user, ticket.id, MaintenanceStatus.COMPLETED)

        assert ticket.completed_at is not None
        assert published[-1].data["new_status"] == "completed"

    def test_completed_again_keeps_timestamp(self, service, resident_user, admin_user):
        ticket = _ticket(service, resident_user)
        completed_at = service.update_status(admin_user, ticket.id, MaintenanceStatus.COMPLETED).completed_at

        ticket = service.update_status(admin_user, ticket.id, MaintenanceStatus.COMPLETED, note="Checked again")

        assert ticket.completed_at == completed_at
        assert ticket.notes[-1].content == "Checked again"

    def test_non_admin(self, service, resident_user):
        ticket = _ticket(service, resident_user)
        with pytest.raises(Unauthorized):
            service.update_status(resident_user, ticket.id, MaintenanceStatus.COMPLETED)


class TestAssign:

    def test_assign_admin(self, service, resident_user, admin_user, second_admin):
        ticket = _ticket(service, resident_user)
        ticket = service.assign(admin_user, ticket.id, second_admin.id)

        assert ticket.assigned_to_id == second_admin.id
        assert ticket.notes[-1].content == "Request assigned to Facilities Manager"

    def test_assign_worker_rejected(self, service, resident_user, admin_user, worker_user):
        ticket = _ticket(service, resident_user)
        with pytest.raises(InvalidAssignee):
            service.assign(admin_user, ticket.id, worker_user.id)

    def test_assign_unknown_user(self, service, resident_user, admin_user):
        ticket = _ticket(service, resident_user)
        with pytest.raises(InvalidAssignee):
            service.assign(admin_user, ticket.id, 777)


class TestQueries:

    def test_scoping_and_filters(self, service, resident_user, other_resident, admin_user):
        mine = _ticket(service, resident_user)
        _ticket(service, other_resident, MaintenanceType.ELECTRICAL)

        assert [t.id for t in service.list_tickets(resident_user)] == [mine.id]
        assert len(service.list_tickets(admin_user)) == 2
        assert len(service.list_tickets(admin_user, ticket_type=MaintenanceType.ELECTRICAL)) == 1
        assert len(service.list_tickets(admin_user, room_number="101")) == 1

    def test_get_other_users_ticket(self, service, resident_user, other_resident):
        ticket = _ticket(service, resident_user)
        with pytest.raises(Unauthorized):
            service.get_ticket(other_resident, ticket.id)

    def test_get_missing(self, service, admin_user):
        with pytest.raises(NotFound):
            service.get_ticket(admin_user, 55)

    def test_owner_adds_note(self, service, resident_user):
        ticket = _ticket(service, resident_user)
        ticket = service.add_note(resident_user, ticket.id, "Still leaking")
        assert [n.content for n in ticket.notes][-1] == "Still leaking"
