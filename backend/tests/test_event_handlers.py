"""
事件处理器单元测试
"""
import pytest
from datetime import datetime
from unittest.mock import MagicMock

from app.services.event_bus import Event, event_bus
from app.services.event_handlers import EventHandlers
from app.services.notification_service import DeliveryResult
from app.models.events import EventType


def _event(event_type, **data):
    return Event(event_type=event_type, timestamp=datetime.now(), data=data, source="test")


class TestEventHandlers:
    """事件处理器测试"""

    @pytest.fixture
    def mock_db_session(self):
        return MagicMock()

    @pytest.fixture
    def dispatcher(self):
        dispatcher = MagicMock()
        dispatcher.notify.return_value = DeliveryResult(notification_id=1)
        return dispatcher

    @pytest.fixture
    def handlers(self, mock_db_session, dispatcher):
        return EventHandlers(
            db_session_factory=lambda: mock_db_session,
            dispatcher_factory=lambda db: dispatcher,
        )

    def test_order_created(self, handlers, dispatcher, mock_db_session):
        handlers.handle_order_created(_event(
            EventType.ORDER_CREATED, user_id=3, order_number="ORD-20240501-001",
        ))

        dispatcher.notify.assert_called_once_with(3, "order.created", {"order_number": "ORD-20240501-001"})
        mock_db_session.close.assert_called_once()

    @pytest.mark.parametrize("status", ["processing", "ready", "delivered", "cancelled"])
    def test_order_status_template(self, handlers, dispatcher, status):
        handlers.handle_order_status_changed(_event(
            EventType.ORDER_STATUS_CHANGED, user_id=3, order_number="ORD-20240501-001",
            old_status="pending", new_status=status,
        ))

        assert dispatcher.notify.call_args.args[1] == f"order.{status}"

    def test_status_without_template_is_ignored(self, handlers, dispatcher):
        handlers.handle_order_status_changed(_event(
            EventType.ORDER_STATUS_CHANGED, user_id=3, order_number="ORD-20240501-001",
            new_status="pending",
        ))
        handlers.handle_order_payment_changed(_event(
            EventType.ORDER_PAYMENT_CHANGED, user_id=3, order_number="ORD-20240501-001",
            payment_status="failed",
        ))

        dispatcher.notify.assert_not_called()

    def test_invoice_created_includes_currency(self, handlers, dispatcher):
        handlers.handle_invoice_created(_event(
            EventType.INVOICE_CREATED, user_id=3, invoice_number="INV-202405-0001", amount="250.00",
        ))

        user_id, template_key, context = dispatcher.notify.call_args.args
        assert template_key == "invoice.created"
        assert context["amount"] == "250.00"
        assert context["currency"]

    def test_overdue_reminder(self, handlers, dispatcher):
        handlers.handle_invoice_reminder(_event(
            EventType.INVOICE_REMINDER, user_id=3, invoice_number="INV-202405-0001",
            amount="250.00", overdue=True,
        ))
        assert dispatcher.notify.call_args.args[1] == "invoice.overdue"

    def test_maintenance_assigned_notifies_assignee(self, handlers, dispatcher, mock_db_session):
        mock_db_session.get.return_value = MagicMock(room_number="101")

        handlers.handle_maintenance_assigned(_event(
            EventType.MAINTENANCE_ASSIGNED, ticket_id=5, user_id=3, ticket_type="plumbing",
            assignee_id=9, assignee_name="Facilities Manager",
        ))

        dispatcher.notify.assert_called_once_with(
            9, "maintenance.assigned", {"ticket_type": "plumbing", "room_number": "101"}
        )

    def test_dispatch_failure_is_swallowed(self, handlers, dispatcher, mock_db_session):
        dispatcher.notify.side_effect = RuntimeError("db locked")

        handlers.handle_order_created(_event(
            EventType.ORDER_CREATED, user_id=3, order_number="ORD-20240501-001",
        ))

        mock_db_session.rollback.assert_called_once()
        mock_db_session.close.assert_called_once()

    def test_event_without_user(self, handlers, dispatcher):
        handlers.handle_order_created(_event(EventType.ORDER_CREATED, order_number="ORD-20240501-001"))
        dispatcher.notify.assert_not_called()


class TestRegistration:

    def test_register_and_unregister(self):
        handlers = EventHandlers(db_session_factory=MagicMock(), dispatcher_factory=MagicMock())

        handlers.register_handlers()
        handlers.register_handlers()
        assert event_bus.subscriber_count(EventType.INVOICE_PAID) == 1
        assert event_bus.subscriber_count(EventType.MAINTENANCE_ASSIGNED) == 1

        handlers.unregister_handlers()
        assert event_bus.subscriber_count(EventType.INVOICE_PAID) == 0


class TestWithDatabase:
    """处理器写入真实的通知记录"""

    def test_order_created_records_notification(self, db_engine, resident_user):
        from sqlalchemy.orm import sessionmaker
        from app.models.ontology import Notification

        factory = sessionmaker(bind=db_engine)
        handlers = EventHandlers(db_session_factory=factory)
        handlers.handle_order_created(_event(
            EventType.ORDER_CREATED, user_id=resident_user.id, order_number="ORD-20240501-001",
        ))

        session = factory()
        try:
            notification = session.query(Notification).one()
            assert notification.user_id == resident_user.id
            assert notification.title == "New Grocery Order"
        finally:
            session.close()
