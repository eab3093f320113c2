"""
Tests for app/services/sequence_service.py
"""
from datetime import datetime

from app.models.ontology import SequenceCounter
from app.services.sequence_service import SequenceService, ORDER, INVOICE, scope_key, format_number


class TestSequenceService:

    def test_scope_keys(self):
        now = datetime(2024, 1, 15, 9, 30)
        assert scope_key(ORDER, now) == "20240115"
        assert scope_key(INVOICE, now) == "202401"

    def test_format(self):
        assert format_number(ORDER, "20240115", 7) == "ORD-20240115-007"
        assert format_number(INVOICE, "202401", 12) == "INV-202401-0012"

    def test_counter_increments_within_scope(self, db_session):
        service = SequenceService(db_session)
        numbers = [service.next_number(ORDER, "20240115") for _ in range(3)]
        db_session.commit()

        assert numbers == ["ORD-20240115-001", "ORD-20240115-002", "ORD-20240115-003"]

    def test_scopes_are_independent(self, db_session):
        service = SequenceService(db_session)
        assert service.next_number(INVOICE, "202401") == "INV-202401-0001"
        assert service.next_number(INVOICE, "202401") == "INV-202401-0002"
        assert service.next_number(INVOICE, "202402") == "INV-202402-0001"
        assert service.next_number(ORDER, "202401") == "ORD-202401-001"
        db_session.commit()

        assert db_session.query(SequenceCounter).count() == 3

    def test_rolled_back_number_is_reused(self, db_session):
        """计数器与实体同事务：回滚的编号不会留下空洞"""
        service = SequenceService(db_session)
        service.next_number(ORDER, "20240301")
        db_session.commit()

        service.next_number(ORDER, "20240301")
        db_session.rollback()

        assert service.next_number(ORDER, "20240301") == "ORD-20240301-002"

    def test_counter_created_concurrently(self, db_session, monkeypatch):
        """首次 UPDATE 未命中但插入冲突时，重试 UPDATE"""
        db_session.add(SequenceCounter(entity_class=INVOICE, scope_key="202405", value=4))
        db_session.commit()

        service = SequenceService(db_session)
        original = service._increment
        calls = []

        def first_miss(entity_class, key):
            calls.append(key)
            if len(calls) == 1:
                return None
            return original(entity_class, key)

        monkeypatch.setattr(service, "_increment", first_miss)
        assert service.next_number(INVOICE, "202405") == "INV-202405-0005"
        assert len(calls) == 2
