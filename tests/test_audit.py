"""
Test suite for audit module

Tests the hash-chained audit trail, tamper detection and integrity verification.
"""

import pytest
from datetime import datetime, timezone

from client_intake.storage import InMemoryStorage
from client_intake.audit import AuditTrail, AuditEvent, AuditEventType


@pytest.fixture
def audit_trail():
    return AuditTrail(InMemoryStorage())


class TestAuditEvent:

    def test_hash_covers_metadata(self):
        now = datetime.now(timezone.utc)
        event = AuditEvent(
            id="AUDIT001",
            created_at=now,
            updated_at=now,
            event_type=AuditEventType.REGISTRATION_SUBMITTED,
            entity_type="registration",
            entity_id="REG001",
            previous_hash="",
            current_hash="",
            metadata={"company_name": "Acme"},
        )
        event.current_hash = event.calculate_hash()
        assert event.verify_hash()

        event.metadata["company_name"] = "Changed"
        assert not event.verify_hash()

    def test_metadata_enums_and_dates_are_plain(self):
        now = datetime.now(timezone.utc)
        event = AuditEvent(
            id="AUDIT002",
            created_at=now,
            updated_at=now,
            event_type=AuditEventType.LOGIN_SUCCESS,
            entity_type="user",
            entity_id="U1",
            previous_hash="",
            current_hash="",
            metadata={"type": AuditEventType.LOGOUT, "at": now, "fields": ("iban",)},
        )
        assert event.metadata == {"type": "logout", "at": now.isoformat(), "fields": ["iban"]}


class TestAuditTrail:

    def test_events_are_chained(self, audit_trail):
        first = audit_trail.log_event(AuditEventType.USER_CREATED, "user", "U1", {"username": "ana"})
        second = audit_trail.log_event(AuditEventType.LOGIN_SUCCESS, "user", "U1", user_id="U1")
        assert first.previous_hash == ""
        assert second.previous_hash == first.current_hash
        assert audit_trail.get_latest_hash() == second.current_hash

    def test_verify_integrity(self, audit_trail):
        for i in range(3):
            audit_trail.log_event(AuditEventType.REGISTRATION_SUBMITTED, "registration", f"REG{i}")
        result = audit_trail.verify_integrity()
        assert result["valid"]
        assert result["total_events"] == 3
        assert result["hash_errors"] == []
        assert result["chain_breaks"] == []

    def test_detects_tampered_event(self, audit_trail):
        event = audit_trail.log_event(
            AuditEventType.REGISTRATIONS_EXPORTED, "registration", "all", {"count": 2}
        )
        audit_trail.log_event(AuditEventType.LOGOUT, "user", "U1")

        stored = audit_trail.storage.load(audit_trail.table_name, event.id)
        stored["metadata"]["count"] = 0
        audit_trail.storage.save(audit_trail.table_name, event.id, stored)

        result = audit_trail.verify_integrity()
        assert not result["valid"]
        assert [e["event_id"] for e in result["hash_errors"]] == [event.id]

    def test_detects_deleted_event(self, audit_trail):
        audit_trail.log_event(AuditEventType.USER_CREATED, "user", "U1")
        middle = audit_trail.log_event(AuditEventType.LOGIN_SUCCESS, "user", "U1")
        audit_trail.log_event(AuditEventType.LOGOUT, "user", "U1")

        audit_trail.storage.delete(audit_trail.table_name, middle.id)

        result = audit_trail.verify_integrity()
        assert not result["valid"]
        assert len(result["chain_breaks"]) == 1

    def test_queries(self, audit_trail):
        audit_trail.log_event(AuditEventType.REGISTRATION_SUBMITTED, "registration", "REG1")
        audit_trail.log_event(AuditEventType.BANKING_DATA_ENCRYPTED, "registration", "REG1")
        audit_trail.log_event(AuditEventType.REGISTRATION_SUBMITTED, "registration", "REG2")

        assert len(audit_trail.get_events_for_entity("registration", "REG1")) == 2
        assert len(audit_trail.get_events_by_type(AuditEventType.REGISTRATION_SUBMITTED)) == 2
        assert len(audit_trail.get_all_events(limit=2)) == 2
        assert audit_trail.count_events() == 3

    def test_chain_continues_after_restart(self, audit_trail):
        last = audit_trail.log_event(AuditEventType.USER_CREATED, "user", "U1")
        reopened = AuditTrail(audit_trail.storage)
        assert reopened.get_latest_hash() == last.current_hash
