"""
Tests for storage backends and transaction support
"""

import pytest
from datetime import datetime, timezone

from client_intake.storage import InMemoryStorage, SQLiteStorage, StorageRecord


def make_record(record_id, **fields):
    now = datetime.now(timezone.utc).isoformat()
    record = {"id": record_id, "created_at": now, "updated_at": now}
    record.update(fields)
    return record


@pytest.fixture(params=["memory", "sqlite"])
def storage(request, tmp_path):
    if request.param == "memory":
        backend = InMemoryStorage()
    else:
        backend = SQLiteStorage(tmp_path / "intake.db")
    yield backend
    backend.close()


class TestStorageBackends:

    def test_save_and_load(self, storage):
        record = make_record("REG001", company_name="Acme")
        storage.save("client_registrations", "REG001", record)
        assert storage.load("client_registrations", "REG001") == record
        assert storage.exists("client_registrations", "REG001")

    def test_load_missing(self, storage):
        assert storage.load("client_registrations", "missing") is None
        assert not storage.exists("client_registrations", "missing")

    def test_save_replaces(self, storage):
        storage.save("users", "U1", make_record("U1", username="ana"))
        storage.save("users", "U1", make_record("U1", username="anna"))
        assert storage.load("users", "U1")["username"] == "anna"
        assert storage.count("users") == 1

    def test_loaded_record_is_a_copy(self, storage):
        storage.save("users", "U1", make_record("U1", username="ana"))
        loaded = storage.load("users", "U1")
        loaded["username"] = "changed"
        assert storage.load("users", "U1")["username"] == "ana"

    def test_find(self, storage):
        storage.save("users", "U1", make_record("U1", username="ana", is_admin=True))
        storage.save("users", "U2", make_record("U2", username="pere", is_admin=False))
        found = storage.find("users", {"is_admin": True})
        assert [r["username"] for r in found] == ["ana"]
        assert storage.find("users", {"missing_field": 1}) == []

    def test_delete(self, storage):
        storage.save("users", "U1", make_record("U1"))
        assert storage.delete("users", "U1")
        assert not storage.delete("users", "U1")
        assert storage.count("users") == 0

    def test_clear_table(self, storage):
        for i in range(3):
            storage.save("sessions", f"S{i}", make_record(f"S{i}"))
        storage.clear_table("sessions")
        assert storage.load_all("sessions") == []


class TestSQLiteTransactions:

    def test_atomic_commits(self, tmp_path):
        storage = SQLiteStorage(tmp_path / "intake.db")
        with storage.atomic():
            storage.save("users", "U1", make_record("U1"))
        assert storage.exists("users", "U1")
        storage.close()

    def test_atomic_rolls_back_on_error(self, tmp_path):
        storage = SQLiteStorage(tmp_path / "intake.db")
        storage.save("users", "U0", make_record("U0"))
        with pytest.raises(RuntimeError):
            with storage.atomic():
                storage.save("users", "U1", make_record("U1"))
                raise RuntimeError("boom")
        assert not storage.exists("users", "U1")
        assert storage.exists("users", "U0")
        storage.close()

    def test_persists_across_connections(self, tmp_path):
        path = tmp_path / "intake.db"
        first = SQLiteStorage(path)
        first.save("users", "U1", make_record("U1", username="ana"))
        first.close()

        second = SQLiteStorage(path)
        assert second.load("users", "U1")["username"] == "ana"
        second.close()


class TestStorageRecord:

    def test_round_trip(self):
        now = datetime.now(timezone.utc)
        record = StorageRecord(id="R1", created_at=now, updated_at=now)
        data = record.to_dict()
        assert data["created_at"] == now.isoformat()
        assert StorageRecord.from_dict(data) == record
