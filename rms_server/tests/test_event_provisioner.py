"""
Event provisioning: authorization, validation, file creation and rollback.
"""
import sqlite3
from datetime import datetime

import pytest
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from rms_server.core.db_types import utcnow
from rms_server.database import apply_event_schema
from rms_server.errors import (
    ConflictError,
    ForbiddenError,
    InternalError,
    InvalidError,
    UnauthenticatedError,
)
from rms_server.orm import Event, EventLog, EventLogType
from rms_server.orm.event_db import EVENT_TABLE_NAMES
from rms_server.services import event_provisioner
from rms_server.services.event_provisioner import EventProvisioner
from rms_server.services.registry import find_event
from rms_server.tests.conftest import create_user, make_request


def table_names(db_path):
    conn = sqlite3.connect(str(db_path))
    try:
        rows = conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'").fetchall()
    finally:
        conn.close()
    return {row[0] for row in rows}


async def failing_schema(db_path):
    raise SQLAlchemyError("disk full")


class TestAccess:

    async def test_anonymous_is_unauthenticated(self, provisioner):
        with pytest.raises(UnauthenticatedError):
            await provisioner.create_event(make_request(), {"eventCode": "Q1_2024"})
        assert not provisioner.db_path_for("Q1_2024").exists()

    async def test_non_admin_is_forbidden(self, provisioner, identity):
        await create_user(identity, "referee1")
        token, _ = await identity.sign_in("referee1", "password-123")
        with pytest.raises(ForbiddenError):
            await provisioner.create_event(make_request(token=token), {"eventCode": "Q1_2024"})
        assert not provisioner.db_path_for("Q1_2024").exists()

    async def test_auth_checked_before_payload(self, provisioner):
        with pytest.raises(UnauthenticatedError):
            await provisioner.create_event(make_request(), {"eventCode": "../../etc"})


class TestValidation:

    @pytest.mark.parametrize("details", [
        None,
        {},
        {"eventCode": ""},
        {"eventCode": "Q1 2024"},
        {"eventCode": "../escape"},
        {"eventCode": "a/b"},
        {"eventCode": "x" * 65},
        {"eventCode": "Q1", "start": "not-a-date"},
        {"eventCode": "Q1", "start": "9999-12-31T23:59:59-05:00"},
        {"eventCode": "Q1", "type": 2**70},
        {"eventCode": "Q1", "finals": -1},
        {"eventCode": "Q1", "divisions": 2**31},
    ])
    async def test_rejected(self, provisioner, admin_token, details):
        with pytest.raises(InvalidError):
            await provisioner.create_event(make_request(token=admin_token), details)
        assert list(provisioner.events_dir.glob("*.db")) == [provisioner.events_dir / "rms-local.db"]


class TestCreateEvent:

    async def test_creates_database_with_event_schema(self, provisioner, admin_token, registry):
        result = await provisioner.create_event(make_request(token=admin_token), {"eventCode": "Q1_2024"})

        assert result.event_code == "Q1_2024"
        assert result.db_path == registry.events_dir / "Q1_2024.db"
        assert result.db_path.is_file()
        assert set(EVENT_TABLE_NAMES) <= table_names(result.db_path)
        # Registry tables stay out of event files
        assert "user" not in table_names(result.db_path)

    async def test_defaults_applied(self, provisioner, admin_token, registry):
        before = utcnow()
        await provisioner.create_event(make_request(token=admin_token), {"eventCode": "Q1_2024"})

        async with registry.session() as db:
            event = await find_event(db, "Q1_2024")

        assert event.name == "Q1_2024"
        assert event.region == "UNKNOWN"
        assert event.start >= before
        assert event.end == event.start
        assert (event.type, event.status, event.finals, event.divisions) == (0, 0, 0, 0)

    async def test_explicit_details_kept(self, provisioner, admin_token, registry):
        details = {
            "eventCode": "STATE-2025",
            "name": "State Championship",
            "start": "2025-03-01T09:00:00-05:00",
            "end": "2025-03-02T18:00:00-05:00",
            "region": "USNY",
            "type": 2,
            "finals": 4,
            "divisions": 2,
        }
        await provisioner.create_event(make_request(token=admin_token), details)

        async with registry.session() as db:
            event = await find_event(db, "STATE-2025")

        assert event.name == "State Championship"
        assert event.start == datetime(2025, 3, 1, 14, 0)
        assert event.end == datetime(2025, 3, 2, 23, 0)
        assert event.region == "USNY"
        assert (event.type, event.status, event.finals, event.divisions) == (2, 0, 4, 2)

    async def test_audit_row_written(self, provisioner, admin_token, registry):
        result = await provisioner.create_event(make_request(token=admin_token), {"eventCode": "Q1_2024", "name": "Q1"})

        async with registry.session() as db:
            logs = (await db.execute(
                select(EventLog).where(EventLog.type == EventLogType.EVENT_CREATED)
            )).scalars().all()

        assert len(logs) == 1
        assert logs[0].event_code == "Q1_2024"
        assert logs[0].extra["name"] == "Q1"
        assert logs[0].extra["dbPath"] == str(result.db_path)
        assert logs[0].extra["createdBy"]

    async def test_duplicate_code_conflicts_and_keeps_file(self, provisioner, admin_token):
        request = make_request(token=admin_token)
        first = await provisioner.create_event(request, {"eventCode": "Q1_2024"})
        original_bytes = first.db_path.read_bytes()

        with pytest.raises(ConflictError):
            await provisioner.create_event(request, {"eventCode": "Q1_2024"})

        assert first.db_path.read_bytes() == original_bytes
        assert set(EVENT_TABLE_NAMES) <= table_names(first.db_path)

    async def test_stray_file_is_never_overwritten(self, provisioner, admin_token, registry):
        stray = provisioner.db_path_for("Q1_2024")
        stray.write_bytes(b"someone else's data")

        with pytest.raises(ConflictError):
            await provisioner.create_event(make_request(token=admin_token), {"eventCode": "Q1_2024"})

        assert stray.read_bytes() == b"someone else's data"
        async with registry.session() as db:
            assert await find_event(db, "Q1_2024") is None


class TestRollback:

    async def test_schema_failure_removes_file(self, registry, gate, admin_token):
        provisioner = EventProvisioner(registry, gate, schema_applier=failing_schema)

        with pytest.raises(InternalError):
            await provisioner.create_event(make_request(token=admin_token), {"eventCode": "Q1_2024"})

        assert not provisioner.db_path_for("Q1_2024").exists()
        async with registry.session() as db:
            assert await find_event(db, "Q1_2024") is None

    async def test_registry_failure_removes_file_and_event(self, provisioner, admin_token, registry, monkeypatch):
        async def failing_record_event(*args, **kwargs):
            raise SQLAlchemyError("database is locked")

        monkeypatch.setattr(event_provisioner, "record_event", failing_record_event)

        with pytest.raises(InternalError):
            await provisioner.create_event(make_request(token=admin_token), {"eventCode": "Q1_2024"})

        db_path = provisioner.db_path_for("Q1_2024")
        assert not db_path.exists()
        for suffix in ("-journal", "-wal", "-shm"):
            assert not db_path.with_name(db_path.name + suffix).exists()
        async with registry.session() as db:
            assert await find_event(db, "Q1_2024") is None

    async def test_lost_race_is_conflict(self, registry, gate, admin_token):
        async def schema_then_competitor(db_path):
            await apply_event_schema(db_path)
            now = utcnow()
            async with registry.session() as db:
                db.add(Event(code="Q1_2024", name="competitor", start=now, end=now, region="UNKNOWN"))
                await db.commit()

        provisioner = EventProvisioner(registry, gate, schema_applier=schema_then_competitor)

        with pytest.raises(ConflictError):
            await provisioner.create_event(make_request(token=admin_token), {"eventCode": "Q1_2024"})

        assert not provisioner.db_path_for("Q1_2024").exists()
        async with registry.session() as db:
            assert (await find_event(db, "Q1_2024")).name == "competitor"

    async def test_retry_after_rollback_succeeds(self, registry, gate, admin_token):
        broken = EventProvisioner(registry, gate, schema_applier=failing_schema)
        with pytest.raises(InternalError):
            await broken.create_event(make_request(token=admin_token), {"eventCode": "Q1_2024"})

        working = EventProvisioner(registry, gate)
        result = await working.create_event(make_request(token=admin_token), {"eventCode": "Q1_2024"})
        assert result.db_path.is_file()
