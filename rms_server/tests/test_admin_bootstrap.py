"""
One-time admin bootstrap: check ordering, success path and compensation.
"""
import asyncio

import pytest
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from rms_server.errors import (
    ConflictError,
    InternalError,
    InvalidError,
    UnauthorizedError,
    UnavailableError,
)
from rms_server.orm import EventLog, EventLogType, RoleName, User, UserRole
from rms_server.services import admin_bootstrap
from rms_server.services.admin_bootstrap import AdminBootstrapManager, local_email_for
from rms_server.services.registry import find_user_by_email
from rms_server.tests.conftest import SETUP_TOKEN

VALID_PAYLOAD = {"username": "admin", "password": "correct-horse-battery"}


class RecordingIdentity:
    """Wraps the real provider and records every account creation attempt."""

    def __init__(self, inner, hide_user_id=False, failure=None):
        self.inner = inner
        self.hide_user_id = hide_user_id
        self.failure = failure
        self.calls = []

    async def create_account(self, email, name, password):
        self.calls.append((email, name))
        if self.failure is not None:
            raise self.failure
        user_id = await self.inner.create_account(email, name, password)
        return None if self.hide_user_id else user_id

    async def current_session_user(self, headers):
        return await self.inner.current_session_user(headers)


@pytest.fixture
def recording_identity(identity):
    return RecordingIdentity(identity)


@pytest.fixture
def recording_manager(registry, recording_identity):
    return AdminBootstrapManager(registry, recording_identity, SETUP_TOKEN)


def test_local_email_is_lowercased():
    assert local_email_for("Head.Ref") == "head.ref@local.rms"


class TestCheckOrder:

    async def test_no_configured_token_is_unavailable(self, registry, recording_identity):
        manager = AdminBootstrapManager(registry, recording_identity, None)
        with pytest.raises(UnavailableError):
            await manager.bootstrap_admin(SETUP_TOKEN, VALID_PAYLOAD)
        with pytest.raises(UnavailableError):
            await manager.bootstrap_admin(None, {})
        assert recording_identity.calls == []

    async def test_wrong_token_is_unauthorized(self, recording_manager, recording_identity):
        with pytest.raises(UnauthorizedError):
            await recording_manager.bootstrap_admin("wrong", VALID_PAYLOAD)
        with pytest.raises(UnauthorizedError):
            await recording_manager.bootstrap_admin(None, VALID_PAYLOAD)
        assert recording_identity.calls == []

    async def test_wrong_token_beats_invalid_payload(self, recording_manager):
        with pytest.raises(UnauthorizedError):
            await recording_manager.bootstrap_admin("wrong", {"username": "x"})

    async def test_existing_admin_beats_invalid_payload(self, recording_manager):
        await recording_manager.bootstrap_admin(SETUP_TOKEN, VALID_PAYLOAD)
        with pytest.raises(ConflictError):
            await recording_manager.bootstrap_admin(SETUP_TOKEN, {"username": "x"})

    @pytest.mark.parametrize("payload", [
        None,
        {},
        {"username": "ab", "password": "long-enough-pw"},
        {"username": "bad name", "password": "long-enough-pw"},
        {"username": "admin\n", "password": "long-enough-pw"},
        {"username": "admin", "password": "short"},
    ])
    async def test_invalid_payload_never_reaches_identity(self, recording_manager, recording_identity, payload):
        with pytest.raises(InvalidError):
            await recording_manager.bootstrap_admin(SETUP_TOKEN, payload)
        assert recording_identity.calls == []
        assert await recording_manager.requires_admin_setup()


class TestBootstrapSuccess:

    async def test_creates_admin_with_role_and_audit(self, recording_manager, recording_identity, registry):
        assert await recording_manager.requires_admin_setup()

        username = await recording_manager.bootstrap_admin(SETUP_TOKEN, VALID_PAYLOAD)

        assert username == "admin"
        assert recording_identity.calls == [("admin@local.rms", "admin")]
        assert not await recording_manager.requires_admin_setup()

        async with registry.session() as db:
            user = await find_user_by_email(db, "admin@local.rms")
            assert user.username == "admin"
            assert user.display_username == "admin"
            roles = (await db.execute(select(UserRole).where(UserRole.user_id == user.id))).scalars().all()
            logs = (await db.execute(select(EventLog))).scalars().all()

        assert [(r.role, r.event_code) for r in roles] == [(RoleName.ADMIN, None)]
        assert len(logs) == 1
        assert logs[0].type == EventLogType.ADMIN_BOOTSTRAPPED
        assert logs[0].extra == {"userId": user.id, "username": "admin"}

    async def test_display_name_used_when_given(self, recording_manager, recording_identity):
        await recording_manager.bootstrap_admin(SETUP_TOKEN, {**VALID_PAYLOAD, "name": "Head Admin"})
        assert recording_identity.calls == [("admin@local.rms", "Head Admin")]

    async def test_second_attempt_conflicts(self, recording_manager, recording_identity):
        await recording_manager.bootstrap_admin(SETUP_TOKEN, VALID_PAYLOAD)
        with pytest.raises(ConflictError):
            await recording_manager.bootstrap_admin(SETUP_TOKEN, {"username": "other", "password": "another-password"})
        assert len(recording_identity.calls) == 1

    async def test_user_id_found_by_email_when_not_returned(self, registry, identity):
        manager = AdminBootstrapManager(registry, RecordingIdentity(identity, hide_user_id=True), SETUP_TOKEN)
        assert await manager.bootstrap_admin(SETUP_TOKEN, VALID_PAYLOAD) == "admin"
        assert not await manager.requires_admin_setup()


class TestBootstrapFailures:

    async def test_identity_failure_is_internal(self, registry, identity):
        manager = AdminBootstrapManager(
            registry, RecordingIdentity(identity, failure=RuntimeError("boom")), SETUP_TOKEN
        )
        with pytest.raises(InternalError):
            await manager.bootstrap_admin(SETUP_TOKEN, VALID_PAYLOAD)
        assert await manager.requires_admin_setup()

    async def test_existing_account_is_conflict(self, recording_manager, identity, registry):
        await identity.create_account("admin@local.rms", "Squatter", "password-123")
        with pytest.raises(ConflictError):
            await recording_manager.bootstrap_admin(SETUP_TOKEN, VALID_PAYLOAD)
        assert await recording_manager.requires_admin_setup()

    async def test_audit_failure_removes_created_user(self, recording_manager, registry, monkeypatch):
        async def failing_record_event(*args, **kwargs):
            raise SQLAlchemyError("disk I/O error")

        monkeypatch.setattr(admin_bootstrap, "record_event", failing_record_event)

        with pytest.raises(InternalError):
            await recording_manager.bootstrap_admin(SETUP_TOKEN, VALID_PAYLOAD)

        async with registry.session() as db:
            assert await find_user_by_email(db, "admin@local.rms") is None
            assert (await db.execute(select(UserRole))).first() is None
            assert (await db.execute(select(User))).first() is None
        assert await recording_manager.requires_admin_setup()

    async def test_retry_after_compensation_succeeds(self, recording_manager, monkeypatch):
        original = admin_bootstrap.record_event

        async def failing_record_event(*args, **kwargs):
            raise SQLAlchemyError("disk I/O error")

        monkeypatch.setattr(admin_bootstrap, "record_event", failing_record_event)
        with pytest.raises(InternalError):
            await recording_manager.bootstrap_admin(SETUP_TOKEN, VALID_PAYLOAD)

        monkeypatch.setattr(admin_bootstrap, "record_event", original)
        assert await recording_manager.bootstrap_admin(SETUP_TOKEN, VALID_PAYLOAD) == "admin"

    async def test_failed_compensation_still_reports_original_error(self, recording_manager, monkeypatch):
        async def failing_record_event(*args, **kwargs):
            raise SQLAlchemyError("disk I/O error")

        async def failing_delete_user(*args, **kwargs):
            raise SQLAlchemyError("database is locked")

        monkeypatch.setattr(admin_bootstrap, "record_event", failing_record_event)
        monkeypatch.setattr(admin_bootstrap, "delete_user", failing_delete_user)

        with pytest.raises(InternalError):
            await recording_manager.bootstrap_admin(SETUP_TOKEN, VALID_PAYLOAD)

    async def test_taken_username_is_conflict(self, recording_manager, identity, registry):
        squatter = await identity.create_account("someone@example.test", "Someone", "password-123")
        async with registry.session() as db:
            user = await db.get(User, squatter)
            user.username = "admin"
            await db.commit()

        with pytest.raises(ConflictError):
            await recording_manager.bootstrap_admin(SETUP_TOKEN, VALID_PAYLOAD)

        async with registry.session() as db:
            assert await find_user_by_email(db, "admin@local.rms") is None
        assert await recording_manager.requires_admin_setup()


class TestConcurrentBootstrap:

    async def test_only_one_of_two_concurrent_calls_wins(self, recording_manager, registry):
        results = await asyncio.gather(
            recording_manager.bootstrap_admin(SETUP_TOKEN, {"username": "first", "password": "password-one"}),
            recording_manager.bootstrap_admin(SETUP_TOKEN, {"username": "second", "password": "password-two"}),
            return_exceptions=True,
        )

        winners = [result for result in results if isinstance(result, str)]
        losers = [result for result in results if isinstance(result, Exception)]
        assert len(winners) == 1
        assert len(losers) == 1
        assert isinstance(losers[0], ConflictError)

        async with registry.session() as db:
            users = (await db.execute(select(User))).scalars().all()
            roles = (await db.execute(select(UserRole))).scalars().all()
        assert [user.username for user in users] == winners
        assert len(roles) == 1

    async def test_lost_race_on_admin_index_is_conflict(self, recording_manager, registry, monkeypatch):
        await recording_manager.bootstrap_admin(SETUP_TOKEN, VALID_PAYLOAD)

        # First status check misses the existing admin, as a racing request would
        real_check = recording_manager.requires_admin_setup
        checks = []

        async def stale_then_real():
            checks.append(1)
            if len(checks) == 1:
                return True
            return await real_check()

        monkeypatch.setattr(recording_manager, "requires_admin_setup", stale_then_real)

        with pytest.raises(ConflictError) as exc_info:
            await recording_manager.bootstrap_admin(SETUP_TOKEN, {"username": "latecomer", "password": "password-two"})

        assert exc_info.value.message == "Admin is already initialized"
        async with registry.session() as db:
            assert await find_user_by_email(db, "latecomer@local.rms") is None
            assert len((await db.execute(select(UserRole))).scalars().all()) == 1
