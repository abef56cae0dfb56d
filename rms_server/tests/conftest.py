"""
Shared fixtures: a throwaway registry per test plus the services built on it.
"""
from typing import Optional

import pytest
import pytest_asyncio
from starlette.requests import Request

from rms_server.database import RegistryStore
from rms_server.orm import User
from rms_server.rate_limit import limiter
from rms_server.services.admin_bootstrap import AdminBootstrapManager
from rms_server.services.authorization import AuthorizationGate
from rms_server.services.event_provisioner import EventProvisioner
from rms_server.services.identity import LocalIdentityProvider

SETUP_TOKEN = "setup-token-for-tests"
AUTH_SECRET = "auth-secret-for-tests-0123456789abcdef"
ADMIN_USERNAME = "admin"
ADMIN_PASSWORD = "correct-horse-battery"


def make_request(token: Optional[str] = None, cookie: Optional[str] = None) -> Request:
    """Bare ASGI request carrying an optional bearer token or cookie header."""
    headers = []
    if token:
        headers.append((b"authorization", f"Bearer {token}".encode()))
    if cookie:
        headers.append((b"cookie", cookie.encode()))
    return Request({"type": "http", "method": "POST", "path": "/", "headers": headers})


async def create_user(identity: LocalIdentityProvider, username: str, password: str = "password-123") -> str:
    """Create a plain (role-less) user that can sign in."""
    user_id = await identity.create_account(f"{username}@example.test", username, password)
    async with identity.registry.session() as db:
        user = await db.get(User, user_id)
        user.username = username
        await db.commit()
    return user_id


@pytest.fixture(autouse=True)
def reset_rate_limits():
    limiter.reset()
    yield


@pytest_asyncio.fixture
async def registry(tmp_path):
    store = RegistryStore(tmp_path / "data" / "rms-local.db")
    await store.init()
    yield store
    await store.close()


@pytest.fixture
def identity(registry):
    return LocalIdentityProvider(registry, AUTH_SECRET)


@pytest.fixture
def gate(registry, identity):
    return AuthorizationGate(registry, identity)


@pytest.fixture
def bootstrap_manager(registry, identity):
    return AdminBootstrapManager(registry, identity, SETUP_TOKEN)


@pytest.fixture
def provisioner(registry, gate):
    return EventProvisioner(registry, gate)


@pytest_asyncio.fixture
async def admin_token(bootstrap_manager, identity) -> str:
    """Signed session token of a bootstrapped global admin."""
    await bootstrap_manager.bootstrap_admin(
        SETUP_TOKEN,
        {"username": ADMIN_USERNAME, "password": ADMIN_PASSWORD},
    )
    token, _user = await identity.sign_in(ADMIN_USERNAME, ADMIN_PASSWORD)
    return token
