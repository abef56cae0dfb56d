"""
rms_server/services/authorization.py
Authorization gate

Resolves who is calling and whether they hold the installation-wide ADMIN
role. current_user() never raises: an identity failure is logged and the
caller is treated as anonymous.
"""
import logging
from typing import Optional

from sqlalchemy import select
from starlette.requests import HTTPConnection

from rms_server.database import RegistryStore
from rms_server.errors import ForbiddenError, UnauthenticatedError
from rms_server.orm import RoleName, UserRole
from rms_server.services.identity import IdentityProvider

logger = logging.getLogger(__name__)


class AuthorizationGate:

    def __init__(self, registry: RegistryStore, identity: IdentityProvider):
        self.registry = registry
        self.identity = identity

    async def current_user(self, request: HTTPConnection) -> Optional[str]:
        try:
            return await self.identity.current_session_user(request.headers)
        except Exception as e:
            logger.warning(f"Session lookup failed, treating caller as anonymous: {type(e).__name__}: {str(e)}")
            return None

    async def is_global_admin(self, user_id: str) -> bool:
        """True iff the user holds ADMIN with no event scope."""
        async with self.registry.session() as db:
            result = await db.execute(
                select(UserRole.id)
                .where(
                    UserRole.user_id == user_id,
                    UserRole.role == RoleName.ADMIN,
                    UserRole.event_code.is_(None),
                )
                .limit(1)
            )
            return result.first() is not None

    async def require_global_admin(self, request: HTTPConnection) -> str:
        """User id of an authenticated global admin, else 401/403."""
        user_id = await self.current_user(request)
        if user_id is None:
            raise UnauthenticatedError()
        if not await self.is_global_admin(user_id):
            raise ForbiddenError()
        return user_id
