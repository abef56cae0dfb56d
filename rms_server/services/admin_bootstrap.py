"""
rms_server/services/admin_bootstrap.py
One-time creation of the installation's global administrator

Checks run in a fixed order and the first failure wins:
    1. a setup token is configured          -> else unavailable
    2. the supplied token matches it        -> else unauthorized
    3. no global ADMIN exists yet           -> else conflict
    4. the payload is valid                 -> else invalid

The account is created through the identity provider and the ADMIN role plus
its audit row are written to the registry afterwards. The two stores share no
transaction, so if the registry writes fail the freshly created user row is
deleted again (once, best effort).
"""
import hmac
import logging
from typing import Any, Optional

from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError

from rms_server.database import RegistryStore
from rms_server.errors import (
    ConflictError,
    InternalError,
    InvalidError,
    ServiceError,
    UnauthorizedError,
    UnavailableError,
    format_validation_error,
)
from rms_server.orm import EventLogType, RoleName, User, UserRole
from rms_server.schemas.setup import AdminSetupPayload
from rms_server.services.identity import AccountExistsError, IdentityProvider
from rms_server.services.registry import (
    delete_user,
    find_user_by_email,
    global_admin_exists,
    record_event,
)

logger = logging.getLogger(__name__)

LOCAL_EMAIL_DOMAIN = "local.rms"


def local_email_for(username: str) -> str:
    """Synthesized address satisfying the identity layer's required email."""
    return f"{username.lower()}@{LOCAL_EMAIL_DOMAIN}"


def tokens_match(supplied: Optional[str], expected: str) -> bool:
    if supplied is None:
        return False
    return hmac.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8"))


class AdminBootstrapManager:

    def __init__(self, registry: RegistryStore, identity: IdentityProvider, setup_token: Optional[str]):
        self.registry = registry
        self.identity = identity
        self.setup_token = setup_token

    async def requires_admin_setup(self) -> bool:
        async with self.registry.session() as db:
            return not await global_admin_exists(db)

    async def bootstrap_admin(self, token: Optional[str], payload: Any) -> str:
        """Create the global admin and return its username."""
        if not self.setup_token:
            raise UnavailableError(
                "Admin setup is not available",
                "No setup token is configured for this server"
            )

        if not tokens_match(token, self.setup_token):
            logger.warning("Admin setup rejected: invalid setup token")
            raise UnauthorizedError("Invalid setup token")

        if not await self.requires_admin_setup():
            raise ConflictError("Admin is already initialized")

        try:
            data = AdminSetupPayload.model_validate(payload)
        except ValidationError as e:
            raise InvalidError("Invalid admin setup payload", format_validation_error(e))

        email = local_email_for(data.username)
        user_id = await self._create_account(email, data)

        try:
            await self._grant_global_admin(user_id, data.username)
        except IntegrityError as e:
            logger.warning(f"Admin setup lost a uniqueness race: {str(e.orig)}")
            await self._compensate(user_id)
            if not await self.requires_admin_setup():
                raise ConflictError("Admin is already initialized")
            raise ConflictError("Username is already taken")
        except ServiceError:
            await self._compensate(user_id)
            raise
        except Exception as e:
            logger.error(f"Admin setup failed after account creation: {type(e).__name__}: {str(e)}")
            await self._compensate(user_id)
            raise InternalError("Failed to initialize admin")

        logger.info(f"✓ Global admin '{data.username}' initialized")
        return data.username

    async def _create_account(self, email: str, data: AdminSetupPayload) -> str:
        try:
            user_id = await self.identity.create_account(email, data.display_name, data.password)
        except AccountExistsError:
            raise ConflictError("An account with this username already exists")
        except Exception as e:
            logger.error(f"Identity provider failed to create admin account: {type(e).__name__}: {str(e)}")
            raise InternalError("Failed to create admin account")

        if user_id:
            return user_id

        # Provider did not report the id; find the row by the address we gave it
        async with self.registry.session() as db:
            user = await find_user_by_email(db, email)
        if user is None:
            logger.error(f"Account for {email} was not found after creation")
            raise InternalError("Failed to create admin account")
        return user.id

    async def _grant_global_admin(self, user_id: str, username: str) -> None:
        """Attach the username, insert the ADMIN role, then the audit row."""
        async with self.registry.session() as db:
            user = await db.get(User, user_id)
            if user is None:
                raise InternalError("Created admin account disappeared")
            user.username = username
            user.display_username = username
            await db.flush()

            db.add(UserRole(user_id=user_id, role=RoleName.ADMIN, event_code=None))
            await db.flush()

            await record_event(
                db,
                EventLogType.ADMIN_BOOTSTRAPPED,
                info=f"Global admin '{username}' created",
                extra={"userId": user_id, "username": username},
            )
            await db.commit()

    async def _compensate(self, user_id: str) -> None:
        try:
            async with self.registry.session() as db:
                await delete_user(db, user_id)
                await db.commit()
            logger.warning(f"Rolled back partially created admin account {user_id}")
        except Exception as e:
            logger.error(f"Compensating delete of user {user_id} failed: {type(e).__name__}: {str(e)}")
