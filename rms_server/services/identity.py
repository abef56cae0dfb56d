"""
rms_server/services/identity.py
Identity capability

The rest of the server depends only on IdentityProvider: create an account,
and resolve the user behind a request's session. LocalIdentityProvider is the
concrete implementation backed by the registry's user/account/session tables;
any other provider with the same two coroutines can be substituted.
"""
import asyncio
import logging
import secrets
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta
from http.cookies import SimpleCookie, CookieError
from typing import Mapping, Optional, Protocol, Tuple

from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError

from rms_server.core.db_types import utcnow
from rms_server.database import RegistryStore
from rms_server.orm import Account, Session, User
from rms_server.services.registry import find_user_by_email, find_user_by_username

logger = logging.getLogger(__name__)

# ================= CONFIG =================

SESSION_COOKIE = "rms_session"
ALGORITHM = "HS256"
CREDENTIAL_PROVIDER = "credential"

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=10,
)

# bcrypt blocks; keep it off the event loop
_executor = None


def get_executor():
    global _executor
    if _executor is None:
        _executor = ThreadPoolExecutor(max_workers=4)
    return _executor


def normalize_password(password: str) -> str:
    """bcrypt only reads 72 bytes; truncate after UTF-8 encoding."""
    encoded = password.encode("utf-8")
    if len(encoded) > 72:
        encoded = encoded[:72]
    return encoded.decode("utf-8", errors="ignore")


async def hash_password_async(password: str) -> str:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(get_executor(), pwd_context.hash, normalize_password(password))


async def verify_password_async(plain: str, hashed: str) -> bool:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(get_executor(), pwd_context.verify, normalize_password(plain), hashed)


# ================= CAPABILITY =================

class IdentityError(Exception):
    """Failure inside the identity provider."""


class AccountExistsError(IdentityError):
    """An account with this email already exists."""


class IdentityProvider(Protocol):

    async def create_account(self, email: str, name: str, password: str) -> Optional[str]:
        """Create a credential account; returns the new user id when known."""
        ...

    async def current_session_user(self, headers: Mapping[str, str]) -> Optional[str]:
        """User id owning the request's live session, or None."""
        ...


def extract_session_token(headers: Mapping[str, str]) -> Optional[str]:
    """Signed session token from `Authorization: Bearer` or the session cookie."""
    authorization = headers.get("authorization") or ""
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()

    raw_cookie = headers.get("cookie")
    if not raw_cookie:
        return None
    cookie = SimpleCookie()
    try:
        cookie.load(raw_cookie)
    except CookieError:
        return None
    morsel = cookie.get(SESSION_COOKIE)
    return morsel.value if morsel is not None and morsel.value else None


class LocalIdentityProvider:
    """
    Email/password accounts with server-side sessions.

    The opaque session token is stored in the session table; clients receive
    it wrapped in an HS256 JWT so a forged or truncated cookie is rejected
    before any database lookup.
    """

    def __init__(self, registry: RegistryStore, auth_secret: str, session_ttl: timedelta = timedelta(days=7)):
        self.registry = registry
        self.auth_secret = auth_secret
        self.session_ttl = session_ttl

    # ----- tokens -----

    def encode_session_token(self, token: str, expires_at: datetime) -> str:
        return jwt.encode({"sid": token, "exp": expires_at}, self.auth_secret, algorithm=ALGORITHM)

    def decode_session_token(self, signed: str) -> Optional[str]:
        try:
            payload = jwt.decode(signed, self.auth_secret, algorithms=[ALGORITHM])
        except JWTError:
            return None
        sid = payload.get("sid")
        return sid if isinstance(sid, str) and sid else None

    # ----- capability -----

    async def create_account(self, email: str, name: str, password: str) -> Optional[str]:
        async with self.registry.session() as db:
            if await find_user_by_email(db, email) is not None:
                raise AccountExistsError(f"Account already exists for {email}")

        password_hash = await hash_password_async(password)

        async with self.registry.session() as db:
            user = User(name=name, email=email, email_verified=False)
            db.add(user)
            await db.flush()
            db.add(Account(
                user_id=user.id,
                provider_id=CREDENTIAL_PROVIDER,
                account_id=user.id,
                password_hash=password_hash,
            ))
            try:
                await db.commit()
            except IntegrityError as e:
                await db.rollback()
                raise AccountExistsError(f"Account already exists for {email}") from e

            logger.info(f"Created account {user.id} ({email})")
            return user.id

    async def current_session_user(self, headers: Mapping[str, str]) -> Optional[str]:
        signed = extract_session_token(headers)
        if not signed:
            return None
        token = self.decode_session_token(signed)
        if not token:
            return None

        async with self.registry.session() as db:
            result = await db.execute(
                select(Session.user_id)
                .where(Session.token == token, Session.expires_at > utcnow())
            )
            return result.scalar_one_or_none()

    # ----- sign in / out -----

    async def sign_in(
        self,
        username: str,
        password: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Optional[Tuple[str, User]]:
        """Returns (signed session token, user) or None on bad credentials."""
        async with self.registry.session() as db:
            user = await find_user_by_username(db, username)
            if user is None:
                return None

            result = await db.execute(
                select(Account.password_hash)
                .where(Account.user_id == user.id, Account.provider_id == CREDENTIAL_PROVIDER)
            )
            password_hash = result.scalar_one_or_none()
            if not password_hash or not await verify_password_async(password, password_hash):
                return None

            token = secrets.token_urlsafe(32)
            expires_at = utcnow() + self.session_ttl
            db.add(Session(
                token=token,
                expires_at=expires_at,
                user_id=user.id,
                ip_address=ip_address,
                user_agent=user_agent,
            ))
            await db.commit()

            logger.info(f"User {user.id} signed in")
            return self.encode_session_token(token, expires_at), user

    async def sign_out(self, headers: Mapping[str, str]) -> bool:
        signed = extract_session_token(headers)
        token = self.decode_session_token(signed) if signed else None
        if not token:
            return False

        async with self.registry.session() as db:
            result = await db.execute(delete(Session).where(Session.token == token))
            await db.commit()
            return bool(result.rowcount)
