"""
rms_server/routes/auth.py
Username/password sessions for the web UI
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response

from rms_server.config import ServerOptions
from rms_server.database import RegistryStore
from rms_server.dependencies import get_gate, get_identity, get_options, get_registry
from rms_server.errors import UnauthenticatedError
from rms_server.orm import User
from rms_server.rate_limit import limiter, SIGN_IN_LIMIT
from rms_server.schemas.auth import SessionResponse, SignInResponse, UsernameSignIn
from rms_server.services.authorization import AuthorizationGate
from rms_server.services.identity import SESSION_COOKIE, LocalIdentityProvider
from rms_server.services.registry import list_user_roles

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Authentication"])


@router.post("/sign-in/username", response_model=SignInResponse)
@limiter.limit(SIGN_IN_LIMIT)
async def sign_in_username(
    request: Request,
    response: Response,
    credentials: UsernameSignIn,
    identity: LocalIdentityProvider = Depends(get_identity),
    options: ServerOptions = Depends(get_options),
):
    result = await identity.sign_in(
        credentials.username,
        credentials.password,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
    if result is None:
        raise UnauthenticatedError("Invalid username or password")

    token, user = result
    response.set_cookie(
        SESSION_COOKIE,
        token,
        max_age=options.session_ttl_days * 24 * 60 * 60,
        httponly=True,
        samesite="lax",
    )
    return {"token": token, "user": user.to_dict()}


@router.post("/sign-out")
async def sign_out(
    request: Request,
    response: Response,
    identity: LocalIdentityProvider = Depends(get_identity),
):
    await identity.sign_out(request.headers)
    response.delete_cookie(SESSION_COOKIE)
    return {"success": True}


@router.get("/get-session", response_model=Optional[SessionResponse])
async def get_session(
    request: Request,
    gate: AuthorizationGate = Depends(get_gate),
    registry: RegistryStore = Depends(get_registry),
):
    user_id = await gate.current_user(request)
    if user_id is None:
        return None

    async with registry.session() as db:
        user = await db.get(User, user_id)
        if user is None:
            return None
        roles = await list_user_roles(db, user_id)

    return {
        "user": user.to_dict(),
        "roles": [{"role": role.role.value, "eventCode": role.event_code} for role in roles],
    }
