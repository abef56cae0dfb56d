"""
rms_server/routes/setup.py
One-time admin setup endpoints
"""
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request, status

from rms_server.dependencies import get_bootstrap_manager, read_json_body
from rms_server.rate_limit import limiter, SETUP_ADMIN_LIMIT
from rms_server.schemas.setup import AdminSetupResponse, SetupStatusResponse
from rms_server.services.admin_bootstrap import AdminBootstrapManager

router = APIRouter(prefix="/api/setup", tags=["Setup"])


@router.get("/status", response_model=SetupStatusResponse)
async def setup_status(manager: AdminBootstrapManager = Depends(get_bootstrap_manager)):
    return {"requiresAdminSetup": await manager.requires_admin_setup()}


@router.post("/admin", status_code=status.HTTP_201_CREATED, response_model=AdminSetupResponse)
@limiter.limit(SETUP_ADMIN_LIMIT)
async def setup_admin(
    request: Request,
    x_setup_token: Optional[str] = Header(default=None),
    manager: AdminBootstrapManager = Depends(get_bootstrap_manager),
):
    """
    Create the global administrator.

    Header `x-setup-token` must equal the server's configured setup token.
    Body: {username, password, name?}
    """
    payload = await read_json_body(request)
    username = await manager.bootstrap_admin(x_setup_token, payload)
    return {"role": "ADMIN", "username": username}
