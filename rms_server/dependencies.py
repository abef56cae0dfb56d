"""
rms_server/dependencies.py
FastAPI dependencies exposing the components built in the app lifespan
"""
import json
from typing import Any

from fastapi import Request

from rms_server.config import ServerOptions
from rms_server.database import RegistryStore
from rms_server.services.admin_bootstrap import AdminBootstrapManager
from rms_server.services.authorization import AuthorizationGate
from rms_server.services.event_provisioner import EventProvisioner
from rms_server.services.identity import LocalIdentityProvider


def get_options(request: Request) -> ServerOptions:
    return request.app.state.options


def get_registry(request: Request) -> RegistryStore:
    return request.app.state.registry


def get_identity(request: Request) -> LocalIdentityProvider:
    return request.app.state.identity


def get_gate(request: Request) -> AuthorizationGate:
    return request.app.state.gate


def get_bootstrap_manager(request: Request) -> AdminBootstrapManager:
    return request.app.state.bootstrap_manager


def get_provisioner(request: Request) -> EventProvisioner:
    return request.app.state.provisioner


async def read_json_body(request: Request) -> Any:
    """
    Parsed JSON body, or None when the body is empty or not JSON.
    Validation happens inside the services so that authorization checks
    always run before payload checks.
    """
    body = await request.body()
    if not body:
        return None
    try:
        return json.loads(body)
    except ValueError:
        return None
