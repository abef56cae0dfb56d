"""
rms_server/routes/health.py
"""
from fastapi import APIRouter, Depends, Request

from rms_server.config import ServerOptions
from rms_server.database import RegistryStore
from rms_server.dependencies import get_options, get_registry

router = APIRouter(prefix="/api", tags=["Health"])


@router.get("/health")
async def health(
    request: Request,
    options: ServerOptions = Depends(get_options),
    registry: RegistryStore = Depends(get_registry),
):
    return {
        "status": "ok",
        "database": str(registry.db_path),
        "host": options.host,
        "port": options.port,
        "startedAt": request.app.state.started_at,
    }
