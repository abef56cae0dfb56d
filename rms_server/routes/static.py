"""
rms_server/routes/static.py
Catch-all for the built web UI. Must be registered after every API router.
"""
from fastapi import APIRouter, Depends, Request
from fastapi.responses import FileResponse, PlainTextResponse

from rms_server.config import ServerOptions
from rms_server.dependencies import get_options
from rms_server.errors import NotFoundError
from rms_server.services import static_assets

router = APIRouter()

PLACEHOLDER_TEXT = "RMS server is running. Build the web app to serve UI."


@router.api_route("/{full_path:path}", methods=["GET", "HEAD"], include_in_schema=False)
async def serve_web(full_path: str, request: Request, options: ServerOptions = Depends(get_options)):
    path = request.scope["path"]
    if path == "/api" or path.startswith("/api/"):
        raise NotFoundError("Not found", f"No API route for {path}")

    web_root = options.resolved_web_dist
    if web_root is None:
        return PlainTextResponse(PLACEHOLDER_TEXT)

    asset = static_assets.resolve(web_root, path)
    if asset is None:
        return PlainTextResponse("Not Found", status_code=404)
    return FileResponse(asset)
