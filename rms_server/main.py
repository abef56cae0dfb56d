"""
rms_server/main.py
Application factory

create_app(options) wires the registry, identity provider, authorization
gate, admin bootstrap manager and event provisioner together during the
lifespan and maps every ServiceError to its HTTP status.
"""
import logging
import secrets
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from rms_server import __version__
from rms_server.config import ServerOptions, parse_server_options
from rms_server.database import RegistryStore
from rms_server.errors import InvalidError, ServiceError, format_validation_error, internal_error_response
from rms_server.rate_limit import limiter
from rms_server.routes import router
from rms_server.routes import static
from rms_server.services.admin_bootstrap import AdminBootstrapManager
from rms_server.services.authorization import AuthorizationGate
from rms_server.services.event_provisioner import EventProvisioner
from rms_server.services.identity import LocalIdentityProvider

logger = logging.getLogger(__name__)


def create_app(options: ServerOptions) -> FastAPI:

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting RMS server...")
        registry = RegistryStore(options.db_path)
        # Failure here aborts startup
        await registry.init()

        auth_secret = options.auth_secret
        if not auth_secret:
            logger.warning("No auth secret configured - sessions will not survive a restart")
            auth_secret = secrets.token_urlsafe(32)
        if not options.setup_token:
            logger.warning("No setup token configured - admin setup is disabled")

        identity = LocalIdentityProvider(registry, auth_secret, timedelta(days=options.session_ttl_days))
        gate = AuthorizationGate(registry, identity)

        app.state.registry = registry
        app.state.identity = identity
        app.state.gate = gate
        app.state.bootstrap_manager = AdminBootstrapManager(registry, identity, options.setup_token)
        app.state.provisioner = EventProvisioner(registry, gate)
        app.state.started_at = datetime.now(timezone.utc).isoformat()

        logger.info(f"✓ Using registry at {registry.db_path}")
        if options.resolved_web_dist:
            logger.info(f"✓ Serving web assets from {options.resolved_web_dist}")

        yield

        logger.info("Shutting down RMS server...")
        try:
            await registry.close()
        except Exception as e:
            logger.error(f"Error closing registry: {str(e)}")

    app = FastAPI(
        title="RMS Local Server",
        description="Local-first tournament event server",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.options = options

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    allow_any_origin = "*" in options.cors_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_any_origin else options.cors_origins,
        allow_credentials=not allow_any_origin,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "x-setup-token"],
    )

    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        else:
            logger.info(f"{request.method} {request.url.path} -> {exc.status_code} {exc.kind}")
        return exc.to_response()

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Validation error on {request.url.path}: {exc.errors()}")
        return InvalidError("Invalid request", format_validation_error(exc)).to_response()

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        return internal_error_response(exc, f"{request.method} {request.url.path}")

    app.include_router(router)
    app.include_router(static.router)
    return app


def app_from_env() -> FastAPI:
    """Factory for ASGI servers: `uvicorn --factory rms_server.main:app_from_env`."""
    load_dotenv()
    return create_app(parse_server_options([]))
