"""
rms_server/routes/__init__.py
API route registration. The static catch-all is mounted separately, last.
"""
from fastapi import APIRouter

from rms_server.routes import auth, events, health, setup

router = APIRouter()

router.include_router(health.router)
router.include_router(setup.router)
router.include_router(auth.router)
router.include_router(events.router)
