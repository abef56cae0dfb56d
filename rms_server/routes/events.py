"""
rms_server/routes/events.py
Event provisioning endpoint (global admins only)
"""
from fastapi import APIRouter, Depends, Request

from rms_server.dependencies import get_provisioner, read_json_body
from rms_server.schemas.events import EventCreatedResponse
from rms_server.services.event_provisioner import EventProvisioner

router = APIRouter(prefix="/api/events", tags=["Events"])


@router.post("", response_model=EventCreatedResponse)
async def create_event(
    request: Request,
    provisioner: EventProvisioner = Depends(get_provisioner),
):
    details = await read_json_body(request)
    provisioned = await provisioner.create_event(request, details)
    return {"eventCode": provisioned.event_code, "eventDbPath": str(provisioned.db_path)}
