"""
rms_server/schemas/events.py
Event creation payloads
"""
import re
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field, field_validator

EVENT_CODE_PATTERN = re.compile(r"[A-Za-z0-9_-]+")
MAX_EVENT_CODE_LENGTH = 64
DEFAULT_REGION = "UNKNOWN"
MAX_EVENT_INT = 2**31 - 1


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class EventDetails(BaseModel):
    """
    Body of POST /api/events. Only eventCode is required; timestamps accept
    ISO-8601 strings or unix time.
    """
    eventCode: str
    name: Optional[str] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    region: Optional[str] = None
    type: Optional[int] = Field(default=None, ge=0, le=MAX_EVENT_INT)
    status: Optional[int] = Field(default=None, ge=0, le=MAX_EVENT_INT)
    finals: Optional[int] = Field(default=None, ge=0, le=MAX_EVENT_INT)
    divisions: Optional[int] = Field(default=None, ge=0, le=MAX_EVENT_INT)

    @field_validator("eventCode")
    @classmethod
    def check_event_code(cls, value: str) -> str:
        if not value:
            raise ValueError("eventCode is required")
        if len(value) > MAX_EVENT_CODE_LENGTH:
            raise ValueError(f"eventCode must be at most {MAX_EVENT_CODE_LENGTH} characters")
        if not EVENT_CODE_PATTERN.fullmatch(value):
            raise ValueError("eventCode may only contain letters, digits, '_' and '-'")
        return value

    @field_validator("start", "end")
    @classmethod
    def normalize_timestamp(cls, value: Optional[datetime]) -> Optional[datetime]:
        try:
            return to_naive_utc(value)
        except (OverflowError, ValueError):
            raise ValueError("start/end out of range")


class EventCreatedResponse(BaseModel):
    eventCode: str
    eventDbPath: str
