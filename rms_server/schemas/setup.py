"""
rms_server/schemas/setup.py
Admin bootstrap payloads
"""
import re
from typing import Optional

from pydantic import BaseModel, field_validator

USERNAME_PATTERN = re.compile(r"[A-Za-z0-9._-]+")
MIN_USERNAME_LENGTH = 3
MIN_PASSWORD_LENGTH = 8


class AdminSetupPayload(BaseModel):
    """
    username: at least 3 of letters, digits, '.', '_' or '-'
    password: at least 8 characters
    name: optional display name, defaults to the username
    """
    username: str
    password: str
    name: Optional[str] = None

    @field_validator("username")
    @classmethod
    def check_username(cls, value: str) -> str:
        if len(value) < MIN_USERNAME_LENGTH:
            raise ValueError(f"username must be at least {MIN_USERNAME_LENGTH} characters")
        if not USERNAME_PATTERN.fullmatch(value):
            raise ValueError("username may only contain letters, digits, '.', '_' and '-'")
        return value

    @field_validator("password")
    @classmethod
    def check_password(cls, value: str) -> str:
        if len(value) < MIN_PASSWORD_LENGTH:
            raise ValueError(f"password must be at least {MIN_PASSWORD_LENGTH} characters")
        return value

    @property
    def display_name(self) -> str:
        if self.name and self.name.strip():
            return self.name.strip()
        return self.username


class SetupStatusResponse(BaseModel):
    requiresAdminSetup: bool


class AdminSetupResponse(BaseModel):
    role: str = "ADMIN"
    username: str
