"""
rms_server/schemas/auth.py
"""
from typing import List, Optional

from pydantic import BaseModel


class UsernameSignIn(BaseModel):
    username: str
    password: str


class UserResponse(BaseModel):
    id: str
    name: str
    email: str
    emailVerified: bool
    username: Optional[str] = None


class RoleResponse(BaseModel):
    role: str
    eventCode: Optional[str] = None


class SignInResponse(BaseModel):
    token: str
    user: UserResponse


class SessionResponse(BaseModel):
    user: UserResponse
    roles: List[RoleResponse]
