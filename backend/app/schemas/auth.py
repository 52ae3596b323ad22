"""
SubText Backend — Auth Schemas
================================

Request fields are Optional so that AuthService can answer missing values
with its own 400 messages ("Missing required fields: ...").
"""

from datetime import datetime
from typing import Optional

from pydantic import Field

from app.schemas.common import CamelModel


class SignupRequest(CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None
    full_name: Optional[str] = None


class LoginRequest(CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None


class RefreshRequest(CamelModel):
    refresh_token: Optional[str] = None


class UserOut(CamelModel):
    id: str
    email: str
    full_name: str
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class SessionOut(CamelModel):
    access_token: str
    refresh_token: str
    expires_at: Optional[int] = Field(default=None, description="Unix timestamp (seconds)")


class SignupResponse(CamelModel):
    message: str
    user: UserOut


class LoginResponse(CamelModel):
    message: str
    user: UserOut
    session: SessionOut


class RefreshResponse(CamelModel):
    message: str
    session: SessionOut


class CheckUserResponse(CamelModel):
    exists: bool
    user: Optional[UserOut] = None
    message: Optional[str] = None
