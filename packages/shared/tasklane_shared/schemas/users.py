"""User and authentication schemas shared between server and client."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class SignUpRequest(BaseModel):
    """Sign-up body. Fields are optional so the handler can report them together."""
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = None


class LogInRequest(BaseModel):
    email: Optional[EmailStr] = None
    password: Optional[str] = None


class ForgotPasswordRequest(BaseModel):
    email: Optional[EmailStr] = None


class ResetPasswordRequest(BaseModel):
    token: Optional[str] = None
    new_password: Optional[str] = None


class EmailChangeCreateRequest(BaseModel):
    new_email: Optional[EmailStr] = None


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class UserResponse(BaseModel):
    id: uuid.UUID
    name: str
    email: str
    avatar_url: Optional[str] = None
    notify_in_app: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SignUpResponse(BaseModel):
    user: UserResponse
    verification_expires_at: datetime


class LogInResponse(BaseModel):
    token: str
    user: UserResponse


class EmailChangeCreateResponse(BaseModel):
    request_id: uuid.UUID
    expires_at: datetime
