"""
Workspace-related Pydantic schemas shared between server and client.

Covers: workspace list/create, membership, invites.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from .common import InviteStatus, Role


class WorkspaceCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)


class WorkspaceResponse(BaseModel):
    """A workspace as seen by one of its members."""
    id: uuid.UUID
    name: str
    role: Role
    created_at: datetime
    updated_at: datetime


class InviteCreateRequest(BaseModel):
    email: EmailStr


class InviteResponse(BaseModel):
    id: uuid.UUID
    workspace_id: uuid.UUID
    email: str
    status: InviteStatus
    created_at: datetime


class InviteAcceptResponse(BaseModel):
    workspace_id: uuid.UUID
    joined_at: datetime


class MemberUser(BaseModel):
    id: uuid.UUID
    name: Optional[str] = None
    email: Optional[str] = None
    avatar_url: Optional[str] = None


class MemberResponse(BaseModel):
    id: uuid.UUID
    user: MemberUser
    role: Role
    joined_at: datetime
