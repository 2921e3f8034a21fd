"""Workspace (tenant boundary) and its membership / invite tables."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin, utcnow


class Workspace(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "workspaces"

    name: str = Field(nullable=False, index=True)


class WorkspaceMember(UUIDMixin, SQLModel, table=True):
    __tablename__ = "workspace_members"
    __table_args__ = (
        sa.UniqueConstraint("workspace_id", "user_id", name="uq_workspace_members_workspace_user"),
    )

    workspace_id: uuid.UUID = Field(foreign_key="workspaces.id", nullable=False, index=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    role: str = Field(default="member", nullable=False)  # admin | member
    joined_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_type=sa.DateTime(timezone=True),
    )


class WorkspaceInvite(UUIDMixin, SQLModel, table=True):
    __tablename__ = "workspace_invites"

    workspace_id: uuid.UUID = Field(foreign_key="workspaces.id", nullable=False, index=True)
    email: str = Field(nullable=False)
    token: str = Field(nullable=False, unique=True, index=True)
    status: str = Field(default="pending", nullable=False)  # pending | accepted | revoked
    invited_by: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")
    created_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_type=sa.DateTime(timezone=True),
    )
    responded_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
