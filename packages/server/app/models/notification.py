"""In-app notification model."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import UUIDMixin, utcnow


class Notification(UUIDMixin, SQLModel, table=True):
    __tablename__ = "notifications"

    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)  # recipient
    type: str = Field(nullable=False)  # e.g. invite_accepted, task_assigned
    entity_type: Optional[str] = None
    entity_id: Optional[uuid.UUID] = None
    actor_id: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")
    message: str = Field(default="", nullable=False)
    is_read: bool = Field(default=False, nullable=False, index=True)
    created_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_type=sa.DateTime(timezone=True),
    )
