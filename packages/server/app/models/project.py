"""Project model."""

from typing import Optional
import uuid

from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Project(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "projects"

    workspace_id: uuid.UUID = Field(foreign_key="workspaces.id", nullable=False, index=True)
    name: str = Field(nullable=False, index=True)
    color: Optional[str] = None
    description: Optional[str] = None
