"""Task model."""

from typing import Optional
import uuid

from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Task(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "tasks"

    project_id: uuid.UUID = Field(foreign_key="projects.id", nullable=False, index=True)
    title: str = Field(nullable=False, index=True)
    description: Optional[str] = None
    status: str = Field(nullable=False, default="todo")  # todo | in_progress | done
