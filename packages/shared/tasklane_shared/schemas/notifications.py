from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class NotificationResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    type: str
    entity_type: Optional[str] = None
    entity_id: Optional[uuid.UUID] = None
    actor_id: Optional[uuid.UUID] = None
    message: str = ""
    is_read: bool = False
    created_at: datetime


class NotificationUpdateRequest(BaseModel):
    is_read: bool


class InboxCountResponse(BaseModel):
    unread_count: int = Field(ge=0)
