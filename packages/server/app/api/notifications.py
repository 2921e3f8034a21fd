"""
Notification endpoints.

GET   /api/notifications                  Latest notifications of the caller
GET   /api/notifications/inbox_count      Unread counter
PATCH /api/notifications/{id}             Mark read / unread
POST  /api/notifications/mark_all_read
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user_id
from app.core.database import get_session
from app.core.events import EventQueue, get_event_queue
from app.services import notifications as notification_service
from tasklane_shared.schemas.common import MessageResponse
from tasklane_shared.schemas.notifications import (
    InboxCountResponse,
    NotificationResponse,
    NotificationUpdateRequest,
)

router = APIRouter()


@router.get("", response_model=list[NotificationResponse])
async def list_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    return await notification_service.list_notifications(
        user_id, session, unread_only=unread_only, limit=limit
    )


@router.get("/inbox_count", response_model=InboxCountResponse)
async def inbox_count(
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    return InboxCountResponse(unread_count=await notification_service.inbox_count(user_id, session))


@router.post("/mark_all_read", response_model=MessageResponse)
async def mark_all_read(
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
    queue: EventQueue = Depends(get_event_queue),
):
    await notification_service.mark_all_read(user_id, session, queue)
    return MessageResponse(message="All notifications marked as read")


@router.patch("/{notification_id}", response_model=NotificationResponse)
async def update_notification(
    notification_id: uuid.UUID,
    body: NotificationUpdateRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
    queue: EventQueue = Depends(get_event_queue),
):
    return await notification_service.set_read_state(
        user_id, notification_id, body.is_read, session, queue
    )
