"""
Notification service: in-app notifications and the unread counter.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from sqlalchemy import func, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import NotFound
from app.core.events import EventQueue, room_for_user
from app.models.notification import Notification
from app.models.user import User
from tasklane_shared.schemas.events import NotificationCreated, NotificationUpdated
from tasklane_shared.schemas.notifications import NotificationResponse

log = structlog.get_logger()


def notification_to_response(notification: Notification) -> NotificationResponse:
    return NotificationResponse(
        id=notification.id,
        user_id=notification.user_id,
        type=notification.type,
        entity_type=notification.entity_type,
        entity_id=notification.entity_id,
        actor_id=notification.actor_id,
        message=notification.message,
        is_read=notification.is_read,
        created_at=notification.created_at,
    )


async def create_notification(
    session: AsyncSession,
    *,
    recipient_id: uuid.UUID,
    notification_type: str,
    message: str,
    entity_type: Optional[str] = None,
    entity_id: Optional[uuid.UUID] = None,
    actor_id: Optional[uuid.UUID] = None,
) -> Optional[Notification]:
    """Stage a notification. Returns None when the recipient opted out of in-app notifications."""
    result = await session.execute(select(User.notify_in_app).where(User.id == recipient_id))
    if result.scalar_one_or_none() is not True:
        return None

    notification = Notification(
        user_id=recipient_id,
        type=notification_type,
        entity_type=entity_type,
        entity_id=entity_id,
        actor_id=actor_id,
        message=message,
    )
    session.add(notification)
    await session.flush()
    return notification


def publish_created(queue: EventQueue, notification: Notification) -> None:
    """Announce a committed notification to its recipient."""
    queue.publish(
        NotificationCreated(notification=notification_to_response(notification)),
        room_for_user(notification.user_id),
    )


async def inbox_count(user_id: uuid.UUID, session: AsyncSession) -> int:
    result = await session.execute(
        select(func.count())
        .select_from(Notification)
        .where(Notification.user_id == user_id, Notification.is_read.is_(False))
    )
    return int(result.scalar_one())


async def list_notifications(
    user_id: uuid.UUID,
    session: AsyncSession,
    *,
    unread_only: bool = False,
    limit: int = 50,
) -> list[NotificationResponse]:
    query = select(Notification).where(Notification.user_id == user_id)
    if unread_only:
        query = query.where(Notification.is_read.is_(False))
    query = query.order_by(Notification.created_at.desc()).limit(limit)
    result = await session.execute(query)
    return [notification_to_response(n) for n in result.scalars().all()]


async def set_read_state(
    user_id: uuid.UUID,
    notification_id: uuid.UUID,
    is_read: bool,
    session: AsyncSession,
    queue: EventQueue,
) -> NotificationResponse:
    result = await session.execute(
        select(Notification).where(
            Notification.id == notification_id,
            Notification.user_id == user_id,
        )
    )
    notification = result.scalar_one_or_none()
    if notification is None:
        raise NotFound("Notification not found")

    changed = notification.is_read != is_read
    notification.is_read = is_read
    session.add(notification)
    await session.commit()

    # Only real transitions move the client counter.
    if changed:
        queue.publish(
            NotificationUpdated(notification_id=notification.id, is_read=is_read),
            room_for_user(user_id),
        )
    log.info("notification.updated", notification_id=str(notification_id), is_read=is_read)
    return notification_to_response(notification)


async def mark_all_read(user_id: uuid.UUID, session: AsyncSession, queue: EventQueue) -> int:
    result = await session.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        .values(is_read=True)
    )
    await session.commit()

    queue.publish(
        NotificationUpdated(notification_id=None, is_read=True, all_read=True),
        room_for_user(user_id),
    )
    log.info("notification.all_read", user_id=str(user_id), updated=result.rowcount)
    return result.rowcount or 0
