"""
Outbound realtime event queue.

REST handlers never talk to the socket server directly. They publish
`OutboundEvent`s (what to emit, to which rooms) and `RoomChange`s (a user
gained or lost a workspace room) here; the realtime gateway is the single
consumer and performs the fan-out.

Delivery is best effort, at most once: when the queue is full the item is
dropped and logged.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass
from functools import lru_cache
from typing import Union

import structlog

from tasklane_shared.schemas.events import RealtimeEvent

log = structlog.get_logger()

MAX_PENDING_EVENTS = 10_000


def room_for_user(user_id: uuid.UUID | str) -> str:
    return f"user:{user_id}"


def room_for_workspace(workspace_id: uuid.UUID | str) -> str:
    return f"workspace:{workspace_id}"


@dataclass(frozen=True)
class OutboundEvent:
    event: RealtimeEvent
    rooms: tuple[str, ...]


@dataclass(frozen=True)
class RoomChange:
    user_id: str
    room: str
    joined: bool


QueueItem = Union[OutboundEvent, RoomChange]


class EventQueue:
    """In-process FIFO between request handlers and the realtime gateway."""

    def __init__(self, maxsize: int = MAX_PENDING_EVENTS) -> None:
        self._queue: asyncio.Queue[QueueItem] = asyncio.Queue(maxsize=maxsize)

    def __len__(self) -> int:
        return self._queue.qsize()

    def publish(self, event: RealtimeEvent, *rooms: str) -> None:
        """Queue an event for delivery to the given rooms."""
        if not rooms:
            raise ValueError("publish() needs at least one room")
        self._put(OutboundEvent(event=event, rooms=tuple(rooms)))

    def join_room(self, user_id: uuid.UUID | str, room: str) -> None:
        """Ask the gateway to add every live connection of a user to a room."""
        self._put(RoomChange(user_id=str(user_id), room=room, joined=True))

    def leave_room(self, user_id: uuid.UUID | str, room: str) -> None:
        self._put(RoomChange(user_id=str(user_id), room=room, joined=False))

    def _put(self, item: QueueItem) -> None:
        try:
            self._queue.put_nowait(item)
        except asyncio.QueueFull:
            log.warning("events.dropped", item=type(item).__name__, pending=self._queue.qsize())

    async def get(self) -> QueueItem:
        return await self._queue.get()

    def get_nowait(self) -> QueueItem:
        return self._queue.get_nowait()

    def task_done(self) -> None:
        self._queue.task_done()

    async def join(self) -> None:
        """Wait until every queued item has been processed."""
        await self._queue.join()


@lru_cache
def get_event_queue() -> EventQueue:
    """Process-wide queue; FastAPI dependency (overridable in tests)."""
    return EventQueue()
