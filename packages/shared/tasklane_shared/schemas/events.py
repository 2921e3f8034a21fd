"""
Realtime event variants shared between the server gateway and the client store.

Each event kind has its own model. The server validates an event before it is
emitted; the client validates the raw Socket.IO payload with `parse_event`
before it reaches the store.

Wire format: Socket.IO event name = `event_name()`, data = `payload()`.
"""

from __future__ import annotations

import re
import uuid
from typing import Any, ClassVar, Literal, Optional

from pydantic import BaseModel, ValidationError

from .notifications import NotificationResponse
from .workspaces import MemberResponse

EntityType = Literal["workspace", "project", "section", "task", "comment", "attachment"]
EntityAction = Literal["created", "updated", "deleted", "moved", "reordered"]

_ENTITY_EVENT_RE = re.compile(
    r"^(workspace|project|section|task|comment|attachment)_"
    r"(created|updated|deleted|moved|reordered)$"
)


class InvalidEvent(ValueError):
    """Raised when an event name is unknown or its payload does not validate."""


class RealtimeEvent(BaseModel):
    EVENT_NAME: ClassVar[str] = ""

    def event_name(self) -> str:
        return self.EVENT_NAME

    def payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json")

    @classmethod
    def from_payload(cls, data: Any) -> "RealtimeEvent":
        return cls.model_validate(data)


class NotificationCreated(RealtimeEvent):
    """A new notification for the recipient; payload is the notification itself."""
    EVENT_NAME: ClassVar[str] = "notification_created"

    notification: NotificationResponse

    def payload(self) -> dict[str, Any]:
        return self.notification.model_dump(mode="json")

    @classmethod
    def from_payload(cls, data: Any) -> "NotificationCreated":
        return cls(notification=NotificationResponse.model_validate(data))


class NotificationUpdated(RealtimeEvent):
    """Read-state change. `all_read` marks every notification of the user as read."""
    EVENT_NAME: ClassVar[str] = "notification_updated"

    notification_id: Optional[uuid.UUID] = None
    is_read: bool
    all_read: Optional[bool] = None

    def payload(self) -> dict[str, Any]:
        data = self.model_dump(mode="json")
        if self.all_read is None:
            data.pop("all_read")
        return data


class WorkspaceMemberAdded(RealtimeEvent):
    EVENT_NAME: ClassVar[str] = "workspace_member_added"

    workspace_id: uuid.UUID
    user: MemberResponse


class EntityEvent(RealtimeEvent):
    """Lifecycle event of a workspace-scoped entity; payload is the entity object."""

    entity: EntityType
    action: EntityAction
    data: dict[str, Any]

    def event_name(self) -> str:
        return f"{self.entity}_{self.action}"

    def payload(self) -> dict[str, Any]:
        return dict(self.data)


_FIXED_EVENTS: dict[str, type[RealtimeEvent]] = {
    NotificationCreated.EVENT_NAME: NotificationCreated,
    NotificationUpdated.EVENT_NAME: NotificationUpdated,
    WorkspaceMemberAdded.EVENT_NAME: WorkspaceMemberAdded,
}


def is_known_event(name: str) -> bool:
    return name in _FIXED_EVENTS or bool(_ENTITY_EVENT_RE.match(name))


def parse_event(name: str, payload: Any) -> RealtimeEvent:
    """Build the tagged variant for a raw (name, payload) pair.

    Raises InvalidEvent for unknown names and payloads that fail validation.
    """
    try:
        if name in _FIXED_EVENTS:
            return _FIXED_EVENTS[name].from_payload(payload)
        match = _ENTITY_EVENT_RE.match(name)
        if match:
            if not isinstance(payload, dict):
                raise InvalidEvent(f"{name}: payload must be an object")
            return EntityEvent(entity=match.group(1), action=match.group(2), data=payload)
    except ValidationError as exc:
        raise InvalidEvent(f"{name}: {exc.error_count()} validation error(s)") from exc
    raise InvalidEvent(f"Unknown event: {name}")
