"""
Client state store.

A single store split into slices:
- auth: token + current user
- workspaces: list of workspaces and the current workspace id
- notifications: unread counter (never below zero)
- search: query, suggestions, loading flag
- realtime: connection flag and joined rooms

Every mutation publishes `state.changed` with the slice name on the bus.
`apply_event` folds a validated realtime event into the slices.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

import structlog
from pydantic import ValidationError

from tasklane_shared.schemas.events import (
    EntityEvent,
    NotificationCreated,
    NotificationUpdated,
    RealtimeEvent,
    WorkspaceMemberAdded,
)
from tasklane_shared.schemas.search import SearchSuggestions
from tasklane_shared.schemas.users import UserResponse
from tasklane_shared.schemas.workspaces import WorkspaceResponse

from .signals import STATE_CHANGED, EventBus

log = structlog.get_logger()


class TokenHolder(Protocol):
    def set_token(self, token: str) -> None: ...
    def clear_token(self) -> None: ...


def room_for_user(user_id: uuid.UUID | str) -> str:
    return f"user:{user_id}"


def room_for_workspace(workspace_id: uuid.UUID | str) -> str:
    return f"workspace:{workspace_id}"


@dataclass
class AuthState:
    token: Optional[str] = None
    user: Optional[UserResponse] = None

    @property
    def authenticated(self) -> bool:
        return self.token is not None and self.user is not None


@dataclass
class NotificationsState:
    unread_count: int = 0


@dataclass
class SearchState:
    query: str = ""
    suggestions: SearchSuggestions = field(default_factory=SearchSuggestions)
    loading: bool = False


@dataclass
class RealtimeState:
    connected: bool = False
    rooms: set[str] = field(default_factory=set)


class Store:
    def __init__(self, api: TokenHolder, bus: EventBus | None = None):
        self._api = api
        self._bus = bus or EventBus()
        self.auth = AuthState()
        self.workspaces: list[WorkspaceResponse] = []
        self.current_workspace_id: Optional[uuid.UUID] = None
        self.notifications = NotificationsState()
        self.search = SearchState()
        self.realtime = RealtimeState()

    def _changed(self, slice_name: str) -> None:
        self._bus.publish(STATE_CHANGED, slice_name)

    # --- Auth ---

    def set_auth(self, token: str, user: UserResponse) -> None:
        self.auth = AuthState(token=token, user=user)
        self._api.set_token(token)
        self._changed("auth")

    def clear_auth(self) -> None:
        self.auth = AuthState()
        self._api.clear_token()
        self._changed("auth")

    def reset_user_data(self) -> None:
        """Drop everything that belonged to the signed-in user except auth."""
        self.workspaces = []
        self.current_workspace_id = None
        self.notifications = NotificationsState()
        self.search = SearchState()
        for slice_name in ("workspaces", "current_workspace_id", "notifications", "search"):
            self._changed(slice_name)

    # --- Workspaces ---

    def set_workspaces(self, workspaces: list[WorkspaceResponse]) -> None:
        self.workspaces = list(workspaces)
        if self.current_workspace_id not in {w.id for w in self.workspaces}:
            self.current_workspace_id = self.workspaces[0].id if self.workspaces else None
            self._changed("current_workspace_id")
        self._changed("workspaces")

    def add_workspace(self, workspace: WorkspaceResponse) -> None:
        if any(w.id == workspace.id for w in self.workspaces):
            self.update_workspace(workspace)
            return
        self.workspaces.append(workspace)
        self._changed("workspaces")

    def update_workspace(self, workspace: WorkspaceResponse) -> None:
        self.workspaces = [workspace if w.id == workspace.id else w for w in self.workspaces]
        self._changed("workspaces")

    def remove_workspace(self, workspace_id: uuid.UUID) -> None:
        self.workspaces = [w for w in self.workspaces if w.id != workspace_id]
        if self.current_workspace_id == workspace_id:
            self.current_workspace_id = self.workspaces[0].id if self.workspaces else None
            self._changed("current_workspace_id")
        self._changed("workspaces")

    def set_current_workspace_id(self, workspace_id: Optional[uuid.UUID]) -> None:
        self.current_workspace_id = workspace_id
        self._changed("current_workspace_id")

    # --- Notifications ---

    def set_unread_count(self, count: int) -> None:
        self.notifications.unread_count = max(0, count)
        self._changed("notifications")

    def increment_unread(self) -> None:
        self.set_unread_count(self.notifications.unread_count + 1)

    def decrement_unread(self) -> None:
        self.set_unread_count(self.notifications.unread_count - 1)

    # --- Search ---

    def set_search_query(self, query: str) -> None:
        self.search.query = query
        self._changed("search")

    def set_search_loading(self, loading: bool) -> None:
        self.search.loading = loading
        self._changed("search")

    def set_search_suggestions(self, suggestions: SearchSuggestions) -> None:
        self.search.suggestions = suggestions
        self.search.loading = False
        self._changed("search")

    def clear_search_suggestions(self) -> None:
        self.search.suggestions = SearchSuggestions()
        self.search.loading = False
        self._changed("search")

    # --- Realtime ---

    def set_connected(self, connected: bool) -> None:
        self.realtime.connected = connected
        self._changed("realtime")

    def set_rooms(self, rooms: set[str]) -> None:
        self.realtime.rooms = set(rooms)
        self._changed("realtime")

    def add_room(self, room: str) -> None:
        if room not in self.realtime.rooms:
            self.realtime.rooms.add(room)
            self._changed("realtime")

    def expected_rooms(self) -> set[str]:
        """Rooms the server joins on connect: own user room plus one per workspace."""
        if self.auth.user is None:
            return set()
        rooms = {room_for_user(self.auth.user.id)}
        rooms.update(room_for_workspace(w.id) for w in self.workspaces)
        return rooms

    # --- Realtime events ---

    def apply_event(self, event: RealtimeEvent) -> None:
        if isinstance(event, NotificationCreated):
            self.increment_unread()
        elif isinstance(event, NotificationUpdated):
            if event.all_read:
                self.set_unread_count(0)
            elif event.is_read:
                self.decrement_unread()
            else:
                self.increment_unread()
        elif isinstance(event, WorkspaceMemberAdded):
            me = self.auth.user
            if me is not None and event.user.user.id == me.id:
                self.add_room(room_for_workspace(event.workspace_id))
        elif isinstance(event, EntityEvent) and event.entity == "workspace":
            self._apply_workspace_event(event)

    def _apply_workspace_event(self, event: EntityEvent) -> None:
        if event.action == "deleted":
            try:
                self.remove_workspace(uuid.UUID(str(event.data.get("id"))))
            except ValueError:
                log.warning("store.invalid_workspace_event", action=event.action)
            return

        try:
            workspace = WorkspaceResponse.model_validate(event.data)
        except ValidationError:
            log.warning("store.invalid_workspace_event", action=event.action)
            return
        if event.action == "created":
            self.add_workspace(workspace)
            self.add_room(room_for_workspace(workspace.id))
        else:
            self.update_workspace(workspace)

    # --- Persistence ---

    def snapshot(self) -> dict[str, Any]:
        """JSON-ready copy of the persisted slices."""
        return {
            "auth": {
                "token": self.auth.token,
                "user": self.auth.user.model_dump(mode="json") if self.auth.user else None,
            },
            "workspaces": [w.model_dump(mode="json") for w in self.workspaces],
            "current_workspace_id": str(self.current_workspace_id) if self.current_workspace_id else None,
            "notifications": {"unread_count": self.notifications.unread_count},
        }

    def restore(self, snapshot: dict[str, Any]) -> None:
        """Rehydrate the persisted slices. Session-only slices start fresh."""
        auth = snapshot.get("auth") or {}
        if auth.get("token") and auth.get("user"):
            self.set_auth(auth["token"], UserResponse.model_validate(auth["user"]))

        workspaces = snapshot.get("workspaces")
        if workspaces is not None:
            self.set_workspaces([WorkspaceResponse.model_validate(w) for w in workspaces])

        current = snapshot.get("current_workspace_id")
        if current:
            self.set_current_workspace_id(uuid.UUID(current))

        notifications = snapshot.get("notifications") or {}
        if "unread_count" in notifications:
            self.set_unread_count(int(notifications["unread_count"]))
