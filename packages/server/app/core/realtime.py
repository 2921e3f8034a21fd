"""
Realtime gateway (Socket.IO).

Connection lifecycle:
- The handshake carries the session token as `auth.token` or an
  `Authorization` header ("Bearer " prefix optional). A missing or invalid
  token refuses the connection with "Unauthorized".
- An authenticated connection joins `user:<id>`, then one
  `workspace:<id>` room per membership. If the membership lookup fails the
  connection stays up with the user room only.
- Membership changes made through the REST API reach live connections via
  `RoomChange` items on the event queue, so room sets do not go stale until
  reconnect.

The gateway is the only component that calls `sio.emit`.
"""

from __future__ import annotations

import asyncio
import enum
import uuid
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from typing import Any, Optional

import socketio
import structlog
from sqlmodel import select

from app.core.auth import verify_token
from app.core.config import get_settings
from app.core.database import get_session_context
from app.core.errors import InvalidToken
from app.core.events import (
    EventQueue,
    OutboundEvent,
    QueueItem,
    RoomChange,
    room_for_user,
    room_for_workspace,
)
from app.models.workspace import WorkspaceMember
from tasklane_shared.schemas.events import is_known_event

log = structlog.get_logger()
settings = get_settings()

MembershipLookup = Callable[[str], Awaitable[Iterable[str]]]

sio = socketio.AsyncServer(
    async_mode="asgi",
    cors_allowed_origins=settings.cors_origins,
    logger=False,
    engineio_logger=False,
)


class ConnectionState(str, enum.Enum):
    AUTHENTICATING = "authenticating"
    JOINED = "joined"
    DISCONNECTED = "disconnected"


@dataclass
class Connection:
    sid: str
    user_id: str
    state: ConnectionState = ConnectionState.AUTHENTICATING
    rooms: set[str] = field(default_factory=set)


async def lookup_workspace_ids(user_id: str) -> list[str]:
    """Workspace ids the user is a member of."""
    async with get_session_context() as session:
        result = await session.execute(
            select(WorkspaceMember.workspace_id).where(
                WorkspaceMember.user_id == uuid.UUID(user_id)
            )
        )
        return [str(wid) for wid in result.scalars().all()]


def extract_token(environ: dict[str, Any], auth: Any | None) -> str | None:
    """Pull the session token out of the handshake.

    `auth.token` wins; otherwise the Authorization header, with or without
    the "Bearer " prefix.
    """
    if isinstance(auth, dict):
        token = auth.get("token")
        if isinstance(token, str) and token.strip():
            return token.strip()

    header = environ.get("HTTP_AUTHORIZATION") if isinstance(environ, dict) else None
    if not header and isinstance(environ, dict):
        scope = environ.get("asgi.scope")
        if isinstance(scope, dict):
            for name, value in scope.get("headers", []):
                if name.lower() == b"authorization":
                    header = value.decode(errors="ignore")
                    break

    if not header:
        return None
    header = header.strip()
    if header.startswith("Bearer "):
        header = header[7:].strip()
    return header or None


class RealtimeGateway:
    """Authenticates connections, keeps room membership and fans out events."""

    def __init__(
        self,
        server: socketio.AsyncServer,
        membership_lookup: MembershipLookup = lookup_workspace_ids,
    ) -> None:
        self._server = server
        self._lookup = membership_lookup
        self._connections: dict[str, Connection] = {}
        self._sids_by_user: dict[str, set[str]] = {}
        self._relay_task: Optional[asyncio.Task] = None

    def attach(self) -> None:
        """Register the connect/disconnect handlers on the server."""
        self._server.on("connect", self.on_connect)
        self._server.on("disconnect", self.on_disconnect)

    # -- connection lifecycle -------------------------------------------------

    async def on_connect(self, sid: str, environ: dict[str, Any], auth: Any | None = None) -> bool:
        token = extract_token(environ, auth)
        if token is None:
            log.info("realtime.refused", sid=sid, reason="no_token")
            raise ConnectionRefusedError("Unauthorized")
        try:
            user_id = verify_token(token)
        except InvalidToken as exc:
            log.info("realtime.refused", sid=sid, reason="invalid_token")
            raise ConnectionRefusedError("Unauthorized") from exc

        conn = Connection(sid=sid, user_id=user_id)
        self._connections[sid] = conn
        self._sids_by_user.setdefault(user_id, set()).add(sid)

        try:
            await self._enter(conn, room_for_user(user_id))

            try:
                workspace_ids = list(await self._lookup(user_id))
            except Exception:
                # Degraded: the connection keeps its user room.
                log.exception("realtime.membership_lookup_failed", sid=sid, user_id=user_id)
                workspace_ids = []

            for workspace_id in workspace_ids:
                await self._enter(conn, room_for_workspace(workspace_id))
        except Exception:
            # A failed handshake gets no disconnect callback.
            self._forget(sid)
            log.exception("realtime.join_failed", sid=sid, user_id=user_id)
            raise

        conn.state = ConnectionState.JOINED
        log.info("realtime.connected", sid=sid, user_id=user_id, rooms=sorted(conn.rooms))
        return True

    def _forget(self, sid: str) -> Optional[Connection]:
        conn = self._connections.pop(sid, None)
        if conn is None:
            return None
        conn.state = ConnectionState.DISCONNECTED
        sids = self._sids_by_user.get(conn.user_id)
        if sids is not None:
            sids.discard(sid)
            if not sids:
                del self._sids_by_user[conn.user_id]
        return conn

    async def on_disconnect(self, sid: str, reason: Any = None) -> None:
        conn = self._forget(sid)
        if conn is None:
            return
        log.info("realtime.disconnected", sid=sid, user_id=conn.user_id)

    async def _enter(self, conn: Connection, room: str) -> None:
        await self._server.enter_room(conn.sid, room)
        conn.rooms.add(room)

    async def _leave(self, conn: Connection, room: str) -> None:
        await self._server.leave_room(conn.sid, room)
        conn.rooms.discard(room)

    # -- introspection --------------------------------------------------------

    def rooms_for(self, sid: str) -> frozenset[str]:
        conn = self._connections.get(sid)
        return frozenset(conn.rooms) if conn else frozenset()

    def state_of(self, sid: str) -> ConnectionState:
        conn = self._connections.get(sid)
        return conn.state if conn else ConnectionState.DISCONNECTED

    def sids_for_user(self, user_id: uuid.UUID | str) -> frozenset[str]:
        return frozenset(self._sids_by_user.get(str(user_id), ()))

    # -- room changes ---------------------------------------------------------

    async def join_room(self, user_id: uuid.UUID | str, room: str) -> None:
        """Add every live connection of a user to a room."""
        for sid in self.sids_for_user(user_id):
            conn = self._connections.get(sid)
            if conn is not None and room not in conn.rooms:
                await self._enter(conn, room)

    async def leave_room(self, user_id: uuid.UUID | str, room: str) -> None:
        for sid in self.sids_for_user(user_id):
            conn = self._connections.get(sid)
            if conn is not None and room in conn.rooms:
                await self._leave(conn, room)

    async def join_workspace(self, user_id: uuid.UUID | str, workspace_id: uuid.UUID | str) -> None:
        await self.join_room(user_id, room_for_workspace(workspace_id))

    async def leave_workspace(self, user_id: uuid.UUID | str, workspace_id: uuid.UUID | str) -> None:
        await self.leave_room(user_id, room_for_workspace(workspace_id))

    # -- fan-out --------------------------------------------------------------

    async def emit(self, outbound: OutboundEvent) -> None:
        name = outbound.event.event_name()
        if not is_known_event(name):
            log.warning("realtime.unknown_event", event=name)
            return
        rooms = list(outbound.rooms)
        await self._server.emit(
            name,
            outbound.event.payload(),
            room=rooms[0] if len(rooms) == 1 else rooms,
        )
        log.debug("realtime.emitted", event=name, rooms=rooms)

    async def dispatch(self, item: QueueItem) -> None:
        if isinstance(item, RoomChange):
            if item.joined:
                await self.join_room(item.user_id, item.room)
            else:
                await self.leave_room(item.user_id, item.room)
        else:
            await self.emit(item)

    async def relay(self, queue: EventQueue) -> None:
        """Consume the event queue until cancelled."""
        while True:
            item = await queue.get()
            try:
                await self.dispatch(item)
            except Exception:
                log.exception("realtime.relay_failed", item=type(item).__name__)
            finally:
                queue.task_done()

    def start(self, queue: EventQueue) -> None:
        if self._relay_task is None or self._relay_task.done():
            self._relay_task = asyncio.create_task(self.relay(queue))

    async def stop(self) -> None:
        if self._relay_task is None:
            return
        self._relay_task.cancel()
        try:
            await self._relay_task
        except asyncio.CancelledError:
            pass
        self._relay_task = None


gateway = RealtimeGateway(sio)
gateway.attach()
