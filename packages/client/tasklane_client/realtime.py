"""
Realtime connection to the Tasklane Socket.IO gateway.

At most one connection per session: `init` always tears down the previous
connection before opening a new one. Incoming events are validated into
their tagged variants before they reach the store; anything unknown or
malformed is logged and dropped.
"""

from __future__ import annotations

from typing import Any, Callable

import socketio
import structlog

from tasklane_shared.schemas.events import InvalidEvent, parse_event

from .errors import RealtimeAuthError
from .store import Store

log = structlog.get_logger()

ClientFactory = Callable[[], socketio.AsyncClient]

# Socket.IO lifecycle events; never forwarded to the store
_RESERVED = {"connect", "connect_error", "disconnect"}


class RealtimeConnection:
    def __init__(
        self,
        store: Store,
        url: str,
        socketio_path: str = "ws/socket.io",
        client_factory: ClientFactory = socketio.AsyncClient,
    ):
        self._store = store
        self._url = url.rstrip("/")
        self._socketio_path = socketio_path
        self._client_factory = client_factory
        self._client: socketio.AsyncClient | None = None
        self._refusal: Any = None

    @property
    def connected(self) -> bool:
        return self._client is not None and bool(self._client.connected)

    async def init(self, token: str) -> None:
        """Open a connection authenticated with `token`, replacing any current one.

        Raises RealtimeAuthError when the gateway refuses the handshake.
        """
        await self.disconnect()

        client = self._client_factory()
        client.on("connect", self._on_connect)
        client.on("connect_error", self._on_connect_error)
        client.on("disconnect", self._on_disconnect)
        client.on("*", self._on_event)
        self._client = client
        self._refusal = None

        try:
            await client.connect(
                self._url,
                auth={"token": token},
                socketio_path=self._socketio_path,
                transports=["websocket"],
            )
        except socketio.exceptions.ConnectionError as exc:
            self._client = None
            refusal = self._refusal
            message = refusal.get("message") if isinstance(refusal, dict) else refusal
            if message == "Unauthorized":
                log.warning("realtime.unauthorized")
                raise RealtimeAuthError("Realtime handshake refused: Unauthorized") from exc
            log.error("realtime.connect_failed", error=str(exc))
            raise

    async def disconnect(self) -> None:
        client, self._client = self._client, None
        if client is not None:
            await client.disconnect()
            log.info("realtime.disconnected")
        self._store.set_connected(False)
        self._store.set_rooms(set())

    # --- Socket.IO handlers ---

    async def _on_connect(self) -> None:
        self._store.set_connected(True)
        self._store.set_rooms(self._store.expected_rooms())
        log.info("realtime.connected", rooms=len(self._store.realtime.rooms))

    async def _on_connect_error(self, data: Any = None) -> None:
        self._refusal = data

    async def _on_disconnect(self, reason: Any = None) -> None:
        self._store.set_connected(False)
        log.info("realtime.connection_lost", reason=str(reason) if reason else None)

    async def _on_event(self, name: str, data: Any = None) -> None:
        if name in _RESERVED:
            return
        try:
            event = parse_event(name, data)
        except InvalidEvent as exc:
            log.warning("realtime.event_dropped", event=name, error=str(exc))
            return
        self._store.apply_event(event)
