"""
Tests for the client realtime connection.

Tests cover:
- Handshake carries the token; rooms mirror user + workspaces on connect
- Re-init tears the previous connection down first
- Refused handshake surfaces as RealtimeAuthError
- Incoming events are validated before reaching the store
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

import pytest
import socketio

from tasklane_client.errors import RealtimeAuthError
from tasklane_client.realtime import RealtimeConnection


class FakeSocket:
    """Stand-in for socketio.AsyncClient that drives the registered handlers."""

    def __init__(self, refuse: str | None = None):
        self.refuse = refuse
        self.handlers = {}
        self.connected = False
        self.url = None
        self.connect_kwargs = None
        self.disconnect_calls = 0

    def on(self, event, handler=None):
        self.handlers[event] = handler

    async def connect(self, url, **kwargs):
        self.url, self.connect_kwargs = url, kwargs
        if self.refuse:
            await self.handlers["connect_error"]({"message": self.refuse})
            raise socketio.exceptions.ConnectionError("One or more namespaces failed to connect")
        self.connected = True
        await self.handlers["connect"]()

    async def disconnect(self):
        self.disconnect_calls += 1
        self.connected = False

    async def receive(self, name, data):
        await self.handlers["*"](name, data)


@pytest.fixture
def sockets():
    return []


@pytest.fixture
def connection(store, sockets):
    def factory():
        sock = FakeSocket()
        sockets.append(sock)
        return sock

    return RealtimeConnection(store, "http://tasklane.test/", socketio_path="ws/socket.io", client_factory=factory)


async def test_connect_sends_token_and_sets_rooms(connection, sockets, store, user, make_workspace):
    ws = make_workspace()
    store.set_auth("tok", user)
    store.set_workspaces([ws])

    await connection.init("tok")

    (sock,) = sockets
    assert sock.url == "http://tasklane.test"
    assert sock.connect_kwargs["auth"] == {"token": "tok"}
    assert sock.connect_kwargs["socketio_path"] == "ws/socket.io"
    assert connection.connected
    assert store.realtime.connected is True
    assert store.realtime.rooms == {f"user:{user.id}", f"workspace:{ws.id}"}


async def test_reinit_replaces_previous_connection(connection, sockets, store, user):
    store.set_auth("tok", user)
    await connection.init("tok")
    await connection.init("tok")

    first, second = sockets
    assert first.disconnect_calls == 1
    assert not first.connected
    assert second.connected
    assert second.disconnect_calls == 0


async def test_refused_handshake(store, user):
    connection = RealtimeConnection(store, "http://tasklane.test", client_factory=lambda: FakeSocket("Unauthorized"))
    store.set_auth("tok", user)
    with pytest.raises(RealtimeAuthError):
        await connection.init("tok")
    assert not connection.connected
    assert store.realtime.connected is False


async def test_other_connection_failures_propagate(store):
    connection = RealtimeConnection(store, "http://tasklane.test", client_factory=lambda: FakeSocket("server busy"))
    with pytest.raises(socketio.exceptions.ConnectionError):
        await connection.init("tok")


async def test_events_are_validated(connection, sockets, store, user):
    store.set_auth("tok", user)
    await connection.init("tok")
    (sock,) = sockets

    await sock.receive("notification_created", {
        "id": str(uuid.uuid4()),
        "user_id": str(user.id),
        "type": "task_assigned",
        "message": "hi",
        "is_read": False,
        "created_at": datetime.now(timezone.utc).isoformat(),
    })
    assert store.notifications.unread_count == 1

    await sock.receive("notification_created", {"id": "not-a-uuid"})
    await sock.receive("something_unknown", {})
    await sock.receive("notification_updated", {"is_read": "maybe"})
    assert store.notifications.unread_count == 1

    await sock.receive("notification_updated", {"notification_id": None, "is_read": True, "all_read": True})
    assert store.notifications.unread_count == 0


async def test_disconnect_resets_slice(connection, store, user):
    store.set_auth("tok", user)
    await connection.init("tok")
    await connection.disconnect()
    await connection.disconnect()

    assert store.realtime.connected is False
    assert store.realtime.rooms == set()
