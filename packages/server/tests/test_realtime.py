"""
Tests for the realtime gateway and the outbound event queue.

Tests cover:
- Handshake token extraction (auth payload, header with/without Bearer)
- Connection refusal on missing or invalid tokens
- Room joins: user room plus one room per workspace membership
- Degradation to the user room when the membership lookup fails
- Live room changes for every connection of a user
- Event fan-out and queue relay ordering
"""

from __future__ import annotations

import asyncio
import uuid
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.core.auth import issue_token
from app.core.events import EventQueue, OutboundEvent, RoomChange
from app.core.realtime import ConnectionState, RealtimeGateway, extract_token
from tasklane_shared.schemas.events import EntityEvent, NotificationUpdated


@pytest.fixture
def server():
    server = MagicMock()
    server.enter_room = AsyncMock()
    server.leave_room = AsyncMock()
    server.emit = AsyncMock()
    return server


@pytest.fixture
def user_id():
    return str(uuid.uuid4())


@pytest.fixture
def workspace_ids():
    return [str(uuid.uuid4()), str(uuid.uuid4())]


@pytest.fixture
def gateway(server, workspace_ids):
    lookup = AsyncMock(return_value=workspace_ids)
    return RealtimeGateway(server, membership_lookup=lookup)


# ---------------------------------------------------------------------------
# Token extraction
# ---------------------------------------------------------------------------

class TestExtractToken:
    def test_auth_payload(self):
        assert extract_token({}, {"token": "abc"}) == "abc"

    def test_auth_payload_wins_over_header(self):
        assert extract_token({"HTTP_AUTHORIZATION": "Bearer hdr"}, {"token": "abc"}) == "abc"

    def test_bearer_header(self):
        assert extract_token({"HTTP_AUTHORIZATION": "Bearer hdr"}, None) == "hdr"

    def test_bare_header(self):
        assert extract_token({"HTTP_AUTHORIZATION": "hdr"}, None) == "hdr"

    def test_asgi_scope_header(self):
        environ = {"asgi.scope": {"headers": [(b"authorization", b"Bearer scoped")]}}
        assert extract_token(environ, None) == "scoped"

    def test_nothing(self):
        assert extract_token({}, None) is None
        assert extract_token({}, {"token": ""}) is None


# ---------------------------------------------------------------------------
# Connection lifecycle
# ---------------------------------------------------------------------------

class TestConnect:
    async def test_joins_user_and_workspace_rooms(self, gateway, server, user_id, workspace_ids):
        assert await gateway.on_connect("sid-1", {}, {"token": issue_token(user_id)}) is True

        expected = {f"user:{user_id}"} | {f"workspace:{w}" for w in workspace_ids}
        assert gateway.rooms_for("sid-1") == expected
        assert gateway.state_of("sid-1") == ConnectionState.JOINED
        joined = {call.args[1] for call in server.enter_room.await_args_list}
        assert joined == expected

    async def test_user_room_joined_first(self, gateway, server, user_id):
        await gateway.on_connect("sid-1", {}, {"token": issue_token(user_id)})
        assert server.enter_room.await_args_list[0].args == ("sid-1", f"user:{user_id}")

    async def test_lookup_failure_degrades_to_user_room(self, server, user_id):
        gateway = RealtimeGateway(server, membership_lookup=AsyncMock(side_effect=RuntimeError("db down")))
        assert await gateway.on_connect("sid-1", {}, {"token": issue_token(user_id)}) is True
        assert gateway.rooms_for("sid-1") == {f"user:{user_id}"}
        assert gateway.state_of("sid-1") == ConnectionState.JOINED

    async def test_missing_token_refused(self, gateway, server):
        with pytest.raises(ConnectionRefusedError, match="Unauthorized"):
            await gateway.on_connect("sid-1", {}, None)
        server.enter_room.assert_not_awaited()
        assert gateway.rooms_for("sid-1") == frozenset()

    async def test_invalid_token_refused(self, gateway, server):
        with pytest.raises(ConnectionRefusedError, match="Unauthorized"):
            await gateway.on_connect("sid-1", {}, {"token": "garbage"})
        server.enter_room.assert_not_awaited()

    async def test_expired_token_refused(self, gateway, user_id):
        token = issue_token(user_id, expires_delta=timedelta(seconds=-1))
        with pytest.raises(ConnectionRefusedError):
            await gateway.on_connect("sid-1", {}, {"token": token})

    async def test_header_token(self, gateway, user_id):
        environ = {"HTTP_AUTHORIZATION": f"Bearer {issue_token(user_id)}"}
        assert await gateway.on_connect("sid-1", environ, None) is True
        assert f"user:{user_id}" in gateway.rooms_for("sid-1")

    async def test_disconnect_drops_bookkeeping(self, gateway, user_id):
        await gateway.on_connect("sid-1", {}, {"token": issue_token(user_id)})
        await gateway.on_disconnect("sid-1", "client disconnect")
        assert gateway.rooms_for("sid-1") == frozenset()
        assert gateway.sids_for_user(user_id) == frozenset()
        assert gateway.state_of("sid-1") == ConnectionState.DISCONNECTED

    async def test_disconnect_unknown_sid(self, gateway):
        await gateway.on_disconnect("never-connected")

    async def test_failed_room_join_leaves_no_bookkeeping(self, gateway, server, user_id):
        server.enter_room.side_effect = RuntimeError("transport gone")
        with pytest.raises(RuntimeError):
            await gateway.on_connect("sid-1", {}, {"token": issue_token(user_id)})
        assert gateway.rooms_for("sid-1") == frozenset()
        assert gateway.sids_for_user(user_id) == frozenset()
        assert gateway.state_of("sid-1") == ConnectionState.DISCONNECTED


# ---------------------------------------------------------------------------
# Live room changes
# ---------------------------------------------------------------------------

class TestRoomChanges:
    async def test_join_workspace_reaches_every_connection(self, server, user_id):
        gateway = RealtimeGateway(server, membership_lookup=AsyncMock(return_value=[]))
        other = str(uuid.uuid4())
        await gateway.on_connect("tab-1", {}, {"token": issue_token(user_id)})
        await gateway.on_connect("tab-2", {}, {"token": issue_token(user_id)})
        await gateway.on_connect("other", {}, {"token": issue_token(other)})

        await gateway.join_workspace(user_id, "ws-new")

        assert "workspace:ws-new" in gateway.rooms_for("tab-1")
        assert "workspace:ws-new" in gateway.rooms_for("tab-2")
        assert "workspace:ws-new" not in gateway.rooms_for("other")

    async def test_leave_workspace(self, gateway, server, user_id, workspace_ids):
        await gateway.on_connect("sid-1", {}, {"token": issue_token(user_id)})
        await gateway.leave_workspace(user_id, workspace_ids[0])
        assert f"workspace:{workspace_ids[0]}" not in gateway.rooms_for("sid-1")
        server.leave_room.assert_awaited_once_with("sid-1", f"workspace:{workspace_ids[0]}")

    async def test_join_for_offline_user_is_noop(self, gateway, server):
        await gateway.join_workspace(str(uuid.uuid4()), "ws-1")
        server.enter_room.assert_not_awaited()


# ---------------------------------------------------------------------------
# Fan-out
# ---------------------------------------------------------------------------

class TestFanOut:
    async def test_emit_single_room(self, gateway, server, user_id):
        event = NotificationUpdated(notification_id=None, is_read=True, all_read=True)
        await gateway.emit(OutboundEvent(event=event, rooms=(f"user:{user_id}",)))
        server.emit.assert_awaited_once_with(
            "notification_updated",
            {"notification_id": None, "is_read": True, "all_read": True},
            room=f"user:{user_id}",
        )

    async def test_emit_several_rooms(self, gateway, server):
        event = EntityEvent(entity="task", action="moved", data={"id": "t1"})
        await gateway.emit(OutboundEvent(event=event, rooms=("workspace:a", "workspace:b")))
        server.emit.assert_awaited_once_with("task_moved", {"id": "t1"}, room=["workspace:a", "workspace:b"])

    async def test_relay_applies_room_change_before_event(self, server, user_id):
        gateway = RealtimeGateway(server, membership_lookup=AsyncMock(return_value=[]))
        await gateway.on_connect("sid-1", {}, {"token": issue_token(user_id)})

        queue = EventQueue()
        order = []
        server.enter_room.side_effect = lambda sid, room: order.append(("enter", room))
        server.emit.side_effect = lambda name, data, room: order.append(("emit", room))

        queue.join_room(user_id, "workspace:w1")
        queue.publish(EntityEvent(entity="project", action="created", data={"id": "p1"}), "workspace:w1")

        gateway.start(queue)
        await asyncio.wait_for(queue.join(), timeout=1)
        await gateway.stop()

        assert order == [("enter", "workspace:w1"), ("emit", "workspace:w1")]

    async def test_relay_survives_failed_emit(self, gateway, server):
        queue = EventQueue()
        server.emit.side_effect = [RuntimeError("transport gone"), None]
        event = EntityEvent(entity="task", action="created", data={"id": "t1"})
        queue.publish(event, "workspace:a")
        queue.publish(event, "workspace:a")

        gateway.start(queue)
        await asyncio.wait_for(queue.join(), timeout=1)
        await gateway.stop()

        assert server.emit.await_count == 2


class TestEventQueue:
    def test_publish_needs_a_room(self):
        with pytest.raises(ValueError):
            EventQueue().publish(EntityEvent(entity="task", action="created", data={}))

    def test_full_queue_drops(self):
        queue = EventQueue(maxsize=1)
        event = EntityEvent(entity="task", action="created", data={})
        queue.publish(event, "workspace:a")
        queue.publish(event, "workspace:b")
        assert len(queue) == 1
        assert queue.get_nowait().rooms == ("workspace:a",)

    def test_room_change_items(self):
        queue = EventQueue()
        uid = uuid.uuid4()
        queue.join_room(uid, "workspace:w")
        queue.leave_room(uid, "workspace:w")
        assert queue.get_nowait() == RoomChange(user_id=str(uid), room="workspace:w", joined=True)
        assert queue.get_nowait() == RoomChange(user_id=str(uid), room="workspace:w", joined=False)
