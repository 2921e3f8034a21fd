"""
Tests for the client state store.

Tests cover:
- Unread counter arithmetic and the clamp at zero
- Credential header follows set_auth / clear_auth
- Realtime events folded into slices
- Snapshot and restore of persisted slices
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from tasklane_client.signals import STATE_CHANGED
from tasklane_client.store import Store
from tasklane_shared.schemas.events import (
    EntityEvent,
    NotificationCreated,
    NotificationUpdated,
    WorkspaceMemberAdded,
)
from tasklane_shared.schemas.notifications import NotificationResponse
from tasklane_shared.schemas.workspaces import MemberResponse, MemberUser

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _created(user_id) -> NotificationCreated:
    return NotificationCreated(notification=NotificationResponse(
        id=uuid.uuid4(), user_id=user_id, type="task_assigned", message="hi", created_at=NOW
    ))


class TestUnreadCounter:
    def test_sequence_and_clamp(self, store, user):
        store.set_unread_count(3)
        store.apply_event(_created(user.id))
        assert store.notifications.unread_count == 4
        store.apply_event(NotificationUpdated(notification_id=uuid.uuid4(), is_read=True))
        assert store.notifications.unread_count == 3
        store.apply_event(NotificationUpdated(is_read=True, all_read=True))
        assert store.notifications.unread_count == 0
        store.apply_event(NotificationUpdated(notification_id=uuid.uuid4(), is_read=True))
        assert store.notifications.unread_count == 0

    def test_marked_unread_increments(self, store):
        store.apply_event(NotificationUpdated(notification_id=uuid.uuid4(), is_read=False))
        assert store.notifications.unread_count == 1

    def test_set_negative_clamps(self, store):
        store.set_unread_count(-5)
        assert store.notifications.unread_count == 0


class TestAuth:
    def test_set_and_clear_auth_drive_header(self, store, api, user):
        store.set_auth("tok", user)
        assert store.auth.authenticated
        assert api.authorization == "Bearer tok"

        store.clear_auth()
        assert not store.auth.authenticated
        assert api.authorization is None

    def test_changes_are_published(self, store, bus, user):
        seen = []
        bus.subscribe(STATE_CHANGED, seen.append)
        store.set_auth("tok", user)
        store.increment_unread()
        assert seen == ["auth", "notifications"]


class TestRealtimeEvents:
    def test_member_added_for_me_adds_room(self, store, user):
        store.set_auth("tok", user)
        ws_id = uuid.uuid4()
        member = MemberResponse(id=uuid.uuid4(), user=MemberUser(id=user.id, name="Ana"), role="member", joined_at=NOW)
        store.apply_event(WorkspaceMemberAdded(workspace_id=ws_id, user=member))
        assert f"workspace:{ws_id}" in store.realtime.rooms

    def test_member_added_for_someone_else(self, store, user):
        store.set_auth("tok", user)
        member = MemberResponse(id=uuid.uuid4(), user=MemberUser(id=uuid.uuid4()), role="member", joined_at=NOW)
        store.apply_event(WorkspaceMemberAdded(workspace_id=uuid.uuid4(), user=member))
        assert store.realtime.rooms == set()

    def test_workspace_created_event(self, store, make_workspace):
        ws = make_workspace("Design", role="admin")
        store.apply_event(EntityEvent(entity="workspace", action="created", data=ws.model_dump(mode="json")))
        store.apply_event(EntityEvent(entity="workspace", action="created", data=ws.model_dump(mode="json")))
        assert [w.id for w in store.workspaces] == [ws.id]
        assert f"workspace:{ws.id}" in store.realtime.rooms

    def test_malformed_workspace_event_is_dropped(self, store):
        store.apply_event(EntityEvent(entity="workspace", action="updated", data={"id": "nope"}))
        assert store.workspaces == []

    def test_workspace_deleted_moves_current(self, store, make_workspace):
        a, b = make_workspace("A"), make_workspace("B")
        store.set_workspaces([a, b])
        assert store.current_workspace_id == a.id
        store.apply_event(EntityEvent(entity="workspace", action="deleted", data={"id": str(a.id)}))
        assert [w.id for w in store.workspaces] == [b.id]
        assert store.current_workspace_id == b.id

    def test_other_entities_leave_store_alone(self, store):
        store.apply_event(EntityEvent(entity="task", action="moved", data={"id": "t1"}))
        assert store.workspaces == []
        assert store.notifications.unread_count == 0


class TestWorkspaces:
    def test_set_workspaces_replaces_stale_current(self, store, make_workspace):
        old, fresh = make_workspace("Old"), make_workspace("Fresh")
        store.set_workspaces([old])
        assert store.current_workspace_id == old.id
        store.set_workspaces([fresh])
        assert store.current_workspace_id == fresh.id
        store.set_workspaces([])
        assert store.current_workspace_id is None

    def test_set_workspaces_keeps_valid_current(self, store, make_workspace):
        a, b = make_workspace("A"), make_workspace("B")
        store.set_workspaces([a, b])
        store.set_current_workspace_id(b.id)
        store.set_workspaces([b, a])
        assert store.current_workspace_id == b.id

    def test_reset_user_data(self, store, user, make_workspace):
        store.set_auth("tok", user)
        store.set_workspaces([make_workspace()])
        store.set_unread_count(5)
        store.set_search_query("web")
        store.reset_user_data()
        assert store.workspaces == []
        assert store.current_workspace_id is None
        assert store.notifications.unread_count == 0
        assert store.search.query == ""
        assert store.auth.authenticated


class TestSnapshot:
    def test_restore_into_fresh_store(self, store, api, user, make_workspace):
        ws = make_workspace()
        store.set_auth("tok", user)
        store.set_workspaces([ws])
        store.set_unread_count(7)
        store.set_search_query("web")
        store.set_rooms({"user:x"})

        snapshot = store.snapshot()
        api.clear_token()
        fresh = Store(api)
        fresh.restore(snapshot)

        assert fresh.auth.user == user
        assert api.authorization == "Bearer tok"
        assert fresh.workspaces == [ws]
        assert fresh.current_workspace_id == ws.id
        assert fresh.notifications.unread_count == 7
        assert fresh.search.query == ""
        assert fresh.realtime.rooms == set()

    def test_restore_empty(self, store):
        store.restore({})
        assert not store.auth.authenticated
