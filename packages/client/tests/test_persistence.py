"""Tests for SQLite persistence of store slices."""

import pytest

from tasklane_client.persistence import StatePersistence


@pytest.fixture
async def persistence(tmp_path):
    p = StatePersistence(str(tmp_path / "nested" / "client.db"))
    await p.open()
    yield p
    await p.close()


async def test_save_and_load(persistence: StatePersistence):
    assert await persistence.load() == {}

    await persistence.save({"auth": {"token": "t", "user": None}, "notifications": {"unread_count": 2}})
    await persistence.save({"notifications": {"unread_count": 5}})

    assert await persistence.load() == {
        "auth": {"token": "t", "user": None},
        "notifications": {"unread_count": 5},
    }


async def test_clear(persistence: StatePersistence):
    await persistence.save({"current_workspace_id": None})
    await persistence.clear()
    assert await persistence.load() == {}


async def test_survives_reopen(tmp_path):
    path = str(tmp_path / "client.db")
    first = StatePersistence(path)
    await first.open()
    await first.save({"workspaces": []})
    await first.close()

    second = StatePersistence(path)
    await second.open()
    assert await second.load() == {"workspaces": []}
    await second.close()
