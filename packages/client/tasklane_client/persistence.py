"""
SQLite persistence for the client store.

Stores one JSON document per persisted slice (auth, workspaces,
current_workspace_id, notifications) so a restarted client rehydrates
without logging in again.
"""

from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from typing import Any

import aiosqlite

_SCHEMA = """
CREATE TABLE IF NOT EXISTS store_slices (
    name       TEXT PRIMARY KEY,
    data       TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""


class StatePersistence:
    """Async SQLite snapshot storage for persisted store slices."""

    def __init__(self, db_path: str):
        self._db_path = db_path
        self._db: aiosqlite.Connection | None = None

    async def open(self) -> None:
        os.makedirs(os.path.dirname(self._db_path) or ".", exist_ok=True)
        self._db = await aiosqlite.connect(self._db_path)
        self._db.row_factory = aiosqlite.Row
        await self._db.executescript(_SCHEMA)
        await self._db.commit()

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    async def load(self) -> dict[str, Any]:
        assert self._db
        cursor = await self._db.execute("SELECT name, data FROM store_slices")
        rows = await cursor.fetchall()
        return {r["name"]: json.loads(r["data"]) for r in rows}

    async def save(self, snapshot: dict[str, Any]) -> None:
        assert self._db
        now = datetime.now(timezone.utc).isoformat()
        await self._db.executemany(
            """INSERT INTO store_slices (name, data, updated_at) VALUES (?, ?, ?)
               ON CONFLICT(name) DO UPDATE SET data=excluded.data, updated_at=excluded.updated_at""",
            [(name, json.dumps(data), now) for name, data in snapshot.items()],
        )
        await self._db.commit()

    async def clear(self) -> None:
        assert self._db
        await self._db.execute("DELETE FROM store_slices")
        await self._db.commit()
