"""SQLite checkpoints of agent task state, keyed by instance id."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

import aiosqlite

from prwright.core.state import AgentTaskState
from prwright.utils.logging import get_logger

log = get_logger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS task_state (
    instance_id TEXT PRIMARY KEY,
    state_json TEXT NOT NULL,
    status TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS credentials (
    instance_id TEXT PRIMARY KEY,
    github_token TEXT NOT NULL,
    username TEXT DEFAULT '',
    updated_at TEXT NOT NULL
);
"""


class StateStore:
    def __init__(self, db_path: Path) -> None:
        self._db_path = db_path
        self._db: aiosqlite.Connection | None = None

    async def start(self) -> None:
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._db = await aiosqlite.connect(str(self._db_path))
        await self._db.executescript(_SCHEMA)
        await self._db.commit()

    async def stop(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    async def save(self, instance_id: str, state: AgentTaskState) -> None:
        assert self._db is not None
        now = datetime.now(timezone.utc).isoformat()
        await self._db.execute(
            "INSERT INTO task_state (instance_id, state_json, status, updated_at) "
            "VALUES (?, ?, ?, ?) "
            "ON CONFLICT(instance_id) DO UPDATE SET "
            "state_json = excluded.state_json, "
            "status = excluded.status, "
            "updated_at = excluded.updated_at",
            (instance_id, json.dumps(state.to_dict()), state.status, now),
        )
        await self._db.commit()

    async def load(self, instance_id: str) -> AgentTaskState | None:
        assert self._db is not None
        cursor = await self._db.execute(
            "SELECT state_json FROM task_state WHERE instance_id = ?",
            (instance_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return AgentTaskState.from_dict(json.loads(row[0]))

    async def list_instances(self) -> list[tuple[str, str, str]]:
        """Return ``(instance_id, status, updated_at)`` for every checkpoint."""
        assert self._db is not None
        cursor = await self._db.execute(
            "SELECT instance_id, status, updated_at FROM task_state ORDER BY updated_at DESC"
        )
        rows = await cursor.fetchall()
        return [(r[0], r[1], r[2]) for r in rows]

    # --- Credentials ---

    async def save_token(self, instance_id: str, token: str, username: str = "") -> None:
        assert self._db is not None
        now = datetime.now(timezone.utc).isoformat()
        await self._db.execute(
            "INSERT INTO credentials (instance_id, github_token, username, updated_at) "
            "VALUES (?, ?, ?, ?) "
            "ON CONFLICT(instance_id) DO UPDATE SET "
            "github_token = excluded.github_token, "
            "username = excluded.username, "
            "updated_at = excluded.updated_at",
            (instance_id, token, username, now),
        )
        await self._db.commit()

    async def load_token(self, instance_id: str) -> str | None:
        assert self._db is not None
        cursor = await self._db.execute(
            "SELECT github_token FROM credentials WHERE instance_id = ?",
            (instance_id,),
        )
        row = await cursor.fetchone()
        return row[0] if row else None

    async def delete_token(self, instance_id: str) -> bool:
        assert self._db is not None
        cursor = await self._db.execute(
            "DELETE FROM credentials WHERE instance_id = ?",
            (instance_id,),
        )
        await self._db.commit()
        deleted = cursor.rowcount > 0
        if deleted:
            log.info("token_deleted", instance=instance_id)
        return deleted
