"""KeyValueStore — aiosqlite-backed JSON values keyed by name."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import aiosqlite

from skycast.config import settings

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS kv (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL
)
"""


class KeyValueStore:
    """Persists JSON-serialisable values in SQLite.

    Pass an explicit *db_path* for test isolation (e.g. ``tmp_path / "kv.db"``).
    """

    def __init__(self, db_path: Path | None = None) -> None:
        self._db_path = db_path or settings.database_path
        self._initialised = False

    async def _connect(self) -> aiosqlite.Connection:
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        db = await aiosqlite.connect(str(self._db_path))
        if not self._initialised:
            await db.execute(_CREATE_TABLE)
            await db.commit()
            self._initialised = True
        return db

    async def get(self, key: str) -> Any | None:
        """Return the decoded value for *key*, or None if unset."""
        db = await self._connect()
        try:
            cursor = await db.execute("SELECT value FROM kv WHERE key = ?", (key,))
            row = await cursor.fetchone()
        finally:
            await db.close()
        return json.loads(row[0]) if row else None

    async def set(self, key: str, value: Any) -> None:
        await self.set_many({key: value})

    async def set_many(self, values: dict[str, Any]) -> None:
        """Write several keys in one transaction."""
        now = datetime.now(UTC).isoformat()
        rows = [(key, json.dumps(value), now) for key, value in values.items()]
        db = await self._connect()
        try:
            await db.executemany(
                """
                INSERT INTO kv (key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
                """,
                rows,
            )
            await db.commit()
        finally:
            await db.close()

    async def delete(self, key: str) -> bool:
        db = await self._connect()
        try:
            cursor = await db.execute("DELETE FROM kv WHERE key = ?", (key,))
            await db.commit()
            return cursor.rowcount > 0
        finally:
            await db.close()
