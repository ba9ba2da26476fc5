"""SQLite implementation of the state store."""

from __future__ import annotations

import asyncio
import sqlite3
from pathlib import Path
from typing import Any, Optional

from .repository import StateStore


class SQLiteStateStore(StateStore):
    """Persist workflow state using SQLite."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            )
            """
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> None:
        cur = self._conn.cursor()
        cur.execute(query, params)
        self._conn.commit()

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchone()

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchall()

    # ------------------------------------------------------------------
    # Store API
    async def get_item(self, key: str) -> Optional[str]:
        row = await asyncio.to_thread(
            self._fetchone, "SELECT value FROM kv_store WHERE key = ?", key
        )
        return row["value"] if row else None

    async def set_item(self, key: str, value: str) -> None:
        await asyncio.to_thread(
            self._execute,
            """
            INSERT INTO kv_store (key, value) VALUES (?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value
            """,
            key,
            value,
        )

    async def remove_item(self, key: str) -> None:
        await asyncio.to_thread(
            self._execute, "DELETE FROM kv_store WHERE key = ?", key
        )

    async def keys(self) -> list[str]:
        rows = await asyncio.to_thread(
            self._fetchall, "SELECT key FROM kv_store ORDER BY key"
        )
        return [r["key"] for r in rows]

    def close(self) -> None:
        self._conn.close()
