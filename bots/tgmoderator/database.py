"""SQLite-backed key/value storage for moderator state."""

from __future__ import annotations

import sqlite3
import threading
from pathlib import Path
from typing import Any


class Database:
    """Small durable key/value store; one row per key, values are raw bytes."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(self.path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._setup()

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def _setup(self) -> None:
        with self._conn:
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS kv (
                    key   TEXT PRIMARY KEY,
                    value BLOB NOT NULL
                );
                """
            )

    def _execute(self, query: str, *params: Any) -> sqlite3.Cursor:
        with self._lock:
            cur = self._conn.execute(query, params)
            self._conn.commit()
            return cur

    def get(self, key: str) -> bytes | None:
        cur = self._execute("SELECT value FROM kv WHERE key = ?", key)
        row = cur.fetchone()
        return bytes(row["value"]) if row else None

    def put(self, key: str, value: bytes) -> None:
        self._execute(
            """
            INSERT INTO kv (key, value)
            VALUES (?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value
            """,
            key,
            sqlite3.Binary(value),
        )

    def flush(self) -> None:
        with self._lock:
            self._conn.commit()
            self._conn.execute("PRAGMA wal_checkpoint(FULL)")
