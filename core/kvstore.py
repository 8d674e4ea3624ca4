"""SQLite backed key/value map used as the local durable store."""
from __future__ import annotations

import sqlite3
import threading
from pathlib import Path
from typing import List, Optional

from .db import connect, quick_check, transaction

__all__ = ["KeyValueStore"]

_KV_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS kv_entries (
  key TEXT PRIMARY KEY,
  value BLOB NOT NULL,
  updated_utc TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
)
"""


class KeyValueStore:
    """Durable ``key -> bytes`` map with prefix listing."""

    def __init__(self, db_path: Path) -> None:
        self._db_path = Path(db_path)
        self._lock = threading.Lock()
        self._conn: Optional[sqlite3.Connection] = None

    @property
    def path(self) -> Path:
        return self._db_path

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            conn = connect(self._db_path, isolation_level=None, check_same_thread=False)
            problem = quick_check(conn)
            if problem is not None:
                conn.close()
                raise sqlite3.DatabaseError(f"{self._db_path} failed integrity check: {problem}")
            conn.execute(_KV_TABLE_SQL)
            self._conn = conn
        return self._conn

    def set(self, key: str, value: bytes) -> None:
        with self._lock:
            conn = self._connection()
            with transaction(conn):
                conn.execute(
                    """
                    INSERT INTO kv_entries(key, value) VALUES(?, ?)
                    ON CONFLICT(key) DO UPDATE SET value=excluded.value,
                        updated_utc=strftime('%Y-%m-%dT%H:%M:%fZ', 'now')
                    """,
                    (key, sqlite3.Binary(bytes(value))),
                )

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            row = self._connection().execute("SELECT value FROM kv_entries WHERE key=?", (key,)).fetchone()
        if row is None:
            return None
        return bytes(row[0])

    def delete(self, key: str) -> bool:
        with self._lock:
            conn = self._connection()
            with transaction(conn):
                cursor = conn.execute("DELETE FROM kv_entries WHERE key=?", (key,))
        return cursor.rowcount > 0

    def keys(self, prefix: str = "") -> List[str]:
        with self._lock:
            rows = self._connection().execute(
                "SELECT key FROM kv_entries WHERE substr(key, 1, ?) = ? ORDER BY key",
                (len(prefix), prefix),
            ).fetchall()
        return [str(row[0]) for row in rows]

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
