from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

__all__ = [
    "DEFAULT_BUSY_TIMEOUT_MS",
    "connect",
    "configure_connection",
    "quick_check",
    "transaction",
]

DEFAULT_BUSY_TIMEOUT_MS = 5000


def connect(
    db_path: str | Path,
    *,
    timeout: float = 5.0,
    isolation_level: Optional[str] = "",
    check_same_thread: bool = False,
) -> sqlite3.Connection:
    """Open *db_path* with busy timeout and WAL enabled.

    ``isolation_level=None`` gives an autocommit connection; pair it with
    :func:`transaction` for explicit write transactions.
    """

    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(
        str(path),
        timeout=timeout,
        isolation_level=isolation_level,
        check_same_thread=check_same_thread,
    )
    configure_connection(conn)
    return conn


def configure_connection(conn: sqlite3.Connection) -> None:
    conn.execute(f"PRAGMA busy_timeout={int(DEFAULT_BUSY_TIMEOUT_MS)}")
    try:
        conn.execute("PRAGMA journal_mode=WAL")
    except sqlite3.DatabaseError:
        pass


def quick_check(conn: sqlite3.Connection) -> Optional[str]:
    """Return ``None`` when SQLite reports the file intact, else its first complaint."""

    row = conn.execute("PRAGMA quick_check").fetchone()
    result = str(row[0]) if row else "no result"
    return None if result == "ok" else result


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    conn.execute("BEGIN IMMEDIATE")
    try:
        yield conn
    except Exception:
        conn.execute("ROLLBACK")
        raise
    conn.execute("COMMIT")
