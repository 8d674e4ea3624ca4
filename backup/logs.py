"""Structured logging helpers for backup operations."""
from __future__ import annotations

import json
import logging
from collections import deque
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Any, Deque, Dict, List, Optional

from core.paths import get_logs_dir

LOGGER = logging.getLogger("attendance.backup")


class BackupLogger:
    """Append backup events to ``logs/backup.jsonl`` and mirror them to ``logging``.

    Every line carries ``ts``, ``event`` and ``ok``; tier operations add
    ``phase`` (``local``, ``remote``, ``schedule``, ``restore`` ...).
    """

    def __init__(self, working_dir: Path) -> None:
        self._log_path = get_logs_dir(Path(working_dir)) / "backup.jsonl"
        self._log_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = Lock()

    @property
    def path(self) -> Path:
        return self._log_path

    def _append(self, payload: Dict[str, Any], level: int) -> None:
        payload["ts"] = datetime.now(timezone.utc).isoformat()
        line = json.dumps(payload, sort_keys=True, default=str)
        try:
            with self._lock, self._log_path.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")
        except OSError as exc:
            LOGGER.warning("backup log write failed: %s", exc)
        LOGGER.log(level, "%s", line)

    def event(self, *, event: str, phase: str, ok: bool, **extra: Any) -> None:
        self._append({**extra, "event": event, "phase": phase, "ok": bool(ok)}, logging.INFO if ok else logging.ERROR)

    def info(self, event: str, **extra: Any) -> None:
        self._append({**extra, "event": event, "ok": True}, logging.INFO)

    def warning(self, event: str, **extra: Any) -> None:
        self._append({**extra, "event": event, "ok": False}, logging.WARNING)

    def error(self, event: str, **extra: Any) -> None:
        self._append({**extra, "event": event, "ok": False}, logging.ERROR)

    def tail(self, limit: int = 20, *, event: Optional[str] = None) -> List[Dict[str, Any]]:
        """Return the last *limit* readable entries, oldest first."""

        recent: Deque[Dict[str, Any]] = deque(maxlen=max(limit, 0))
        try:
            with self._lock, self._log_path.open("r", encoding="utf-8") as handle:
                for line in handle:
                    try:
                        entry = json.loads(line)
                    except json.JSONDecodeError:
                        continue
                    if not isinstance(entry, dict):
                        continue
                    if event is None or entry.get("event") == event:
                        recent.append(entry)
        except FileNotFoundError:
            return []
        return list(recent)


__all__ = ["BackupLogger"]
