"""Per-day snapshot buckets in the local key/value store."""
from __future__ import annotations

import sqlite3
from typing import List, Optional

from core.kvstore import KeyValueStore

from .errors import MalformedSnapshot
from .logs import BackupLogger
from .retention import split_retained
from .snapshot import decode_snapshot, encode_snapshot, snapshot_date_key
from .types import LocalBackupEntry, RetentionSummary, Snapshot

KEY_PREFIX = "backup_"


def bucket_key(date_key: str) -> str:
    return f"{KEY_PREFIX}{date_key}"


class LocalRetentionStore:
    """Keep one snapshot per calendar day, limited to the newest ``keep`` days."""

    def __init__(self, store: KeyValueStore, *, logger: BackupLogger, keep: int = 7) -> None:
        self._store = store
        self._logger = logger
        self._keep = keep

    @property
    def keep(self) -> int:
        return self._keep

    def save(self, snapshot: Snapshot) -> bool:
        """Write *snapshot* into its day bucket; returns ``False`` if the write failed."""

        date_key = snapshot_date_key(snapshot)
        key = bucket_key(date_key)
        try:
            self._store.set(key, encode_snapshot(snapshot))
        except (sqlite3.Error, OSError, TypeError, ValueError) as exc:
            self._logger.error("local_backup_failed", key=key, error=str(exc))
            return False
        self._logger.event(event="local_backup_saved", phase="local", ok=True, key=key, **snapshot.counts())
        self.evict()
        return True

    def get(self, date_key: str) -> Optional[Snapshot]:
        key = bucket_key(date_key)
        try:
            raw = self._store.get(key)
        except sqlite3.Error as exc:
            self._logger.error("local_backup_read_failed", key=key, error=str(exc))
            return None
        if raw is None:
            return None
        try:
            return decode_snapshot(raw)
        except MalformedSnapshot as exc:
            self._logger.warning("local_backup_unreadable", key=key, error=str(exc))
            return None

    def list(self) -> List[LocalBackupEntry]:
        try:
            keys = self._store.keys(KEY_PREFIX)
        except sqlite3.Error as exc:
            self._logger.error("local_backup_list_failed", error=str(exc))
            return []
        entries: List[LocalBackupEntry] = []
        for key in keys:
            date_key = key[len(KEY_PREFIX) :]
            snapshot = self.get(date_key)
            if snapshot is None:
                continue
            entries.append(LocalBackupEntry(key=key, date_key=date_key, snapshot=snapshot))
        entries.sort(key=lambda entry: entry.date_key, reverse=True)
        return entries

    def evict(self) -> RetentionSummary:
        try:
            keys = self._store.keys(KEY_PREFIX)
        except sqlite3.Error as exc:
            self._logger.error("local_retention_failed", error=str(exc))
            return RetentionSummary(removed=[], kept=[])
        kept, evicted = split_retained(keys, self._keep, key=lambda key: key)
        removed: List[str] = []
        for key in evicted:
            try:
                self._store.delete(key)
            except sqlite3.Error as exc:
                self._logger.error("local_backup_remove_failed", key=key, error=str(exc))
                kept.append(key)
                continue
            removed.append(key)
            self._logger.info("local_backup_removed", key=key, reason="retention")
        if removed:
            self._logger.event(event="retention_applied", phase="local", ok=True, removed=len(removed), kept=len(kept))
        return RetentionSummary(removed=removed, kept=kept)


__all__ = ["KEY_PREFIX", "LocalRetentionStore", "bucket_key"]
