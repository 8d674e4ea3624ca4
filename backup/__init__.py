"""Backup, retention and restore for the attendance dataset."""
from __future__ import annotations

from .api import BackupEngine, build_engine
from .errors import BackupError, MalformedSnapshot
from .local_store import LocalRetentionStore
from .remote_store import RemoteRetentionStore
from .restore import apply_restore, reconcile_accounts
from .retention import RetentionPolicy
from .scheduler import BackupScheduler
from .snapshot import build_snapshot, decode_snapshot, encode_snapshot
from .types import LiveDataset, LocalBackupEntry, RemoteBackupEntry, RestoreResult, Snapshot

__all__ = [
    "BackupEngine",
    "BackupError",
    "BackupScheduler",
    "LiveDataset",
    "LocalBackupEntry",
    "LocalRetentionStore",
    "MalformedSnapshot",
    "RemoteBackupEntry",
    "RemoteRetentionStore",
    "RestoreResult",
    "RetentionPolicy",
    "Snapshot",
    "apply_restore",
    "build_engine",
    "build_snapshot",
    "decode_snapshot",
    "encode_snapshot",
    "reconcile_accounts",
]
