"""Error hierarchy for backup operations."""
from __future__ import annotations


class BackupError(RuntimeError):
    """Base exception for backup related failures."""


class MalformedSnapshot(BackupError):
    """Raised when snapshot bytes cannot be parsed into a snapshot."""


__all__ = ["BackupError", "MalformedSnapshot"]
