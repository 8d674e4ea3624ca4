"""Common dataclasses shared across backup modules."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple

Record = Dict[str, Any]

PASSWORD_FIELD = "password"
USERNAME_FIELD = "username"
PASSWORD_SENTINEL = "***"
DEFAULT_PASSWORD = "changeme"


@dataclass(slots=True)
class LiveDataset:
    """The four collections owned by the application."""

    people: List[Mapping[str, Any]] = field(default_factory=list)
    courses: List[Mapping[str, Any]] = field(default_factory=list)
    attendance_entries: List[Mapping[str, Any]] = field(default_factory=list)
    accounts: List[Mapping[str, Any]] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class Snapshot:
    people: Tuple[Record, ...]
    courses: Tuple[Record, ...]
    attendance_entries: Tuple[Record, ...]
    accounts: Tuple[Record, ...]
    created_at: datetime

    def counts(self) -> Dict[str, int]:
        return {
            "people": len(self.people),
            "courses": len(self.courses),
            "attendance_entries": len(self.attendance_entries),
            "accounts": len(self.accounts),
        }


@dataclass(frozen=True, slots=True)
class LocalBackupEntry:
    key: str
    date_key: str
    snapshot: Snapshot


@dataclass(frozen=True, slots=True)
class RemoteBackupEntry:
    id: str
    name: str
    date: str
    size_display: str
    created_time: Optional[str] = None


@dataclass(slots=True)
class RestoreResult:
    people: List[Record]
    courses: List[Record]
    attendance_entries: List[Record]
    accounts: List[Record]


@dataclass(slots=True)
class RetentionSummary:
    removed: List[str]
    kept: List[str]


__all__ = [
    "DEFAULT_PASSWORD",
    "LiveDataset",
    "LocalBackupEntry",
    "PASSWORD_FIELD",
    "PASSWORD_SENTINEL",
    "Record",
    "RemoteBackupEntry",
    "RestoreResult",
    "RetentionSummary",
    "Snapshot",
    "USERNAME_FIELD",
]
