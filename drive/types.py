"""Value types shared by drive clients."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping, Optional

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
JSON_MIME_TYPE = "application/json"


class AuthState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"


@dataclass(frozen=True, slots=True)
class AccountInfo:
    id: str
    display_name: str
    email: str


@dataclass(frozen=True, slots=True)
class RemoteSession:
    authenticated: bool
    account: Optional[AccountInfo] = None
    folder_id: Optional[str] = None


def parse_timestamp(value: Optional[str]) -> datetime:
    """Parse an RFC 3339 timestamp; unparseable values sort as the epoch."""

    if not value:
        return datetime.fromtimestamp(0, tz=timezone.utc)
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return datetime.fromtimestamp(0, tz=timezone.utc)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True, slots=True)
class DriveFile:
    id: str
    name: str
    mime_type: str
    created_time: str
    modified_time: str
    size: Optional[int] = None

    @property
    def created_at(self) -> datetime:
        return parse_timestamp(self.created_time)

    @property
    def modified_at(self) -> datetime:
        return parse_timestamp(self.modified_time)

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> "DriveFile":
        size = payload.get("size")
        try:
            size_value = int(size) if size is not None else None
        except (TypeError, ValueError):
            size_value = None
        return cls(
            id=str(payload.get("id") or ""),
            name=str(payload.get("name") or ""),
            mime_type=str(payload.get("mimeType") or ""),
            created_time=str(payload.get("createdTime") or ""),
            modified_time=str(payload.get("modifiedTime") or ""),
            size=size_value,
        )


__all__ = [
    "AccountInfo",
    "AuthState",
    "DriveFile",
    "FOLDER_MIME_TYPE",
    "JSON_MIME_TYPE",
    "RemoteSession",
    "parse_timestamp",
]
