"""Build, encode and decode attendance snapshots."""
from __future__ import annotations

import copy
import json
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from .errors import MalformedSnapshot
from .types import PASSWORD_FIELD, PASSWORD_SENTINEL, Record, Snapshot

# Wire names of the snapshot file; the second entry is the name used by
# files exported before the collections were renamed.
_FIELDS: Tuple[Tuple[str, str, str], ...] = (
    ("people", "people", "students"),
    ("courses", "courses", "subjects"),
    ("attendance_entries", "attendanceEntries", "attendanceRecords"),
    ("accounts", "accounts", "users"),
)
_CREATED_AT = ("createdAt", "timestamp")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _copy_records(records: Iterable[Mapping[str, Any]]) -> Tuple[Record, ...]:
    return tuple(copy.deepcopy(dict(record)) for record in records)


def _redact(account: Mapping[str, Any]) -> Record:
    redacted = copy.deepcopy(dict(account))
    redacted[PASSWORD_FIELD] = PASSWORD_SENTINEL
    return redacted


def build_snapshot(
    people: Iterable[Mapping[str, Any]],
    courses: Iterable[Mapping[str, Any]],
    attendance_entries: Iterable[Mapping[str, Any]],
    accounts: Iterable[Mapping[str, Any]],
    *,
    now: Optional[datetime] = None,
) -> Snapshot:
    """Copy the live collections into an immutable snapshot with redacted credentials."""

    created = now or _utcnow()
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return Snapshot(
        people=_copy_records(people),
        courses=_copy_records(courses),
        attendance_entries=_copy_records(attendance_entries),
        accounts=tuple(_redact(account) for account in accounts),
        created_at=created,
    )


def snapshot_date_key(snapshot: Snapshot) -> str:
    """Calendar day (UTC) a snapshot belongs to; used for local buckets and file names."""

    return snapshot.created_at.astimezone(timezone.utc).date().isoformat()


def backup_filename(snapshot: Snapshot, prefix: str) -> str:
    return f"{prefix}{snapshot_date_key(snapshot)}.json"


def snapshot_to_payload(snapshot: Snapshot) -> Dict[str, Any]:
    payload: Dict[str, Any] = {}
    for attr, wire, _ in _FIELDS:
        payload[wire] = [dict(record) for record in getattr(snapshot, attr)]
    payload[_CREATED_AT[0]] = snapshot.created_at.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
    return payload


def encode_snapshot(snapshot: Snapshot) -> bytes:
    return json.dumps(snapshot_to_payload(snapshot), ensure_ascii=False, indent=2).encode("utf-8")


def _parse_created_at(value: Any) -> datetime:
    if not isinstance(value, str) or not value.strip():
        raise MalformedSnapshot("createdAt must be an ISO-8601 timestamp")
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as exc:
        raise MalformedSnapshot(f"invalid createdAt {value!r}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _records(payload: Mapping[str, Any], wire: str, legacy: str) -> Tuple[Record, ...]:
    if wire in payload:
        value = payload[wire]
    elif legacy in payload:
        value = payload[legacy]
    else:
        raise MalformedSnapshot(f"missing required field {wire!r}")
    if not isinstance(value, list):
        raise MalformedSnapshot(f"field {wire!r} must be a list")
    for index, item in enumerate(value):
        if not isinstance(item, dict):
            raise MalformedSnapshot(f"{wire}[{index}] must be an object")
    return tuple(value)


def snapshot_from_payload(payload: Any) -> Snapshot:
    if not isinstance(payload, dict):
        raise MalformedSnapshot("snapshot must be a JSON object")
    collections = {attr: _records(payload, wire, legacy) for attr, wire, legacy in _FIELDS}
    created_raw = payload.get(_CREATED_AT[0], payload.get(_CREATED_AT[1]))
    # A hand-edited file may carry real passwords; they never enter a snapshot.
    collections["accounts"] = tuple(_redact(account) for account in collections["accounts"])
    return Snapshot(created_at=_parse_created_at(created_raw), **collections)


def decode_snapshot(data: bytes | str) -> Snapshot:
    try:
        text = data.decode("utf-8") if isinstance(data, (bytes, bytearray)) else data
        payload = json.loads(text)
    except (UnicodeDecodeError, ValueError) as exc:
        raise MalformedSnapshot(f"snapshot is not valid JSON: {exc}") from exc
    return snapshot_from_payload(payload)


__all__ = [
    "backup_filename",
    "build_snapshot",
    "decode_snapshot",
    "encode_snapshot",
    "snapshot_date_key",
    "snapshot_from_payload",
    "snapshot_to_payload",
]
