"""Offline drive client keeping files in process memory."""
from __future__ import annotations

import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from .client import DriveClient
from .errors import DriveAuthError, DriveError
from .query import matches
from .types import FOLDER_MIME_TYPE, AccountInfo, DriveFile


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _rfc3339(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(slots=True)
class _StoredFile:
    meta: DriveFile
    parents: List[str]
    content: bytes = b""


class InMemoryDriveClient(DriveClient):
    """Drive client with the same contract as the REST client, minus the network.

    ``accept_sign_in`` simulates the user or the service refusing a session.
    """

    def __init__(
        self,
        *,
        account: Optional[AccountInfo] = None,
        accept_sign_in: bool = True,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        super().__init__()
        self.accept_sign_in = accept_sign_in
        self._profile = account or AccountInfo(id="local", display_name="Local Drive", email="local@example.invalid")
        self._clock = clock
        self._files: Dict[str, _StoredFile] = {}

    # ------------------------------------------------------------------
    def _initialize(self) -> None:
        return None

    def _authenticate(self) -> AccountInfo:
        if not self.accept_sign_in:
            raise DriveAuthError("sign-in rejected")
        return self._profile

    def _get(self, file_id: str) -> _StoredFile:
        stored = self._files.get(file_id)
        if stored is None:
            raise DriveError(f"file {file_id} not found")
        return stored

    def _add(self, name: str, mime_type: str, parents: List[str], content: bytes, created: Optional[datetime]) -> str:
        file_id = uuid.uuid4().hex
        stamp = _rfc3339(created or self._clock())
        meta = DriveFile(
            id=file_id,
            name=name,
            mime_type=mime_type,
            created_time=stamp,
            modified_time=stamp,
            size=len(content) if mime_type != FOLDER_MIME_TYPE else None,
        )
        with self._lock:
            self._files[file_id] = _StoredFile(meta=meta, parents=parents, content=content)
        return file_id

    def _create_folder(self, name: str, parent_id: Optional[str]) -> str:
        return self._add(name, FOLDER_MIME_TYPE, [parent_id] if parent_id else [], b"", None)

    def _upload_file(self, name: str, content: bytes, mime_type: str, folder_id: Optional[str]) -> str:
        return self._add(name, mime_type, [folder_id] if folder_id else [], bytes(content), None)

    def _update_file(self, file_id: str, content: bytes, mime_type: str) -> None:
        with self._lock:
            stored = self._get(file_id)
            stored.content = bytes(content)
            stored.meta = replace(
                stored.meta,
                mime_type=mime_type,
                modified_time=_rfc3339(self._clock()),
                size=len(stored.content),
            )

    def _list_files(self, query: str) -> List[DriveFile]:
        with self._lock:
            items = list(self._files.values())
        try:
            return [item.meta for item in items if matches(query, item.meta, parents=item.parents)]
        except ValueError as exc:
            raise DriveError(str(exc)) from exc

    def _download_file(self, file_id: str) -> bytes:
        with self._lock:
            return self._get(file_id).content

    def _delete_file(self, file_id: str) -> None:
        with self._lock:
            self._get(file_id)
            del self._files[file_id]

    # ------------------------------------------------------------------
    def seed_file(
        self,
        name: str,
        content: bytes,
        *,
        folder_id: Optional[str] = None,
        created: Optional[datetime] = None,
        mime_type: str = "application/json",
    ) -> str:
        """Place a file directly, bypassing authentication, with an explicit creation time."""

        return self._add(name, mime_type, [folder_id] if folder_id else [], bytes(content), created)

    def file_names(self, folder_id: Optional[str] = None) -> List[str]:
        with self._lock:
            items = list(self._files.values())
        return sorted(item.meta.name for item in items if folder_id is None or folder_id in item.parents)


__all__ = ["InMemoryDriveClient"]
