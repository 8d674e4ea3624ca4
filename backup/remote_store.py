"""Snapshot copies kept in a dedicated remote drive folder."""
from __future__ import annotations

import threading
from typing import List, Optional

from drive.client import DriveClient
from drive.query import join, mime_type_equals, name_contains, name_equals
from drive.types import FOLDER_MIME_TYPE, JSON_MIME_TYPE, DriveFile

from .errors import MalformedSnapshot
from .logs import BackupLogger
from .retention import split_retained
from .snapshot import backup_filename, decode_snapshot, encode_snapshot
from .types import RemoteBackupEntry, RetentionSummary, Snapshot


def human_size(value: Optional[int]) -> str:
    try:
        size = int(value or 0)
    except (TypeError, ValueError):
        return "0 B"
    if size <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB", "TB"]
    float_size = float(size)
    for unit in units:
        if float_size < 1024.0 or unit == units[-1]:
            if unit == "B":
                return f"{int(float_size)} {unit}"
            return f"{float_size:.1f} {unit}"
        float_size /= 1024.0
    return f"{float_size:.1f} TB"


class RemoteRetentionStore:
    """Save, list, restore and prune snapshot files through a :class:`DriveClient`."""

    def __init__(
        self,
        client: DriveClient,
        *,
        logger: BackupLogger,
        folder_name: str = "Attendance Backups",
        prefix: str = "attendance_backup_",
        keep: int = 30,
    ) -> None:
        self._client = client
        self._logger = logger
        self._folder_name = folder_name
        self._prefix = prefix
        self._keep = keep
        self._folder_id: Optional[str] = None
        self._lock = threading.RLock()

    @property
    def folder_id(self) -> Optional[str]:
        return self._folder_id

    @property
    def prefix(self) -> str:
        return self._prefix

    def reset(self) -> None:
        with self._lock:
            self._folder_id = None

    def _date_from_name(self, name: str) -> str:
        stem = name[len(self._prefix) :] if name.startswith(self._prefix) else name
        return stem[: -len(".json")] if stem.endswith(".json") else stem

    # ------------------------------------------------------------------
    def ensure_folder(self) -> Optional[str]:
        with self._lock:
            if self._folder_id:
                return self._folder_id
            query = join(name_equals(self._folder_name), mime_type_equals(FOLDER_MIME_TYPE))
            existing = self._client.search_files(None, query)
            if existing is None:
                self._logger.error("remote_folder_lookup_failed", folder=self._folder_name)
                return None
            if existing:
                self._folder_id = existing[0].id
            else:
                self._folder_id = self._client.create_folder(self._folder_name)
                if self._folder_id:
                    self._logger.info("remote_folder_created", folder=self._folder_name, folder_id=self._folder_id)
            return self._folder_id

    def _backup_files(self, folder_id: str) -> List[DriveFile]:
        return [
            item
            for item in self._client.list_files(folder_id, name_contains(self._prefix))
            if item.name.startswith(self._prefix)
        ]

    def save(self, snapshot: Snapshot) -> bool:
        if not self._client.is_signed_in() and not self._client.sign_in():
            self._logger.warning("remote_backup_skipped", reason="not_signed_in")
            return False
        folder_id = self.ensure_folder()
        if not folder_id:
            self._logger.error("remote_backup_failed", reason="folder_unavailable")
            return False
        name = backup_filename(snapshot, self._prefix)
        try:
            content = encode_snapshot(snapshot)
        except (TypeError, ValueError) as exc:
            self._logger.error("remote_backup_failed", name=name, reason="encode", error=str(exc))
            return False
        existing = self._client.find_file_by_name(name, folder_id)
        if existing is not None:
            ok = self._client.update_file(existing.id, content, JSON_MIME_TYPE)
            file_id: Optional[str] = existing.id
        else:
            file_id = self._client.upload_file(name, content, JSON_MIME_TYPE, folder_id)
            ok = file_id is not None
        self._logger.event(
            event="remote_backup_saved",
            phase="remote",
            ok=ok,
            name=name,
            file_id=file_id,
            replaced=existing is not None,
        )
        if ok:
            self.evict()
        return ok

    def evict(self) -> RetentionSummary:
        folder_id = self._folder_id
        if not folder_id:
            return RetentionSummary(removed=[], kept=[])
        files = self._backup_files(folder_id)
        kept, evicted = split_retained(files, self._keep, key=lambda item: item.created_at)
        removed: List[str] = []
        for item in evicted:
            if self._client.delete_file(item.id):
                removed.append(item.id)
                self._logger.info("remote_backup_removed", id=item.id, name=item.name, reason="retention")
            else:
                kept.append(item)
        if removed:
            self._logger.event(event="retention_applied", phase="remote", ok=True, removed=len(removed), kept=len(kept))
        return RetentionSummary(removed=removed, kept=[item.id for item in kept])

    def list(self) -> List[RemoteBackupEntry]:
        if not self._client.is_signed_in():
            return []
        folder_id = self.ensure_folder()
        if not folder_id:
            return []
        entries = [
            RemoteBackupEntry(
                id=item.id,
                name=item.name,
                date=self._date_from_name(item.name),
                size_display=human_size(item.size),
                created_time=item.created_time,
            )
            for item in self._backup_files(folder_id)
        ]
        entries.sort(key=lambda entry: (entry.date, entry.created_time or ""), reverse=True)
        return entries

    def restore(self, file_id: str) -> Optional[Snapshot]:
        raw = self._client.download_file(file_id)
        if raw is None:
            self._logger.error("remote_restore_failed", id=file_id, reason="download")
            return None
        try:
            snapshot = decode_snapshot(raw)
        except MalformedSnapshot as exc:
            self._logger.error("remote_restore_failed", id=file_id, reason="decode", error=str(exc))
            return None
        self._logger.event(event="remote_snapshot_fetched", phase="restore", ok=True, id=file_id)
        return snapshot


__all__ = ["RemoteRetentionStore", "human_size"]
