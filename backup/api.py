"""Public API for backup operations."""
from __future__ import annotations

import threading
from dataclasses import replace
from pathlib import Path
from typing import IO, Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from core.kvstore import KeyValueStore
from core.logging_utils import configure_json_logging
from core.paths import ensure_working_dir_structure, get_backup_store_path, get_exports_dir, resolve_working_dir
from core.settings import load_settings, merge_defaults, reset_invalid_values
from drive.auth import token_source_from_settings
from drive.client import DriveClient
from drive.google import GoogleDriveClient
from drive.types import RemoteSession

from .errors import BackupError
from .local_store import LocalRetentionStore
from .logs import BackupLogger
from .remote_store import RemoteRetentionStore
from .restore import apply_restore
from .retention import RetentionPolicy
from .scheduler import BackupScheduler, PullCallback
from .snapshot import backup_filename, build_snapshot, decode_snapshot, encode_snapshot
from .types import DEFAULT_PASSWORD, LiveDataset, LocalBackupEntry, RemoteBackupEntry, RestoreResult, Snapshot

SnapshotSource = Union[bytes, bytearray, str, Path, IO[bytes]]

_DATASET_KEYS = (
    ("people", "students"),
    ("courses", "subjects"),
    ("attendance_entries", "attendanceRecords"),
    ("accounts", "users"),
)


def _as_dataset(value: Union[LiveDataset, Mapping[str, Any]]) -> LiveDataset:
    if isinstance(value, LiveDataset):
        return value
    if not isinstance(value, Mapping):
        raise BackupError(f"data source returned {type(value).__name__}, expected a dataset")
    collections: Dict[str, List[Mapping[str, Any]]] = {}
    for attr, legacy in _DATASET_KEYS:
        collections[attr] = list(value.get(attr, value.get(legacy)) or [])
    return LiveDataset(**collections)


def build_drive_client(drive_settings: Mapping[str, Any]) -> DriveClient:
    return GoogleDriveClient.from_settings(drive_settings, token_source_from_settings(drive_settings))


class BackupEngine:
    """Coordinate snapshots, both storage tiers, the timer and restores.

    The engine is built once by the application and owns all backup state:
    the scheduler thread, the remote session and its cached folder id.
    """

    def __init__(
        self,
        *,
        working_dir: Optional[Path] = None,
        settings: Optional[Dict[str, Any]] = None,
        drive_client: Optional[DriveClient] = None,
        data_source: Optional[PullCallback] = None,
        default_password: str = DEFAULT_PASSWORD,
    ) -> None:
        self._working_dir = Path(working_dir or resolve_working_dir())
        if settings is None:
            self._settings = load_settings(self._working_dir)
        else:
            self._settings = merge_defaults(dict(settings))
        self._logger = BackupLogger(self._working_dir)
        invalid = reset_invalid_values(self._settings)
        if invalid:
            self._logger.warning("settings_reset", fields=invalid)
        backup_cfg = self._settings["backup"]
        self._policy = RetentionPolicy.from_settings(backup_cfg)
        self._default_password = default_password
        self._data_source = data_source
        self._cycle_lock = threading.Lock()

        self._kv = KeyValueStore(get_backup_store_path(self._working_dir))
        self._local = LocalRetentionStore(self._kv, logger=self._logger, keep=self._policy.local_keep)
        self._drive = drive_client or build_drive_client(self._settings["drive"])
        self._remote = RemoteRetentionStore(
            self._drive,
            logger=self._logger,
            folder_name=str(backup_cfg.get("remote_folder")),
            prefix=str(backup_cfg.get("file_prefix")),
            keep=self._policy.remote_keep,
        )
        self._scheduler = BackupScheduler(
            self._run_scheduled_cycle,
            logger=self._logger,
            interval_s=float(backup_cfg.get("interval_hours") or 6) * 60 * 60,
            initial_delay_s=float(backup_cfg.get("initial_delay_s") or 0),
        )

    # ------------------------------------------------------------------
    @property
    def working_dir(self) -> Path:
        return self._working_dir

    @property
    def local_store(self) -> LocalRetentionStore:
        return self._local

    @property
    def remote_store(self) -> RemoteRetentionStore:
        return self._remote

    @property
    def scheduler(self) -> BackupScheduler:
        return self._scheduler

    @property
    def drive(self) -> DriveClient:
        return self._drive

    @property
    def logger(self) -> BackupLogger:
        return self._logger

    def _pull(self, pull: Optional[PullCallback] = None) -> LiveDataset:
        source = pull or self._data_source
        if source is None:
            raise BackupError("no data source configured")
        return _as_dataset(source())

    def _snapshot(self, dataset: LiveDataset) -> Snapshot:
        return build_snapshot(
            dataset.people,
            dataset.courses,
            dataset.attendance_entries,
            dataset.accounts,
        )

    # ------------------------------------------------------------------
    def _run_scheduled_cycle(self, dataset: LiveDataset) -> bool:
        if not self._cycle_lock.acquire(blocking=False):
            self._logger.warning("scheduled_backup_skipped", reason="busy")
            return False
        try:
            snapshot = self._snapshot(_as_dataset(dataset))
            local_ok = self._local.save(snapshot)
            remote_ok: Optional[bool] = None
            if self._drive.is_signed_in():
                remote_ok = self._remote.save(snapshot)
            self._logger.event(
                event="scheduled_backup",
                phase="schedule",
                ok=local_ok and remote_ok is not False,
                local=local_ok,
                remote=remote_ok,
            )
            return local_ok
        finally:
            self._cycle_lock.release()

    def start_automatic_backup(self, pull: Optional[PullCallback] = None) -> None:
        if not self._settings["backup"].get("enable", True):
            self._logger.info("scheduler_disabled")
            return
        source = pull or self._data_source
        if source is None:
            raise BackupError("no data source configured")
        self._scheduler.start(source)

    def stop_automatic_backup(self) -> None:
        self._scheduler.stop()

    # ------------------------------------------------------------------
    def create_manual_backup(self, dataset: Optional[Union[LiveDataset, Mapping[str, Any]]] = None) -> Snapshot:
        live = _as_dataset(dataset) if dataset is not None else self._pull()
        with self._cycle_lock:
            snapshot = self._snapshot(live)
            if not self._local.save(snapshot):
                raise BackupError("local backup could not be saved")
        return snapshot

    def backup_to_remote(self, snapshot: Optional[Snapshot] = None) -> bool:
        with self._cycle_lock:
            target = snapshot or self._snapshot(self._pull())
            return self._remote.save(target)

    def export_snapshot(self, snapshot: Snapshot) -> bytes:
        return encode_snapshot(snapshot)

    def export_filename(self, snapshot: Snapshot) -> str:
        return backup_filename(snapshot, str(self._settings["backup"].get("file_prefix")))

    def export_to_file(self, snapshot: Snapshot, directory: Optional[Path] = None) -> Path:
        target_dir = Path(directory) if directory is not None else get_exports_dir(self._working_dir)
        target_dir.mkdir(parents=True, exist_ok=True)
        target = target_dir / self.export_filename(snapshot)
        target.write_bytes(self.export_snapshot(snapshot))
        self._logger.event(event="backup_exported", phase="export", ok=True, path=str(target))
        return target

    def import_snapshot(self, source: SnapshotSource) -> Snapshot:
        """Decode a user supplied snapshot file; raises ``MalformedSnapshot``."""

        if isinstance(source, Path):
            try:
                data: Union[bytes, str] = source.read_bytes()
            except OSError as exc:
                raise BackupError(f"could not read {source}: {exc}") from exc
        elif isinstance(source, (bytes, bytearray, str)):
            data = bytes(source) if isinstance(source, bytearray) else source
        else:
            data = source.read()
        snapshot = decode_snapshot(data)
        self._logger.event(event="backup_imported", phase="import", ok=True, **snapshot.counts())
        return snapshot

    # ------------------------------------------------------------------
    def list_local_backups(self) -> List[LocalBackupEntry]:
        return self._local.list()

    def list_remote_backups(self) -> List[RemoteBackupEntry]:
        return self._remote.list()

    def connect_remote(self) -> bool:
        if not self._drive.sign_in():
            self._logger.event(event="remote_connect", phase="remote", ok=False)
            return False
        folder_id = self._remote.ensure_folder()
        self._logger.event(event="remote_connect", phase="remote", ok=True, folder_id=folder_id)
        return True

    def disconnect_remote(self) -> None:
        self._drive.sign_out()
        self._remote.reset()
        self._logger.info("remote_disconnect")

    def remote_session(self) -> RemoteSession:
        return replace(self._drive.session, folder_id=self._remote.folder_id)

    # ------------------------------------------------------------------
    def _live_accounts(self, live_accounts: Optional[Iterable[Mapping[str, Any]]]) -> List[Mapping[str, Any]]:
        if live_accounts is not None:
            return list(live_accounts)
        if self._data_source is None:
            self._logger.warning("restore_without_live_accounts", default_password_applied=True)
            return []
        return list(self._pull().accounts)

    def restore_local(
        self,
        snapshot: Snapshot,
        live_accounts: Optional[Iterable[Mapping[str, Any]]] = None,
    ) -> RestoreResult:
        accounts = self._live_accounts(live_accounts)
        with self._cycle_lock:
            result = apply_restore(snapshot, accounts, default_password=self._default_password)
        self._logger.event(event="backup_restored", phase="restore", ok=True, source="local", **snapshot.counts())
        return result

    def restore_remote(
        self,
        file_id: str,
        live_accounts: Optional[Iterable[Mapping[str, Any]]] = None,
    ) -> Optional[RestoreResult]:
        accounts = self._live_accounts(live_accounts)
        with self._cycle_lock:
            snapshot = self._remote.restore(file_id)
            if snapshot is None:
                return None
            result = apply_restore(snapshot, accounts, default_password=self._default_password)
        self._logger.event(event="backup_restored", phase="restore", ok=True, source="remote", id=file_id)
        return result

    def shutdown(self) -> None:
        self._scheduler.stop()
        self._kv.close()


def build_engine(
    *,
    working_dir: Optional[Path] = None,
    data_source: Optional[Callable[[], Any]] = None,
    drive_client: Optional[DriveClient] = None,
) -> BackupEngine:
    """Resolve the working directory and settings, then wire an engine."""

    resolved = Path(working_dir or resolve_working_dir())
    ensure_working_dir_structure(resolved)
    configure_json_logging("attendance", working_dir=resolved)
    settings = load_settings(resolved)
    return BackupEngine(
        working_dir=resolved,
        settings=settings,
        drive_client=drive_client,
        data_source=data_source,
    )


__all__ = [
    "BackupEngine",
    "build_drive_client",
    "build_engine",
]
