import io
import json
import time
from pathlib import Path

import pytest

from backup.api import BackupEngine, build_engine
from backup.errors import BackupError, MalformedSnapshot
from backup.types import LiveDataset, PASSWORD_SENTINEL
from drive.memory import InMemoryDriveClient


def _live() -> LiveDataset:
    return LiveDataset(
        people=[{"id": f"p{i}", "name": f"Student {i}", "rollNumber": f"R-{i}"} for i in range(3)],
        courses=[{"id": f"c{i}", "name": f"Course {i}", "code": f"C{i}", "credits": 3} for i in range(2)],
        attendance_entries=[
            {"id": f"e{i}", "studentId": "p0", "subjectId": "c0", "date": f"2024-03-0{i + 1}", "status": "present"}
            for i in range(5)
        ],
        accounts=[{"id": "u1", "username": "admin", "password": "pw1", "role": "admin"}],
    )


def _engine(tmp_path: Path, *, drive=None, data_source=_live, **backup_settings) -> BackupEngine:
    settings = {"backup": {"initial_delay_s": 0.01, **backup_settings}}
    return BackupEngine(
        working_dir=tmp_path,
        settings=settings,
        drive_client=drive or InMemoryDriveClient(),
        data_source=data_source,
    )


def _wait_for(predicate, timeout: float = 3.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def test_manual_backup_export_import_round_trip(tmp_path: Path) -> None:
    engine = _engine(tmp_path)
    try:
        snapshot = engine.create_manual_backup()
        payload = engine.export_snapshot(snapshot)
        imported = engine.import_snapshot(payload)
    finally:
        engine.shutdown()

    assert (len(imported.people), len(imported.courses), len(imported.attendance_entries)) == (3, 2, 5)
    assert imported.accounts[0]["password"] == PASSWORD_SENTINEL
    assert b"pw1" not in payload
    assert len(engine.list_local_backups()) == 1


def test_import_accepts_files_and_streams(tmp_path: Path) -> None:
    engine = _engine(tmp_path)
    try:
        snapshot = engine.create_manual_backup()
        path = engine.export_to_file(snapshot)
        assert path.parent == tmp_path / "exports"
        assert path.name.startswith("attendance_backup_")

        from_path = engine.import_snapshot(path)
        from_stream = engine.import_snapshot(io.BytesIO(path.read_bytes()))
    finally:
        engine.shutdown()

    assert from_path == from_stream


def test_import_rejects_malformed_file(tmp_path: Path) -> None:
    engine = _engine(tmp_path)
    try:
        with pytest.raises(MalformedSnapshot):
            engine.import_snapshot(b'{"people": []}')
        with pytest.raises(BackupError):
            engine.import_snapshot(tmp_path / "missing.json")
    finally:
        engine.shutdown()


def test_restore_local_reconciles_with_live_accounts(tmp_path: Path) -> None:
    engine = _engine(tmp_path)
    try:
        snapshot = engine.create_manual_backup()
        result = engine.restore_local(snapshot, live_accounts=[{"username": "admin", "password": "rotated"}])
        from_source = engine.restore_local(snapshot)
    finally:
        engine.shutdown()

    assert len(result.people) == 3
    assert result.accounts[0]["password"] == "rotated"
    assert from_source.accounts[0]["password"] == "pw1"


def test_remote_round_trip_through_engine(tmp_path: Path) -> None:
    drive = InMemoryDriveClient()
    engine = _engine(tmp_path, drive=drive)
    try:
        assert engine.list_remote_backups() == []
        assert engine.connect_remote()
        session = engine.remote_session()
        assert session.authenticated
        assert session.folder_id is not None
        assert session.account is not None

        assert engine.backup_to_remote()
        entries = engine.list_remote_backups()
        assert len(entries) == 1

        result = engine.restore_remote(entries[0].id, live_accounts=[])
        assert result is not None
        assert result.accounts[0]["password"] == "changeme"
        assert engine.restore_remote("nope") is None

        engine.disconnect_remote()
        assert engine.remote_session() == type(session)(authenticated=False)
        assert engine.list_remote_backups() == []
    finally:
        engine.shutdown()


def test_connect_remote_reports_rejected_sign_in(tmp_path: Path) -> None:
    engine = _engine(tmp_path, drive=InMemoryDriveClient(accept_sign_in=False))
    try:
        assert engine.connect_remote() is False
        assert engine.backup_to_remote() is False
    finally:
        engine.shutdown()


def test_automatic_backup_writes_both_tiers(tmp_path: Path) -> None:
    drive = InMemoryDriveClient()
    engine = _engine(tmp_path, drive=drive)
    try:
        assert engine.connect_remote()
        engine.start_automatic_backup()
        assert _wait_for(lambda: len(engine.list_local_backups()) == 1)
        assert _wait_for(lambda: len(engine.list_remote_backups()) == 1)
    finally:
        engine.stop_automatic_backup()
        engine.shutdown()

    log_lines = (tmp_path / "logs" / "backup.jsonl").read_text(encoding="utf-8").splitlines()
    events = [json.loads(line)["event"] for line in log_lines]
    assert "scheduled_backup" in events


def test_automatic_backup_skips_remote_without_session(tmp_path: Path) -> None:
    drive = InMemoryDriveClient()
    engine = _engine(tmp_path, drive=drive)
    try:
        engine.start_automatic_backup()
        assert _wait_for(lambda: len(engine.list_local_backups()) == 1)
    finally:
        engine.stop_automatic_backup()
        engine.shutdown()

    assert drive.file_names() == []


def test_scheduled_cycle_is_dropped_while_busy(tmp_path: Path) -> None:
    engine = _engine(tmp_path)
    try:
        with engine._cycle_lock:
            assert engine._run_scheduled_cycle(_live()) is False
        assert engine._run_scheduled_cycle(_live()) is True
    finally:
        engine.shutdown()


def test_start_requires_data_source(tmp_path: Path) -> None:
    engine = _engine(tmp_path, data_source=None)
    try:
        with pytest.raises(BackupError):
            engine.start_automatic_backup()
        with pytest.raises(BackupError):
            engine.create_manual_backup()
        assert len(engine.create_manual_backup({"students": [{"id": "p1"}], "users": []}).people) == 1
    finally:
        engine.shutdown()


def test_disabled_schedule_does_not_start(tmp_path: Path) -> None:
    engine = _engine(tmp_path, enable=False)
    try:
        engine.start_automatic_backup()
        assert not engine.scheduler.is_running
    finally:
        engine.shutdown()


def test_out_of_range_schedule_settings_use_defaults(tmp_path: Path) -> None:
    engine = _engine(tmp_path, interval_hours=-1, initial_delay_s=-5)
    try:
        assert engine.scheduler.interval_s == 6 * 60 * 60
        assert engine.scheduler.initial_delay_s == 5
        reset = engine.logger.tail(event="settings_reset")
        assert reset[-1]["fields"] == ["backup.initial_delay_s", "backup.interval_hours"]
    finally:
        engine.shutdown()


def test_restore_without_live_accounts_is_logged(tmp_path: Path) -> None:
    engine = _engine(tmp_path, data_source=None)
    try:
        snapshot = engine.create_manual_backup(_live())
        result = engine.restore_local(snapshot)
        warnings = engine.logger.tail(event="restore_without_live_accounts")
    finally:
        engine.shutdown()

    assert result.accounts[0]["password"] == "changeme"
    assert len(warnings) == 1
    assert warnings[0]["default_password_applied"] is True


def test_build_engine_prepares_working_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("ATTENDANCE_DRIVE_TOKEN", raising=False)
    home = tmp_path / "home"
    engine = build_engine(working_dir=home, data_source=_live, drive_client=InMemoryDriveClient())
    try:
        for name in ("data", "logs", "exports"):
            assert (home / name).is_dir()
    finally:
        engine.shutdown()
