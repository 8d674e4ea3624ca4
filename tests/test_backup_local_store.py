import sqlite3
from datetime import datetime, timedelta, timezone
from pathlib import Path

from backup.local_store import LocalRetentionStore
from backup.snapshot import build_snapshot
from core.kvstore import KeyValueStore


class StubLogger:
    def __init__(self) -> None:
        self.events = []

    def info(self, event: str, **extra):  # pragma: no cover - recorder
        self.events.append(("info", event, extra))

    def warning(self, event: str, **extra):  # pragma: no cover - recorder
        self.events.append(("warning", event, extra))

    def error(self, event: str, **extra):  # pragma: no cover - recorder
        self.events.append(("error", event, extra))

    def event(self, *, event: str, phase: str, ok: bool, **extra):  # pragma: no cover - recorder
        self.events.append(("event", event, phase, ok, extra))


def _snapshot(day: datetime, people=None):
    return build_snapshot(people or [{"id": "p1"}], [], [], [{"username": "admin", "password": "pw"}], now=day)


def _store(tmp_path: Path, logger=None) -> LocalRetentionStore:
    kv = KeyValueStore(tmp_path / "data" / "backups.db")
    return LocalRetentionStore(kv, logger=logger or StubLogger(), keep=7)


def test_ten_days_leave_seven_newest(tmp_path: Path) -> None:
    store = _store(tmp_path)
    start = datetime(2024, 1, 1, 12, tzinfo=timezone.utc)
    for offset in range(10):
        assert store.save(_snapshot(start + timedelta(days=offset)))

    entries = store.list()

    assert [entry.date_key for entry in entries] == [
        (start + timedelta(days=offset)).date().isoformat() for offset in range(9, 2, -1)
    ]
    assert entries[0].key == "backup_2024-01-10"


def test_same_day_save_overwrites_bucket(tmp_path: Path) -> None:
    store = _store(tmp_path)
    morning = datetime(2024, 5, 2, 6, tzinfo=timezone.utc)
    store.save(_snapshot(morning, people=[{"id": "p1"}]))
    store.save(_snapshot(morning + timedelta(hours=10), people=[{"id": "p1"}, {"id": "p2"}]))

    entries = store.list()

    assert len(entries) == 1
    assert len(entries[0].snapshot.people) == 2
    assert store.get("2024-05-02") is not None


def test_list_skips_unreadable_entries(tmp_path: Path) -> None:
    logger = StubLogger()
    kv = KeyValueStore(tmp_path / "backups.db")
    store = LocalRetentionStore(kv, logger=logger)
    store.save(_snapshot(datetime(2024, 2, 1, tzinfo=timezone.utc)))
    kv.set("backup_2024-02-02", b"{broken")

    entries = store.list()

    assert [entry.date_key for entry in entries] == ["2024-02-01"]
    assert any(item[1] == "local_backup_unreadable" for item in logger.events)


def test_save_failure_is_reported_not_raised(tmp_path: Path) -> None:
    class BrokenStore(KeyValueStore):
        def set(self, key: str, value: bytes) -> None:
            raise sqlite3.OperationalError("database or disk is full")

    logger = StubLogger()
    store = LocalRetentionStore(BrokenStore(tmp_path / "backups.db"), logger=logger)

    assert store.save(_snapshot(datetime(2024, 2, 1, tzinfo=timezone.utc))) is False
    assert ("error", "local_backup_failed") == logger.events[-1][:2]


def test_other_keys_are_left_alone(tmp_path: Path) -> None:
    kv = KeyValueStore(tmp_path / "backups.db")
    kv.set("settings_theme", b"dark")
    store = LocalRetentionStore(kv, logger=StubLogger(), keep=1)
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    store.save(_snapshot(start))
    store.save(_snapshot(start + timedelta(days=1)))

    assert kv.keys() == ["backup_2024-01-02", "settings_theme"]
