from datetime import datetime, timedelta, timezone

from backup.remote_store import RemoteRetentionStore, human_size
from backup.snapshot import build_snapshot, decode_snapshot
from drive.errors import DriveError
from drive.memory import InMemoryDriveClient
from drive.types import FOLDER_MIME_TYPE


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


PREFIX = "attendance_backup_"


def _snapshot(day: datetime):
    return build_snapshot([{"id": "p1"}], [{"id": "c1"}], [], [{"username": "admin", "password": "pw"}], now=day)


def _signed_in_store(**kwargs):
    client = InMemoryDriveClient()
    assert client.sign_in()
    store = RemoteRetentionStore(client, logger=StubLogger(), prefix=PREFIX, **kwargs)
    return client, store


def test_save_returns_false_when_not_signed_in() -> None:
    client = InMemoryDriveClient(accept_sign_in=False)
    logger = StubLogger()
    store = RemoteRetentionStore(client, logger=logger)

    assert store.save(_snapshot(datetime(2024, 1, 1, tzinfo=timezone.utc))) is False
    assert client.file_names() == []
    assert logger.events[-1][1] == "remote_backup_skipped"


def test_save_signs_in_implicitly() -> None:
    client = InMemoryDriveClient()
    store = RemoteRetentionStore(client, logger=StubLogger(), prefix=PREFIX)

    assert store.save(_snapshot(datetime(2024, 1, 1, tzinfo=timezone.utc)))
    assert client.is_signed_in()
    assert client.file_names(store.folder_id) == ["attendance_backup_2024-01-01.json"]


def test_ensure_folder_is_idempotent() -> None:
    client, store = _signed_in_store(folder_name="Backups")
    first = store.ensure_folder()
    store.reset()
    second = store.ensure_folder()

    assert first == second
    assert client.file_names().count("Backups") == 1


def test_same_day_save_updates_existing_file() -> None:
    client, store = _signed_in_store()
    day = datetime(2024, 4, 1, 9, tzinfo=timezone.utc)
    assert store.save(_snapshot(day))
    later = build_snapshot([{"id": "p1"}, {"id": "p2"}], [], [], [], now=day + timedelta(hours=5))
    assert store.save(later)

    entries = store.list()

    assert len(entries) == 1
    restored = store.restore(entries[0].id)
    assert restored is not None
    assert len(restored.people) == 2


def test_eviction_keeps_thirty_newest_including_new_file() -> None:
    client, store = _signed_in_store(keep=30)
    folder_id = store.ensure_folder()
    base = datetime(2023, 1, 1, tzinfo=timezone.utc)
    seeded = []
    for offset in range(35):
        created = base + timedelta(days=offset)
        name = f"{PREFIX}{created.date().isoformat()}.json"
        seeded.append(name)
        client.seed_file(name, b"{}", folder_id=folder_id, created=created)

    assert store.save(_snapshot(datetime(2024, 6, 1, tzinfo=timezone.utc)))

    names = client.file_names(folder_id)
    assert len(names) == 30
    assert "attendance_backup_2024-06-01.json" in names
    assert set(names) - {"attendance_backup_2024-06-01.json"} == set(seeded[6:])


def test_eviction_ignores_unrelated_files() -> None:
    client, store = _signed_in_store(keep=1)
    folder_id = store.ensure_folder()
    client.seed_file("notes.txt", b"hello", folder_id=folder_id, created=datetime(2020, 1, 1, tzinfo=timezone.utc))
    store.save(_snapshot(datetime(2024, 1, 1, tzinfo=timezone.utc)))
    store.save(_snapshot(datetime(2024, 1, 2, tzinfo=timezone.utc)))

    assert "notes.txt" in client.file_names(folder_id)
    assert len([name for name in client.file_names(folder_id) if name.startswith(PREFIX)]) == 1


def test_list_requires_session_and_sorts_by_date() -> None:
    client = InMemoryDriveClient()
    store = RemoteRetentionStore(client, logger=StubLogger(), prefix=PREFIX)
    assert store.list() == []

    assert client.sign_in()
    store.save(_snapshot(datetime(2024, 1, 3, tzinfo=timezone.utc)))
    store.save(_snapshot(datetime(2024, 1, 5, tzinfo=timezone.utc)))
    store.save(_snapshot(datetime(2024, 1, 4, tzinfo=timezone.utc)))

    entries = store.list()

    assert [entry.date for entry in entries] == ["2024-01-05", "2024-01-04", "2024-01-03"]
    assert entries[0].size_display.endswith("B")


def test_restore_returns_none_for_missing_or_malformed_files() -> None:
    client, store = _signed_in_store()
    folder_id = store.ensure_folder()
    bad_id = client.seed_file(f"{PREFIX}2024-01-01.json", b"garbage", folder_id=folder_id)

    assert store.restore("missing") is None
    assert store.restore(bad_id) is None


def test_restored_snapshot_matches_saved_content() -> None:
    client, store = _signed_in_store()
    snapshot = _snapshot(datetime(2024, 2, 2, tzinfo=timezone.utc))
    store.save(snapshot)
    file_id = store.list()[0].id

    restored = store.restore(file_id)

    assert restored == decode_snapshot(client.download_file(file_id))
    assert restored.counts() == snapshot.counts()


def test_human_size() -> None:
    assert human_size(None) == "0 B"
    assert human_size(512) == "512 B"
    assert human_size(2048) == "2.0 KB"
    assert human_size(5 * 1024 * 1024) == "5.0 MB"


class FlakyListingClient(InMemoryDriveClient):
    def __init__(self, failures: int = 1) -> None:
        super().__init__()
        self.failures = failures

    def _list_files(self, query: str):
        if self.failures:
            self.failures -= 1
            raise DriveError("listing timed out")
        return super()._list_files(query)


def test_failed_folder_lookup_does_not_create_a_duplicate() -> None:
    client = FlakyListingClient()
    assert client.sign_in()
    existing = client.seed_file("Backups", b"", mime_type=FOLDER_MIME_TYPE)
    logger = StubLogger()
    store = RemoteRetentionStore(client, logger=logger, folder_name="Backups", prefix=PREFIX)

    assert store.ensure_folder() is None
    assert client.file_names() == ["Backups"]
    assert logger.events[-1][1] == "remote_folder_lookup_failed"

    assert store.ensure_folder() == existing
    assert client.file_names() == ["Backups"]
