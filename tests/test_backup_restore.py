from datetime import datetime, timezone

from backup.restore import apply_restore, reconcile_accounts
from backup.snapshot import build_snapshot
from backup.types import DEFAULT_PASSWORD, PASSWORD_SENTINEL


def test_reconcile_takes_password_from_live_account() -> None:
    restored = [{"id": "u1", "username": "alice", "password": PASSWORD_SENTINEL, "role": "admin"}]
    live = [{"id": "u9", "username": "alice", "password": "secret123", "role": "admin"}]

    reconciled = reconcile_accounts(restored, live)

    assert reconciled == [{"id": "u1", "username": "alice", "password": "secret123", "role": "admin"}]


def test_reconcile_uses_default_without_live_match() -> None:
    restored = [{"id": "u2", "username": "bob", "password": PASSWORD_SENTINEL, "role": "student"}]
    live = [{"id": "u1", "username": "alice", "password": "secret123"}]

    reconciled = reconcile_accounts(restored, live)

    assert reconciled[0]["password"] == DEFAULT_PASSWORD
    assert reconcile_accounts(restored, [], default_password="temp")[0]["password"] == "temp"


def test_reconcile_ignores_snapshot_password() -> None:
    restored = [{"username": "carol", "password": "from-file"}]

    reconciled = reconcile_accounts(restored, [])

    assert reconciled[0]["password"] == DEFAULT_PASSWORD
    assert restored[0]["password"] == "from-file"


def test_apply_restore_replaces_collections_wholesale() -> None:
    snapshot = build_snapshot(
        [{"id": "p1"}, {"id": "p2"}],
        [{"id": "c1"}],
        [{"id": "e1", "studentId": "p1", "subjectId": "c1", "date": "2024-01-01", "status": "present"}],
        [{"username": "admin", "password": "old"}, {"username": "ghost", "password": "gone"}],
        now=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )
    live_accounts = [{"username": "admin", "password": "current"}]

    result = apply_restore(snapshot, live_accounts)

    assert result.people == [{"id": "p1"}, {"id": "p2"}]
    assert result.courses == [{"id": "c1"}]
    assert len(result.attendance_entries) == 1
    assert [account["password"] for account in result.accounts] == ["current", DEFAULT_PASSWORD]

    result.people[0]["id"] = "mutated"
    assert snapshot.people[0]["id"] == "p1"
