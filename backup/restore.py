"""Turn a snapshot back into live collections."""
from __future__ import annotations

import copy
from typing import Any, Dict, Iterable, List, Mapping

from .types import DEFAULT_PASSWORD, PASSWORD_FIELD, USERNAME_FIELD, Record, RestoreResult, Snapshot


def reconcile_accounts(
    restored_accounts: Iterable[Mapping[str, Any]],
    live_accounts: Iterable[Mapping[str, Any]],
    *,
    default_password: str = DEFAULT_PASSWORD,
) -> List[Record]:
    """Attach credentials to restored accounts.

    Snapshots never carry real passwords, so each restored account takes the
    password of the live account with the same username, or
    *default_password* when no such live account exists.
    """

    live_passwords: Dict[str, Any] = {}
    for account in live_accounts:
        username = account.get(USERNAME_FIELD)
        if username is not None and username not in live_passwords:
            live_passwords[username] = account.get(PASSWORD_FIELD)

    reconciled: List[Record] = []
    for account in restored_accounts:
        record = copy.deepcopy(dict(account))
        username = record.get(USERNAME_FIELD)
        if username in live_passwords:
            record[PASSWORD_FIELD] = live_passwords[username]
        else:
            record[PASSWORD_FIELD] = default_password
        reconciled.append(record)
    return reconciled


def apply_restore(
    snapshot: Snapshot,
    live_accounts: Iterable[Mapping[str, Any]],
    *,
    default_password: str = DEFAULT_PASSWORD,
) -> RestoreResult:
    """Replace people, courses and attendance wholesale; reconcile accounts."""

    return RestoreResult(
        people=[copy.deepcopy(record) for record in snapshot.people],
        courses=[copy.deepcopy(record) for record in snapshot.courses],
        attendance_entries=[copy.deepcopy(record) for record in snapshot.attendance_entries],
        accounts=reconcile_accounts(snapshot.accounts, live_accounts, default_password=default_password),
    )


__all__ = ["apply_restore", "reconcile_accounts"]
