"""Command line access to stored attendance backups."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from drive.client import DriveClient

from .api import BackupEngine, build_engine
from .errors import BackupError

LOGGER = logging.getLogger("attendance.backup.cli")


def _local_rows(engine: BackupEngine) -> List[Dict[str, Any]]:
    return [
        {"key": entry.key, "date": entry.date_key, **entry.snapshot.counts()}
        for entry in engine.list_local_backups()
    ]


def _remote_rows(engine: BackupEngine) -> List[Dict[str, Any]]:
    if not engine.connect_remote():
        raise BackupError("remote drive sign-in failed")
    return [
        {"id": entry.id, "name": entry.name, "date": entry.date, "size": entry.size_display}
        for entry in engine.list_remote_backups()
    ]


def _print_rows(rows: List[Dict[str, Any]], *, as_json: bool, empty: str = "no backups") -> None:
    if as_json:
        print(json.dumps(rows, indent=2))
        return
    if not rows:
        print(empty)
        return
    for row in rows:
        print("  ".join(f"{key}={value}" for key, value in row.items()))


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Inspect and manage attendance backups")
    parser.add_argument("--working-dir", type=Path, default=None, help="Override working directory")
    parser.add_argument("--json", action="store_true", help="Output as JSON")
    commands = parser.add_subparsers(dest="command", required=True)

    list_cmd = commands.add_parser("list", help="List stored backups")
    list_cmd.add_argument("--remote", action="store_true", help="List the remote drive folder instead")

    inspect_cmd = commands.add_parser("inspect", help="Validate an exported backup file")
    inspect_cmd.add_argument("path", type=Path)

    store_cmd = commands.add_parser("store", help="Keep an exported backup file in the local store")
    store_cmd.add_argument("path", type=Path)
    store_cmd.add_argument("--remote", action="store_true", help="Also upload it to the remote drive")

    export_cmd = commands.add_parser("export", help="Write a stored daily backup to a file")
    export_cmd.add_argument("date", help="Calendar day of the backup (YYYY-MM-DD)")
    export_cmd.add_argument("--output", type=Path, default=None, help="Target directory")

    history_cmd = commands.add_parser("history", help="Show recent backup log events")
    history_cmd.add_argument("--limit", type=int, default=20)
    history_cmd.add_argument("--event", default=None, help="Only show this event name")
    return parser


def _run(engine: BackupEngine, args: argparse.Namespace) -> int:
    if args.command == "list":
        rows = _remote_rows(engine) if args.remote else _local_rows(engine)
        _print_rows(rows, as_json=args.json)
        return 0

    if args.command == "inspect":
        snapshot = engine.import_snapshot(args.path)
        summary = {"created_at": snapshot.created_at.isoformat(), **snapshot.counts()}
        _print_rows([summary], as_json=args.json)
        return 0

    if args.command == "store":
        snapshot = engine.import_snapshot(args.path)
        if not engine.local_store.save(snapshot):
            raise BackupError("local backup could not be saved")
        if args.remote and not (engine.connect_remote() and engine.backup_to_remote(snapshot)):
            raise BackupError("remote upload failed")
        print(f"stored backup from {args.path}")
        return 0

    if args.command == "history":
        _print_rows(engine.logger.tail(args.limit, event=args.event), as_json=args.json, empty="no events")
        return 0

    snapshot = engine.local_store.get(args.date)
    if snapshot is None:
        raise BackupError(f"no local backup for {args.date}")
    print(engine.export_to_file(snapshot, args.output))
    return 0


def main(argv: Optional[Sequence[str]] = None, *, drive_client: Optional[DriveClient] = None) -> int:
    args = _build_parser().parse_args(argv)
    engine = build_engine(working_dir=args.working_dir, drive_client=drive_client)
    try:
        return _run(engine, args)
    except BackupError as exc:
        LOGGER.error("backup command failed: %s", exc)
        print(f"error: {exc}", file=sys.stderr)
        return 1
    finally:
        engine.shutdown()


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
