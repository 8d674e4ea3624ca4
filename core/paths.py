from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

__all__ = [
    "ensure_working_dir_structure",
    "get_backup_store_path",
    "get_data_dir",
    "get_default_settings_paths",
    "get_exports_dir",
    "get_logs_dir",
    "resolve_working_dir",
]

_PROJECT_ROOT = Path(__file__).resolve().parent.parent


def _expand_path(value: str) -> Path:
    expanded = os.path.expandvars(os.path.expanduser(value))
    return Path(expanded).resolve()


def _prepare_working_dir(candidate: Path) -> Optional[Path]:
    """Create *candidate* with its data folder and prove it is writable."""

    probe = candidate / f".write_test_{os.getpid()}"
    try:
        get_data_dir(candidate).mkdir(parents=True, exist_ok=True)
        probe.write_text("ok", encoding="utf-8")
    except OSError:
        return None
    finally:
        try:
            probe.unlink(missing_ok=True)
        except OSError:
            pass
    return candidate


def resolve_working_dir() -> Path:
    """Resolve the attendance working directory, creating it if required."""

    env_home = os.environ.get("ATTENDANCE_HOME")
    if env_home:
        try:
            env_path = _expand_path(env_home)
        except (OSError, RuntimeError):
            env_path = None
        if env_path:
            prepared = _prepare_working_dir(env_path)
            if prepared is not None:
                return prepared

    prepared = _prepare_working_dir(Path.home() / ".attendance")
    if prepared is not None:
        return prepared

    fallback = _PROJECT_ROOT / ".attendance"
    get_data_dir(fallback).mkdir(parents=True, exist_ok=True)
    return fallback


def get_data_dir(working_dir: Path) -> Path:
    return working_dir / "data"


def get_backup_store_path(working_dir: Path) -> Path:
    return get_data_dir(working_dir) / "backups.db"


def get_logs_dir(working_dir: Path) -> Path:
    return working_dir / "logs"


def get_exports_dir(working_dir: Path) -> Path:
    return working_dir / "exports"


def ensure_working_dir_structure(working_dir: Path) -> None:
    for directory in (
        working_dir,
        get_data_dir(working_dir),
        get_logs_dir(working_dir),
        get_exports_dir(working_dir),
    ):
        directory.mkdir(parents=True, exist_ok=True)


def get_default_settings_paths(working_dir: Path) -> list[Path]:
    """Return the search order for settings.json files."""

    return [working_dir / "settings.json", _PROJECT_ROOT / "settings.json"]
