from __future__ import annotations

import copy
import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List

from .paths import get_default_settings_paths, get_logs_dir
from .settings_schema import SETTINGS_VALIDATOR

__all__ = [
    "DEFAULT_SETTINGS",
    "DRIVE_TOKEN_ENV",
    "SETTINGS_VERSION",
    "load_settings",
    "merge_defaults",
    "reset_invalid_values",
    "save_settings",
    "update_settings",
]

LOGGER = logging.getLogger("attendance.settings")

SETTINGS_VERSION = 1

DRIVE_TOKEN_ENV = "ATTENDANCE_DRIVE_TOKEN"


DEFAULT_SETTINGS: Dict[str, Any] = {
    "version": SETTINGS_VERSION,
    "backup": {
        "enable": True,
        "interval_hours": 6,
        "initial_delay_s": 5,
        "local_keep": 7,
        "remote_keep": 30,
        "remote_folder": "Attendance Backups",
        "file_prefix": "attendance_backup_",
    },
    "drive": {
        "client_id": None,
        "client_secret": None,
        "refresh_token": None,
        "access_token": None,
        "timeout_s": 30,
        "api_url": "https://www.googleapis.com/drive/v3",
        "upload_url": "https://www.googleapis.com/upload/drive/v3",
        "discovery_url": "https://www.googleapis.com/discovery/v1/apis/drive/v3/rest",
        "token_url": "https://oauth2.googleapis.com/token",
        "revoke_url": "https://oauth2.googleapis.com/revoke",
    },
}


def merge_defaults(data: Dict[str, Any]) -> Dict[str, Any]:
    """Overlay *data* on a copy of the defaults; keys outside the defaults are kept."""

    def _merge(default: Dict[str, Any], payload: Dict[str, Any]) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        for key, value in default.items():
            current = payload.get(key)
            if isinstance(value, dict):
                result[key] = _merge(value, current if isinstance(current, dict) else {})
            else:
                result[key] = copy.deepcopy(payload.get(key, value))
        for key, value in payload.items():
            result.setdefault(key, value)
        return result

    return _merge(DEFAULT_SETTINGS, data or {})


def _apply_migrations(settings: Dict[str, Any]) -> Dict[str, Any]:
    try:
        version = int(settings.get("version"))
    except (TypeError, ValueError):
        version = 0
    if version < SETTINGS_VERSION:
        settings["version"] = SETTINGS_VERSION
    return settings


def reset_invalid_values(settings: Dict[str, Any]) -> List[str]:
    """Replace values of the wrong type or out of range with their defaults."""

    invalid = SETTINGS_VALIDATOR.invalid_values(settings)
    for dotted in invalid:
        section, _, field = dotted.partition(".")
        if field:
            settings[section][field] = copy.deepcopy(DEFAULT_SETTINGS[section][field])
        else:
            settings[section] = copy.deepcopy(DEFAULT_SETTINGS[section])
    return invalid


def _apply_environment(settings: Dict[str, Any]) -> Dict[str, Any]:
    token = os.environ.get(DRIVE_TOKEN_ENV)
    if token:
        settings["drive"]["access_token"] = token
    return settings


def _write_settings_report(working_dir: Path, *, unknown: List[str], invalid: List[str]) -> None:
    if not unknown and not invalid:
        return
    if invalid:
        LOGGER.warning("settings reset to defaults: %s", ", ".join(invalid))
    logs_dir = get_logs_dir(working_dir)
    payload = {
        "ts": datetime.now(timezone.utc).isoformat(),
        "unknown": unknown,
        "invalid": invalid,
    }
    try:
        logs_dir.mkdir(parents=True, exist_ok=True)
        with open(logs_dir / "settings_unknown.json", "w", encoding="utf-8") as handle:
            json.dump(payload, handle, ensure_ascii=False, indent=2)
    except OSError as exc:
        LOGGER.warning("settings report not written: %s", exc)


def _read_first(working_dir: Path) -> Dict[str, Any]:
    for candidate in get_default_settings_paths(working_dir):
        try:
            with open(candidate, "r", encoding="utf-8") as handle:
                loaded = json.load(handle)
        except FileNotFoundError:
            continue
        except (json.JSONDecodeError, OSError) as exc:
            LOGGER.warning("ignoring unreadable settings file %s: %s", candidate, exc)
            continue
        if isinstance(loaded, dict):
            return loaded
    return {}


def load_settings(working_dir: Path) -> Dict[str, Any]:
    merged = _apply_migrations(merge_defaults(_read_first(working_dir)))
    merged.setdefault("working_dir", str(working_dir))
    invalid = reset_invalid_values(merged)
    _write_settings_report(working_dir, unknown=SETTINGS_VALIDATOR.unknown_keys(merged), invalid=invalid)
    return _apply_environment(merged)


def save_settings(settings: Dict[str, Any], working_dir: Path) -> None:
    merged = _apply_migrations(merge_defaults(dict(settings)))
    merged.setdefault("working_dir", str(working_dir))
    path = working_dir / "settings.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(".json.tmp")
    with open(tmp_path, "w", encoding="utf-8") as handle:
        json.dump(merged, handle, ensure_ascii=False, indent=2)
    os.replace(tmp_path, path)


def update_settings(working_dir: Path, **values: Any) -> None:
    current = merge_defaults(_read_first(working_dir))
    for key, value in values.items():
        section = current.get(key)
        if isinstance(section, dict) and isinstance(value, dict):
            current[key] = {**section, **value}
        else:
            current[key] = value
    save_settings(current, working_dir)
