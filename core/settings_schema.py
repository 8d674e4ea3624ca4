from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Tuple

_NUMBER: Tuple[type, ...] = (int, float)
_TEXT: Tuple[type, ...] = (str,)
_OPTIONAL_TEXT: Tuple[type, ...] = (str, type(None))

# section -> field -> accepted types; ``None`` marks a free-form top-level key
_ALLOWED_STRUCTURE: Mapping[str, Any] = {
    "backup": {
        "enable": (bool,),
        "interval_hours": _NUMBER,
        "initial_delay_s": _NUMBER,
        "local_keep": (int,),
        "remote_keep": (int,),
        "remote_folder": _TEXT,
        "file_prefix": _TEXT,
    },
    "drive": {
        "client_id": _OPTIONAL_TEXT,
        "client_secret": _OPTIONAL_TEXT,
        "refresh_token": _OPTIONAL_TEXT,
        "access_token": _OPTIONAL_TEXT,
        "timeout_s": _NUMBER,
        "api_url": _TEXT,
        "upload_url": _TEXT,
        "discovery_url": _OPTIONAL_TEXT,
        "token_url": _TEXT,
        "revoke_url": _OPTIONAL_TEXT,
    },
    "working_dir": None,
    "version": None,
}


# dotted field -> (minimum, minimum itself allowed)
_LOWER_BOUNDS: Mapping[str, Tuple[float, bool]] = {
    "backup.interval_hours": (0, False),
    "backup.initial_delay_s": (0, True),
    "backup.local_keep": (1, True),
    "backup.remote_keep": (1, True),
    "drive.timeout_s": (0, False),
}


def _accepts(expected: Tuple[type, ...], value: Any) -> bool:
    if isinstance(value, bool) and bool not in expected:
        return False
    return isinstance(value, expected)


def _in_bounds(dotted: str, value: Any) -> bool:
    bound = _LOWER_BOUNDS.get(dotted)
    if bound is None:
        return True
    minimum, inclusive = bound
    return value >= minimum if inclusive else value > minimum


@dataclass(slots=True)
class SettingsValidator:
    schema: Mapping[str, Any]

    def unknown_keys(self, payload: Mapping[str, Any]) -> List[str]:
        found: List[str] = []
        for key, value in payload.items():
            if key not in self.schema:
                found.append(key)
                continue
            rules = self.schema[key]
            if isinstance(rules, Mapping) and isinstance(value, Mapping):
                found.extend(f"{key}.{sub}" for sub in value if sub not in rules)
        return sorted(found)

    def invalid_values(self, payload: Mapping[str, Any]) -> List[str]:
        return sorted(self._iter_invalid(payload))

    def _iter_invalid(self, payload: Mapping[str, Any]) -> Iterable[str]:
        for section, rules in self.schema.items():
            if not isinstance(rules, Mapping) or section not in payload:
                continue
            block = payload[section]
            if not isinstance(block, Mapping):
                yield section
                continue
            for field, expected in rules.items():
                if field not in block:
                    continue
                dotted = f"{section}.{field}"
                if not _accepts(expected, block[field]) or not _in_bounds(dotted, block[field]):
                    yield dotted


SETTINGS_VALIDATOR = SettingsValidator(_ALLOWED_STRUCTURE)

__all__ = ["SETTINGS_VALIDATOR", "SettingsValidator"]
