"""Build and evaluate the subset of Drive search queries used by the engine."""
from __future__ import annotations

import re
from typing import List, Optional

from .types import DriveFile

_CLAUSE = re.compile(
    r"^\s*(?P<field>name|mimeType|trashed)\s+(?P<op>=|!=|contains)\s+(?P<value>'(?:[^'\\]|\\.)*'|true|false)\s*$"
)
_PARENT = re.compile(r"^\s*'(?P<value>(?:[^'\\]|\\.)*)'\s+in\s+parents\s*$")


def quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def _unquote(token: str) -> str:
    inner = token[1:-1]
    return re.sub(r"\\(.)", r"\1", inner)


def name_equals(name: str) -> str:
    return f"name = {quote(name)}"


def name_contains(text: str) -> str:
    return f"name contains {quote(text)}"


def mime_type_equals(mime_type: str) -> str:
    return f"mimeType = {quote(mime_type)}"


def in_parent(folder_id: str) -> str:
    return f"{quote(folder_id)} in parents"


def not_trashed() -> str:
    return "trashed = false"


def join(*clauses: Optional[str]) -> str:
    return " and ".join(clause for clause in clauses if clause)


def _split(query: str) -> List[str]:
    parts: List[str] = []
    current: List[str] = []
    in_quote = False
    escaped = False
    index = 0
    while index < len(query):
        char = query[index]
        if in_quote:
            current.append(char)
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == "'":
                in_quote = False
            index += 1
            continue
        if char == "'":
            in_quote = True
            current.append(char)
            index += 1
            continue
        if query[index : index + 5] == " and ":
            parts.append("".join(current))
            current = []
            index += 5
            continue
        current.append(char)
        index += 1
    parts.append("".join(current))
    return [part for part in parts if part.strip()]


def matches(query: Optional[str], item: DriveFile, *, parents: List[str], trashed: bool = False) -> bool:
    """Evaluate *query* against *item*; unsupported clauses raise ``ValueError``."""

    if not query:
        return True
    for clause in _split(query):
        parent = _PARENT.match(clause)
        if parent:
            if _unquote(f"'{parent.group('value')}'") not in parents:
                return False
            continue
        match = _CLAUSE.match(clause)
        if not match:
            raise ValueError(f"unsupported query clause: {clause!r}")
        field, op, token = match.group("field"), match.group("op"), match.group("value")
        if field == "trashed":
            actual: object = trashed
            expected: object = token == "true"
        else:
            actual = item.name if field == "name" else item.mime_type
            expected = _unquote(token)
        if op == "=" and actual != expected:
            return False
        if op == "!=" and actual == expected:
            return False
        if op == "contains" and str(expected) not in str(actual):
            return False
    return True


__all__ = [
    "in_parent",
    "join",
    "matches",
    "mime_type_equals",
    "name_contains",
    "name_equals",
    "not_trashed",
    "quote",
]
