"""Count based retention policy shared by the local and remote tiers."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, List, Mapping, Sequence, Tuple, TypeVar

T = TypeVar("T")


@dataclass(slots=True)
class RetentionPolicy:
    local_keep: int = 7
    remote_keep: int = 30

    @classmethod
    def from_settings(cls, backup_settings: Mapping[str, Any]) -> "RetentionPolicy":
        return cls(
            local_keep=int(backup_settings.get("local_keep", 7) or 0),
            remote_keep=int(backup_settings.get("remote_keep", 30) or 0),
        )


def split_retained(items: Sequence[T], keep: int, *, key: Callable[[T], Any]) -> Tuple[List[T], List[T]]:
    """Order *items* newest first by *key* and split into ``(kept, evicted)``."""

    ordered = sorted(items, key=key, reverse=True)
    limit = max(keep, 0)
    return ordered[:limit], ordered[limit:]


__all__ = ["RetentionPolicy", "split_retained"]
