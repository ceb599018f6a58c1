from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class SlowLogEntry:
    id: int
    timestamp: float
    duration_us: int
    command: str
    args: tuple[str, ...] = ()


_SLOWLOG_SORT_KEYS: dict[str, Callable[[SlowLogEntry], Any]] = {
    "id": lambda entry: entry.id,
    "timestamp": lambda entry: entry.timestamp,
    "duration": lambda entry: entry.duration_us,
    "command": lambda entry: entry.command,
}


def sort_slow_log(entries: Iterable[SlowLogEntry], by: str = "timestamp") -> list[SlowLogEntry]:
    """Return entries sorted descending by ``by``; unknown keys fall back to ``id``."""

    sort_key = _SLOWLOG_SORT_KEYS.get(by, _SLOWLOG_SORT_KEYS["id"])
    return sorted(entries, key=sort_key, reverse=True)


__all__ = ["SlowLogEntry", "sort_slow_log"]
