"""In-process counters keyed by dotted names (``importer.rollback``, ...)."""

from __future__ import annotations

from collections import Counter

_counts: Counter[str] = Counter()


def inc_counter(name: str, value: int = 1) -> None:
    _counts[name] += value


def get_counter(name: str) -> int:
    return _counts[name]


def reset_counters() -> None:
    _counts.clear()


def get_counters() -> dict[str, int]:
    return dict(_counts)
