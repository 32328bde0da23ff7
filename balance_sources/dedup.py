"""
Deduplication - Collapse repeated accounts within one decode pass.
"""

from typing import Callable, Hashable, Iterable, TypeVar

from balance_sources.models import CanonicalBalanceRecord


T = TypeVar("T")


def deduplicate(items: Iterable[T], key: Callable[[T], Hashable]) -> list[T]:
    """Keep the first occurrence of every key, preserving order of first appearance."""
    seen: set[Hashable] = set()
    result: list[T] = []
    for item in items:
        marker = key(item)
        if marker in seen:
            continue
        seen.add(marker)
        result.append(item)
    return result


def deduplicate_records(records: Iterable[CanonicalBalanceRecord]) -> list[CanonicalBalanceRecord]:
    return deduplicate(records, key=lambda record: record.identifier)
