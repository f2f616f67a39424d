"""
Queue selection helpers shared by storage adapters (no I/O).
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from srs.scheduling import CardMemoryState, due_sort_key, is_due


def _cap(items: list[CardMemoryState], limit: Optional[int]) -> list[CardMemoryState]:
    if limit is None:
        return items
    if limit <= 0:
        return []
    return items[:limit]


def select_review_queue(
    cards: Iterable[CardMemoryState],
    now: datetime,
    limit: Optional[int] = None,
    max_new_cards: Optional[int] = None,
) -> list[CardMemoryState]:
    """
    Due cards soonest-first, then New cards oldest-first, each capped.
    """
    cards = list(cards)
    due = sorted((c for c in cards if is_due(c, now)), key=due_sort_key)
    new = sorted((c for c in cards if c.is_new), key=due_sort_key)
    return _cap(due, limit) + _cap(new, max_new_cards)


def validate_limits(limit: Optional[int], max_new_cards: Optional[int]) -> None:
    for name, value in (("limit", limit), ("max_new_cards", max_new_cards)):
        if value is not None and value < 0:
            raise ValueError(f"{name} must be non-negative, got {value}")
