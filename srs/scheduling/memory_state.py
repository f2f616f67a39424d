"""
Memory State - Card Review Record

Defines the per-card memory state the scheduler reads and writes, plus
small helpers for due checks and queue ordering.

Key concepts:
- Interval: days until the next scheduled review
- Ease factor: multiplier governing long-term interval growth
- Version: optimistic-concurrency counter owned by the repository
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Optional

from srs.scheduling.constants import (
    DEFAULT_POLICY,
    CardPhase,
    SchedulerPolicy,
)


@dataclass(frozen=True)
class CardMemoryState:
    """
    Memory state for a single flashcard.

    Instances are immutable; the scheduler returns a new one per review and
    only the repository bumps ``version``.
    """
    card_id: str
    user_id: str

    # Lifecycle
    state: CardPhase = CardPhase.NEW
    interval_days: float = 0.0
    ease_factor: float = DEFAULT_POLICY.initial_ease
    repetitions: int = 0  # Consecutive successes since the last lapse

    # Review tracking
    times_reviewed: int = 0  # Never reset
    lapses: int = 0          # Total Again ratings
    next_review_at: Optional[datetime] = None
    last_reviewed_at: Optional[datetime] = None

    # Set on first reaching Reviewing; never cleared
    graduated: bool = False

    # Optimistic concurrency
    version: int = 0

    # Optional deck scope
    deck_id: Optional[str] = None

    @property
    def is_new(self) -> bool:
        return self.state == CardPhase.NEW

    @property
    def has_graduated(self) -> bool:
        """True once the card has reached the Reviewing phase at least once."""
        return self.graduated

    def with_version(self, version: int) -> CardMemoryState:
        return replace(self, version=version)


def ensure_utc(value: datetime) -> datetime:
    """
    Normalize a timestamp to an aware UTC datetime.

    Naive values are assumed to already be UTC (SQLite drops tzinfo).
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def new_card(
    card_id: str,
    user_id: str,
    now: datetime,
    deck_id: Optional[str] = None,
    policy: SchedulerPolicy = DEFAULT_POLICY
) -> CardMemoryState:
    """
    Initialize state for a card that has never been reviewed.

    ``next_review_at`` records the creation time, which orders new cards
    oldest-first when a session introduces them.
    """
    return CardMemoryState(
        card_id=card_id,
        user_id=user_id,
        deck_id=deck_id,
        state=CardPhase.NEW,
        interval_days=0.0,
        ease_factor=policy.initial_ease,
        repetitions=0,
        times_reviewed=0,
        lapses=0,
        next_review_at=ensure_utc(now),
        last_reviewed_at=None,
        graduated=False,
        version=0,
    )


def is_due(card: CardMemoryState, now: datetime) -> bool:
    """
    True when an introduced card's review date has arrived.

    New cards are never "due"; sessions pick them up separately.
    """
    if card.is_new or card.next_review_at is None:
        return False
    return ensure_utc(now) >= ensure_utc(card.next_review_at)


def due_sort_key(card: CardMemoryState) -> tuple[datetime, str]:
    """Due-soonest-first, ties broken by card id for a stable queue."""
    when = card.next_review_at or datetime.min.replace(tzinfo=timezone.utc)
    return (ensure_utc(when), card.card_id)


def review_due_at(reviewed_at: datetime, interval_days: float) -> datetime:
    return ensure_utc(reviewed_at) + timedelta(days=interval_days)
