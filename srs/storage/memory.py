"""
In-memory storage adapters.

Process-local implementations of the storage ports, used by tests and by
callers that run the scheduler in-process. A single lock serializes all
access, so the compare-and-swap is atomic across threads.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from datetime import datetime
from typing import Iterable, Optional

from srs.errors import CardNotFound, DuplicateCard
from srs.scheduling import CardMemoryState, ReviewEvent, is_due
from srs.storage.ports import CardRepository, DueCounts, ReviewEventLog
from srs.storage.selection import select_review_queue, validate_limits

logger = logging.getLogger(__name__)


class InMemoryCardRepository(CardRepository):
    """Dict-backed card repository with versioned writes."""

    def __init__(self, cards: Optional[Iterable[CardMemoryState]] = None):
        self._cards: dict[str, CardMemoryState] = {}
        self._lock = threading.Lock()
        for card in cards or ():
            self.add_card(card)

    def __len__(self) -> int:
        with self._lock:
            return len(self._cards)

    def add_card(self, state: CardMemoryState) -> CardMemoryState:
        with self._lock:
            if state.card_id in self._cards:
                raise DuplicateCard(state.card_id)
            stored = state.with_version(0)
            self._cards[state.card_id] = stored
            return stored

    def get_card_state(self, card_id: str) -> CardMemoryState:
        with self._lock:
            try:
                return self._cards[card_id]
            except KeyError:
                raise CardNotFound(card_id) from None

    def save_card_state(
        self,
        card_id: str,
        expected_version: int,
        new_state: CardMemoryState,
    ) -> bool:
        with self._lock:
            current = self._cards.get(card_id)
            if current is None:
                raise CardNotFound(card_id)
            if current.version != expected_version:
                logger.debug(
                    "Version conflict on %s: expected %d, stored %d",
                    card_id, expected_version, current.version,
                )
                return False
            self._cards[card_id] = replace(
                new_state,
                card_id=card_id,
                user_id=current.user_id,
                version=expected_version + 1,
            )
            return True

    def load_due_cards(
        self,
        user_id: str,
        now: datetime,
        limit: Optional[int] = None,
        max_new_cards: Optional[int] = None,
    ) -> list[CardMemoryState]:
        validate_limits(limit, max_new_cards)
        with self._lock:
            owned = [c for c in self._cards.values() if c.user_id == user_id]
        return select_review_queue(owned, now, limit, max_new_cards)

    def count_due(self, user_id: str, now: datetime) -> DueCounts:
        with self._lock:
            owned = [c for c in self._cards.values() if c.user_id == user_id]
        return DueCounts(
            due=sum(1 for c in owned if is_due(c, now)),
            new=sum(1 for c in owned if c.is_new),
        )


class InMemoryReviewEventLog(ReviewEventLog):
    """List-backed review history."""

    def __init__(self):
        self._events: list[ReviewEvent] = []
        self._lock = threading.Lock()

    def append(self, events: list[ReviewEvent]) -> None:
        if not events:
            return
        with self._lock:
            self._events.extend(events)

    def events_for_user(
        self,
        user_id: str,
        limit: Optional[int] = None,
    ) -> list[dict]:
        with self._lock:
            owned = [e for e in reversed(self._events) if e.user_id == user_id]
        # Newest first; equal timestamps keep latest-appended first
        owned.sort(key=lambda e: e.timestamp, reverse=True)
        if limit is not None:
            owned = owned[:limit]
        return [e.to_dict() for e in owned]
