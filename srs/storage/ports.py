"""
Ports (interfaces) for card persistence.

These define the contract that storage adapters must implement.
The session controller depends on these abstractions, not concrete stores.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from srs.scheduling import CardMemoryState, ReviewEvent


@dataclass(frozen=True)
class DueCounts:
    """Per-user queue sizes: introduced cards due now, and unseen cards."""
    due: int
    new: int

    @property
    def total(self) -> int:
        return self.due + self.new


class CardRepository(ABC):
    """
    Port for loading and saving card memory state.

    Implementations:
        - InMemoryCardRepository: process-local dict, used by tests.
        - SqlCardRepository: SQLAlchemy table with a version column.
        - MongoCardRepository: pymongo collection with a version field.

    Every write is a compare-and-swap on ``version``; storage failures are
    raised as RepositoryUnavailable.
    """

    @abstractmethod
    def load_due_cards(
        self,
        user_id: str,
        now: datetime,
        limit: Optional[int] = None,
        max_new_cards: Optional[int] = None,
    ) -> list[CardMemoryState]:
        """
        Fetch the review queue for a user.

        Args:
            user_id: Owner of the cards.
            now: Cards with next_review_at <= now are due.
            limit: Maximum number of due (introduced) cards; None = no cap.
            max_new_cards: Maximum number of New cards appended; None = no cap.

        Returns:
            Due cards, soonest first, followed by New cards, oldest first.
        """

    @abstractmethod
    def save_card_state(
        self,
        card_id: str,
        expected_version: int,
        new_state: CardMemoryState,
    ) -> bool:
        """
        Atomically replace a card's state if its version still matches.

        The stored version becomes ``expected_version + 1``.

        Returns:
            True on success, False on a version conflict.

        Raises:
            CardNotFound: the card does not exist.
            RepositoryUnavailable: storage failure.
        """

    @abstractmethod
    def get_card_state(self, card_id: str) -> CardMemoryState:
        """
        Point read.

        Raises:
            CardNotFound: the card does not exist.
            RepositoryUnavailable: storage failure.
        """

    @abstractmethod
    def add_card(self, state: CardMemoryState) -> CardMemoryState:
        """
        Insert a card at version 0.

        Raises:
            DuplicateCard: a card with the same id exists.
        """

    @abstractmethod
    def count_due(self, user_id: str, now: datetime) -> DueCounts:
        """Count due and new cards for a user without loading them."""


class ReviewEventLog(ABC):
    """
    Port for the append-only review history.
    """

    @abstractmethod
    def append(self, events: list[ReviewEvent]) -> None:
        """Persist a batch of events in one write."""

    @abstractmethod
    def events_for_user(
        self,
        user_id: str,
        limit: Optional[int] = None,
    ) -> list[dict]:
        """
        Fetch logged events as flat dicts (see ReviewEvent.to_dict), newest first.
        """
