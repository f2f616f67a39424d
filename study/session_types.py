"""
Session types used by the review session controller.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from srs.scheduling import CardMemoryState, ReviewEvent
from study.timing import SessionStats


class SessionStatus(str, Enum):
    """Lifecycle of a review session."""
    CREATED = "created"          # Queue captured, nothing rated or revealed yet
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"      # Queue exhausted or ended by the caller


@dataclass
class ReviewSession:
    """
    One bounded pass through a fixed queue of due and new cards.

    The queue is captured at start; cards that become due mid-session are
    not injected. Not thread-safe: submit one rating at a time.
    """
    session_id: str
    user_id: str
    queue: tuple[str, ...]
    cards: dict[str, CardMemoryState]  # Last-known state per card
    started_at: datetime
    current_index: int = 0
    status: SessionStatus = SessionStatus.CREATED
    presented_at: Optional[datetime] = None  # Reveal time of the current card
    ended_at: Optional[datetime] = None
    stats: SessionStats = field(default_factory=SessionStats)
    pending_events: list[ReviewEvent] = field(default_factory=list)

    @property
    def current_card_id(self) -> Optional[str]:
        if self.status == SessionStatus.COMPLETED:
            return None
        if self.current_index >= len(self.queue):
            return None
        return self.queue[self.current_index]

    @property
    def current_card(self) -> Optional[CardMemoryState]:
        card_id = self.current_card_id
        return self.cards[card_id] if card_id is not None else None

    @property
    def remaining(self) -> int:
        return len(self.queue) - self.current_index

    @property
    def is_completed(self) -> bool:
        return self.status == SessionStatus.COMPLETED


@dataclass(frozen=True)
class RatingResult:
    """
    Outcome of a successful rating submission.
    """
    updated_state: CardMemoryState
    next_card_id: Optional[str]
    event: ReviewEvent


@dataclass(frozen=True)
class SessionSummary:
    """
    Final (or in-flight) figures for a review session.
    """
    session_id: str
    cards_completed: int
    total_elapsed_ms: int
    average_elapsed_ms: float
    cards_correct: int
    cards_failed: int
    accuracy: float
    cards_remaining: int
    ended_early: bool
    duration_seconds: Optional[float]
