"""
Review events - one record per submitted rating.

Events are kept for audit and analytics only; the card's memory state is
the source of truth for scheduling.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from srs.scheduling.constants import Rating
from srs.scheduling.memory_state import CardMemoryState


@dataclass(frozen=True)
class ReviewEvent:
    """
    A rating applied to a card, with before/after snapshots.
    """
    card_id: str
    user_id: str
    rating: Rating
    elapsed_ms: int  # Reveal -> rating
    timestamp: datetime
    previous: CardMemoryState
    updated: CardMemoryState
    session_id: Optional[str] = None
    session_position: Optional[int] = None

    @property
    def interval_before(self) -> float:
        return self.previous.interval_days

    @property
    def interval_after(self) -> float:
        return self.updated.interval_days

    @property
    def ease_before(self) -> float:
        return self.previous.ease_factor

    @property
    def ease_after(self) -> float:
        return self.updated.ease_factor

    @property
    def is_lapse(self) -> bool:
        return self.rating == Rating.AGAIN

    def to_dict(self) -> dict:
        """Flat row for logging tables and dataframes."""
        return {
            "card_id": self.card_id,
            "user_id": self.user_id,
            "session_id": self.session_id,
            "session_position": self.session_position,
            "rating": int(self.rating),
            "elapsed_ms": self.elapsed_ms,
            "timestamp": self.timestamp,
            "state_before": self.previous.state.value,
            "state_after": self.updated.state.value,
            "interval_before": self.interval_before,
            "interval_after": self.interval_after,
            "ease_before": self.ease_before,
            "ease_after": self.ease_after,
            "next_review_at": self.updated.next_review_at,
        }
