"""
Per-card timing and running session statistics.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from srs.scheduling import Rating, ensure_utc


def elapsed_ms(presented_at: datetime, rated_at: datetime) -> int:
    """
    Whole milliseconds between presenting a card and rating it.

    Clamped at 0 so a rating stamped before its reveal (clock skew between
    devices) never produces negative latency.
    """
    delta = ensure_utc(rated_at) - ensure_utc(presented_at)
    return max(0, int(delta.total_seconds() * 1000))


@dataclass
class SessionStats:
    """
    Running aggregate for one review session.
    """
    cards_completed: int = 0
    total_elapsed_ms: int = 0
    cards_correct: int = 0  # Good or Easy
    cards_failed: int = 0   # Again

    def record(self, elapsed: int, rating: Rating) -> None:
        self.cards_completed += 1
        self.total_elapsed_ms += elapsed
        if rating >= Rating.GOOD:
            self.cards_correct += 1
        elif rating == Rating.AGAIN:
            self.cards_failed += 1

    @property
    def average_elapsed_ms(self) -> float:
        if self.cards_completed == 0:
            return 0.0
        return self.total_elapsed_ms / self.cards_completed

    @property
    def accuracy(self) -> float:
        """Share of completed cards rated Good or Easy (0.0 - 1.0)."""
        if self.cards_completed == 0:
            return 0.0
        return self.cards_correct / self.cards_completed
