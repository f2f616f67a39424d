"""
Constants for review analytics.
"""

from __future__ import annotations

from typing import Final

from srs.scheduling import CardPhase, Rating


EVENT_COLUMNS: Final[list[str]] = [
    "card_id",
    "session_id",
    "rating",
    "elapsed_ms",
    "timestamp",
    "state_before",
    "state_after",
]

RATING_LABELS: Final[dict[int, str]] = {
    int(Rating.AGAIN): "again",
    int(Rating.HARD): "hard",
    int(Rating.GOOD): "good",
    int(Rating.EASY): "easy",
}

# Reviews of these cards count toward retention (recall of graduated material)
RETENTION_STATES: Final[list[str]] = [CardPhase.REVIEWING.value]
