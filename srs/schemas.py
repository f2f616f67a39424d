"""
Pydantic models for the caller-facing review API.

Request models validate incoming payloads; response models define the
JSON shape returned to clients:
    POST /review-sessions                  -> StartSessionRequest / StartSessionResponse
    POST /review-sessions/{id}/ratings     -> RatingRequest / RatingResponse
    POST /review-sessions/{id}/end         -> SessionSummaryResponse
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel, Field

from srs.scheduling import CardMemoryState, CardPhase


# ---- Requests ----

class StartSessionRequest(BaseModel):
    """Open a review session for a user."""
    user_id: str = Field(..., min_length=1, description="Owner of the cards")
    max_new_cards: Optional[int] = Field(None, ge=0, description="Cap on never-seen cards")
    review_limit: Optional[int] = Field(None, ge=0, description="Cap on due cards")
    now: Optional[datetime] = Field(None, description="As-of time for replay; defaults to the clock")


class RatingRequest(BaseModel):
    """Rate the card at the head of the session queue."""
    card_id: str = Field(..., min_length=1)
    # Range is checked by the scheduler so it surfaces as InvalidRating
    rating: Union[int, str] = Field(..., description="1=Again, 2=Hard, 3=Good, 4=Easy")
    now: Optional[datetime] = None


# ---- Responses ----

class CardStateResponse(BaseModel):
    """Public view of a card's memory state."""
    card_id: str
    state: CardPhase
    interval_days: float
    ease_factor: float
    repetitions: int
    times_reviewed: int
    lapses: int
    next_review_at: Optional[datetime] = None
    last_reviewed_at: Optional[datetime] = None
    graduated: bool
    version: int

    @classmethod
    def from_state(cls, card: CardMemoryState) -> CardStateResponse:
        return cls(
            card_id=card.card_id,
            state=card.state,
            interval_days=card.interval_days,
            ease_factor=card.ease_factor,
            repetitions=card.repetitions,
            times_reviewed=card.times_reviewed,
            lapses=card.lapses,
            next_review_at=card.next_review_at,
            last_reviewed_at=card.last_reviewed_at,
            graduated=card.graduated,
            version=card.version,
        )


class StartSessionResponse(BaseModel):
    """Result of opening a session; ``empty`` means there was nothing to study."""
    empty: bool = False
    session_id: Optional[str] = None
    status: Optional[str] = None
    queue_size: int = 0
    current_card_id: Optional[str] = None


class SessionSummaryResponse(BaseModel):
    session_id: str
    cards_completed: int
    total_elapsed_ms: int
    average_elapsed_ms: float
    cards_correct: int
    cards_failed: int
    accuracy: float
    cards_remaining: int
    ended_early: bool
    duration_seconds: Optional[float] = None


class RatingResponse(BaseModel):
    """Saved card state plus session progress; ``summary`` is set once the session closes."""
    card: CardStateResponse
    next_card_id: Optional[str] = None
    elapsed_ms: int
    session_status: str
    cards_completed: int
    cards_remaining: int
    summary: Optional[SessionSummaryResponse] = None


class IntervalPreviewResponse(BaseModel):
    """Projected interval in days for each answer button."""
    card_id: str
    as_of: datetime
    again: float
    hard: float
    good: float
    easy: float
