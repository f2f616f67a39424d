"""
Review sessions: queue sequencing, rating submission and session metrics.
"""

from study.session_controller import ReviewSessionController, utc_now
from study.session_requests import SessionRequest, default_session_request
from study.session_types import (
    RatingResult,
    ReviewSession,
    SessionStatus,
    SessionSummary,
)
from study.service import ReviewService

__all__ = [
    "ReviewSessionController",
    "ReviewService",
    "ReviewSession",
    "RatingResult",
    "SessionRequest",
    "SessionStatus",
    "SessionSummary",
    "default_session_request",
    "utc_now",
]
