"""
In-process review API.

Maps the review endpoints onto controller calls, taking and returning
plain dicts validated by the pydantic models in srs.schemas. Any
transport (HTTP, RPC) can sit in front of this class.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import asdict
from datetime import datetime
from typing import Optional

from pydantic import ValidationError

from srs import scheduling
from srs.errors import EmptyQueue, InvalidRequest, SessionNotFound
from srs.scheduling import Rating
from srs.schemas import (
    CardStateResponse,
    IntervalPreviewResponse,
    RatingRequest,
    RatingResponse,
    SessionSummaryResponse,
    StartSessionRequest,
    StartSessionResponse,
)
from study.session_controller import ReviewSessionController
from study.session_types import ReviewSession, SessionSummary

logger = logging.getLogger(__name__)


def _validate(model, payload: Optional[dict]):
    try:
        return model.model_validate(payload or {})
    except ValidationError as exc:
        raise InvalidRequest(str(exc)) from exc


class ReviewService:
    """
    Registry of open sessions plus request/response mapping.
    """

    def __init__(self, controller: ReviewSessionController):
        self.controller = controller
        self._sessions: dict[str, ReviewSession] = {}
        self._lock = threading.Lock()

    def get_session(self, session_id: str) -> ReviewSession:
        with self._lock:
            try:
                return self._sessions[session_id]
            except KeyError:
                raise SessionNotFound(session_id) from None

    def start(self, payload: dict) -> dict:
        """POST /review-sessions"""
        request = _validate(StartSessionRequest, payload)
        try:
            session = self.controller.start_session(
                request.user_id,
                now=request.now,
                max_new_cards=request.max_new_cards,
                review_limit=request.review_limit,
            )
        except EmptyQueue:
            return StartSessionResponse(empty=True).model_dump(mode="json")

        with self._lock:
            self._sessions[session.session_id] = session

        return StartSessionResponse(
            session_id=session.session_id,
            status=session.status.value,
            queue_size=len(session.queue),
            current_card_id=session.current_card_id,
        ).model_dump(mode="json")

    def submit(self, session_id: str, payload: dict) -> dict:
        """
        POST /review-sessions/{id}/ratings

        A session whose queue runs out is closed here once its events are
        logged, and the response carries its summary. If logging failed the
        session stays open so end() can retry.
        """
        request = _validate(RatingRequest, payload)
        session = self.get_session(session_id)
        result = self.controller.submit_rating(
            session, request.card_id, request.rating, now=request.now
        )

        summary = None
        if session.is_completed and not session.pending_events:
            summary = self._summary_response(self.controller.summarize(session))
            self._close(session_id)

        return RatingResponse(
            card=CardStateResponse.from_state(result.updated_state),
            next_card_id=result.next_card_id,
            elapsed_ms=result.event.elapsed_ms,
            session_status=session.status.value,
            cards_completed=session.stats.cards_completed,
            cards_remaining=session.remaining,
            summary=summary,
        ).model_dump(mode="json")

    def preview(self, session_id: str, now: Optional[datetime] = None) -> Optional[dict]:
        """Projected intervals for the current card, or None when finished."""
        session = self.get_session(session_id)
        card = session.current_card
        if card is None:
            return None
        as_of = scheduling.ensure_utc(now if now is not None else self.controller.clock())
        intervals = scheduling.preview_intervals(card, as_of, self.controller.policy)
        return IntervalPreviewResponse(
            card_id=card.card_id,
            as_of=as_of,
            again=intervals[Rating.AGAIN],
            hard=intervals[Rating.HARD],
            good=intervals[Rating.GOOD],
            easy=intervals[Rating.EASY],
        ).model_dump(mode="json")

    def end(self, session_id: str) -> dict:
        """POST /review-sessions/{id}/end"""
        session = self.get_session(session_id)
        summary = self.controller.end_session(session)
        self._close(session_id)
        return self._summary_response(summary).model_dump(mode="json")

    # ---- Internals ----

    def _close(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)
        logger.info("Closed session %s", session_id)

    @staticmethod
    def _summary_response(summary: SessionSummary) -> SessionSummaryResponse:
        return SessionSummaryResponse(**asdict(summary))
