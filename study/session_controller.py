"""
Review session lifecycle: queue capture, rating submission, completion.

Control flow per card:
1. The card at the queue head is presented (presented_at recorded)
2. The caller submits a rating for that card
3. The card is scheduled and saved with a compare-and-swap on its version
4. On a version conflict the card is reloaded, rescheduled and saved once more
5. The session advances, or completes when the queue is exhausted

A failed save never advances the session, so a rating can be resubmitted
safely after a storage outage.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, Optional

from srs import config, scheduling
from srs.errors import (
    ConcurrentModification,
    EmptyQueue,
    InvalidSequence,
    RepositoryUnavailable,
)
from srs.scheduling import CardMemoryState, Rating, ReviewEvent, SchedulerPolicy
from srs.storage.ports import CardRepository, ReviewEventLog
from study.session_requests import (
    SessionRequest,
    default_session_request,
    normalize_session_request,
)
from study.session_types import (
    RatingResult,
    ReviewSession,
    SessionStatus,
    SessionSummary,
)
from study.timing import elapsed_ms

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ReviewSessionController:
    """
    Sequences due cards through a review pass.

    Holds no per-session state of its own, so one controller can serve any
    number of concurrent sessions; the repository is the only shared
    resource.
    """

    def __init__(
        self,
        repository: CardRepository,
        event_log: Optional[ReviewEventLog] = None,
        clock: Clock = utc_now,
        policy: Optional[SchedulerPolicy] = None,
        defaults: Optional[SessionRequest] = None,
    ):
        self.repository = repository
        self.event_log = event_log
        self.clock = clock
        self.policy = policy or config.load_policy()
        self.defaults = defaults or default_session_request()

    def _now(self, now: Optional[datetime]) -> datetime:
        return scheduling.ensure_utc(now if now is not None else self.clock())

    # ---- Lifecycle ----

    def start_session(
        self,
        user_id: str,
        now: Optional[datetime] = None,
        max_new_cards: Optional[int] = None,
        review_limit: Optional[int] = None,
    ) -> ReviewSession:
        """
        Capture the review queue and open a session.

        The first card counts as presented at ``now``.

        Raises:
            EmptyQueue: nothing is due and no new cards are available
            RepositoryUnavailable: the queue could not be loaded
        """
        now = self._now(now)
        request = normalize_session_request(self.defaults, max_new_cards, review_limit)

        cards = self.repository.load_due_cards(
            user_id,
            now,
            limit=request.review_limit,
            max_new_cards=request.max_new_cards,
        )
        if not cards:
            logger.info("No cards to review for user %s", user_id)
            raise EmptyQueue(user_id)

        by_id: dict[str, CardMemoryState] = {}
        for card in cards:
            by_id.setdefault(card.card_id, card)

        session = ReviewSession(
            session_id=str(uuid.uuid4()),
            user_id=user_id,
            queue=tuple(by_id),
            cards=by_id,
            started_at=now,
            presented_at=now,
        )
        new_count = sum(1 for card in by_id.values() if card.is_new)
        logger.info(
            "Started session %s for user %s: %d cards (%d new)",
            session.session_id, user_id, len(session.queue), new_count,
        )
        return session

    def present_card(
        self,
        session: ReviewSession,
        now: Optional[datetime] = None,
    ) -> Optional[str]:
        """
        Mark the current card as shown to the learner.

        Resets the card's timer so elapsed time is measured from the actual
        reveal. Returns the presented card id, or None for a finished session.
        """
        card_id = session.current_card_id
        if card_id is None:
            return None
        session.presented_at = self._now(now)
        session.status = SessionStatus.IN_PROGRESS
        return card_id

    def submit_rating(
        self,
        session: ReviewSession,
        card_id: str,
        rating: object,
        now: Optional[datetime] = None,
    ) -> RatingResult:
        """
        Rate the card at the queue head, persist it, and advance.

        Raises:
            InvalidSequence: card_id is not the current card, or the session
                has completed (session unchanged)
            InvalidRating: rating is outside 1-4 (session unchanged)
            ConcurrentModification: version conflict survived the retry
            RepositoryUnavailable: storage failure (session unchanged)
        """
        expected = session.current_card_id
        if card_id != expected:
            raise InvalidSequence(session.session_id, expected, card_id)

        grade = scheduling.parse_rating(rating)
        now = self._now(now)

        previous, updated = self._schedule_and_save(card_id, session.cards[card_id], grade, now)

        event = ReviewEvent(
            card_id=card_id,
            user_id=session.user_id,
            rating=grade,
            elapsed_ms=elapsed_ms(session.presented_at or now, now),
            timestamp=now,
            previous=previous,
            updated=updated,
            session_id=session.session_id,
            session_position=session.current_index,
        )

        session.cards[card_id] = updated
        session.pending_events.append(event)
        session.stats.record(event.elapsed_ms, grade)
        session.current_index += 1
        session.status = SessionStatus.IN_PROGRESS
        session.presented_at = now

        next_card_id = session.current_card_id
        if next_card_id is None:
            self._complete(session, now)

        return RatingResult(updated_state=updated, next_card_id=next_card_id, event=event)

    def end_session(
        self,
        session: ReviewSession,
        now: Optional[datetime] = None,
    ) -> SessionSummary:
        """
        Finish the session, dropping any cards not yet rated.

        Dropped cards are untouched and stay due for the next session.
        Safe to call more than once.

        Raises:
            RepositoryUnavailable: buffered events could not be logged
                (they stay buffered; call again to retry)
        """
        if not session.is_completed:
            if session.remaining > 0:
                logger.info(
                    "Session %s ended early with %d cards remaining",
                    session.session_id, session.remaining,
                )
            self._mark_completed(session, self._now(now))

        self._flush_events(session)
        return self.summarize(session)

    def summarize(self, session: ReviewSession) -> SessionSummary:
        """Current figures for a session (final once it has completed)."""
        stats = session.stats
        duration = None
        if session.ended_at is not None:
            duration = (session.ended_at - session.started_at).total_seconds()
        return SessionSummary(
            session_id=session.session_id,
            cards_completed=stats.cards_completed,
            total_elapsed_ms=stats.total_elapsed_ms,
            average_elapsed_ms=stats.average_elapsed_ms,
            cards_correct=stats.cards_correct,
            cards_failed=stats.cards_failed,
            accuracy=stats.accuracy,
            cards_remaining=session.remaining,
            ended_early=session.is_completed and session.remaining > 0,
            duration_seconds=duration,
        )

    # ---- Internals ----

    def _schedule_and_save(
        self,
        card_id: str,
        known: CardMemoryState,
        rating: Rating,
        now: datetime,
    ) -> tuple[CardMemoryState, CardMemoryState]:
        """
        Schedule and persist one rating; returns (state rated, saved state).
        """
        try:
            updated = scheduling.schedule(known, rating, now, self.policy)
            if self.repository.save_card_state(card_id, known.version, updated):
                return known, updated.with_version(known.version + 1)

            logger.warning(
                "Version conflict on card %s at version %d; reloading and retrying once",
                card_id, known.version,
            )
            fresh = self.repository.get_card_state(card_id)
            updated = scheduling.schedule(fresh, rating, now, self.policy)
            if self.repository.save_card_state(card_id, fresh.version, updated):
                return fresh, updated.with_version(fresh.version + 1)
        except RepositoryUnavailable:
            logger.error("Storage unavailable while saving card %s; session not advanced", card_id)
            raise

        raise ConcurrentModification(card_id, fresh.version)

    def _mark_completed(self, session: ReviewSession, now: datetime) -> None:
        session.status = SessionStatus.COMPLETED
        session.ended_at = now
        session.presented_at = None

    def _complete(self, session: ReviewSession, now: datetime) -> None:
        self._mark_completed(session, now)
        logger.info(
            "Session %s completed: %d cards in %d ms",
            session.session_id, session.stats.cards_completed, session.stats.total_elapsed_ms,
        )
        try:
            self._flush_events(session)
        except RepositoryUnavailable:
            # The rating itself is saved; events stay buffered for end_session
            logger.error(
                "Could not log %d events for session %s; will retry on end_session",
                len(session.pending_events), session.session_id,
            )

    def _flush_events(self, session: ReviewSession) -> None:
        if self.event_log is None:
            session.pending_events.clear()
            return
        if not session.pending_events:
            return
        self.event_log.append(list(session.pending_events))
        session.pending_events.clear()
