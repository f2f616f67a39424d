from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from srs.scheduling import CardMemoryState, CardPhase, new_card
from srs.scheduling.constants import GRADUATED_PHASES
from srs.storage import InMemoryCardRepository, InMemoryReviewEventLog, init_db
from study import ReviewSessionController, SessionRequest


T0 = datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Deterministic clock; advance() moves time forward."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def t0():
    return T0


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_card():
    """Factory for cards in any phase, defaulting to a due review card."""

    def _make(
        card_id="c1",
        user_id="u1",
        state=CardPhase.REVIEWING,
        interval_days=10.0,
        ease_factor=2.5,
        repetitions=3,
        times_reviewed=None,
        next_review_at=T0,
        last_reviewed_at=None,
        version=0,
        graduated=None,
    ):
        if state == CardPhase.NEW:
            return new_card(card_id, user_id, next_review_at)
        if times_reviewed is None:
            times_reviewed = repetitions
        if graduated is None:
            graduated = state in GRADUATED_PHASES
        if last_reviewed_at is None:
            last_reviewed_at = next_review_at - timedelta(days=interval_days)
        return CardMemoryState(
            card_id=card_id,
            user_id=user_id,
            state=state,
            interval_days=interval_days,
            ease_factor=ease_factor,
            repetitions=repetitions,
            times_reviewed=times_reviewed,
            next_review_at=next_review_at,
            last_reviewed_at=last_reviewed_at,
            graduated=graduated,
            version=version,
        )

    return _make


@pytest.fixture
def repo():
    return InMemoryCardRepository()


@pytest.fixture
def event_log():
    return InMemoryReviewEventLog()


@pytest.fixture
def controller(repo, event_log, clock):
    return ReviewSessionController(
        repo,
        event_log=event_log,
        clock=clock,
        defaults=SessionRequest(max_new_cards=20, review_limit=200),
    )


@pytest.fixture
def sql_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    engine.dispose()
