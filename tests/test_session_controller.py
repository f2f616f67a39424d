from datetime import timedelta

import pytest

from srs.errors import (
    ConcurrentModification,
    EmptyQueue,
    InvalidRating,
    InvalidSequence,
    RepositoryUnavailable,
)
from srs.scheduling import CardPhase, Rating, SchedulerPolicy, new_card, schedule
from srs.storage import InMemoryCardRepository, InMemoryReviewEventLog
from study import ReviewSessionController, SessionRequest, SessionStatus


class FlakyRepository(InMemoryCardRepository):
    """Fails the next N saves with a storage error."""

    def __init__(self, failures=1):
        super().__init__()
        self.failures = failures

    def save_card_state(self, card_id, expected_version, new_state):
        if self.failures:
            self.failures -= 1
            raise RepositoryUnavailable("database is down")
        return super().save_card_state(card_id, expected_version, new_state)


class AlwaysConflictingRepository(InMemoryCardRepository):
    """Every save loses the race."""

    def __init__(self):
        super().__init__()
        self.save_attempts = 0

    def save_card_state(self, card_id, expected_version, new_state):
        self.save_attempts += 1
        return False


class BrokenEventLog(InMemoryReviewEventLog):
    def __init__(self):
        super().__init__()
        self.broken = True

    def append(self, events):
        if self.broken:
            raise RepositoryUnavailable("log store is down")
        super().append(events)


@pytest.fixture
def stocked_repo(repo, make_card, t0):
    repo.add_card(make_card(card_id="r1", next_review_at=t0 - timedelta(days=1)))
    repo.add_card(make_card(card_id="r2", next_review_at=t0))
    repo.add_card(new_card("n1", "u1", t0 - timedelta(days=5)))
    return repo


def _controller(repo, clock, event_log=None):
    return ReviewSessionController(
        repo,
        event_log=event_log,
        clock=clock,
        defaults=SessionRequest(max_new_cards=20, review_limit=200),
    )


# ---- Starting ----

def test_start_session_captures_queue(controller, stocked_repo, t0):
    session = controller.start_session("u1")

    assert session.queue == ("r1", "r2", "n1")
    assert session.status == SessionStatus.CREATED
    assert session.current_card_id == "r1"
    assert session.started_at == t0
    assert session.presented_at == t0


def test_start_session_applies_caps(controller, stocked_repo):
    session = controller.start_session("u1", max_new_cards=0, review_limit=1)

    assert session.queue == ("r1",)


def test_start_session_uses_default_caps(stocked_repo, clock):
    controller = ReviewSessionController(
        stocked_repo, clock=clock, defaults=SessionRequest(max_new_cards=0, review_limit=1)
    )

    assert controller.start_session("u1").queue == ("r1",)


def test_start_session_empty_queue(controller, repo, make_card, t0):
    repo.add_card(make_card(next_review_at=t0 + timedelta(days=1)))

    with pytest.raises(EmptyQueue):
        controller.start_session("u1")


def test_queue_is_fixed_at_start(controller, stocked_repo, make_card, clock, t0):
    session = controller.start_session("u1")
    stocked_repo.add_card(make_card(card_id="late-arrival", next_review_at=t0))

    assert "late-arrival" not in session.queue


# ---- Submitting ----

def test_submit_rating_advances_and_persists(controller, stocked_repo, t0):
    session = controller.start_session("u1")

    result = controller.submit_rating(session, "r1", Rating.GOOD)

    assert result.next_card_id == "r2"
    assert result.updated_state.interval_days == 25
    assert result.updated_state.version == 1
    assert session.current_index == 1
    assert session.status == SessionStatus.IN_PROGRESS
    assert stocked_repo.get_card_state("r1").version == 1
    assert stocked_repo.get_card_state("r1").next_review_at == t0 + timedelta(days=25)


def test_submit_accepts_raw_rating_values(controller, stocked_repo):
    session = controller.start_session("u1")

    result = controller.submit_rating(session, "r1", 4)

    assert result.event.rating == Rating.EASY


def test_full_pass_completes_session(controller, stocked_repo, event_log, clock):
    session = controller.start_session("u1")

    controller.submit_rating(session, "r1", Rating.GOOD)
    controller.submit_rating(session, "r2", Rating.AGAIN)
    result = controller.submit_rating(session, "n1", Rating.EASY)

    assert result.next_card_id is None
    assert session.status == SessionStatus.COMPLETED
    assert session.current_card_id is None
    assert stocked_repo.get_card_state("n1").state == CardPhase.REVIEWING
    assert stocked_repo.get_card_state("r2").state == CardPhase.RELEARNING
    assert len(event_log.events_for_user("u1")) == 3
    assert session.pending_events == []


def test_out_of_order_submission_rejected(controller, stocked_repo):
    session = controller.start_session("u1")

    with pytest.raises(InvalidSequence) as excinfo:
        controller.submit_rating(session, "r2", Rating.GOOD)

    assert excinfo.value.expected == "r1"
    assert session.current_index == 0
    assert stocked_repo.get_card_state("r2").version == 0


def test_duplicate_submission_rejected(controller, stocked_repo):
    session = controller.start_session("u1")
    controller.submit_rating(session, "r1", Rating.GOOD)

    with pytest.raises(InvalidSequence):
        controller.submit_rating(session, "r1", Rating.GOOD)

    assert session.current_index == 1
    assert stocked_repo.get_card_state("r1").times_reviewed == 4


def test_submission_after_completion_rejected(controller, stocked_repo):
    session = controller.start_session("u1", max_new_cards=0, review_limit=1)
    controller.submit_rating(session, "r1", Rating.GOOD)

    with pytest.raises(InvalidSequence):
        controller.submit_rating(session, "r2", Rating.GOOD)


def test_invalid_rating_leaves_session_unchanged(controller, stocked_repo):
    session = controller.start_session("u1")

    with pytest.raises(InvalidRating):
        controller.submit_rating(session, "r1", 7)

    assert session.current_index == 0
    assert session.stats.cards_completed == 0
    assert stocked_repo.get_card_state("r1").version == 0


def test_storage_failure_does_not_advance(make_card, clock, t0):
    repo = FlakyRepository(failures=1)
    repo.add_card(make_card(card_id="r1"))
    controller = _controller(repo, clock)
    session = controller.start_session("u1")

    with pytest.raises(RepositoryUnavailable):
        controller.submit_rating(session, "r1", Rating.GOOD)

    assert session.current_index == 0
    assert session.stats.cards_completed == 0
    assert repo.get_card_state("r1").version == 0

    result = controller.submit_rating(session, "r1", Rating.GOOD)

    assert result.updated_state.version == 1
    assert session.status == SessionStatus.COMPLETED


def test_version_conflict_retries_against_fresh_state(controller, stocked_repo, t0):
    session = controller.start_session("u1")
    # Another device reviews r1 after this session captured it
    other = schedule(stocked_repo.get_card_state("r1"), Rating.HARD, t0)
    assert stocked_repo.save_card_state("r1", 0, other)

    result = controller.submit_rating(session, "r1", Rating.GOOD)

    stored = stocked_repo.get_card_state("r1")
    assert stored.version == 2
    assert stored.times_reviewed == 5
    assert result.event.previous.version == 1
    assert result.updated_state == stored
    assert session.current_index == 1


def test_persistent_conflict_raises(make_card, clock):
    repo = AlwaysConflictingRepository()
    repo.add_card(make_card(card_id="r1"))
    controller = _controller(repo, clock)
    session = controller.start_session("u1")

    with pytest.raises(ConcurrentModification):
        controller.submit_rating(session, "r1", Rating.GOOD)

    assert repo.save_attempts == 2
    assert session.current_index == 0


# ---- Timing ----

def test_elapsed_time_measured_from_presentation(controller, stocked_repo, clock):
    session = controller.start_session("u1")

    clock.advance(milliseconds=1500)
    first = controller.submit_rating(session, "r1", Rating.GOOD)
    clock.advance(seconds=10)
    controller.present_card(session)
    clock.advance(milliseconds=2500)
    second = controller.submit_rating(session, "r2", Rating.GOOD)

    assert first.event.elapsed_ms == 1500
    assert second.event.elapsed_ms == 2500
    assert session.stats.total_elapsed_ms == 4000


def test_present_card_marks_in_progress(controller, stocked_repo):
    session = controller.start_session("u1")

    assert controller.present_card(session) == "r1"
    assert session.status == SessionStatus.IN_PROGRESS


def test_explicit_now_overrides_clock(controller, stocked_repo, t0):
    session = controller.start_session("u1", now=t0)

    result = controller.submit_rating(session, "r1", Rating.GOOD, now=t0 + timedelta(seconds=3))

    assert result.event.elapsed_ms == 3000
    assert result.updated_state.last_reviewed_at == t0 + timedelta(seconds=3)


# ---- Ending ----

def test_end_session_early(controller, stocked_repo, event_log, clock, t0):
    session = controller.start_session("u1")
    clock.advance(seconds=4)
    controller.submit_rating(session, "r1", Rating.GOOD)
    clock.advance(seconds=6)

    summary = controller.end_session(session)

    assert session.status == SessionStatus.COMPLETED
    assert summary.cards_completed == 1
    assert summary.total_elapsed_ms == 4000
    assert summary.average_elapsed_ms == 4000
    assert summary.cards_remaining == 2
    assert summary.ended_early is True
    assert summary.duration_seconds == 10
    # Dropped cards are untouched and remain due
    assert stocked_repo.get_card_state("r2").version == 0
    assert [c.card_id for c in stocked_repo.load_due_cards("u1", clock())][:1] == ["r2"]
    assert len(event_log.events_for_user("u1")) == 1


def test_end_session_is_idempotent(controller, stocked_repo, clock):
    session = controller.start_session("u1")
    controller.submit_rating(session, "r1", Rating.GOOD)

    first = controller.end_session(session)
    clock.advance(minutes=5)
    second = controller.end_session(session)

    assert first == second


def test_end_session_without_ratings(controller, stocked_repo):
    session = controller.start_session("u1")

    summary = controller.end_session(session)

    assert summary.cards_completed == 0
    assert summary.average_elapsed_ms == 0
    assert summary.accuracy == 0
    assert summary.ended_early is True


def test_summary_counts_correct_and_failed(controller, stocked_repo):
    session = controller.start_session("u1")
    controller.submit_rating(session, "r1", Rating.GOOD)
    controller.submit_rating(session, "r2", Rating.AGAIN)
    controller.submit_rating(session, "n1", Rating.HARD)

    summary = controller.end_session(session)

    assert summary.cards_correct == 1
    assert summary.cards_failed == 1
    assert summary.accuracy == pytest.approx(1 / 3)
    assert summary.ended_early is False
    assert summary.cards_remaining == 0


def test_event_log_failure_is_retried_on_end(stocked_repo, clock):
    log = BrokenEventLog()
    controller = _controller(stocked_repo, clock, event_log=log)
    session = controller.start_session("u1", max_new_cards=0, review_limit=1)

    result = controller.submit_rating(session, "r1", Rating.GOOD)

    assert result.next_card_id is None
    assert session.status == SessionStatus.COMPLETED
    assert len(session.pending_events) == 1

    with pytest.raises(RepositoryUnavailable):
        controller.end_session(session)
    assert len(session.pending_events) == 1

    log.broken = False
    controller.end_session(session)

    assert session.pending_events == []
    assert len(log.events_for_user("u1")) == 1


def test_policy_overrides_come_from_environment(monkeypatch, repo, make_card, clock):
    monkeypatch.setenv("SRS_LAPSE_EASE_PENALTY", "0.5")
    repo.add_card(make_card(card_id="r1", ease_factor=2.5))
    controller = _controller(repo, clock)
    session = controller.start_session("u1")

    result = controller.submit_rating(session, "r1", Rating.AGAIN)

    assert controller.policy.lapse_ease_penalty == pytest.approx(0.5)
    assert result.updated_state.ease_factor == pytest.approx(2.0)


def test_explicit_policy_wins_over_environment(monkeypatch, repo, clock):
    monkeypatch.setenv("SRS_LAPSE_EASE_PENALTY", "0.5")
    policy = SchedulerPolicy(lapse_ease_penalty=0.1)

    controller = ReviewSessionController(repo, clock=clock, policy=policy)

    assert controller.policy is policy
