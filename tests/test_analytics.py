from datetime import timedelta

import pandas as pd
import pytest

from srs.analytics import build_review_report
from srs.analytics.queries import events_to_df
from srs.scheduling import Rating, new_card
from srs.storage import InMemoryReviewEventLog


@pytest.fixture
def reviewed_log(controller, repo, event_log, make_card, clock, t0):
    repo.add_card(make_card(card_id="r1"))
    repo.add_card(make_card(card_id="r2"))
    repo.add_card(new_card("n1", "u1", t0 - timedelta(days=1)))

    session = controller.start_session("u1")
    clock.advance(seconds=2)
    controller.submit_rating(session, "r1", Rating.GOOD)
    clock.advance(seconds=4)
    controller.submit_rating(session, "r2", Rating.AGAIN)
    clock.advance(seconds=6)
    controller.submit_rating(session, "n1", Rating.EASY)

    # Next day: r2 is due again after its lapse
    clock.advance(days=1)
    session = controller.start_session("u1")
    clock.advance(seconds=3)
    controller.submit_rating(session, "r2", Rating.GOOD)
    return event_log


def test_report_over_two_sessions(reviewed_log):
    report = build_review_report(reviewed_log, "u1")

    assert report.total_reviews == 4
    assert report.unique_cards == 3
    assert report.rating_counts == {"again": 1, "hard": 0, "good": 2, "easy": 1}
    assert report.mean_elapsed_ms == pytest.approx(3750)
    assert report.median_elapsed_ms == pytest.approx(3500)
    # Graduated reviews: r1 good, r2 again
    assert report.retention_rate == pytest.approx(0.5)
    assert list(report.daily_reviews) == [3, 1]
    assert len(report.sessions) == 2
    assert list(report.sessions["cards"]) == [3, 1]
    assert report.sessions["total_elapsed_ms"].iloc[0] == 12000


def test_report_for_unknown_user(reviewed_log):
    report = build_review_report(reviewed_log, "nobody")

    assert report.total_reviews == 0
    assert report.unique_cards == 0
    assert report.rating_counts == {"again": 0, "hard": 0, "good": 0, "easy": 0}
    assert report.retention_rate is None
    assert report.daily_reviews.empty
    assert report.sessions.empty


def test_retention_none_without_graduated_reviews(controller, repo, event_log, t0):
    repo.add_card(new_card("n1", "u1", t0))
    session = controller.start_session("u1")
    controller.submit_rating(session, "n1", Rating.GOOD)

    assert build_review_report(event_log, "u1").retention_rate is None


def test_events_to_df_sorts_oldest_first(t0):
    rows = [
        {
            "card_id": "b", "session_id": None, "rating": 3, "elapsed_ms": 10,
            "timestamp": t0 + timedelta(hours=1), "state_before": "new", "state_after": "learning",
        },
        {
            "card_id": "a", "session_id": None, "rating": 1, "elapsed_ms": 20,
            "timestamp": t0, "state_before": "reviewing", "state_after": "relearning",
        },
    ]

    df = events_to_df(rows)

    assert list(df["card_id"]) == ["a", "b"]
    assert df["day_utc"].iloc[0] == pd.Timestamp("2025-03-10", tz="UTC")


def test_report_limit_uses_newest_events(reviewed_log):
    report = build_review_report(reviewed_log, "u1", limit=1)

    assert report.total_reviews == 1
    assert report.rating_counts["good"] == 1


def test_empty_log():
    report = build_review_report(InMemoryReviewEventLog(), "u1")

    assert report.mean_elapsed_ms == 0
    assert report.total_reviews == 0
