from datetime import datetime, timedelta

import pytest

from srs.scheduling import Rating
from study.timing import SessionStats, elapsed_ms


def test_elapsed_ms_whole_milliseconds(t0):
    assert elapsed_ms(t0, t0 + timedelta(seconds=2, microseconds=1500)) == 2001


def test_elapsed_ms_clamps_clock_skew(t0):
    assert elapsed_ms(t0, t0 - timedelta(seconds=1)) == 0


def test_elapsed_ms_accepts_naive_times(t0):
    naive = datetime(2025, 3, 10, 9, 0, 1)

    assert elapsed_ms(t0, naive) == 1000


def test_session_stats_running_totals():
    stats = SessionStats()
    stats.record(1000, Rating.GOOD)
    stats.record(3000, Rating.AGAIN)
    stats.record(2000, Rating.HARD)
    stats.record(2000, Rating.EASY)

    assert stats.cards_completed == 4
    assert stats.total_elapsed_ms == 8000
    assert stats.average_elapsed_ms == 2000
    assert stats.cards_correct == 2
    assert stats.cards_failed == 1
    assert stats.accuracy == pytest.approx(0.5)


def test_empty_stats():
    stats = SessionStats()

    assert stats.average_elapsed_ms == 0
    assert stats.accuracy == 0
