"""
Service layer to assemble a user's review report.
"""

from __future__ import annotations

from typing import Optional

from srs.analytics.metrics import (
    build_day_index,
    compute_daily_reviews,
    compute_latency_stats,
    compute_rating_counts,
    compute_retention_rate,
    compute_session_totals,
)
from srs.analytics.queries import load_review_events_df
from srs.analytics.types import ReviewReport
from srs.storage.ports import ReviewEventLog


def build_review_report(
    event_log: ReviewEventLog,
    user_id: str,
    limit: Optional[int] = None
) -> ReviewReport:
    """
    Build all review metrics for a user from the event log.
    """
    events_df = load_review_events_df(event_log, user_id, limit=limit)
    day_index = build_day_index(events_df)
    mean_elapsed, median_elapsed = compute_latency_stats(events_df)

    return ReviewReport(
        user_id=user_id,
        total_reviews=int(len(events_df)),
        unique_cards=int(events_df["card_id"].nunique()) if not events_df.empty else 0,
        rating_counts=compute_rating_counts(events_df),
        mean_elapsed_ms=mean_elapsed,
        median_elapsed_ms=median_elapsed,
        retention_rate=compute_retention_rate(events_df),
        daily_reviews=compute_daily_reviews(events_df, day_index),
        sessions=compute_session_totals(events_df),
    )
