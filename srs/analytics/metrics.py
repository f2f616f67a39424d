"""
Metric computations over review-event dataframes.
"""

from __future__ import annotations

from typing import Optional

import pandas as pd

from srs.analytics.constants import RATING_LABELS, RETENTION_STATES
from srs.scheduling import Rating


def build_day_index(events_df: pd.DataFrame) -> pd.DatetimeIndex:
    """
    Build a dense UTC day index spanning the event range.
    """
    if events_df.empty:
        return pd.DatetimeIndex([], tz="UTC")
    start = events_df["day_utc"].min()
    end = events_df["day_utc"].max()
    return pd.date_range(start=start, end=end, freq="D")


def compute_rating_counts(events_df: pd.DataFrame) -> dict[str, int]:
    """
    Number of reviews per rating, with zeros for unused ratings.
    """
    counts = {label: 0 for label in RATING_LABELS.values()}
    if events_df.empty:
        return counts
    for rating, count in events_df["rating"].value_counts().items():
        label = RATING_LABELS.get(int(rating))
        if label is not None:
            counts[label] = int(count)
    return counts


def compute_latency_stats(events_df: pd.DataFrame) -> tuple[float, float]:
    """
    Mean and median reveal-to-rating time in milliseconds.
    """
    if events_df.empty:
        return 0.0, 0.0
    elapsed = events_df["elapsed_ms"].astype("float64")
    return float(elapsed.mean()), float(elapsed.median())


def compute_retention_rate(events_df: pd.DataFrame) -> Optional[float]:
    """
    Share of reviews of graduated cards that were not lapses.
    """
    if events_df.empty:
        return None
    graduated = events_df[events_df["state_before"].isin(RETENTION_STATES)]
    if graduated.empty:
        return None
    recalled = (graduated["rating"] != int(Rating.AGAIN)).sum()
    return float(recalled) / float(len(graduated))


def compute_daily_reviews(
    events_df: pd.DataFrame,
    day_index: pd.DatetimeIndex
) -> pd.Series:
    """
    Reviews per UTC day, zero-filled across the whole range.
    """
    if events_df.empty or len(day_index) == 0:
        return pd.Series(dtype="int64")
    daily = events_df.groupby("day_utc").size()
    return daily.reindex(day_index, fill_value=0).astype("int64")


def compute_session_totals(events_df: pd.DataFrame) -> pd.DataFrame:
    """
    Per-session card count, total and average elapsed time, and time span.
    """
    columns = [
        "cards", "total_elapsed_ms", "average_elapsed_ms",
        "session_start", "session_end",
    ]
    if events_df.empty:
        return pd.DataFrame(columns=columns)

    scoped = events_df[events_df["session_id"].notna()]
    if scoped.empty:
        return pd.DataFrame(columns=columns)

    totals = scoped.groupby("session_id").agg(
        cards=("card_id", "size"),
        total_elapsed_ms=("elapsed_ms", "sum"),
        average_elapsed_ms=("elapsed_ms", "mean"),
        session_start=("timestamp", "min"),
        session_end=("timestamp", "max"),
    )
    return totals.sort_values("session_start")
