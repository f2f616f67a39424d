"""
Data-loading helpers for analytics.
"""

from __future__ import annotations

from typing import Optional

import pandas as pd

from srs.analytics.constants import EVENT_COLUMNS
from srs.storage.ports import ReviewEventLog


def events_to_df(rows: list[dict]) -> pd.DataFrame:
    """
    Normalize logged event rows (ReviewEvent.to_dict shape) into a dataframe.
    """
    if not rows:
        return pd.DataFrame(columns=EVENT_COLUMNS + ["day_utc"])

    df = pd.DataFrame(rows)
    df = df[EVENT_COLUMNS].copy()
    df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True, errors="coerce")
    df = df.dropna(subset=["card_id", "timestamp"])
    df["rating"] = df["rating"].astype("int64")
    df["elapsed_ms"] = df["elapsed_ms"].astype("int64")
    df["day_utc"] = df["timestamp"].dt.floor("D")
    df = df.sort_values("timestamp").reset_index(drop=True)
    return df


def load_review_events_df(
    event_log: ReviewEventLog,
    user_id: str,
    limit: Optional[int] = None
) -> pd.DataFrame:
    """
    Load a user's review events into a dataframe, oldest first.
    """
    return events_to_df(event_log.events_for_user(user_id, limit=limit))
