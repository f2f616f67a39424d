"""
Types for review analytics.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import pandas as pd


@dataclass(frozen=True)
class ReviewReport:
    """
    Aggregated review history for one user.
    """
    user_id: str
    total_reviews: int
    unique_cards: int
    rating_counts: dict[str, int]
    mean_elapsed_ms: float
    median_elapsed_ms: float
    retention_rate: Optional[float]  # None until a graduated card is reviewed
    daily_reviews: pd.Series
    sessions: pd.DataFrame
