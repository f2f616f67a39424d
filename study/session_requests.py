"""
Session sizing requests: how many due and new cards a session may hold.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional

from srs import config


@dataclass(frozen=True)
class SessionRequest:
    """
    Queue caps applied when a session is started.
    """
    max_new_cards: int
    review_limit: int


def default_session_request() -> SessionRequest:
    """
    Session caps from the environment (SRS_MAX_NEW_CARDS, SRS_REVIEW_LIMIT).
    """
    return SessionRequest(
        max_new_cards=config.get_max_new_cards(),
        review_limit=config.get_review_limit(),
    )


def _clamp_count(value: int) -> int:
    return max(0, int(value))


def normalize_session_request(
    base: SessionRequest,
    max_new_cards: Optional[int] = None,
    review_limit: Optional[int] = None
) -> SessionRequest:
    """
    Apply per-call overrides to the default caps.

    None keeps the default; negative values clamp to 0.
    """
    request = base
    if max_new_cards is not None:
        request = replace(request, max_new_cards=_clamp_count(max_new_cards))
    if review_limit is not None:
        request = replace(request, review_limit=_clamp_count(review_limit))
    return request
