"""
Review scheduling - interval growth, lapses and ease adjustment.

Quick start:
    from srs import scheduling

    card = scheduling.new_card("card-1", "user-1", now)
    card = scheduling.schedule(card, scheduling.Rating.GOOD, now)
"""

# Core algorithm
from srs.scheduling.scheduler import (
    parse_rating,
    preview_intervals,
    round_days,
    schedule,
)

# Constants and parameters
from srs.scheduling.constants import (
    DEFAULT_MAX_NEW_CARDS,
    DEFAULT_POLICY,
    DEFAULT_REVIEW_LIMIT,
    CardPhase,
    Rating,
    SchedulerPolicy,
)

# Memory state and events
from srs.scheduling.events import ReviewEvent
from srs.scheduling.memory_state import (
    CardMemoryState,
    due_sort_key,
    ensure_utc,
    is_due,
    new_card,
)


__all__ = [
    # Core algorithm
    "schedule",
    "parse_rating",
    "preview_intervals",
    "round_days",

    # Enums
    "Rating",
    "CardPhase",

    # Parameters
    "SchedulerPolicy",
    "DEFAULT_POLICY",
    "DEFAULT_MAX_NEW_CARDS",
    "DEFAULT_REVIEW_LIMIT",

    # Memory state
    "CardMemoryState",
    "ReviewEvent",
    "new_card",
    "is_due",
    "due_sort_key",
    "ensure_utc",
]
