"""
Scheduler Constants and Parameters

All tunable parameters for the review scheduler in one place.
The ease deltas and the Hard floor on a first review are a default policy,
so they are grouped in SchedulerPolicy and can be overridden per deployment.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum


# ---- Ratings ----

class Rating(IntEnum):
    """Self-reported recall quality, ordered worst to best."""
    AGAIN = 1   # Forgotten (lapse)
    HARD = 2    # Recalled with serious effort
    GOOD = 3    # Recalled normally
    EASY = 4    # Recalled effortlessly


# ---- Card Phases ----

class CardPhase(str, Enum):
    """Where a card sits in its learning lifecycle."""
    NEW = "new"
    LEARNING = "learning"
    REVIEWING = "reviewing"
    RELEARNING = "relearning"


# Phases that imply the card has graduated at least once
GRADUATED_PHASES = frozenset({CardPhase.REVIEWING, CardPhase.RELEARNING})


# ---- Default Parameters ----

MIN_EASE = 1.3            # Floor for the ease factor
INITIAL_EASE = 2.5        # Ease of a brand-new card
LAPSE_EASE_PENALTY = 0.20
HARD_EASE_PENALTY = 0.15
EASY_EASE_BONUS = 0.15

LAPSE_INTERVAL_DAYS = 1.0       # Never 0, or a lapsed card would re-queue immediately
FIRST_INTERVAL_DAYS = 1.0       # Good / Hard on a first success
EASY_FIRST_INTERVAL_DAYS = 4.0  # Easy on a first success (graduates directly)
SECOND_INTERVAL_DAYS = 6.0      # Good on the second success
HARD_INTERVAL_FACTOR = 1.2
EASY_BONUS = 1.3
INTERVAL_MODIFIER = 1.0  # Deck-wide multiplier on scaled intervals


# ---- Session Defaults ----

DEFAULT_MAX_NEW_CARDS = 20
DEFAULT_REVIEW_LIMIT = 200


@dataclass(frozen=True)
class SchedulerPolicy:
    """
    Tunable scheduling parameters.

    Defaults reproduce the interval formulas shown on the review screen.
    """
    min_ease: float = MIN_EASE
    initial_ease: float = INITIAL_EASE
    lapse_ease_penalty: float = LAPSE_EASE_PENALTY
    hard_ease_penalty: float = HARD_EASE_PENALTY
    easy_ease_bonus: float = EASY_EASE_BONUS
    lapse_interval_days: float = LAPSE_INTERVAL_DAYS
    first_interval_days: float = FIRST_INTERVAL_DAYS
    easy_first_interval_days: float = EASY_FIRST_INTERVAL_DAYS
    second_interval_days: float = SECOND_INTERVAL_DAYS
    hard_interval_factor: float = HARD_INTERVAL_FACTOR
    easy_bonus: float = EASY_BONUS
    interval_modifier: float = INTERVAL_MODIFIER

    def __post_init__(self):
        if self.min_ease <= 0:
            raise ValueError(f"min_ease must be positive, got {self.min_ease}")
        if self.initial_ease < self.min_ease:
            raise ValueError(
                f"initial_ease ({self.initial_ease}) is below min_ease ({self.min_ease})"
            )
        if self.lapse_interval_days < 1:
            raise ValueError("lapse_interval_days must be at least 1 day")
        if self.first_interval_days < 1 or self.easy_first_interval_days < 1:
            raise ValueError("first intervals must be at least 1 day")
        if self.interval_modifier <= 0:
            raise ValueError(f"interval_modifier must be positive, got {self.interval_modifier}")


DEFAULT_POLICY = SchedulerPolicy()
