"""
Scheduler - Review Interval Logic

Pure scheduling and state updates (no database calls).

Main workflow:
1. Load card state (caller's responsibility)
2. Validate the rating (parse_rating)
3. Branch on lapse vs. success, then on repetitions
4. Return the updated card (caller persists it)

This module handles ONLY the algorithm logic.
Persistence is handled by the storage package.
"""

from __future__ import annotations

import math
from dataclasses import replace
from datetime import datetime

from srs.errors import InvalidRating
from srs.scheduling.constants import (
    DEFAULT_POLICY,
    CardPhase,
    Rating,
    SchedulerPolicy,
)
from srs.scheduling.memory_state import (
    CardMemoryState,
    ensure_utc,
    review_due_at,
)


def parse_rating(value: object) -> Rating:
    """
    Convert a caller-supplied rating to Rating.

    Accepts a Rating, an int 1-4, a numeric string, or a rating name
    ("again", "hard", "good", "easy").

    Raises:
        InvalidRating: for anything outside the rating domain
    """
    if isinstance(value, Rating):
        return value
    if isinstance(value, bool):
        raise InvalidRating(value)
    if isinstance(value, int):
        try:
            return Rating(value)
        except ValueError as exc:
            raise InvalidRating(value) from exc
    if isinstance(value, str):
        text = value.strip()
        if text.isdigit():
            return parse_rating(int(text))
        try:
            return Rating[text.upper()]
        except KeyError as exc:
            raise InvalidRating(value) from exc
    raise InvalidRating(value)


def round_days(days: float) -> float:
    """Round half-up to a whole number of days."""
    return float(math.floor(days + 0.5))


def _clamp_ease(ease: float, policy: SchedulerPolicy) -> float:
    # Rounded so repeated +/- deltas don't accumulate float drift
    return round(max(policy.min_ease, ease), 4)


def _lapse(
    card: CardMemoryState,
    now: datetime,
    policy: SchedulerPolicy
) -> CardMemoryState:
    state = CardPhase.RELEARNING if card.has_graduated else CardPhase.LEARNING
    interval = policy.lapse_interval_days
    return replace(
        card,
        state=state,
        interval_days=interval,
        ease_factor=_clamp_ease(card.ease_factor - policy.lapse_ease_penalty, policy),
        repetitions=0,
        times_reviewed=card.times_reviewed + 1,
        lapses=card.lapses + 1,
        last_reviewed_at=now,
        next_review_at=review_due_at(now, interval),
    )


def _success_interval(
    card: CardMemoryState,
    rating: Rating,
    policy: SchedulerPolicy
) -> float:
    """
    Interval for a Hard/Good/Easy rating, using the ease held before this review.
    """
    ease = card.ease_factor
    previous = card.interval_days
    modifier = policy.interval_modifier

    if card.repetitions == 0:
        if rating == Rating.EASY:
            return policy.easy_first_interval_days
        # Hard shares Good's floor: there is no prior interval to scale
        return policy.first_interval_days

    if rating == Rating.HARD:
        return max(1.0, round_days(previous * policy.hard_interval_factor * modifier))

    if card.repetitions == 1:
        if rating == Rating.GOOD:
            return policy.second_interval_days
        return round_days(policy.second_interval_days * ease * policy.easy_bonus * modifier)

    if rating == Rating.GOOD:
        return round_days(previous * ease * modifier)
    return round_days(previous * ease * policy.easy_bonus * modifier)


def _success_phase(card: CardMemoryState, rating: Rating) -> CardPhase:
    # A first success after a lapse relearns like a new card; only Easy skips ahead
    if card.repetitions >= 1 or rating == Rating.EASY:
        return CardPhase.REVIEWING
    return CardPhase.LEARNING


def _success(
    card: CardMemoryState,
    rating: Rating,
    now: datetime,
    policy: SchedulerPolicy
) -> CardMemoryState:
    interval = max(1.0, _success_interval(card, rating, policy))

    ease = card.ease_factor
    if rating == Rating.HARD:
        ease = _clamp_ease(ease - policy.hard_ease_penalty, policy)
    elif rating == Rating.EASY:
        ease = _clamp_ease(ease + policy.easy_ease_bonus, policy)
    else:
        ease = _clamp_ease(ease, policy)

    phase = _success_phase(card, rating)
    return replace(
        card,
        state=phase,
        interval_days=interval,
        ease_factor=ease,
        repetitions=card.repetitions + 1,
        times_reviewed=card.times_reviewed + 1,
        last_reviewed_at=now,
        next_review_at=review_due_at(now, interval),
        graduated=card.graduated or phase == CardPhase.REVIEWING,
    )


def schedule(
    card: CardMemoryState,
    rating: Rating,
    now: datetime,
    policy: SchedulerPolicy = DEFAULT_POLICY
) -> CardMemoryState:
    """
    Apply one review to a card and return its next memory state.

    Pure and total: no I/O, no clock reads, never raises for a valid Rating.
    The returned state keeps the input ``version``; the repository assigns
    the next one when the write succeeds.

    Algorithm:
        Again -> Relearning (graduated cards) or Learning, repetitions reset,
                 1-day interval, ease - 0.20
        reps 0 -> Good/Hard 1 day, Easy 4 days (Easy graduates)
        reps 1 -> Good 6, Easy round(6 * ease * 1.3), Hard round(prev * 1.2)
        reps 2+ -> Good round(prev * ease), Easy round(prev * ease * 1.3),
                   Hard round(prev * 1.2)
        Hard ease - 0.15, Easy ease + 0.15, ease floored at 1.3
        Scaled intervals (not the fixed 1, 4 and 6 day steps) are multiplied
        by policy.interval_modifier

    Args:
        card: Current memory state (may be new)
        rating: Validated rating (see parse_rating)
        now: Review timestamp, supplied by the caller's clock
        policy: Tunable parameters

    Returns:
        Updated CardMemoryState
    """
    now = ensure_utc(now)
    if rating == Rating.AGAIN:
        return _lapse(card, now, policy)
    return _success(card, rating, now, policy)


def preview_intervals(
    card: CardMemoryState,
    now: datetime,
    policy: SchedulerPolicy = DEFAULT_POLICY
) -> dict[Rating, float]:
    """
    Projected interval (days) for each possible rating.

    Shown under the answer buttons so the learner sees the consequence of
    each choice before committing.
    """
    return {
        rating: schedule(card, rating, now, policy).interval_days
        for rating in Rating
    }
