"""
Error taxonomy for the review scheduler.

The scheduling function itself never raises for well-formed input.
Everything else is returned to the immediate caller as one of these.
"""

from __future__ import annotations


class SchedulerError(Exception):
    """Base class for all scheduler errors."""


class InvalidRating(SchedulerError, ValueError):
    """Rating outside {1, 2, 3, 4}; rejected before scheduling."""

    def __init__(self, value: object):
        self.value = value
        super().__init__(f"Invalid rating {value!r}: expected 1 (Again) to 4 (Easy)")


class EmptyQueue(SchedulerError):
    """
    No due or new cards at session start.

    Not a failure for the caller: there is simply nothing to study.
    """

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"No cards to review for user {user_id!r}")


class InvalidSequence(SchedulerError):
    """Rating submitted for a card that is not at the session's queue head."""

    def __init__(self, session_id: str, expected: str | None, received: str):
        self.session_id = session_id
        self.expected = expected
        self.received = received
        super().__init__(
            f"Session {session_id}: expected card {expected!r}, got {received!r}"
        )


class ConcurrentModification(SchedulerError):
    """Version conflict that persisted after the automatic retry."""

    def __init__(self, card_id: str, expected_version: int):
        self.card_id = card_id
        self.expected_version = expected_version
        super().__init__(
            f"Card {card_id!r} was modified concurrently (expected version {expected_version})"
        )


class RepositoryUnavailable(SchedulerError):
    """Transient storage failure. Safe to retry; no progress was recorded."""


class CardNotFound(SchedulerError, KeyError):
    """No card with the given id exists in the repository."""

    def __init__(self, card_id: str):
        self.card_id = card_id
        super().__init__(card_id)

    def __str__(self) -> str:
        return f"Card {self.card_id!r} not found"


class DuplicateCard(SchedulerError):
    """A card with the given id already exists."""

    def __init__(self, card_id: str):
        self.card_id = card_id
        super().__init__(f"Card {card_id!r} already exists")


class SessionNotFound(SchedulerError, KeyError):
    """No active review session with the given id."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(session_id)

    def __str__(self) -> str:
        return f"Review session {self.session_id!r} not found"


class InvalidRequest(SchedulerError, ValueError):
    """Caller payload failed validation."""
