"""
SQLAlchemy ORM Models for Scheduler Persistence

Defines the card_state and review_events tables.
"""

from sqlalchemy import Boolean, Column, DateTime, Float, Index, Integer, String
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class CardStateRow(Base):
    """
    Persistent memory state for a single flashcard.

    ``version`` is the optimistic-concurrency column: every update is
    conditioned on it and increments it by one.
    """
    __tablename__ = 'card_state'

    card_id = Column(String(255), primary_key=True, nullable=False)
    user_id = Column(String(255), nullable=False)
    deck_id = Column(String(255), nullable=True)

    # Scheduling parameters
    state = Column(String(20), nullable=False)  # new, learning, reviewing, relearning
    interval_days = Column(Float, nullable=False)
    ease_factor = Column(Float, nullable=False)
    repetitions = Column(Integer, nullable=False, default=0)

    # Review tracking
    times_reviewed = Column(Integer, nullable=False, default=0)
    lapses = Column(Integer, nullable=False, default=0)
    next_review_at = Column(DateTime(timezone=True), nullable=False)
    last_reviewed_at = Column(DateTime(timezone=True), nullable=True)
    graduated = Column(Boolean, nullable=False, default=False)  # Reached reviewing at least once

    version = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        Index('ix_card_state_user_queue', 'user_id', 'state', 'next_review_at'),
    )

    def __repr__(self):
        return f"<CardStateRow({self.card_id}, {self.state}, v{self.version})>"


class ReviewEventRow(Base):
    """
    Log entry for a single rating, with the card's state before and after.
    """
    __tablename__ = 'review_events'

    id = Column(Integer, primary_key=True, autoincrement=True)

    card_id = Column(String(255), nullable=False)
    user_id = Column(String(255), nullable=False, index=True)

    # Session context (optional, for analytics)
    session_id = Column(String(255), nullable=True)
    session_position = Column(Integer, nullable=True)

    # Timing and rating
    timestamp = Column(DateTime(timezone=True), nullable=False)
    rating = Column(Integer, nullable=False)  # 1=AGAIN, 2=HARD, 3=GOOD, 4=EASY
    elapsed_ms = Column(Integer, nullable=False)

    # State before / after review
    state_before = Column(String(20), nullable=False)
    state_after = Column(String(20), nullable=False)
    interval_before = Column(Float, nullable=False)
    interval_after = Column(Float, nullable=False)
    ease_before = Column(Float, nullable=False)
    ease_after = Column(Float, nullable=False)
    next_review_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<ReviewEventRow(id={self.id}, {self.card_id}, rating={self.rating})>"
