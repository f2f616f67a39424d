"""
Database - SQL Storage Adapters

Card state and review events over SQLAlchemy (Postgres in production,
SQLite in tests). Algorithm logic lives in the scheduling package.

The compare-and-swap is a single conditional UPDATE:
    UPDATE card_state SET ..., version = :expected + 1
    WHERE card_id = :id AND version = :expected
A rowcount of zero means another writer got there first.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import create_engine, func, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from srs.config import get_database_url
from srs.errors import CardNotFound, DuplicateCard, RepositoryUnavailable
from srs.scheduling import CardMemoryState, CardPhase, ReviewEvent, ensure_utc
from srs.storage.models import Base, CardStateRow, ReviewEventRow
from srs.storage.ports import CardRepository, DueCounts, ReviewEventLog
from srs.storage.selection import validate_limits

logger = logging.getLogger(__name__)


def get_engine(url: Optional[str] = None) -> Engine:
    """
    Create a SQLAlchemy engine.

    Server databases get a connection pool; SQLite gets a thread-shareable
    connection.

    Args:
        url: Database URL (defaults to DATABASE_URL from the environment)
    """
    db_url = url or get_database_url()
    if db_url.startswith("sqlite"):
        return create_engine(db_url, connect_args={"check_same_thread": False})
    return create_engine(
        db_url,
        pool_size=5,           # Keep 5 connections open
        max_overflow=10,       # Allow up to 10 extra connections
        pool_pre_ping=True,    # Verify connections before use
        echo=False
    )


def init_db(engine: Engine) -> None:
    """
    Create tables if they don't exist.

    Safe to call multiple times.
    """
    inspector = inspect(engine)
    existing_tables = set(inspector.get_table_names())
    if {'card_state', 'review_events'} <= existing_tables:
        card_columns = {col["name"] for col in inspector.get_columns("card_state")}
        missing = {"version", "graduated"} - card_columns
        if missing:
            raise RuntimeError(
                f"card_state table is missing columns: {sorted(missing)}. "
                "Please migrate the database before enabling versioned writes."
            )
        return
    Base.metadata.create_all(engine)


def _row_to_state(row: CardStateRow) -> CardMemoryState:
    return CardMemoryState(
        card_id=row.card_id,
        user_id=row.user_id,
        deck_id=row.deck_id,
        state=CardPhase(row.state),
        interval_days=row.interval_days,
        ease_factor=row.ease_factor,
        repetitions=row.repetitions,
        times_reviewed=row.times_reviewed,
        lapses=row.lapses,
        next_review_at=ensure_utc(row.next_review_at),
        last_reviewed_at=(
            ensure_utc(row.last_reviewed_at) if row.last_reviewed_at else None
        ),
        graduated=bool(row.graduated),
        version=row.version,
    )


def _state_columns(state: CardMemoryState) -> dict:
    """Mutable columns written on every save."""
    return {
        "deck_id": state.deck_id,
        "state": state.state.value,
        "interval_days": state.interval_days,
        "ease_factor": state.ease_factor,
        "repetitions": state.repetitions,
        "times_reviewed": state.times_reviewed,
        "lapses": state.lapses,
        "next_review_at": ensure_utc(state.next_review_at),
        "last_reviewed_at": (
            ensure_utc(state.last_reviewed_at) if state.last_reviewed_at else None
        ),
        "graduated": state.graduated,
    }


class SqlCardRepository(CardRepository):
    """Card repository over the card_state table."""

    def __init__(self, engine: Engine):
        self.engine = engine
        self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)

    def _session(self) -> Session:
        return self._session_factory()

    def add_card(self, state: CardMemoryState) -> CardMemoryState:
        if state.next_review_at is None:
            raise ValueError(f"Card {state.card_id!r} has no next_review_at")
        session = self._session()
        try:
            session.add(CardStateRow(
                card_id=state.card_id,
                user_id=state.user_id,
                version=0,
                **_state_columns(state),
            ))
            session.commit()
            return state.with_version(0)
        except IntegrityError as exc:
            session.rollback()
            raise DuplicateCard(state.card_id) from exc
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error("Failed to insert card %s: %s", state.card_id, exc)
            raise RepositoryUnavailable(f"Could not insert card {state.card_id!r}") from exc
        finally:
            session.close()

    def get_card_state(self, card_id: str) -> CardMemoryState:
        session = self._session()
        try:
            row = session.query(CardStateRow).filter(
                CardStateRow.card_id == card_id
            ).first()
        except SQLAlchemyError as exc:
            logger.error("Failed to load card %s: %s", card_id, exc)
            raise RepositoryUnavailable(f"Could not load card {card_id!r}") from exc
        finally:
            session.close()

        if row is None:
            raise CardNotFound(card_id)
        return _row_to_state(row)

    def save_card_state(
        self,
        card_id: str,
        expected_version: int,
        new_state: CardMemoryState,
    ) -> bool:
        values = _state_columns(new_state)
        values["version"] = expected_version + 1

        session = self._session()
        try:
            updated = session.query(CardStateRow).filter(
                CardStateRow.card_id == card_id,
                CardStateRow.version == expected_version
            ).update(values, synchronize_session=False)

            if updated == 1:
                session.commit()
                return True

            exists = session.query(CardStateRow.card_id).filter(
                CardStateRow.card_id == card_id
            ).first()
            session.rollback()
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error("Failed to save card %s: %s", card_id, exc)
            raise RepositoryUnavailable(f"Could not save card {card_id!r}") from exc
        finally:
            session.close()

        if exists is None:
            raise CardNotFound(card_id)
        logger.debug("Version conflict on %s at version %d", card_id, expected_version)
        return False

    def load_due_cards(
        self,
        user_id: str,
        now: datetime,
        limit: Optional[int] = None,
        max_new_cards: Optional[int] = None,
    ) -> list[CardMemoryState]:
        validate_limits(limit, max_new_cards)
        now = ensure_utc(now)

        session = self._session()
        try:
            due_rows = []
            if limit != 0:
                due_query = session.query(CardStateRow).filter(
                    CardStateRow.user_id == user_id,
                    CardStateRow.state != CardPhase.NEW.value,
                    CardStateRow.next_review_at <= now
                ).order_by(
                    CardStateRow.next_review_at.asc(),
                    CardStateRow.card_id.asc()
                )
                if limit is not None:
                    due_query = due_query.limit(limit)
                due_rows = due_query.all()

            new_rows = []
            if max_new_cards != 0:
                new_query = session.query(CardStateRow).filter(
                    CardStateRow.user_id == user_id,
                    CardStateRow.state == CardPhase.NEW.value
                ).order_by(
                    CardStateRow.next_review_at.asc(),
                    CardStateRow.card_id.asc()
                )
                if max_new_cards is not None:
                    new_query = new_query.limit(max_new_cards)
                new_rows = new_query.all()
        except SQLAlchemyError as exc:
            logger.error("Failed to load due cards for %s: %s", user_id, exc)
            raise RepositoryUnavailable(f"Could not load due cards for {user_id!r}") from exc
        finally:
            session.close()

        return [_row_to_state(row) for row in due_rows + new_rows]

    def count_due(self, user_id: str, now: datetime) -> DueCounts:
        now = ensure_utc(now)
        session = self._session()
        try:
            due = session.query(func.count(CardStateRow.card_id)).filter(
                CardStateRow.user_id == user_id,
                CardStateRow.state != CardPhase.NEW.value,
                CardStateRow.next_review_at <= now
            ).scalar()
            new = session.query(func.count(CardStateRow.card_id)).filter(
                CardStateRow.user_id == user_id,
                CardStateRow.state == CardPhase.NEW.value
            ).scalar()
        except SQLAlchemyError as exc:
            logger.error("Failed to count due cards for %s: %s", user_id, exc)
            raise RepositoryUnavailable(f"Could not count cards for {user_id!r}") from exc
        finally:
            session.close()

        return DueCounts(due=int(due or 0), new=int(new or 0))


class SqlReviewEventLog(ReviewEventLog):
    """Review history over the review_events table."""

    def __init__(self, engine: Engine):
        self.engine = engine
        self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)

    def append(self, events: list[ReviewEvent]) -> None:
        """
        Log multiple review events in a single transaction.
        """
        if not events:
            return

        session = self._session_factory()
        try:
            for event in events:
                session.add(ReviewEventRow(
                    card_id=event.card_id,
                    user_id=event.user_id,
                    session_id=event.session_id,
                    session_position=event.session_position,
                    timestamp=ensure_utc(event.timestamp),
                    rating=int(event.rating),
                    elapsed_ms=event.elapsed_ms,
                    state_before=event.previous.state.value,
                    state_after=event.updated.state.value,
                    interval_before=event.interval_before,
                    interval_after=event.interval_after,
                    ease_before=event.ease_before,
                    ease_after=event.ease_after,
                    next_review_at=event.updated.next_review_at,
                ))
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error("Failed to log %d review events: %s", len(events), exc)
            raise RepositoryUnavailable("Could not log review events") from exc
        finally:
            session.close()

    def events_for_user(
        self,
        user_id: str,
        limit: Optional[int] = None,
    ) -> list[dict]:
        session = self._session_factory()
        try:
            query = session.query(ReviewEventRow).filter(
                ReviewEventRow.user_id == user_id
            ).order_by(
                ReviewEventRow.timestamp.desc(),
                ReviewEventRow.id.desc()
            )
            if limit is not None:
                query = query.limit(limit)
            rows = query.all()
        except SQLAlchemyError as exc:
            logger.error("Failed to read review events for %s: %s", user_id, exc)
            raise RepositoryUnavailable(f"Could not read events for {user_id!r}") from exc
        finally:
            session.close()

        return [
            {
                "card_id": row.card_id,
                "user_id": row.user_id,
                "session_id": row.session_id,
                "session_position": row.session_position,
                "rating": row.rating,
                "elapsed_ms": row.elapsed_ms,
                "timestamp": ensure_utc(row.timestamp),
                "state_before": row.state_before,
                "state_after": row.state_after,
                "interval_before": row.interval_before,
                "interval_after": row.interval_after,
                "ease_before": row.ease_before,
                "ease_after": row.ease_after,
                "next_review_at": (
                    ensure_utc(row.next_review_at) if row.next_review_at else None
                ),
            }
            for row in rows
        ]
