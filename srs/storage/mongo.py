"""
MongoDB storage adapter for card state.

One document per card, keyed by card id, with an integer ``version``
field. The compare-and-swap is an update_one filtered on both _id and
version; a zero matched_count means the version moved on.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from pymongo import ASCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError, PyMongoError

from srs.config import MONGO_COLLECTION_NAME, get_mongo_db_name, get_mongo_uri
from srs.errors import CardNotFound, DuplicateCard, RepositoryUnavailable
from srs.scheduling import CardMemoryState, CardPhase, ensure_utc
from srs.scheduling.constants import GRADUATED_PHASES
from srs.storage.ports import CardRepository, DueCounts
from srs.storage.selection import validate_limits

logger = logging.getLogger(__name__)

# Global connection pool (reused across requests)
_client: Optional[MongoClient] = None
_collection: Optional[Collection] = None


# ---- Connection Management ----

def get_collection() -> Collection:
    """
    Get the card_state collection, connecting on first use.

    The client is cached so the connection pool is shared by every
    repository in the process.
    """
    global _client, _collection

    if _collection is not None:
        return _collection

    _client = MongoClient(
        get_mongo_uri(),
        maxPoolSize=10,  # Connection pool size
        minPoolSize=1,   # Keep at least 1 connection alive
        maxIdleTimeMS=60000  # Keep connections alive for 60 seconds
    )
    _collection = _client[get_mongo_db_name()][MONGO_COLLECTION_NAME]
    return _collection


# ---- Document Mapping ----

def _doc_to_state(doc: dict) -> CardMemoryState:
    last_reviewed = doc.get("last_reviewed_at")
    state = CardPhase(doc["state"])
    return CardMemoryState(
        card_id=doc["_id"],
        user_id=doc["user_id"],
        deck_id=doc.get("deck_id"),
        state=state,
        interval_days=float(doc["interval_days"]),
        ease_factor=float(doc["ease_factor"]),
        repetitions=int(doc["repetitions"]),
        times_reviewed=int(doc["times_reviewed"]),
        lapses=int(doc.get("lapses", 0)),
        next_review_at=ensure_utc(doc["next_review_at"]),
        last_reviewed_at=ensure_utc(last_reviewed) if last_reviewed else None,
        # Documents written before the flag existed infer it from the phase
        graduated=bool(doc.get("graduated", state in GRADUATED_PHASES)),
        version=int(doc["version"]),
    )


def _state_fields(state: CardMemoryState) -> dict:
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


class MongoCardRepository(CardRepository):
    """Card repository over a MongoDB collection."""

    def __init__(self, collection: Optional[Collection] = None):
        self.collection = collection if collection is not None else get_collection()

    def ensure_indexes(self) -> None:
        """Create the queue index (idempotent)."""
        try:
            self.collection.create_index(
                [("user_id", ASCENDING), ("state", ASCENDING), ("next_review_at", ASCENDING)],
                name="user_queue",
            )
        except PyMongoError as exc:
            raise RepositoryUnavailable("Could not create card_state indexes") from exc

    def add_card(self, state: CardMemoryState) -> CardMemoryState:
        if state.next_review_at is None:
            raise ValueError(f"Card {state.card_id!r} has no next_review_at")
        doc = {"_id": state.card_id, "user_id": state.user_id, "version": 0}
        doc.update(_state_fields(state))
        try:
            self.collection.insert_one(doc)
        except DuplicateKeyError as exc:
            raise DuplicateCard(state.card_id) from exc
        except PyMongoError as exc:
            logger.error("Failed to insert card %s: %s", state.card_id, exc)
            raise RepositoryUnavailable(f"Could not insert card {state.card_id!r}") from exc
        return state.with_version(0)

    def get_card_state(self, card_id: str) -> CardMemoryState:
        try:
            doc = self.collection.find_one({"_id": card_id})
        except PyMongoError as exc:
            logger.error("Failed to load card %s: %s", card_id, exc)
            raise RepositoryUnavailable(f"Could not load card {card_id!r}") from exc
        if doc is None:
            raise CardNotFound(card_id)
        return _doc_to_state(doc)

    def save_card_state(
        self,
        card_id: str,
        expected_version: int,
        new_state: CardMemoryState,
    ) -> bool:
        values = _state_fields(new_state)
        values["version"] = expected_version + 1
        try:
            result = self.collection.update_one(
                {"_id": card_id, "version": expected_version},
                {"$set": values},
            )
            if result.matched_count == 1:
                return True
            exists = self.collection.count_documents({"_id": card_id}, limit=1)
        except PyMongoError as exc:
            logger.error("Failed to save card %s: %s", card_id, exc)
            raise RepositoryUnavailable(f"Could not save card {card_id!r}") from exc

        if not exists:
            raise CardNotFound(card_id)
        logger.debug("Version conflict on %s at version %d", card_id, expected_version)
        return False

    def _find_sorted(self, query: dict, limit: Optional[int]) -> list[dict]:
        # pymongo treats limit(0) as "no limit"
        if limit == 0:
            return []
        cursor = self.collection.find(query).sort(
            [("next_review_at", ASCENDING), ("_id", ASCENDING)]
        )
        if limit is not None:
            cursor = cursor.limit(limit)
        return list(cursor)

    def load_due_cards(
        self,
        user_id: str,
        now: datetime,
        limit: Optional[int] = None,
        max_new_cards: Optional[int] = None,
    ) -> list[CardMemoryState]:
        validate_limits(limit, max_new_cards)
        now = ensure_utc(now)
        try:
            due_docs = self._find_sorted(
                {
                    "user_id": user_id,
                    "state": {"$ne": CardPhase.NEW.value},
                    "next_review_at": {"$lte": now},
                },
                limit,
            )
            new_docs = self._find_sorted(
                {"user_id": user_id, "state": CardPhase.NEW.value},
                max_new_cards,
            )
        except PyMongoError as exc:
            logger.error("Failed to load due cards for %s: %s", user_id, exc)
            raise RepositoryUnavailable(f"Could not load due cards for {user_id!r}") from exc
        return [_doc_to_state(doc) for doc in due_docs + new_docs]

    def count_due(self, user_id: str, now: datetime) -> DueCounts:
        now = ensure_utc(now)
        try:
            due = self.collection.count_documents({
                "user_id": user_id,
                "state": {"$ne": CardPhase.NEW.value},
                "next_review_at": {"$lte": now},
            })
            new = self.collection.count_documents({
                "user_id": user_id,
                "state": CardPhase.NEW.value,
            })
        except PyMongoError as exc:
            logger.error("Failed to count due cards for %s: %s", user_id, exc)
            raise RepositoryUnavailable(f"Could not count cards for {user_id!r}") from exc
        return DueCounts(due=due, new=new)
