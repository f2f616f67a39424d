"""
Storage ports and adapters.

The Mongo adapter lives in srs.storage.mongo and is imported on demand.
"""

from srs.storage.database import (
    SqlCardRepository,
    SqlReviewEventLog,
    get_engine,
    init_db,
)
from srs.storage.memory import InMemoryCardRepository, InMemoryReviewEventLog
from srs.storage.ports import CardRepository, DueCounts, ReviewEventLog

__all__ = [
    "CardRepository",
    "ReviewEventLog",
    "DueCounts",
    "InMemoryCardRepository",
    "InMemoryReviewEventLog",
    "SqlCardRepository",
    "SqlReviewEventLog",
    "get_engine",
    "init_db",
]
