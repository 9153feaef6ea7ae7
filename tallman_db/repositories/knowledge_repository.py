"""
Knowledge repository.

Responsible for storing and listing the facts the assistant retrieves as
prompt context, and for populating an empty store with defaults.
"""

from __future__ import annotations

import logging
import time
from typing import Iterable, List, Optional

from .models import KnowledgeItem
from ..db.collection import CollectionStore
from ..errors import StorageError, UniqueKeyViolation

logger = logging.getLogger(__name__)

KNOWLEDGE = "knowledge"


def now_ms() -> int:
    return int(time.time() * 1000)


class KnowledgeRepository:
    """
    Collection-backed repository for KnowledgeItem records.

    Schema (canonical):
        knowledge keyed by `timestamp` (integer), index on `content`
    """

    def __init__(self, store: CollectionStore[KnowledgeItem]):
        self.store = store

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def add(self, item: KnowledgeItem) -> None:
        self.store.add(item)

    def add_knowledge(self, content: str) -> Optional[KnowledgeItem]:
        """
        Store `content` as a new fact stamped with the current time.

        Blank content is ignored and returns None. Two calls within the
        same millisecond collide and the second raises UniqueKeyViolation.
        """
        if not content.strip():
            return None
        item = KnowledgeItem(content=content, timestamp=now_ms())
        self.store.add(item)
        return item

    def bulk_add(self, items: Iterable[KnowledgeItem]) -> int:
        """Add all items atomically; returns the number written."""
        return len(self.store.bulk_add(items))

    def bulk_put(self, items: Iterable[KnowledgeItem]) -> int:
        return len(self.store.bulk_put(items))

    def seed_if_empty(self, default_set: Iterable[KnowledgeItem]) -> bool:
        """
        Populate an empty collection with `default_set`.

        Best effort: a storage failure is logged and leaves the collection
        empty instead of propagating. Returns True when the seed was written.
        """
        items = list(default_set)
        try:
            seeded = self.store.add_all_if_empty(items)
        except (StorageError, UniqueKeyViolation):
            logger.exception("Failed to initialise knowledge base")
            return False
        if seeded:
            logger.info("Knowledge base was empty; populated %d default item(s)", len(items))
        return seeded

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get(self, timestamp: int) -> Optional[KnowledgeItem]:
        return self.store.get(timestamp)

    def get_all(self) -> List[KnowledgeItem]:
        return self.store.get_all()

    def count(self) -> int:
        return self.store.count()

    # ------------------------------------------------------------------
    # Removal
    # ------------------------------------------------------------------

    def delete(self, timestamp: int) -> None:
        self.store.delete(timestamp)

    def clear(self) -> None:
        self.store.clear()
