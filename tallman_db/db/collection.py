"""
Typed CRUD surface over one collection.

CollectionStore binds a collection name to a pydantic model. Every call
runs inside its own short-lived transaction, except the bulk variants,
which put all their writes into a single transaction and therefore
persist either every record or none.
"""

from __future__ import annotations

from typing import Any, Generic, Iterable, List, Optional, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from .engine import AccessMode, Engine
from ..errors import StorageError

T = TypeVar("T", bound=BaseModel)


class CollectionStore(Generic[T]):
    """
    Parameters
    ----------
    engine:
        Shared Engine; opened lazily on first use.
    name:
        Collection name as declared in the SchemaRegistry.
    model:
        Pydantic model used to encode and decode records.
    """

    def __init__(self, engine: Engine, name: str, model: Type[T]):
        self.engine = engine
        self.name = name
        self.model = model

    # ------------------------------------------------------------------
    # Encoding
    # ------------------------------------------------------------------

    def key_of(self, record: T) -> Any:
        spec = self.engine.open().collections.get(self.name)
        if spec is None:
            raise StorageError(f"Unknown collection {self.name!r}")
        return spec.key_rule.extract(self._encode(record))

    def _encode(self, record: T) -> dict:
        return record.model_dump(mode="json")

    def _decode(self, data: dict) -> T:
        try:
            return self.model.model_validate(data)
        except PydanticValidationError as e:
            raise StorageError(
                f"Corrupt record in collection {self.name!r}: {e.error_count()} error(s)"
            ) from e

    def _tx(self, mode: AccessMode = AccessMode.READONLY):
        return self.engine.transaction([self.name], mode)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, key: Any) -> Optional[T]:
        """Return the record stored under `key`, or None."""
        with self._tx() as tx:
            data = tx.get(self.name, key)
        return self._decode(data) if data is not None else None

    def get_all(self) -> List[T]:
        """All records. Callers must not rely on the order."""
        with self._tx() as tx:
            rows = tx.get_all(self.name)
        return [self._decode(r) for r in rows]

    def count(self) -> int:
        with self._tx() as tx:
            return tx.count(self.name)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def add(self, record: T) -> Any:
        """Insert; raises UniqueKeyViolation if the key exists."""
        with self._tx(AccessMode.READWRITE) as tx:
            return tx.add(self.name, self._encode(record))

    def put(self, record: T) -> Any:
        """Insert or fully replace."""
        with self._tx(AccessMode.READWRITE) as tx:
            return tx.put(self.name, self._encode(record))

    def delete(self, key: Any) -> None:
        """Remove `key`; absent keys are ignored."""
        with self._tx(AccessMode.READWRITE) as tx:
            tx.delete(self.name, key)

    def clear(self) -> None:
        with self._tx(AccessMode.READWRITE) as tx:
            tx.clear(self.name)

    # ------------------------------------------------------------------
    # Batches
    # ------------------------------------------------------------------

    def bulk_add(self, records: Iterable[T]) -> List[Any]:
        """
        Add every record in one transaction.

        A duplicate key, either against stored data or inside the batch
        itself, aborts the whole batch and nothing is written.
        """
        encoded = [self._encode(r) for r in records]
        with self._tx(AccessMode.READWRITE) as tx:
            return [tx.add(self.name, data) for data in encoded]

    def bulk_put(self, records: Iterable[T]) -> List[Any]:
        encoded = [self._encode(r) for r in records]
        with self._tx(AccessMode.READWRITE) as tx:
            return [tx.put(self.name, data) for data in encoded]

    def add_all_if_empty(self, records: Iterable[T]) -> bool:
        """
        Add `records` only when the collection is empty.

        The emptiness check and the writes share one write transaction,
        so two concurrent callers cannot both seed.
        """
        encoded = [self._encode(r) for r in records]
        with self._tx(AccessMode.READWRITE) as tx:
            if tx.count(self.name) != 0:
                return False
            for data in encoded:
                tx.add(self.name, data)
        return True


__all__ = [
    "CollectionStore",
]
