"""
Storage engine: the one live connection plus scoped transactions.

The Engine is created once per process and handed to every store and
repository that needs it. Its first open() creates the metadata tables,
applies pending migrations from the SchemaRegistry and caches the
resulting StoreHandle; later calls return the cached handle.

All record access goes through Transaction objects:

    with engine.transaction(["knowledge"], AccessMode.READWRITE) as tx:
        tx.add("knowledge", {"content": "...", "timestamp": 1})

A transaction either commits every write it made or none of them.
Transactions are serialised by a re-entrant engine lock; opening a second
transaction from inside an active one raises StorageError.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .backend_base import ensure_backend
from .connection import DBConnection
from .helpers import decode_value, encode_value, quote_ident
from .migrations import MigrationManager
from .schema import CollectionSpec, SchemaRegistry
from ..errors import StorageError, UniqueKeyViolation

logger = logging.getLogger(__name__)


class AccessMode(str, Enum):
    READONLY = "readonly"
    READWRITE = "readwrite"


@dataclass(frozen=True)
class StoreHandle:
    """The opened store: its connection, schema version and collections."""

    conn: DBConnection
    version: int
    collections: Dict[str, CollectionSpec]


class Engine:
    """
    Owner of the single backend connection.

    Parameters
    ----------
    backend:
        A DBBackend (normally SQLiteBackend) or an object with the same attributes.
    registry:
        Declared schema; consulted once, on first open().
    """

    def __init__(self, backend: Any, registry: SchemaRegistry):
        self.backend = ensure_backend(backend)
        self.registry = registry
        self.migrations = MigrationManager(registry)
        self._handle: Optional[StoreHandle] = None
        self._lock = threading.RLock()
        self._active: Optional["Transaction"] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_open(self) -> bool:
        return self._handle is not None

    def open(self) -> StoreHandle:
        """
        Open the store once; return the cached handle afterwards.

        Raises
        ------
        StorageError
            Backend unavailable, store newer than the registry, or a
            migration step failed.
        SchemaError
            Store contents contradict a collection declaration.
        """
        with self._lock:
            if self._handle is not None:
                return self._handle

            conn = DBConnection(self.backend.connect(), self.backend.helpers)
            try:
                self.backend.init_schema(conn)
                version = self.migrations.apply_migrations(conn)
            except Exception:
                conn.close()
                raise

            collections = {
                name: spec
                for name, spec in self.registry.collections.items()
                if spec.since_version <= version
            }
            self._handle = StoreHandle(conn=conn, version=version, collections=collections)
            logger.info(
                "Opened store at schema version %d with collections %s",
                version,
                sorted(collections),
            )
            return self._handle

    def close(self) -> None:
        """
        Release the connection.

        Long-running services never need this; it exists for tests and
        command-line tools that reopen the same file.
        """
        with self._lock:
            if self._handle is None:
                return
            self._handle.conn.close()
            self._handle = None

    @property
    def version(self) -> int:
        return self.open().version

    def history(self) -> List[Dict[str, Any]]:
        handle = self.open()
        with self._lock:
            return self.migrations.history(handle.conn)

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def transaction(
        self,
        collections: Iterable[str],
        mode: AccessMode = AccessMode.READONLY,
    ) -> "Transaction":
        """
        Create a transaction scoped to `collections`.

        Use it as a context manager; it begins on enter and commits on a
        clean exit or rolls back when the block raises.
        """
        handle = self.open()
        scope = tuple(dict.fromkeys(collections))
        if not scope:
            raise StorageError("A transaction needs at least one collection")
        for name in scope:
            if name not in handle.collections:
                raise StorageError(f"Unknown collection {name!r}")
        return Transaction(self, handle, scope, AccessMode(mode))


class Transaction:
    """
    One all-or-nothing unit of work over a fixed set of collections.

    Records are plain dicts; typing is layered on by CollectionStore.
    """

    def __init__(
        self,
        engine: Engine,
        handle: StoreHandle,
        scope: Tuple[str, ...],
        mode: AccessMode,
    ):
        self.engine = engine
        self.handle = handle
        self.scope = scope
        self.mode = mode
        self._entered = False
        self._finished = False

    # ------------------------------------------------------------------
    # Context manager
    # ------------------------------------------------------------------

    def __enter__(self) -> "Transaction":
        if self._entered:
            raise StorageError("Transaction objects cannot be reused")
        lock = self.engine._lock
        lock.acquire()
        try:
            if self.engine._active is not None:
                raise StorageError("Nested transactions are not supported")
            self.handle.conn.begin(write=self.mode is AccessMode.READWRITE)
        except Exception:
            lock.release()
            raise
        self.engine._active = self
        self._entered = True
        return self

    def __exit__(self, exc_type, exc, tb):
        conn = self.handle.conn
        try:
            if exc_type is None:
                try:
                    conn.commit()
                except StorageError:
                    conn.rollback()
                    raise
            else:
                try:
                    conn.rollback()
                except StorageError:
                    logger.exception("Rollback failed after %s", exc_type.__name__)
        finally:
            self._finished = True
            self.engine._active = None
            self.engine._lock.release()
        return False

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, collection: str, key: Any) -> Optional[Dict[str, Any]]:
        spec = self._spec(collection)
        spec.key_rule.validate(key)
        row = self.handle.conn.fetch_one(
            f"SELECT record FROM {quote_ident(collection)} WHERE record_key = ?",
            (key,),
        )
        return decode_value(row["record"]) if row else None

    def get_all(self, collection: str) -> List[Dict[str, Any]]:
        self._spec(collection)
        rows = self.handle.conn.fetch_all(
            f"SELECT record FROM {quote_ident(collection)} ORDER BY record_key"
        )
        return [decode_value(r["record"]) for r in rows]

    def count(self, collection: str) -> int:
        self._spec(collection)
        row = self.handle.conn.fetch_one(
            f"SELECT COUNT(*) AS n FROM {quote_ident(collection)}"
        )
        return int(row["n"]) if row else 0

    def exists(self, collection: str, key: Any) -> bool:
        spec = self._spec(collection)
        spec.key_rule.validate(key)
        row = self.handle.conn.fetch_one(
            f"SELECT 1 AS found FROM {quote_ident(collection)} WHERE record_key = ?",
            (key,),
        )
        return row is not None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def add(self, collection: str, record: Dict[str, Any]) -> Any:
        """
        Insert a new record and return its key.

        Raises UniqueKeyViolation when the key is already present.
        """
        spec = self._writable(collection)
        record = dict(record)
        key = spec.key_rule.extract(record)
        table = quote_ident(collection)

        if key is None:
            return self._insert_auto(spec, record)

        if self.exists(collection, key):
            raise UniqueKeyViolation(collection, key)
        self.handle.conn.execute(
            f"INSERT INTO {table} (record_key, record) VALUES (?, ?)",
            (key, encode_value(record)),
        )
        return key

    def put(self, collection: str, record: Dict[str, Any]) -> Any:
        """Insert or fully replace a record and return its key."""
        spec = self._writable(collection)
        record = dict(record)
        key = spec.key_rule.extract(record)

        if key is None:
            return self._insert_auto(spec, record)

        self.handle.conn.execute(
            f"""
            INSERT INTO {quote_ident(collection)} (record_key, record) VALUES (?, ?)
            ON CONFLICT(record_key) DO UPDATE SET record = excluded.record
            """,
            (key, encode_value(record)),
        )
        return key

    def delete(self, collection: str, key: Any) -> None:
        spec = self._writable(collection)
        spec.key_rule.validate(key)
        self.handle.conn.execute(
            f"DELETE FROM {quote_ident(collection)} WHERE record_key = ?",
            (key,),
        )

    def clear(self, collection: str) -> None:
        self._writable(collection)
        self.handle.conn.execute(f"DELETE FROM {quote_ident(collection)}")

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _spec(self, collection: str) -> CollectionSpec:
        if not self._entered or self._finished:
            raise StorageError("Transaction is not active")
        if collection not in self.scope:
            raise StorageError(
                f"Collection {collection!r} is outside this transaction's scope {self.scope}"
            )
        return self.handle.collections[collection]

    def _writable(self, collection: str) -> CollectionSpec:
        spec = self._spec(collection)
        if self.mode is not AccessMode.READWRITE:
            raise StorageError(f"Cannot write to {collection!r} in a read-only transaction")
        return spec

    def _insert_auto(self, spec: CollectionSpec, record: Dict[str, Any]) -> int:
        table = quote_ident(spec.name)
        cur = self.handle.conn.execute(
            f"INSERT INTO {table} (record) VALUES (?)",
            (encode_value(record),),
        )
        key = cur.lastrowid
        if spec.key_rule.field is not None:
            record[spec.key_rule.field] = key
            self.handle.conn.execute(
                f"UPDATE {table} SET record = ? WHERE record_key = ?",
                (encode_value(record), key),
            )
        return key


__all__ = [
    "AccessMode",
    "StoreHandle",
    "Engine",
    "Transaction",
]
