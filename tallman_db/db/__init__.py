"""
tallman_db.db

Storage layer for the Tallman store.

This package provides:

- Schema declarations:
      * SchemaRegistry, KeyRule, CollectionSpec, Migration

- The storage engine and its transactions:
      * Engine, Transaction, StoreHandle, AccessMode

- A typed per-collection CRUD surface:
      * CollectionStore

- A backend-agnostic connection wrapper and SQLite backend:
      * DBConnection
      * SQLiteBackend

- Helper functions for safe SQL execution and row mapping:
      * safe_execute
      * safe_fetch_all
      * safe_fetch_one
      * row_to_dict

- Migration execution:
      * MigrationManager

- Backend contracts:
      * DBBackend
      * ensure_backend
"""

from .connection import DBConnection
from .sqlite_backend import SQLiteBackend
from .backend_base import DBBackend, ensure_backend
from .helpers import (
    safe_execute,
    safe_fetch_all,
    safe_fetch_one,
    row_to_dict,
)
from .schema import CollectionSpec, KeyRule, Migration, SchemaRegistry
from .migrations import MigrationManager
from .engine import AccessMode, Engine, StoreHandle, Transaction
from .collection import CollectionStore

__all__ = [
    # Connection
    "DBConnection",

    # Backends
    "SQLiteBackend",
    "DBBackend",
    "ensure_backend",

    # Helpers
    "safe_execute",
    "safe_fetch_all",
    "safe_fetch_one",
    "row_to_dict",

    # Schema / migrations
    "CollectionSpec",
    "KeyRule",
    "Migration",
    "SchemaRegistry",
    "MigrationManager",

    # Engine
    "AccessMode",
    "Engine",
    "StoreHandle",
    "Transaction",

    # Typed store
    "CollectionStore",
]
