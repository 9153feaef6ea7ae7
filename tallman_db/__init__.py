"""
tallman_db

Top-level package initializer for the Tallman chat store.

Submodules include:
    - db/            schema registry, engine, transactions, typed stores
    - repositories/  knowledge, chat session and approved-user repositories
    - apis/          context retrieval and knowledge import/export
    - core           the TallmanDB façade
    - errors         exception taxonomy

This root package exports the config loader, the façade and the errors
for convenience.
"""

from .config import TallmanDBConfig, load_config
from .core import TallmanDB, create_tallman_db
from .errors import (
    ProtectedResourceError,
    SchemaError,
    StorageError,
    TallmanDBError,
    UniqueKeyViolation,
    ValidationError,
)

__all__ = [
    "TallmanDBConfig",
    "load_config",
    "TallmanDB",
    "create_tallman_db",
    "TallmanDBError",
    "SchemaError",
    "StorageError",
    "UniqueKeyViolation",
    "ProtectedResourceError",
    "ValidationError",
]
