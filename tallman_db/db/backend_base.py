"""
What the Engine needs from a storage backend.

A backend hands out the one raw connection the Engine keeps for the life
of the process, owns the engine's bookkeeping tables, and supplies the
helper module DBConnection executes through.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from types import ModuleType
from typing import Any

REQUIRED_ATTRIBUTES = ("connect", "helpers", "init_schema")


class DBBackend(ABC):
    """Base class for store backends; SQLiteBackend is the only one shipped."""

    @property
    @abstractmethod
    def helpers(self) -> ModuleType:
        """Module exposing safe_execute, safe_fetch_all, safe_fetch_one, row_to_dict."""

    @abstractmethod
    def connect(self) -> Any:
        """Open the raw connection, or raise StorageError."""

    @abstractmethod
    def init_schema(self, conn: Any) -> None:
        """Create `_schema_version` and `_collections` if missing."""


def ensure_backend(backend: Any) -> Any:
    """
    Accept a DBBackend or any duck-typed object with the same attributes.

    Raises TypeError naming the missing attributes otherwise.
    """
    if isinstance(backend, DBBackend):
        return backend
    missing = [name for name in REQUIRED_ATTRIBUTES if not hasattr(backend, name)]
    if missing:
        raise TypeError(f"{type(backend).__name__} is not a store backend; missing {missing}")
    return backend


__all__ = [
    "DBBackend",
    "ensure_backend",
]
