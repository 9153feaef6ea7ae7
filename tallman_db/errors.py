"""
Exception taxonomy for the Tallman store.

Every failure raised by the store, its repositories and the import layer
derives from TallmanDBError so callers can catch the whole family at once.

    SchemaError             conflicting or non-monotonic schema declarations;
                            fatal at startup
    StorageError            backend unavailable, transaction aborted,
                            migration step failed, corrupt stored record
    UniqueKeyViolation      add() on a key that already exists
    ProtectedResourceError  delete() of the bootstrap admin user
    ValidationError         malformed import payload, rejected before writing

A missing record is never an error: lookups return None.
"""

from __future__ import annotations

from typing import Any, List, Optional


class TallmanDBError(Exception):
    """Base class for all store errors."""


class SchemaError(TallmanDBError):
    """Invalid schema declaration or migration ordering."""


class StorageError(TallmanDBError):
    """The backing engine failed or refused an operation."""


class UniqueKeyViolation(TallmanDBError):
    """An add() targeted a key that is already present in the collection."""

    def __init__(self, collection: str, key: Any):
        super().__init__(f"Key {key!r} already exists in collection {collection!r}")
        self.collection = collection
        self.key = key


class ProtectedResourceError(TallmanDBError):
    """Attempt to remove a record that must always exist."""

    def __init__(self, collection: str, key: Any):
        super().__init__(f"Record {key!r} in collection {collection!r} is protected")
        self.collection = collection
        self.key = key


class ValidationError(TallmanDBError):
    """
    An import batch failed validation.

    `errors` carries one human readable line per offending element so the
    caller can report all problems at once.
    """

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = list(errors or [])


__all__ = [
    "TallmanDBError",
    "SchemaError",
    "StorageError",
    "UniqueKeyViolation",
    "ProtectedResourceError",
    "ValidationError",
]
