"""
SQL execution and record encoding helpers for the SQLite backend.

Every sqlite3 failure, and every integer too wide for a SQLite column,
leaves this module as a StorageError with the statement attached. A
lock held by another connection gets its own message so callers can
tell contention from corruption.

Backends import this module as `.helpers`
"""

from __future__ import annotations

import json
import re
import sqlite3
from typing import Any, Dict, Optional

from ..errors import StorageError


_IDENTIFIER = re.compile(r"^[A-Za-z][A-Za-z0-9_]*$")


def _wrap(e: Exception, query: str) -> StorageError:
    statement = " ".join(query.split())
    if "locked" in str(e) or "busy" in str(e):
        return StorageError(f"Store is locked by another connection ({e}) during: {statement}")
    return StorageError(f"SQLite error: {e} during: {statement}")


# ----------------------------------------------------------------------
# Execution
# ----------------------------------------------------------------------

def safe_execute(conn: sqlite3.Connection, query: str, params: Optional[tuple] = None):
    """Run one statement and return its cursor."""
    try:
        return conn.execute(query, params or ())
    except (sqlite3.Error, OverflowError) as e:
        raise _wrap(e, query) from e


def safe_fetch_all(conn: sqlite3.Connection, query: str, params: Optional[tuple] = None):
    return safe_execute(conn, query, params).fetchall()


def safe_fetch_one(conn: sqlite3.Connection, query: str, params: Optional[tuple] = None):
    return safe_execute(conn, query, params).fetchone()


def row_to_dict(row: sqlite3.Row) -> Dict[str, Any]:
    return {k: row[k] for k in row.keys()}


# ----------------------------------------------------------------------
# Record values
# ----------------------------------------------------------------------

def encode_value(record: dict) -> str:
    """
    Serialize a record for the `record` column.

    List order is preserved exactly, which keeps chat messages in their
    original chronological order across a round trip.
    """
    try:
        return json.dumps(record, ensure_ascii=False, sort_keys=True)
    except (TypeError, ValueError) as e:
        raise StorageError(f"Record is not JSON serializable: {e}") from e


def decode_value(raw: str) -> dict:
    try:
        value = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise StorageError(f"Corrupt stored value: {e}") from e
    if not isinstance(value, dict):
        raise StorageError(f"Corrupt stored value: expected an object, got {type(value).__name__}")
    return value


# ----------------------------------------------------------------------
# Identifiers
# ----------------------------------------------------------------------

def is_identifier(name: str) -> bool:
    return isinstance(name, str) and bool(_IDENTIFIER.match(name))


def quote_ident(name: str) -> str:
    """
    Quote a table or index name for interpolation into SQL.

    Only names matching the identifier pattern are accepted, so nothing
    inside the quotes ever needs escaping.
    """
    if not is_identifier(name):
        raise StorageError(f"Invalid SQL identifier: {name!r}")
    return f'"{name}"'


__all__ = [
    "safe_execute",
    "safe_fetch_all",
    "safe_fetch_one",
    "row_to_dict",
    "encode_value",
    "decode_value",
    "is_identifier",
    "quote_ident",
]
