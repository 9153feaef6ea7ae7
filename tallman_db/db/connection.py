"""
The Engine's single live connection.

The raw sqlite3 connection is opened in autocommit mode
(isolation_level=None), so nothing is ever committed behind the engine's
back: every transaction is an explicit begin() followed by commit() or
rollback().
"""

from __future__ import annotations

from types import ModuleType
from typing import Any, Dict, List, Optional

from ..errors import StorageError


class DBConnection:
    """
    Wraps a raw connection and routes every statement through the
    backend's helper module, so failures always surface as StorageError
    and rows always come back as plain dicts.
    """

    def __init__(self, raw_conn: Any, helpers: ModuleType):
        self.raw = raw_conn
        self.helpers = helpers

    def execute(self, query: str, params: Optional[tuple] = None):
        return self.helpers.safe_execute(self.raw, query, params)

    def fetch_all(self, query: str, params: Optional[tuple] = None) -> List[Dict[str, Any]]:
        return [self.helpers.row_to_dict(r) for r in self.helpers.safe_fetch_all(self.raw, query, params)]

    def fetch_one(self, query: str, params: Optional[tuple] = None) -> Optional[Dict[str, Any]]:
        row = self.helpers.safe_fetch_one(self.raw, query, params)
        return self.helpers.row_to_dict(row) if row else None

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @property
    def in_transaction(self) -> bool:
        return bool(self.raw.in_transaction)

    def begin(self, *, write: bool = False) -> None:
        """
        Start a transaction.

        A write transaction takes the database write lock up front, so the
        check-then-write sequences in add() and add_all_if_empty() cannot
        interleave with another writer.
        """
        self.execute("BEGIN IMMEDIATE" if write else "BEGIN")

    def commit(self) -> None:
        self._finish("COMMIT")

    def rollback(self) -> None:
        self._finish("ROLLBACK")

    def _finish(self, statement: str) -> None:
        if not self.in_transaction:
            return
        try:
            self.raw.execute(statement)
        except Exception as e:
            raise StorageError(f"{statement} failed: {e}") from e

    def close(self) -> None:
        """Close the raw connection; closing twice is harmless."""
        self.raw.close()


__all__ = [
    "DBConnection",
]
