"""
SQLite backend for the Tallman store.

Implements:
    - connect()
    - helpers      (required by DBBackend abstract interface)
    - init_schema()

One file holds every collection as its own table plus two bookkeeping
tables owned by the engine.
"""

from __future__ import annotations
import sqlite3
from pathlib import Path

from . import helpers
from .backend_base import DBBackend
from ..errors import StorageError


MEMORY_URI = ":memory:"


# ----------------------------------------------------------------------
# Engine metadata schema
# ----------------------------------------------------------------------

SQL_SCHEMA = """
-- ------------------------------------------------------------
-- Applied schema versions, one row per migration step
-- ------------------------------------------------------------
CREATE TABLE IF NOT EXISTS _schema_version (
    version      INTEGER NOT NULL,
    applied_at   TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

-- ------------------------------------------------------------
-- Collections created so far and the key rule each was created with
-- ------------------------------------------------------------
CREATE TABLE IF NOT EXISTS _collections (
    name            TEXT PRIMARY KEY,
    key_field       TEXT,
    key_type        TEXT NOT NULL,
    auto_increment  INTEGER NOT NULL DEFAULT 0,
    since_version   INTEGER NOT NULL,
    created_at      TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);
"""


# ----------------------------------------------------------------------
# Backend implementation
# ----------------------------------------------------------------------

class SQLiteBackend(DBBackend):
    """
    Minimal SQLite backend.

    Parameters
    ----------
    db_path : str
        Path to the SQLite database file, or ":memory:".
    busy_timeout : float
        Seconds to wait on a lock held by another connection.
    """

    def __init__(self, db_path: str, *, busy_timeout: float = 5.0):
        self.uri = str(db_path)
        self.path = None if self.uri == MEMORY_URI else Path(self.uri)
        self.busy_timeout = busy_timeout
        self._helpers = helpers

    @property
    def helpers(self):
        """
        Required by DBBackend.
        """
        return self._helpers

    # ------------------------------------------------------------------
    # Connection handling
    # ------------------------------------------------------------------

    def connect(self) -> sqlite3.Connection:
        """
        Open a SQLite3 connection with row_factory=dict-like access.

        The connection runs in autocommit mode; the engine issues BEGIN /
        COMMIT itself. It may be used from any thread because the engine
        serialises access with its own lock.
        """
        try:
            if self.path is not None:
                self.path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(
                self.uri,
                timeout=self.busy_timeout,
                isolation_level=None,
                check_same_thread=False,
            )
            conn.row_factory = sqlite3.Row
            # Fails fast when another process holds an exclusive lock.
            conn.execute("PRAGMA schema_version").fetchone()
        except (sqlite3.Error, OSError) as e:
            raise StorageError(f"Cannot open SQLite store at {self.uri!r}: {e}") from e

        return conn

    # ------------------------------------------------------------------
    # Schema initializer
    # ------------------------------------------------------------------

    def init_schema(self, conn) -> None:
        """
        Create the metadata tables if they do not exist.

        Idempotent – safe to call multiple times.
        """
        raw = getattr(conn, "raw", conn)
        try:
            raw.executescript(SQL_SCHEMA)
        except sqlite3.Error as e:
            raise StorageError(f"Cannot initialise store metadata: {e}") from e
