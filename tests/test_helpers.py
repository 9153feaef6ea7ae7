"""Tests for the SQL execution helpers."""

from __future__ import annotations

import sqlite3

import pytest

from tallman_db.db import helpers
from tallman_db.errors import StorageError


@pytest.fixture
def raw():
    conn = sqlite3.connect(":memory:", isolation_level=None)
    conn.row_factory = sqlite3.Row
    conn.execute("CREATE TABLE t (record_key INTEGER PRIMARY KEY, record TEXT)")
    yield conn
    conn.close()


class TestSafeExecute:
    def test_integer_too_wide_for_sqlite(self, raw) -> None:
        with pytest.raises(StorageError) as info:
            helpers.safe_execute(raw, "SELECT record FROM t WHERE record_key = ?", (2 ** 63,))
        assert isinstance(info.value.__cause__, OverflowError)

    def test_sql_error_carries_statement(self, raw) -> None:
        with pytest.raises(StorageError, match="SELECT nothing FROM t"):
            helpers.safe_fetch_all(raw, "SELECT nothing FROM t")

    def test_rows_as_dicts(self, raw) -> None:
        raw.execute("INSERT INTO t VALUES (1, '{}')")
        row = helpers.safe_fetch_one(raw, "SELECT * FROM t")
        assert helpers.row_to_dict(row) == {"record_key": 1, "record": "{}"}
