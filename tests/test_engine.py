"""Tests for the storage engine: opening, migrations and transactions."""

from __future__ import annotations

import sqlite3

import pytest

from tallman_db.db import AccessMode, Engine, KeyRule, SchemaRegistry, SQLiteBackend
from tallman_db.defaults import build_schema
from tallman_db.errors import SchemaError, StorageError, UniqueKeyViolation


def _v1_registry() -> SchemaRegistry:
    reg = SchemaRegistry()
    reg.declare("knowledge", KeyRule("timestamp", key_type="integer"), since_version=1)
    reg.declare("chatHistory", KeyRule("id"), since_version=1)
    return reg


# ---------------------------------------------------------------------------
# Opening
# ---------------------------------------------------------------------------


class TestOpen:
    def test_open_is_idempotent(self, engine) -> None:
        first = engine.open()
        assert engine.open() is first

    def test_fresh_store_reaches_latest_version(self, engine) -> None:
        handle = engine.open()
        assert handle.version == 3
        assert set(handle.collections) == {"knowledge", "chatHistory", "approvedUsers"}
        assert [row["version"] for row in engine.history()] == [1, 3]

    def test_bootstrap_admin_seeded(self, engine) -> None:
        with engine.transaction(["approvedUsers"]) as tx:
            assert tx.get("approvedUsers", "bootstrap-admin") == {
                "username": "bootstrap-admin",
                "role": "admin",
            }

    def test_in_memory_store(self) -> None:
        eng = Engine(SQLiteBackend(":memory:"), build_schema())
        try:
            assert eng.version == 3
        finally:
            eng.close()

    def test_reopen_does_not_reapply(self, db_path) -> None:
        calls = []
        reg = _v1_registry()
        reg.register(2, lambda conn: calls.append(1), description="count calls")

        for _ in range(2):
            eng = Engine(SQLiteBackend(str(db_path)), reg)
            assert eng.open().version == 2
            eng.close()

        assert calls == [1]

    def test_locked_store_raises_storage_error(self, db_path) -> None:
        first = Engine(SQLiteBackend(str(db_path)), build_schema())
        first.open()
        first.close()

        blocker = sqlite3.connect(str(db_path), isolation_level=None)
        blocker.execute("BEGIN EXCLUSIVE")
        try:
            eng = Engine(SQLiteBackend(str(db_path), busy_timeout=0.05), build_schema())
            with pytest.raises(StorageError):
                eng.open()
            assert not eng.is_open
        finally:
            blocker.execute("ROLLBACK")
            blocker.close()


# ---------------------------------------------------------------------------
# Migrations
# ---------------------------------------------------------------------------


class TestMigrations:
    def test_new_collection_preserves_existing_records(self, db_path) -> None:
        eng = Engine(SQLiteBackend(str(db_path)), _v1_registry())
        with eng.transaction(["knowledge", "chatHistory"], AccessMode.READWRITE) as tx:
            tx.add("knowledge", {"content": "kept", "timestamp": 1})
            tx.add("chatHistory", {"id": "1000", "title": "Hi", "messages": []})
        eng.close()

        reg = _v1_registry()
        reg.declare("notes", KeyRule("id"), since_version=2)
        eng = Engine(SQLiteBackend(str(db_path)), reg)
        try:
            handle = eng.open()
            assert handle.version == 2
            assert "notes" in handle.collections
            with eng.transaction(["knowledge", "chatHistory", "notes"]) as tx:
                assert tx.get_all("knowledge") == [{"content": "kept", "timestamp": 1}]
                assert tx.get("chatHistory", "1000")["title"] == "Hi"
                assert tx.count("notes") == 0
        finally:
            eng.close()

    def test_failed_step_leaves_previous_version(self, db_path) -> None:
        def boom(conn):
            raise RuntimeError("disk on fire")

        reg = _v1_registry()
        reg.register(2, boom)
        eng = Engine(SQLiteBackend(str(db_path)), reg)
        with pytest.raises(StorageError, match="version 2"):
            eng.open()
        assert not eng.is_open

        eng = Engine(SQLiteBackend(str(db_path)), _v1_registry())
        try:
            assert eng.open().version == 1
        finally:
            eng.close()

    def test_failed_step_is_rolled_back(self, db_path) -> None:
        def half_done(conn):
            conn.execute("CREATE TABLE leftover (x INTEGER)")
            raise RuntimeError("interrupted")

        reg = _v1_registry()
        reg.register(2, half_done)
        with pytest.raises(StorageError):
            Engine(SQLiteBackend(str(db_path)), reg).open()

        raw = sqlite3.connect(str(db_path))
        try:
            names = {r[0] for r in raw.execute("SELECT name FROM sqlite_master WHERE type='table'")}
        finally:
            raw.close()
        assert "leftover" not in names
        assert "knowledge" in names

    def test_store_newer_than_schema_is_refused(self, db_path) -> None:
        eng = Engine(SQLiteBackend(str(db_path)), build_schema())
        eng.open()
        eng.close()

        with pytest.raises(StorageError, match="newer"):
            Engine(SQLiteBackend(str(db_path)), _v1_registry()).open()

    def test_stored_key_rule_conflict(self, db_path) -> None:
        eng = Engine(SQLiteBackend(str(db_path)), _v1_registry())
        eng.open()
        eng.close()

        reg = SchemaRegistry()
        reg.declare("knowledge", KeyRule("content"), since_version=1)
        with pytest.raises(SchemaError):
            Engine(SQLiteBackend(str(db_path)), reg).open()

    def test_seed_does_not_overwrite_changed_record(self, engine) -> None:
        with engine.transaction(["approvedUsers"], AccessMode.READWRITE) as tx:
            tx.put("approvedUsers", {"username": "bootstrap-admin", "role": "hold"})

        seed = engine.registry.migrations()[-1].actions[-1]
        with engine.transaction(["approvedUsers"], AccessMode.READWRITE) as tx:
            seed(tx.handle.conn)

        with engine.transaction(["approvedUsers"]) as tx:
            assert tx.get("approvedUsers", "bootstrap-admin")["role"] == "hold"


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------


class TestTransactions:
    def test_unknown_collection(self, engine) -> None:
        with pytest.raises(StorageError):
            engine.transaction(["nope"])

    def test_empty_scope(self, engine) -> None:
        with pytest.raises(StorageError):
            engine.transaction([])

    def test_out_of_scope_access(self, engine) -> None:
        with engine.transaction(["knowledge"]) as tx:
            with pytest.raises(StorageError):
                tx.get_all("chatHistory")

    def test_readonly_rejects_writes(self, engine) -> None:
        with engine.transaction(["knowledge"]) as tx:
            with pytest.raises(StorageError):
                tx.put("knowledge", {"content": "x", "timestamp": 1})

    def test_exception_rolls_back_everything(self, engine) -> None:
        with pytest.raises(RuntimeError):
            with engine.transaction(["knowledge", "chatHistory"], AccessMode.READWRITE) as tx:
                tx.add("knowledge", {"content": "a", "timestamp": 1})
                tx.add("chatHistory", {"id": "1", "title": "t", "messages": []})
                raise RuntimeError("abort")

        with engine.transaction(["knowledge", "chatHistory"]) as tx:
            assert tx.count("knowledge") == 0
            assert tx.count("chatHistory") == 0

    def test_nested_transaction_rejected(self, engine) -> None:
        with engine.transaction(["knowledge"]):
            with pytest.raises(StorageError):
                with engine.transaction(["knowledge"]):
                    pass

    def test_transaction_not_reusable(self, engine) -> None:
        tx = engine.transaction(["knowledge"])
        with tx:
            pass
        with pytest.raises(StorageError):
            with tx:
                pass
        with pytest.raises(StorageError):
            tx.count("knowledge")

    def test_add_duplicate_raises(self, engine) -> None:
        with engine.transaction(["knowledge"], AccessMode.READWRITE) as tx:
            tx.add("knowledge", {"content": "a", "timestamp": 1})
        with pytest.raises(UniqueKeyViolation) as info:
            with engine.transaction(["knowledge"], AccessMode.READWRITE) as tx:
                tx.add("knowledge", {"content": "b", "timestamp": 1})
        assert info.value.key == 1
        with engine.transaction(["knowledge"]) as tx:
            assert tx.get("knowledge", 1) == {"content": "a", "timestamp": 1}

    def test_get_with_wrong_key_type(self, engine) -> None:
        with engine.transaction(["knowledge"]) as tx:
            with pytest.raises(StorageError):
                tx.get("knowledge", "1")


# ---------------------------------------------------------------------------
# Auto-increment collections
# ---------------------------------------------------------------------------


class TestAutoIncrement:
    @pytest.fixture
    def auto_engine(self, db_path):
        reg = SchemaRegistry()
        reg.declare("notes", KeyRule("id", key_type="integer", auto_increment=True), since_version=1)
        reg.declare("events", KeyRule(key_type="integer", auto_increment=True), since_version=1)
        eng = Engine(SQLiteBackend(str(db_path)), reg)
        yield eng
        eng.close()

    def test_keys_assigned_and_written_back(self, auto_engine) -> None:
        with auto_engine.transaction(["notes"], AccessMode.READWRITE) as tx:
            first = tx.add("notes", {"text": "a"})
            second = tx.add("notes", {"text": "b"})
        assert (first, second) == (1, 2)
        with auto_engine.transaction(["notes"]) as tx:
            assert tx.get("notes", 2) == {"text": "b", "id": 2}

    def test_out_of_line_keys(self, auto_engine) -> None:
        with auto_engine.transaction(["events"], AccessMode.READWRITE) as tx:
            key = tx.add("events", {"kind": "login"})
        with auto_engine.transaction(["events"], AccessMode.READWRITE) as tx:
            assert tx.get("events", key) == {"kind": "login"}
            tx.delete("events", key)
            assert tx.count("events") == 0
