"""Shared fixtures: on-disk stores under pytest's tmp_path."""

from __future__ import annotations

import pytest

from tallman_db import TallmanDB, TallmanDBConfig
from tallman_db.db import CollectionStore, Engine, SQLiteBackend
from tallman_db.defaults import build_schema
from tallman_db.repositories import KNOWLEDGE, KnowledgeItem

BOOTSTRAP_ADMIN = "bootstrap-admin"


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "store.db"


@pytest.fixture
def engine(db_path):
    eng = Engine(SQLiteBackend(str(db_path)), build_schema(BOOTSTRAP_ADMIN))
    yield eng
    eng.close()


@pytest.fixture
def knowledge_store(engine) -> CollectionStore[KnowledgeItem]:
    return CollectionStore(engine, KNOWLEDGE, KnowledgeItem)


@pytest.fixture
def db(db_path):
    store = TallmanDB.from_config(
        TallmanDBConfig(
            db_uri=str(db_path),
            bootstrap_admin=BOOTSTRAP_ADMIN,
            seed_knowledge=False,
        )
    )
    yield store
    store.close()


@pytest.fixture
def sample_items():
    return [
        KnowledgeItem(content="A chair in red", timestamp=1),
        KnowledgeItem(content="A desk in blue", timestamp=2),
        KnowledgeItem(content="A red lamp", timestamp=3),
    ]
