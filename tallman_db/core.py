from __future__ import annotations

"""
Core façade for the Tallman store.

TallmanDB is the single, high-level entrypoint used by:

    - the chat layer (to persist conversations and fetch prompt context),
    - the admin screens (to manage knowledge and approved users),
    - the HTTP app in app.py.

It wraps:

    - SQLite backend + storage engine (one connection per process)
    - Typed collection stores
    - Repository layer (knowledge, chat sessions, approved users)
    - Context retriever

Build it once at process start and pass it (or its repositories) to
whatever needs the store.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from .apis.retrieval_api import ContextRetriever
from .config import TallmanDBConfig, load_config
from .db import CollectionStore, Engine, SQLiteBackend
from .defaults import DEFAULT_KNOWLEDGE_BASE, build_schema
from .repositories import (
    APPROVED_USERS,
    CHAT_HISTORY,
    KNOWLEDGE,
    ApprovedUserRepository,
    ChatSession,
    ChatSessionRepository,
    KnowledgeItem,
    KnowledgeRepository,
    User,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# TallmanDB façade
# ---------------------------------------------------------------------------

@dataclass
class TallmanDB:
    """
    High-level façade over the Tallman store.

    This object is intended to be long-lived and shared:
        - one instance per process
        - safe to hand to API handlers

    Attributes
    ----------
    config:
        TallmanDBConfig used to construct this instance.

    engine:
        Engine owning the single backend connection.

    knowledge, chats, users:
        Repositories over the three collections.

    retriever:
        ContextRetriever over the knowledge repository.
    """

    config: TallmanDBConfig
    engine: Engine
    knowledge: KnowledgeRepository
    chats: ChatSessionRepository
    users: ApprovedUserRepository
    retriever: ContextRetriever

    # ------------------------------------------------------------------
    # Construction helpers
    # ------------------------------------------------------------------

    @classmethod
    def from_config(
        cls,
        config: Optional[TallmanDBConfig] = None,
    ) -> "TallmanDB":
        """
        Construct a TallmanDB instance from a TallmanDBConfig.

        This:
            - opens the store and applies pending migrations,
            - wires up collection stores and repositories,
            - restores the bootstrap admin if it is missing,
            - seeds the knowledge base when empty (if enabled).
        """
        cfg = config or load_config()

        if cfg.enable_logging:
            logging.basicConfig(level=logging.INFO)
            logger.info("Initializing TallmanDB with config: %s", cfg)

        backend = SQLiteBackend(cfg.db_uri, busy_timeout=cfg.busy_timeout)
        engine = Engine(backend, build_schema(cfg.bootstrap_admin))
        engine.open()

        knowledge = KnowledgeRepository(CollectionStore(engine, KNOWLEDGE, KnowledgeItem))
        chats = ChatSessionRepository(CollectionStore(engine, CHAT_HISTORY, ChatSession))
        users = ApprovedUserRepository(
            CollectionStore(engine, APPROVED_USERS, User),
            bootstrap_admin=cfg.bootstrap_admin,
        )

        users.ensure_bootstrap()
        if cfg.seed_knowledge:
            knowledge.seed_if_empty(DEFAULT_KNOWLEDGE_BASE)

        return cls(
            config=cfg,
            engine=engine,
            knowledge=knowledge,
            chats=chats,
            users=users,
            retriever=ContextRetriever(knowledge, limit=cfg.context_limit),
        )

    @classmethod
    def from_env(cls) -> "TallmanDB":
        """Construct TallmanDB using environment variables."""
        return cls.from_config(load_config())

    # ------------------------------------------------------------------
    # Convenience
    # ------------------------------------------------------------------

    @property
    def schema_version(self) -> int:
        return self.engine.version

    def retrieve_context(self, query: str) -> List[str]:
        """At most `config.context_limit` knowledge contents for `query`."""
        return self.retriever.retrieve(query)

    def close(self) -> None:
        self.engine.close()


# ---------------------------------------------------------------------------
# Convenience
# ---------------------------------------------------------------------------

def create_tallman_db(config: Optional[TallmanDBConfig] = None) -> TallmanDB:
    """
    Convenience constructor used by services / scripts.
    """
    return TallmanDB.from_config(config)


__all__ = [
    "TallmanDB",
    "create_tallman_db",
]
