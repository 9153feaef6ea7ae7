"""
Global configuration settings for the Tallman store.

This module centralizes configuration for:

    - database location
    - bootstrap admin identity
    - first-start knowledge seeding
    - retrieval result size
    - feature flags (logging, etc.)

It provides:
    TallmanDBConfig  – structured config object
    load_config()    – load from environment variables or defaults
"""

from __future__ import annotations

from dataclasses import dataclass
import os

from .apis.retrieval_api import MAX_CONTEXT_DOCUMENTS


DEFAULT_BOOTSTRAP_ADMIN = "bootstrap-admin"


@dataclass
class TallmanDBConfig:
    """
    Canonical configuration for the tallman_db subsystem.

    Attributes
    ----------
    db_uri:
        Path to the SQLite database file (e.g. "./tallman.db"), or
        ":memory:" for a throwaway store.

    bootstrap_admin:
        Username of the admin record that is seeded at schema version 3
        and can never be deleted.

    seed_knowledge:
        Populate the knowledge collection with the default fact sheet
        when it is empty at startup.

    busy_timeout:
        Seconds to wait for a lock held by another connection before
        giving up with a StorageError.

    context_limit:
        Maximum number of documents returned by context retrieval,
        between 1 and MAX_CONTEXT_DOCUMENTS.

    enable_logging:
        Whether to enable internal info logging.
    """

    db_uri: str = "tallman.db"
    bootstrap_admin: str = DEFAULT_BOOTSTRAP_ADMIN

    seed_knowledge: bool = True
    busy_timeout: float = 5.0
    context_limit: int = 3

    enable_logging: bool = False

    def __post_init__(self):
        if not 1 <= self.context_limit <= MAX_CONTEXT_DOCUMENTS:
            raise ValueError(
                f"context_limit must be between 1 and {MAX_CONTEXT_DOCUMENTS}, "
                f"got {self.context_limit}"
            )


def load_config() -> TallmanDBConfig:
    """
    Load TallmanDBConfig from environment variables, falling back to defaults.

    Recognized variables:
        TALLMAN_DB_URI              (path or ":memory:")
        TALLMAN_BOOTSTRAP_ADMIN     (username)
        TALLMAN_SEED_KNOWLEDGE      ("true" / "false" / "1" / "0")
        TALLMAN_BUSY_TIMEOUT        (seconds, float)
        TALLMAN_CONTEXT_LIMIT       (int)
        TALLMAN_ENABLE_LOGGING      ("true" / "false" / "1" / "0")

    Returns
    -------
    TallmanDBConfig

    Raises
    ------
    ValueError
        If a numeric variable cannot be parsed, or TALLMAN_CONTEXT_LIMIT
        is outside 1..MAX_CONTEXT_DOCUMENTS.
    """

    def _env_flag(name: str, default: bool) -> bool:
        val = os.getenv(name)
        if val is None:
            return default
        return val.strip().lower() in ("1", "true", "yes", "on")

    return TallmanDBConfig(
        db_uri=os.getenv("TALLMAN_DB_URI", "tallman.db"),
        bootstrap_admin=os.getenv(
            "TALLMAN_BOOTSTRAP_ADMIN",
            DEFAULT_BOOTSTRAP_ADMIN,
        ),

        seed_knowledge=_env_flag("TALLMAN_SEED_KNOWLEDGE", default=True),
        busy_timeout=float(os.getenv("TALLMAN_BUSY_TIMEOUT", "5.0")),
        context_limit=int(os.getenv("TALLMAN_CONTEXT_LIMIT", "3")),

        enable_logging=_env_flag(
            "TALLMAN_ENABLE_LOGGING",
            default=False
        ),
    )
