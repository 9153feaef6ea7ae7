"""
Database schema migration manager.

Executes the steps declared in a SchemaRegistry against a live
connection:

    1. Ensure the metadata tables exist (backend.init_schema).
    2. Fetch the current schema version (0 for a fresh store).
    3. For each migration version > current version, run its actions
       inside one write transaction.
    4. Record the version in _schema_version in that same transaction.

A failing step rolls back completely, leaving the store at the last
successfully applied version.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from .schema import SchemaRegistry, create_collection_table
from ..errors import SchemaError, StorageError

logger = logging.getLogger(__name__)


class MigrationManager:
    """
    Schema migration executor bound to one SchemaRegistry.

    Usage pattern:

        mgr = MigrationManager(registry)
        version = mgr.apply_migrations(conn)
    """

    def __init__(self, registry: SchemaRegistry):
        self.registry = registry

    def get_latest_version(self) -> int:
        """
        Return the highest registered migration number, or 0 if none exist.
        """
        return self.registry.latest_version

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def current_version(self, conn) -> int:
        row = conn.fetch_one("SELECT MAX(version) AS version FROM _schema_version")
        if not row or row.get("version") is None:
            return 0
        return int(row["version"])

    def history(self, conn) -> List[Dict[str, Any]]:
        """Applied versions with their timestamps, oldest first."""
        return conn.fetch_all(
            "SELECT version, applied_at FROM _schema_version ORDER BY version"
        )

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def apply_migrations(self, conn) -> int:
        """
        Apply pending upgrades and return the resulting version.

        Raises
        ------
        StorageError
            The store was written by a newer schema, or a step failed.
        SchemaError
            The store disagrees with a collection declaration.
        """
        current = self.current_version(conn)
        latest = self.get_latest_version()

        if current > latest:
            raise StorageError(
                f"Store is at schema version {current}, newer than the "
                f"supported version {latest}"
            )

        for step in self.registry.migrations():
            if step.to_version <= current:
                continue

            logger.info(
                "Applying schema version %d: %s",
                step.to_version,
                ", ".join(step.describe()),
            )
            conn.begin(write=True)
            try:
                for action in step.actions:
                    action(conn)
                conn.execute(
                    "INSERT INTO _schema_version (version) VALUES (?)",
                    (step.to_version,),
                )
                conn.commit()
            except (SchemaError, StorageError):
                conn.rollback()
                raise
            except Exception as e:
                conn.rollback()
                raise StorageError(
                    f"Migration to schema version {step.to_version} failed: {e}"
                ) from e
            current = step.to_version

        self.ensure_collections(conn, current)
        return current

    def ensure_collections(self, conn, version: int) -> None:
        """
        Re-create any declared collection whose table has gone missing.

        Only collections introduced at or below `version` are considered.
        """
        conn.begin(write=True)
        try:
            for spec in self.registry.collections.values():
                if spec.since_version <= version:
                    create_collection_table(conn, spec)
            conn.commit()
        except Exception:
            conn.rollback()
            raise
