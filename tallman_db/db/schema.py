"""
Schema declarations for the Tallman store.

A SchemaRegistry is a pure description: it records which collections
exist, how each extracts its key, which indexes and seed records belong
to which schema version, and any extra upgrade callables. Nothing touches
the database until Engine.open() hands the registry to the
MigrationManager.

Usage pattern:

    reg = SchemaRegistry()
    reg.declare("knowledge", KeyRule("timestamp", key_type="integer"), since_version=1)
    reg.create_index("knowledge", "content", since_version=1)
    reg.declare("approvedUsers", KeyRule("username"), since_version=3)
    reg.seed("approvedUsers", [{"username": "root", "role": "admin"}], since_version=3)

Physical layout (SQLite), one table per collection:

    "<collection>"(
        record_key  INTEGER|TEXT PRIMARY KEY,
        record      TEXT NOT NULL          -- JSON object
    )
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

from .helpers import encode_value, is_identifier, quote_ident
from ..errors import SchemaError, StorageError


KEY_TYPES = ("integer", "text")

INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1

RESERVED_PREFIX = "_"


# ----------------------------------------------------------------------
# Key rules and collection specs
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class KeyRule:
    """
    How a collection derives the key of a record.

    field:
        Name of the record field holding the key. May be None only for
        auto-increment collections (out-of-line surrogate keys).
    key_type:
        "integer" or "text".
    auto_increment:
        Let the store assign increasing integer keys. When a field is
        named, the assigned key is written back into it.
    """

    field: Optional[str] = None
    key_type: str = "text"
    auto_increment: bool = False

    def __post_init__(self):
        if self.key_type not in KEY_TYPES:
            raise SchemaError(f"Unknown key type {self.key_type!r}; expected one of {KEY_TYPES}")
        if self.auto_increment and self.key_type != "integer":
            raise SchemaError("Auto-increment keys must use key_type='integer'")
        if self.field is None and not self.auto_increment:
            raise SchemaError("A key rule needs a key field unless it is auto-increment")
        if self.field is not None and not is_identifier(self.field):
            raise SchemaError(f"Invalid key field name {self.field!r}")

    def extract(self, record: Dict[str, Any]) -> Any:
        """
        Return the key of `record`, or None when the store should assign it.
        """
        if self.field is None:
            return None
        key = record.get(self.field)
        if key is None:
            if self.auto_increment:
                return None
            raise StorageError(f"Record is missing its key field {self.field!r}")
        self.validate(key)
        return key

    def validate(self, key: Any) -> None:
        if self.key_type == "integer":
            ok = (
                isinstance(key, int)
                and not isinstance(key, bool)
                and INT64_MIN <= key <= INT64_MAX
            )
        else:
            ok = isinstance(key, str)
        if not ok:
            raise StorageError(f"Invalid {self.key_type} key {key!r}")

    def column_sql(self) -> str:
        if self.auto_increment:
            return "record_key INTEGER PRIMARY KEY AUTOINCREMENT"
        if self.key_type == "integer":
            return "record_key INTEGER PRIMARY KEY"
        return "record_key TEXT PRIMARY KEY NOT NULL"


@dataclass(frozen=True)
class CollectionSpec:
    name: str
    key_rule: KeyRule
    since_version: int


# ----------------------------------------------------------------------
# Migration actions
# ----------------------------------------------------------------------

def create_collection_table(conn, spec: CollectionSpec) -> None:
    """
    Create the table backing `spec` and record it in _collections.

    Raises SchemaError when the store already holds this collection under
    a different key rule.
    """
    rule = spec.key_rule
    row = conn.fetch_one(
        "SELECT * FROM _collections WHERE name = ?",
        (spec.name,),
    )
    if row is not None:
        stored = KeyRule(
            field=row["key_field"],
            key_type=row["key_type"],
            auto_increment=bool(row["auto_increment"]),
        )
        if stored != rule:
            raise SchemaError(
                f"Collection {spec.name!r} exists with key rule {stored}, declared {rule}"
            )
    else:
        conn.execute(
            """
            INSERT INTO _collections (name, key_field, key_type, auto_increment, since_version)
            VALUES (?, ?, ?, ?, ?)
            """,
            (spec.name, rule.field, rule.key_type, int(rule.auto_increment), spec.since_version),
        )

    conn.execute(
        f"CREATE TABLE IF NOT EXISTS {quote_ident(spec.name)} "
        f"({rule.column_sql()}, record TEXT NOT NULL)"
    )


class CreateCollection:
    def __init__(self, spec: CollectionSpec):
        self.spec = spec
        self.description = f"create collection {spec.name}"

    def __call__(self, conn) -> None:
        create_collection_table(conn, self.spec)


class CreateIndex:
    def __init__(self, spec: CollectionSpec, field_name: str, *, unique: bool = False):
        self.spec = spec
        self.field = field_name
        self.unique = unique
        self.index_name = f"idx_{spec.name}_{field_name}"
        self.description = f"create index {self.index_name}"

    def __call__(self, conn) -> None:
        unique = "UNIQUE " if self.unique else ""
        conn.execute(
            f"CREATE {unique}INDEX IF NOT EXISTS {quote_ident(self.index_name)} "
            f"ON {quote_ident(self.spec.name)} (json_extract(record, '$.{self.field}'))"
        )


class SeedRecords:
    """
    Insert fixed records, skipping keys that already exist.

    Existing records are never overwritten, so a seeded record that was
    later modified keeps its modifications when the step is re-run.
    """

    def __init__(self, spec: CollectionSpec, records: Iterable[Dict[str, Any]]):
        self.spec = spec
        self.records = [dict(r) for r in records]
        self.description = f"seed {len(self.records)} record(s) into {spec.name}"

    def __call__(self, conn) -> None:
        table = quote_ident(self.spec.name)
        for record in self.records:
            key = self.spec.key_rule.extract(record)
            conn.execute(
                f"INSERT OR IGNORE INTO {table} (record_key, record) VALUES (?, ?)",
                (key, encode_value(record)),
            )


class UpgradeStep:
    def __init__(self, upgrade: Callable[[Any], None], description: Optional[str] = None):
        self.upgrade = upgrade
        self.description = description or getattr(upgrade, "__name__", repr(upgrade))

    def __call__(self, conn) -> None:
        self.upgrade(conn)


@dataclass
class Migration:
    """All actions that bring the store up to `to_version`."""

    to_version: int
    actions: List[Callable[[Any], None]] = field(default_factory=list)

    def describe(self) -> List[str]:
        return [getattr(a, "description", repr(a)) for a in self.actions]


# ----------------------------------------------------------------------
# Registry
# ----------------------------------------------------------------------

class SchemaRegistry:
    """
    Declarative schema: collections plus version-ordered migration steps.

    Versions must be registered in non-decreasing order; several actions
    may share one version and are then applied together, in declaration
    order, as that version's migration set.
    """

    def __init__(self):
        self._collections: Dict[str, CollectionSpec] = {}
        self._migrations: Dict[int, Migration] = {}

    # ------------------------------------------------------------------
    # Declarations
    # ------------------------------------------------------------------

    def declare(self, name: str, key_rule: KeyRule, since_version: int) -> CollectionSpec:
        """
        Declare a collection introduced at `since_version`.

        Re-declaring a collection with the same key rule is a no-op and
        returns the existing spec.
        """
        if not is_identifier(name) or name.startswith(RESERVED_PREFIX):
            raise SchemaError(f"Invalid collection name {name!r}")

        existing = self._collections.get(name)
        if existing is not None:
            if existing.key_rule != key_rule:
                raise SchemaError(
                    f"Collection {name!r} already declared with key rule "
                    f"{existing.key_rule}, got {key_rule}"
                )
            return existing

        spec = CollectionSpec(name=name, key_rule=key_rule, since_version=since_version)
        self._add_action(since_version, CreateCollection(spec))
        self._collections[name] = spec
        return spec

    def create_index(
        self,
        collection: str,
        field_name: str,
        since_version: int,
        *,
        unique: bool = False,
    ) -> None:
        spec = self._require(collection, since_version)
        if not is_identifier(field_name):
            raise SchemaError(f"Invalid index field {field_name!r}")
        self._add_action(since_version, CreateIndex(spec, field_name, unique=unique))

    def seed(
        self,
        collection: str,
        records: Iterable[Dict[str, Any]],
        since_version: int,
    ) -> None:
        spec = self._require(collection, since_version)
        action = SeedRecords(spec, records)
        for record in action.records:
            try:
                key = spec.key_rule.extract(record)
            except StorageError as e:
                raise SchemaError(f"Invalid seed record for {collection!r}: {e}") from e
            if key is None:
                raise SchemaError(f"Seed records for {collection!r} must carry explicit keys")
        self._add_action(since_version, action)

    def register(
        self,
        version: int,
        upgrade: Callable[[Any], None],
        description: Optional[str] = None,
    ) -> None:
        """
        Register an arbitrary upgrade callable taking the DBConnection.

        The callable must be idempotent (re-runnable against a store that
        already carries its effect).
        """
        self._add_action(version, UpgradeStep(upgrade, description))

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def migrations(self) -> List[Migration]:
        """Migration steps in strictly ascending version order."""
        return [self._migrations[v] for v in sorted(self._migrations)]

    @property
    def latest_version(self) -> int:
        return max(self._migrations.keys(), default=0)

    @property
    def collections(self) -> Dict[str, CollectionSpec]:
        return dict(self._collections)

    def collection(self, name: str) -> Optional[CollectionSpec]:
        return self._collections.get(name)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require(self, collection: str, since_version: int) -> CollectionSpec:
        spec = self._collections.get(collection)
        if spec is None:
            raise SchemaError(f"Collection {collection!r} is not declared")
        if since_version < spec.since_version:
            raise SchemaError(
                f"Collection {collection!r} only exists from version "
                f"{spec.since_version}, not {since_version}"
            )
        return spec

    def _add_action(self, version: int, action: Callable[[Any], None]) -> None:
        if not isinstance(version, int) or isinstance(version, bool) or version < 1:
            raise SchemaError(f"Schema versions must be positive integers, got {version!r}")
        if version < self.latest_version:
            raise SchemaError(
                f"Migration for version {version} registered after version "
                f"{self.latest_version}; versions must be increasing"
            )
        self._migrations.setdefault(version, Migration(to_version=version)).actions.append(action)


__all__ = [
    "KeyRule",
    "CollectionSpec",
    "CreateCollection",
    "CreateIndex",
    "SeedRecords",
    "UpgradeStep",
    "Migration",
    "SchemaRegistry",
    "create_collection_table",
]
