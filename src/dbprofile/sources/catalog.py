"""Relation discovery and table-name resolution.

Lists the tables, views and materialized views of every user schema via
the SQLAlchemy inspector. Relations in the default schema are named bare
(``orders``); everything else is schema-qualified (``sales.orders``).
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from sqlalchemy import inspect
from sqlalchemy.engine import Connection, Inspector
from sqlalchemy.exc import SQLAlchemyError

from dbprofile.core.logging import get_logger
from dbprofile.core.models.base import RelationKind, TableRef

logger = get_logger(__name__)

SYSTEM_SCHEMAS = frozenset(
    {
        "information_schema",
        "pg_catalog",
        "pg_toast",
        "mysql",
        "performance_schema",
        "sys",
        "temp",
    }
)

# migration bookkeeping, never part of the default selection
INTERNAL_TABLES = frozenset({"schema_info", "sequel_migrations", "alembic_version"})


@dataclass(frozen=True)
class RelationInfo:
    """One queryable relation found in the catalog."""

    name: str
    ref: TableRef
    kind: RelationKind


@dataclass
class RelationCatalog:
    """All relations visible to the connection, in discovery order."""

    relations: list[RelationInfo] = field(default_factory=list)
    default_schema: str | None = None

    def __post_init__(self) -> None:
        self._by_name = {r.name: r for r in self.relations}

    def get(self, name: str) -> RelationInfo | None:
        return self._by_name.get(name)

    def relation_kind_for(self, name: str) -> RelationKind:
        """Kind of a named relation; UNKNOWN when it is not in the catalog."""
        relation = self.get(name)
        return relation.kind if relation else RelationKind.UNKNOWN

    def default_selection(
        self, include_views: bool = False, include_materialized_views: bool = False
    ) -> list[RelationInfo]:
        """Relations analyzed when no tables are named explicitly."""
        selected = []
        for relation in self.relations:
            if relation.ref.table_name in INTERNAL_TABLES:
                continue
            if relation.kind == RelationKind.VIEW and not include_views:
                continue
            if relation.kind == RelationKind.MATERIALIZED_VIEW and not include_materialized_views:
                continue
            selected.append(relation)
        return selected

    def resolve_name(self, requested: str) -> RelationInfo | str:
        """Find one requested name, or return why it could not be resolved.

        A qualified name must exist as given. A bare name is looked up in the
        default schema, then as ``public.<name>``, then as a unique match in
        any other schema.
        """
        ref = TableRef.parse(requested)
        if ref.schema_name:
            if ref.schema_name == self.default_schema:
                relation = self.get(ref.table_name)
            else:
                relation = self.get(requested)
            return relation or f"Relation '{requested}' not found"

        relation = self.get(requested)
        if relation is not None:
            return relation
        relation = self.get(f"public.{requested}")
        if relation is not None:
            return relation

        matches = [r for r in self.relations if r.ref.table_name == requested]
        if len(matches) == 1:
            return matches[0]
        if matches:
            candidates = ", ".join(r.name for r in matches)
            return f"Relation '{requested}' is ambiguous ({candidates})"
        return f"Relation '{requested}' not found"


def _user_schemas(inspector: Inspector) -> list[str | None]:
    try:
        names = inspector.get_schema_names()
    except (NotImplementedError, SQLAlchemyError) as e:
        logger.debug("schema_listing_unavailable", error=str(e))
        return [None]
    schemas = [
        name
        for name in names
        if name not in SYSTEM_SCHEMAS and not name.startswith(("pg_temp", "pg_toast"))
    ]
    return schemas or [None]


def _list_names(inspector: Inspector, kind: RelationKind, schema: str | None) -> Sequence[str]:
    try:
        if kind == RelationKind.TABLE:
            return inspector.get_table_names(schema=schema)
        if kind == RelationKind.VIEW:
            return inspector.get_view_names(schema=schema)
        return inspector.get_materialized_view_names(schema=schema)
    except NotImplementedError:
        return []
    except SQLAlchemyError as e:
        logger.warning("relation_listing_failed", schema=schema, kind=kind.value, error=str(e))
        return []


def discover_relations(conn: Connection) -> RelationCatalog:
    """List every user relation reachable through the connection."""
    inspector = inspect(conn)
    default_schema = inspector.default_schema_name

    relations: list[RelationInfo] = []
    seen: set[str] = set()
    for schema in _user_schemas(inspector):
        is_default = schema is None or schema == default_schema
        for kind in (RelationKind.TABLE, RelationKind.VIEW, RelationKind.MATERIALIZED_VIEW):
            for table_name in sorted(_list_names(inspector, kind, schema)):
                ref = TableRef(table_name=table_name, schema_name=None if is_default else schema)
                if str(ref) in seen:
                    continue
                seen.add(str(ref))
                relations.append(RelationInfo(name=str(ref), ref=ref, kind=kind))

    logger.debug(
        "relations_discovered",
        default_schema=default_schema,
        count=len(relations),
    )
    return RelationCatalog(relations=relations, default_schema=default_schema)
