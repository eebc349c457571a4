"""Schema introspection for column statistics.

Turns reflected column metadata into ColumnSchema objects:
- Abstract type via the type normalizer
- Enum reclassification via one batched catalog probe per table
- Unique single-column indexes/constraints feeding the key heuristic
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any

from sqlalchemy import bindparam, inspect, text
from sqlalchemy.engine import Connection
from sqlalchemy.exc import CompileError, SQLAlchemyError
from sqlalchemy.types import TypeEngine

from dbprofile.analysis.statistics.models import ColumnSchema
from dbprofile.analysis.statistics.types import (
    AbstractType,
    driver_type_symbol,
    is_character_db_type,
    is_likely_key,
    normalize_type,
)
from dbprofile.core.logging import get_logger
from dbprofile.core.models.base import Result, TableRef

logger = get_logger(__name__)

_PG_ENUM_QUERY = text(
    """
    SELECT DISTINCT t.typname
    FROM pg_type t
    JOIN pg_enum e ON t.oid = e.enumtypid
    WHERE t.typname IN :type_names
    """
).bindparams(bindparam("type_names", expanding=True))


def render_db_type(sql_type: TypeEngine[Any], conn: Connection) -> str:
    """Raw database type string (lower-cased) for a reflected type."""
    try:
        return str(sql_type.compile(dialect=conn.dialect)).lower()
    except (CompileError, NotImplementedError):
        return type(sql_type).__name__.lower()


def fetch_unique_columns(conn: Connection, table: TableRef) -> set[str]:
    """Columns covered by a single-column unique index, constraint or primary key.

    Adapters without index introspection degrade to an empty set.
    """
    inspector = inspect(conn)
    unique: set[str] = set()
    try:
        for index in inspector.get_indexes(table.table_name, schema=table.schema_name):
            names = [name for name in index.get("column_names", []) if name]
            if index.get("unique") and len(names) == 1:
                unique.add(names[0])
        for constraint in inspector.get_unique_constraints(
            table.table_name, schema=table.schema_name
        ):
            if len(constraint.get("column_names", [])) == 1:
                unique.add(constraint["column_names"][0])
        pk = inspector.get_pk_constraint(table.table_name, schema=table.schema_name)
        if len(pk.get("constrained_columns") or []) == 1:
            unique.add(pk["constrained_columns"][0])
    except NotImplementedError:
        logger.debug("index_introspection_unsupported", table=str(table))
    except SQLAlchemyError as e:
        logger.warning("index_introspection_failed", table=str(table), error=str(e))

    if unique:
        logger.debug("unique_columns_found", table=str(table), columns=sorted(unique))
    return unique


def apply_enum_types(conn: Connection, columns: list[ColumnSchema]) -> list[ColumnSchema]:
    """Reclassify string columns whose raw type is a PostgreSQL enum.

    All candidate type names of a table are checked in one catalog query.
    Other engines and probe failures leave the columns unchanged.
    """
    if conn.dialect.name != "postgresql":
        return columns

    candidates = {
        c.db_type
        for c in columns
        if c.abstract_type == AbstractType.STRING and not is_character_db_type(c.db_type)
    }
    if not candidates:
        return columns

    try:
        enum_names = set(
            conn.execute(_PG_ENUM_QUERY, {"type_names": sorted(candidates)}).scalars()
        )
    except SQLAlchemyError as e:
        logger.debug("enum_probe_failed", types=sorted(candidates), error=str(e))
        return columns

    return [
        replace(c, abstract_type=AbstractType.ENUM)
        if c.abstract_type == AbstractType.STRING and c.db_type in enum_names
        else c
        for c in columns
    ]


def fetch_column_schemas(conn: Connection, table: TableRef) -> Result[list[ColumnSchema]]:
    """Reflect a relation's columns into ColumnSchema objects.

    Args:
        conn: Open connection owned by the calling worker
        table: Relation to describe

    Returns:
        Result containing the columns in ordinal order
    """
    try:
        reflected = inspect(conn).get_columns(table.table_name, schema=table.schema_name)
    except SQLAlchemyError as e:
        return Result.fail(f"Schema fetch failed: {e}")

    if not reflected:
        return Result.fail(f"Could not fetch schema for {table}")

    unique_columns = fetch_unique_columns(conn, table)

    columns: list[ColumnSchema] = []
    for col in reflected:
        sql_type = col["type"]
        db_type = render_db_type(sql_type, conn)
        abstract_type = normalize_type(driver_type_symbol(sql_type, db_type), db_type)
        name = col["name"]
        is_unique = name in unique_columns
        columns.append(
            ColumnSchema(
                name=name,
                abstract_type=abstract_type,
                db_type=db_type,
                is_likely_key=is_likely_key(name, is_unique),
                is_unique=is_unique,
                sql_type=sql_type,
            )
        )
        logger.debug(
            "column_classified",
            column=name,
            db_type=db_type,
            abstract_type=abstract_type.value,
        )

    return Result.ok(apply_enum_types(conn, columns))
