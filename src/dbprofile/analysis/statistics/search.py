"""Value search: does a literal occur in a column?

Each probe-eligible column gets its own ``SELECT COUNT(*) > 0`` style
existence check with a predicate shaped by the column's AbstractType.
Probes are independent; a hit in one column never stops the others.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import String, cast, func, select
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql import ColumnElement
from sqlalchemy.sql.expression import TableClause

from dbprofile.analysis.statistics.models import AnalysisContext, ColumnSchema, ColumnStats
from dbprofile.analysis.statistics.query import execute
from dbprofile.analysis.statistics.types import NUMERIC_TYPES, TEMPORAL_TYPES, AbstractType
from dbprofile.core.logging import get_logger

logger = get_logger(__name__)

TRUE_TOKENS = frozenset({"true", "t", "yes", "y", "1"})
FALSE_TOKENS = frozenset({"false", "f", "no", "n", "0"})

# compared through their text form
_CAST_TO_TEXT = frozenset(
    {
        AbstractType.JSON,
        AbstractType.UUID,
        AbstractType.ARRAY,
        AbstractType.ENUM,
        AbstractType.INET,
        AbstractType.UNSUPPORTED,
    }
)


def parse_boolean(value: str) -> bool | None:
    """Map a search token to a boolean, or None if it is not one."""
    token = value.strip().lower()
    if token in TRUE_TOKENS:
        return True
    if token in FALSE_TOKENS:
        return False
    return None


def _parse_number(value: str, abstract_type: AbstractType) -> int | float | Decimal | None:
    text = value.strip()
    try:
        if abstract_type == AbstractType.INTEGER:
            return int(text)
        if abstract_type == AbstractType.FLOAT:
            return float(text)
        return Decimal(text)
    except (ValueError, InvalidOperation):
        return None


def search_predicate(
    col: ColumnElement[Any], column: ColumnSchema, value: str
) -> ColumnElement[bool] | None:
    """Predicate matching ``value`` in a column, or None when the column is skipped.

    Numbers need an exact parse; temporal and binary columns are never
    probed. Everything else is a substring match on the (text form of the)
    column, as case-sensitive as the engine's LIKE.
    """
    kind = column.abstract_type
    if kind in TEMPORAL_TYPES or kind == AbstractType.BLOB:
        return None
    if kind in NUMERIC_TYPES:
        number = _parse_number(value, kind)
        if number is None:
            return None
        return col == number
    if kind == AbstractType.BOOLEAN:
        flag = parse_boolean(value)
        if flag is None:
            return None
        return col.is_(True) if flag else col.is_(False)
    if kind in _CAST_TO_TEXT:
        return cast(col, String()).contains(value, autoescape=True)
    return col.contains(value, autoescape=True)


def probe_column(
    conn: Connection,
    relation: TableClause,
    column: ColumnSchema,
    value: str,
    context: AnalysisContext,
) -> bool:
    """True if at least one row of the column matches. Failed probes count as misses."""
    predicate = search_predicate(relation.c[column.name], column, value)
    if predicate is None:
        return False
    stmt = select((func.count() > 0).label("found")).select_from(relation).where(predicate)
    try:
        rows = execute(conn, stmt, context, "search_probe")
    except SQLAlchemyError as e:
        logger.debug("search_probe_failed", column=column.name, error=str(e))
        return False
    return bool(rows and rows[0][0])


def search_columns(
    conn: Connection,
    relation: TableClause,
    columns: Sequence[ColumnSchema],
    stats: dict[str, ColumnStats],
    context: AnalysisContext,
) -> list[str]:
    """Probe every column for ``context.search_value`` and mark hits.

    Returns:
        Names of the columns where the value was found
    """
    value = context.search_value
    if not value:
        return []

    found: list[str] = []
    for column in columns:
        if probe_column(conn, relation, column, value, context):
            stats[column.name].found = True
            stats[column.name].search_value = value
            found.append(column.name)

    if found:
        logger.info("search_value_found", columns=found)
    return found
