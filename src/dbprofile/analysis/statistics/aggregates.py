"""Aggregate statistics: one query per table.

All columns' aggregates ride in a single flat result row. Each projection
is labelled by column position and statistic (``c3_min``), and an
AggregatePlan maps (column name, statistic) back to its label, so column
names containing delimiters can never collide.

Which projections a column gets depends only on its AbstractType, via the
_PROJECTION_BUILDERS table.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import Enum
from typing import Any

from sqlalchemy import Double, Integer, String, case, cast, distinct, func, select
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql import ColumnElement, Select
from sqlalchemy.sql.expression import TableClause

from dbprofile.analysis.statistics.models import AnalysisContext, ColumnSchema, ColumnStats
from dbprofile.analysis.statistics.query import execute
from dbprofile.analysis.statistics.types import AbstractType
from dbprofile.core.logging import get_logger
from dbprofile.core.models.base import Result

logger = get_logger(__name__)

TOTAL_LABEL = "_total_count"


class AggregateStat(str, Enum):
    """Statistics a column may contribute to the aggregate row."""

    NON_NULL = "nonnull"
    MIN = "min"
    MAX = "max"
    AVG = "avg"
    TRUE_COUNT = "true_count"
    DISTINCT = "distinct"


Projections = dict[AggregateStat, ColumnElement[Any]]
ProjectionBuilder = Callable[[ColumnElement[Any], ColumnSchema, str], Projections]


def _numeric_projections(
    col: ColumnElement[Any], schema: ColumnSchema, dialect: str
) -> Projections:
    parts: Projections = {AggregateStat.MIN: func.min(col), AggregateStat.MAX: func.max(col)}
    if not schema.is_likely_key:
        parts[AggregateStat.AVG] = func.avg(cast(col, Double()))
        parts[AggregateStat.DISTINCT] = func.count(distinct(col))
    return parts


def _string_projections(col: ColumnElement[Any], schema: ColumnSchema, dialect: str) -> Projections:
    parts: Projections = {AggregateStat.MIN: func.min(col), AggregateStat.MAX: func.max(col)}
    if not schema.is_unique:
        # enum/inet have no LENGTH of their own
        measured = col if schema.abstract_type == AbstractType.STRING else cast(col, String())
        parts[AggregateStat.AVG] = func.avg(func.length(measured))
    if not schema.is_likely_key:
        parts[AggregateStat.DISTINCT] = func.count(distinct(col))
    return parts


def _text_cast_projections(
    col: ColumnElement[Any], schema: ColumnSchema, dialect: str
) -> Projections:
    # uuid and json have no portable ordering or comparison; work on the text form
    as_text = cast(col, String())
    parts: Projections = {
        AggregateStat.MIN: func.min(as_text),
        AggregateStat.MAX: func.max(as_text),
    }
    if not schema.is_unique:
        parts[AggregateStat.AVG] = func.avg(func.length(as_text))
    if not schema.is_likely_key:
        parts[AggregateStat.DISTINCT] = func.count(distinct(as_text))
    return parts


def _boolean_projections(
    col: ColumnElement[Any], schema: ColumnSchema, dialect: str
) -> Projections:
    as_int = cast(col, Integer())
    parts: Projections = {
        AggregateStat.MIN: func.min(as_int),
        AggregateStat.MAX: func.max(as_int),
        AggregateStat.TRUE_COUNT: func.sum(case((col, 1), else_=0)),
    }
    if not schema.is_likely_key:
        parts[AggregateStat.DISTINCT] = func.count(distinct(col))
    return parts


def _array_projections(col: ColumnElement[Any], schema: ColumnSchema, dialect: str) -> Projections:
    if dialect != "postgresql":
        return {}
    length = func.array_length(col, 1)
    parts: Projections = {AggregateStat.MIN: func.min(length), AggregateStat.MAX: func.max(length)}
    if not schema.is_unique:
        parts[AggregateStat.AVG] = func.avg(length)
    return parts


def _temporal_projections(
    col: ColumnElement[Any], schema: ColumnSchema, dialect: str
) -> Projections:
    parts: Projections = {AggregateStat.MIN: func.min(col), AggregateStat.MAX: func.max(col)}
    if not schema.is_likely_key:
        parts[AggregateStat.DISTINCT] = func.count(distinct(col))
    return parts


def _count_only(col: ColumnElement[Any], schema: ColumnSchema, dialect: str) -> Projections:
    return {}


_PROJECTION_BUILDERS: dict[AbstractType, ProjectionBuilder] = {
    AbstractType.INTEGER: _numeric_projections,
    AbstractType.FLOAT: _numeric_projections,
    AbstractType.DECIMAL: _numeric_projections,
    AbstractType.STRING: _string_projections,
    AbstractType.ENUM: _string_projections,
    AbstractType.INET: _string_projections,
    AbstractType.UUID: _text_cast_projections,
    AbstractType.JSON: _text_cast_projections,
    AbstractType.BOOLEAN: _boolean_projections,
    AbstractType.ARRAY: _array_projections,
    AbstractType.DATE: _temporal_projections,
    AbstractType.DATETIME: _temporal_projections,
    AbstractType.TIME: _temporal_projections,
    AbstractType.TIMESTAMP: _temporal_projections,
    AbstractType.TEXT: _count_only,
    AbstractType.BLOB: _count_only,
    AbstractType.UNSUPPORTED: _count_only,
}


@dataclass
class AggregatePlan:
    """The aggregate statement plus the label of every projection in it."""

    statement: Select[Any]
    labels: dict[tuple[str, AggregateStat], str] = field(default_factory=dict)

    def has(self, column_name: str, stat: AggregateStat) -> bool:
        return (column_name, stat) in self.labels

    def read(self, row: Mapping[str, Any], column_name: str, stat: AggregateStat) -> Any:
        """Value of one statistic, or None if it was not projected."""
        label = self.labels.get((column_name, stat))
        if label is None:
            return None
        return row[label]


def build_aggregate_plan(
    relation: TableClause, columns: Sequence[ColumnSchema], dialect: str
) -> AggregatePlan:
    """Build the single-row aggregate query for a table.

    Args:
        relation: Table construct for the relation (full, never sampled)
        columns: Column schemas in ordinal order
        dialect: SQLAlchemy dialect name (array support is PostgreSQL-only)

    Returns:
        AggregatePlan with COUNT(*) plus per-column projections
    """
    labels: dict[tuple[str, AggregateStat], str] = {}
    projections: list[ColumnElement[Any]] = [func.count().label(TOTAL_LABEL)]

    for index, schema in enumerate(columns):
        col = relation.c[schema.name]
        parts: Projections = {AggregateStat.NON_NULL: func.count(col)}
        parts.update(_PROJECTION_BUILDERS[schema.abstract_type](col, schema, dialect))
        for stat, expr in parts.items():
            label = f"c{index}_{stat.value}"
            labels[(schema.name, stat)] = label
            projections.append(expr.label(label))

    return AggregatePlan(statement=select(*projections).select_from(relation), labels=labels)


def execute_aggregate_query(
    conn: Connection, plan: AggregatePlan, context: AnalysisContext
) -> Result[Mapping[str, Any]]:
    """Run the aggregate query; SQL errors come back as a failed Result."""
    try:
        rows = execute(conn, plan.statement, context, "aggregate_query")
    except SQLAlchemyError as e:
        message = str(e).splitlines()[0] if str(e) else type(e).__name__
        logger.warning("aggregate_query_failed", error=message)
        return Result.fail(f"Aggregate query failed: {message}")
    if not rows:
        return Result.fail("Aggregate query returned no rows")
    return Result.ok(dict(rows[0]._mapping))


def normalize_value(value: Any) -> Any:
    """Make a MIN/MAX value report-friendly (ISO timestamps, no raw bytes)."""
    if isinstance(value, datetime | date | time):
        return value.isoformat()
    if isinstance(value, bytes | bytearray | memoryview):
        return "<binary data>"
    return value


def populate_stats_from_aggregates(
    stats: dict[str, ColumnStats],
    columns: Sequence[ColumnSchema],
    plan: AggregatePlan,
    row: Mapping[str, Any] | None,
) -> None:
    """Copy the aggregate row onto each column's stats.

    With no row (failed query) counts stay 0 and null_count becomes None:
    unknown rather than guessed.
    """
    if row is None:
        for schema in columns:
            stats[schema.name].null_count = None
        return

    total = int(row[TOTAL_LABEL] or 0)
    for schema in columns:
        col_stats = stats[schema.name]
        non_null = int(plan.read(row, schema.name, AggregateStat.NON_NULL) or 0)
        col_stats.count = total
        col_stats.null_count = total - non_null
        col_stats.min = normalize_value(plan.read(row, schema.name, AggregateStat.MIN))
        col_stats.max = normalize_value(plan.read(row, schema.name, AggregateStat.MAX))

        if plan.has(schema.name, AggregateStat.DISTINCT):
            col_stats.distinct_count = int(
                plan.read(row, schema.name, AggregateStat.DISTINCT) or 0
            )

        if schema.abstract_type == AbstractType.BOOLEAN:
            if non_null > 0:
                true_count = int(plan.read(row, schema.name, AggregateStat.TRUE_COUNT) or 0)
                col_stats.true_percentage = true_count * 100 / non_null
        else:
            avg = plan.read(row, schema.name, AggregateStat.AVG)
            if avg is not None:
                col_stats.avg = float(avg)
