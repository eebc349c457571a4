"""Frequency analysis: top-k and bottom-k values per column.

Columns are partitioned by physical database type (size/precision
stripped) because UNION ALL needs compatible column types across its
branches. Each partition is answered by one query returning
(value, count, tag) rows, where tag is the column name, and the rows are
redistributed to each column afterwards:

    SELECT value, count, tag FROM (
        SELECT col_a AS value, COUNT(*) AS count, 'col_a' AS tag
        FROM t GROUP BY col_a ORDER BY COUNT(*) DESC, col_a LIMIT 5
    ) UNION ALL SELECT value, count, tag FROM (...col_b...)

A failed batch falls back to one query per column; a failed column query
leaves that column without frequency data.

JSON columns are never batched: their text form is grouped per column,
top-k only.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, datetime, time
from enum import Enum
from typing import Any

from sqlalchemy import CompoundSelect, String, cast, func, literal, select, union_all
from sqlalchemy.engine import Connection, Row
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql import ColumnElement, FromClause, Select

from dbprofile.analysis.statistics.models import (
    AnalysisContext,
    ColumnSchema,
    ColumnStats,
    FrequencyBatchGroup,
)
from dbprofile.analysis.statistics.query import execute
from dbprofile.analysis.statistics.types import AbstractType, base_db_type, is_groupable
from dbprofile.core.logging import get_logger

logger = get_logger(__name__)

FREQUENCY_LIMIT = 5


class FrequencyOrder(str, Enum):
    """Which end of the distribution a query asks for."""

    MOST = "most"
    LEAST = "least"


def needs_frequency_analysis(column: ColumnSchema, row_count: int) -> bool:
    """Whether a column gets most/least frequent values at all."""
    if row_count <= 0:
        return False
    if column.abstract_type == AbstractType.JSON:
        return True
    return is_groupable(column.abstract_type) and not column.is_likely_key


def partition_by_physical_type(columns: Sequence[ColumnSchema]) -> list[FrequencyBatchGroup]:
    """Group non-JSON columns by raw type with size/precision stripped."""
    groups: dict[str, FrequencyBatchGroup] = {}
    for column in columns:
        if column.abstract_type == AbstractType.JSON:
            continue
        key = base_db_type(column.db_type)
        groups.setdefault(key, FrequencyBatchGroup(type_key=key)).columns.append(column)
    return list(groups.values())


def format_frequency_key(value: Any) -> str:
    """Render a grouped value as a report key."""
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime | date | time):
        return value.isoformat()
    if isinstance(value, bytes | bytearray | memoryview):
        return "<binary data>"
    return str(value)


def _sorted_counts(rows: Sequence[Any], order: FrequencyOrder) -> dict[str, int]:
    """Order (value, count) pairs by count, ties by value ascending, NULL last."""
    sign = -1 if order == FrequencyOrder.MOST else 1
    pairs = [(row[0], int(row[1])) for row in rows]
    try:
        pairs.sort(key=lambda p: (sign * p[1], p[0] is None, p[0] if p[0] is not None else 0))
    except TypeError:
        # SQLite columns may mix storage classes
        pairs.sort(key=lambda p: (sign * p[1], p[0] is None, str(p[0])))
    return {format_frequency_key(value): count for value, count in pairs}


def _frequency_select(
    source: FromClause,
    column: ColumnSchema,
    order: FrequencyOrder,
    limit: int | None,
    tagged: bool = False,
) -> Select[Any]:
    """GROUP BY query for one column, optionally tagged with the column name."""
    col: ColumnElement[Any] = source.c[column.name]
    if column.abstract_type == AbstractType.JSON:
        col = cast(col, String())
    count = func.count()
    projections: list[ColumnElement[Any]] = [col.label("value"), count.label("count")]
    if tagged:
        projections.append(literal(column.name, String()).label("tag"))

    primary = count.desc() if order == FrequencyOrder.MOST else count.asc()
    stmt = select(*projections).select_from(source).group_by(col).order_by(primary, col.asc())
    if limit is not None:
        stmt = stmt.limit(limit)
    return stmt


def _union_query(
    source: FromClause, columns: Sequence[ColumnSchema], order: FrequencyOrder, limit: int | None
) -> Select[Any] | CompoundSelect:
    """UNION ALL of one tagged branch per column.

    Branches are wrapped as subqueries: ORDER BY/LIMIT inside a compound
    member is not accepted by every engine.
    """
    branches = []
    for index, column in enumerate(columns):
        sub = _frequency_select(source, column, order, limit, tagged=True).subquery(f"f{index}")
        branches.append(select(sub.c.value, sub.c["count"], sub.c.tag))
    if len(branches) == 1:
        return branches[0]
    return union_all(*branches)


def _redistribute(
    rows: Sequence[Row[Any]],
    columns: Sequence[ColumnSchema],
    stats: dict[str, ColumnStats],
    order: FrequencyOrder,
) -> None:
    """Assign tagged union rows back to each column's frequency map."""
    by_tag: dict[str, list[Row[Any]]] = {}
    for row in rows:
        by_tag.setdefault(row.tag, []).append(row)

    for column in columns:
        column_rows = by_tag.get(column.name)
        if column_rows is None:
            continue
        counts = _sorted_counts(column_rows, order)
        if order == FrequencyOrder.MOST:
            stats[column.name].most_frequent = counts
        else:
            stats[column.name].least_frequent = counts


def _run_batch(
    conn: Connection,
    source: FromClause,
    columns: Sequence[ColumnSchema],
    stats: dict[str, ColumnStats],
    order: FrequencyOrder,
    limit: int | None,
    context: AnalysisContext,
) -> bool:
    """Execute one UNION batch. Returns False if the batch failed."""
    stmt = _union_query(source, columns, order, limit)
    try:
        rows = execute(conn, stmt, context, "frequency_batch_query")
    except SQLAlchemyError as e:
        logger.warning(
            "frequency_batch_failed",
            columns=[c.name for c in columns],
            order=order.value,
            error=str(e).splitlines()[0] if str(e) else type(e).__name__,
        )
        return False
    _redistribute(rows, columns, stats, order)
    return True


def _fetch_column_counts(
    conn: Connection,
    source: FromClause,
    column: ColumnSchema,
    order: FrequencyOrder,
    limit: int | None,
    context: AnalysisContext,
) -> dict[str, int] | None:
    """Single-column frequency query. None if it failed."""
    stmt = _frequency_select(source, column, order, limit)
    try:
        rows = execute(conn, stmt, context, "frequency_query")
    except SQLAlchemyError as e:
        logger.warning(
            "frequency_query_failed",
            column=column.name,
            error=str(e).splitlines()[0] if str(e) else type(e).__name__,
        )
        return None
    return _sorted_counts(rows, order)


def analyze_column_frequency(
    conn: Connection,
    source: FromClause,
    column: ColumnSchema,
    col_stats: ColumnStats,
    context: AnalysisContext,
) -> None:
    """Frequency analysis for one column on its own (the batch fallback)."""
    most = _fetch_column_counts(conn, source, column, FrequencyOrder.MOST, FREQUENCY_LIMIT, context)
    col_stats.most_frequent = most or None
    if most is None:
        return

    distinct_count = col_stats.distinct_count or 0
    if distinct_count > FREQUENCY_LIMIT:
        least = _fetch_column_counts(
            conn, source, column, FrequencyOrder.LEAST, FREQUENCY_LIMIT, context
        )
        col_stats.least_frequent = least or None
    elif 0 < distinct_count <= FREQUENCY_LIMIT and not most:
        every = _fetch_column_counts(conn, source, column, FrequencyOrder.MOST, None, context)
        col_stats.most_frequent = every or None


def analyze_json_frequency(
    conn: Connection,
    source: FromClause,
    column: ColumnSchema,
    col_stats: ColumnStats,
    context: AnalysisContext,
) -> None:
    """Top values of a JSON column by its text form. No least-frequent."""
    most = _fetch_column_counts(conn, source, column, FrequencyOrder.MOST, FREQUENCY_LIMIT, context)
    col_stats.most_frequent = most or None
    col_stats.least_frequent = None


def _analyze_group(
    conn: Connection,
    source: FromClause,
    group: FrequencyBatchGroup,
    stats: dict[str, ColumnStats],
    context: AnalysisContext,
) -> None:
    columns = group.columns
    logger.debug(
        "frequency_batch_started", type_key=group.type_key, columns=[c.name for c in columns]
    )

    if not _run_batch(conn, source, columns, stats, FrequencyOrder.MOST, FREQUENCY_LIMIT, context):
        for column in columns:
            analyze_column_frequency(conn, source, column, stats[column.name], context)
        return

    least_columns = [c for c in columns if (stats[c.name].distinct_count or 0) > FREQUENCY_LIMIT]
    if least_columns and not _run_batch(
        conn, source, least_columns, stats, FrequencyOrder.LEAST, FREQUENCY_LIMIT, context
    ):
        for column in least_columns:
            least = _fetch_column_counts(
                conn, source, column, FrequencyOrder.LEAST, FREQUENCY_LIMIT, context
            )
            stats[column.name].least_frequent = least or None

    few_columns = [
        c
        for c in columns
        if 0 < (stats[c.name].distinct_count or 0) <= FREQUENCY_LIMIT
        and not stats[c.name].most_frequent
    ]
    if few_columns and not _run_batch(
        conn, source, few_columns, stats, FrequencyOrder.MOST, None, context
    ):
        for column in few_columns:
            every = _fetch_column_counts(conn, source, column, FrequencyOrder.MOST, None, context)
            stats[column.name].most_frequent = every or None


def analyze_frequencies(
    conn: Connection,
    source: FromClause,
    columns: Sequence[ColumnSchema],
    stats: dict[str, ColumnStats],
    context: AnalysisContext,
) -> None:
    """Populate most_frequent/least_frequent for every eligible column.

    NULL is grouped like any other value (key ``"NULL"``), so a nullable
    column with five or fewer distinct values can list one extra key.

    Args:
        conn: Open connection owned by the calling worker
        source: Relation to group over (possibly a sampled subquery)
        columns: All column schemas of the relation
        stats: Column stats with aggregates already populated
        context: Run options
    """
    if not columns:
        return
    row_count = stats[columns[0].name].count
    eligible = [c for c in columns if needs_frequency_analysis(c, row_count)]

    for column in eligible:
        if column.abstract_type == AbstractType.JSON:
            analyze_json_frequency(conn, source, column, stats[column.name], context)

    for group in partition_by_physical_type(eligible):
        _analyze_group(conn, source, group, stats, context)

    for column in columns:
        col_stats = stats[column.name]
        if (col_stats.distinct_count or 0) <= FREQUENCY_LIMIT or not col_stats.least_frequent:
            col_stats.least_frequent = None
        if not col_stats.most_frequent:
            col_stats.most_frequent = None
