"""Per-table statistics pipeline.

For one relation, on one connection:
1. Reflect column schemas (types, key heuristic, enums)
2. One aggregate query for counts/min/max/avg/distinct
3. Sampling decision for views and materialized views
4. Batched frequency analysis
5. Value search (when a search value is set)

Every failure below the schema step degrades the affected statistics and
is noted on the TableAnalysis; none of them raises.
"""

from __future__ import annotations

import time

from sqlalchemy import inspect
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from dbprofile.analysis.statistics.aggregates import (
    build_aggregate_plan,
    execute_aggregate_query,
    populate_stats_from_aggregates,
)
from dbprofile.analysis.statistics.frequency import analyze_frequencies
from dbprofile.analysis.statistics.models import (
    AnalysisContext,
    ColumnStats,
    SamplingDecision,
    TableAnalysis,
)
from dbprofile.analysis.statistics.query import relation_for
from dbprofile.analysis.statistics.sampling import decide_sampling, sampled_relation
from dbprofile.analysis.statistics.schema import fetch_column_schemas
from dbprofile.analysis.statistics.search import search_columns
from dbprofile.core.logging import get_logger, log_context
from dbprofile.core.models.base import RelationKind, Result, TableRef

logger = get_logger(__name__)

_VIEW_KINDS = (RelationKind.VIEW, RelationKind.MATERIALIZED_VIEW)


def fetch_view_definition(conn: Connection, ref: TableRef) -> str | None:
    """Best-effort view SQL; None if the dialect cannot provide it."""
    try:
        definition = inspect(conn).get_view_definition(ref.table_name, schema=ref.schema_name)
    except (NotImplementedError, SQLAlchemyError) as e:
        logger.debug("view_definition_unavailable", error=str(e))
        return None
    return definition.strip() if definition else None


def profile_table(
    conn: Connection,
    ref: TableRef,
    relation_kind: RelationKind,
    context: AnalysisContext,
) -> Result[TableAnalysis]:
    """Run the statistics pipeline for one relation.

    Args:
        conn: Connection owned by the calling worker
        ref: Relation to analyze
        relation_kind: Table, view or materialized view
        context: Run options

    Returns:
        Result containing the TableAnalysis; fails only when the schema
        cannot be read
    """
    schema_result = fetch_column_schemas(conn, ref)
    if not schema_result.success:
        return Result.fail(schema_result.error or f"Could not fetch schema for {ref}")
    columns = schema_result.unwrap()

    analysis = TableAnalysis(
        table_name=str(ref),
        relation_kind=relation_kind,
        columns={c.name: ColumnStats.for_column(c) for c in columns},
        schema_only=context.schema_only,
    )
    if relation_kind in _VIEW_KINDS:
        analysis.view_definition = fetch_view_definition(conn, ref)

    if context.schema_only:
        return Result.ok(analysis)

    relation = relation_for(ref, columns)
    plan = build_aggregate_plan(relation, columns, conn.dialect.name)
    aggregate_result = execute_aggregate_query(conn, plan, context)
    if aggregate_result.success:
        populate_stats_from_aggregates(analysis.columns, columns, plan, aggregate_result.value)
    else:
        populate_stats_from_aggregates(analysis.columns, columns, plan, None)
        analysis.warnings.append(aggregate_result.error or "Aggregate query failed")

    row_count = analysis.row_count or 0
    if context.sample:
        decision = decide_sampling(relation_kind, row_count)
    else:
        decision = SamplingDecision(relation_kind=relation_kind, estimated_row_count=row_count)
    if decision.is_sampled:
        analysis.sample_row_limit = decision.row_limit
        logger.debug("frequency_sampled", rows=row_count, row_limit=decision.row_limit)

    analyze_frequencies(
        conn, sampled_relation(relation, decision), columns, analysis.columns, context
    )

    if context.search_value:
        search_columns(conn, relation, columns, analysis.columns, context)

    return Result.ok(analysis)


def analyze_relation(
    conn: Connection,
    table_name: str,
    relation_kind: RelationKind,
    context: AnalysisContext,
) -> TableAnalysis:
    """Analyze one relation; failures end up in ``TableAnalysis.error``."""
    start = time.perf_counter()
    ref = TableRef.parse(table_name)

    with log_context(table=table_name):
        try:
            result = profile_table(conn, ref, relation_kind, context)
        except SQLAlchemyError as e:
            logger.error("table_analysis_failed", error=str(e))
            result = Result.fail(f"Analysis failed: {e}")
        except Exception as e:
            # driver result processing, value comparison
            logger.error("table_analysis_failed", error=str(e), exc_info=True)
            result = Result.fail(f"Analysis failed: {type(e).__name__}: {e}")

        if result.success:
            analysis = result.unwrap()
        else:
            analysis = TableAnalysis(
                table_name=table_name, relation_kind=relation_kind, error=result.error
            )

        analysis.duration_seconds = round(time.perf_counter() - start, 3)
        logger.info(
            "table_analyzed",
            relation_kind=relation_kind.value,
            columns=len(analysis.columns),
            rows=analysis.row_count,
            error=analysis.error,
            duration_seconds=analysis.duration_seconds,
        )
    return analysis
