"""Parallel table scheduler and report assembly.

Tables are dealt round-robin into one chunk per worker. Each worker opens
its own connection, analyzes its chunk in order and closes the connection;
connections are never shared between threads. Results are collected by
selection index, so the report lists tables in the order they were
selected regardless of completion order.
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from dbprofile.analysis.statistics.models import (
    AnalysisContext,
    AnalysisReport,
    RunMetadata,
    SearchSummary,
    TableAnalysis,
)
from dbprofile.analysis.statistics.profiler import analyze_relation
from dbprofile.core.connections import describe_database
from dbprofile.core.logging import get_logger
from dbprofile.core.models.base import RelationKind
from dbprofile.sources.catalog import discover_relations

logger = get_logger(__name__)

Target = tuple[str, RelationKind]
IndexedTarget = tuple[int, str, RelationKind]


class SchedulerState(str, Enum):
    IDLE = "idle"
    DISPATCHING = "dispatching"
    RUNNING = "running"
    COLLECTING = "collecting"
    DONE = "done"


def partition_targets(targets: Sequence[Target], workers: int) -> list[list[IndexedTarget]]:
    """Deal targets round-robin into at most ``workers`` non-empty chunks."""
    workers = max(1, min(workers, len(targets)))
    chunks: list[list[IndexedTarget]] = [[] for _ in range(workers)]
    for index, (name, kind) in enumerate(targets):
        chunks[index % workers].append((index, name, kind))
    return [chunk for chunk in chunks if chunk]


def _failed(name: str, kind: RelationKind, error: str) -> TableAnalysis:
    return TableAnalysis(table_name=name, relation_kind=kind, error=error)


def analyze_chunk(
    engine: Engine, chunk: Sequence[IndexedTarget], context: AnalysisContext
) -> list[tuple[int, TableAnalysis]]:
    """Worker body: one connection, tables analyzed one after another.

    Tables not started before cancellation are left out of the result.
    """
    results: list[tuple[int, TableAnalysis]] = []
    try:
        with engine.connect() as conn:
            for index, name, kind in chunk:
                if context.cancelled:
                    logger.info("analysis_cancelled", remaining=len(chunk) - len(results))
                    break
                results.append((index, analyze_relation(conn, name, kind, context)))
    except SQLAlchemyError as e:
        # connection lost or never opened: the rest of the chunk cannot run
        logger.error("worker_connection_failed", error=str(e))
        done = {index for index, _ in results}
        for index, name, kind in chunk:
            if index not in done:
                results.append((index, _failed(name, kind, f"Connection failed: {e}")))
    return results


class TableScheduler:
    """Runs the per-table pipeline across a bounded thread pool."""

    def __init__(self, engine: Engine, max_workers: int, context: AnalysisContext):
        self.engine = engine
        self.max_workers = max(1, max_workers)
        self.context = context
        self.state = SchedulerState.IDLE

    def _transition(self, state: SchedulerState) -> None:
        self.state = state
        logger.debug("scheduler_state", state=state.value)

    def _run_sequential(self, chunks: list[list[IndexedTarget]]) -> list[tuple[int, TableAnalysis]]:
        ordered = sorted((t for chunk in chunks for t in chunk), key=lambda t: t[0])
        return analyze_chunk(self.engine, ordered, self.context)

    def _run_parallel(self, chunks: list[list[IndexedTarget]]) -> list[tuple[int, TableAnalysis]]:
        results: list[tuple[int, TableAnalysis]] = []
        unscheduled: list[list[IndexedTarget]] = []
        with ThreadPoolExecutor(max_workers=len(chunks), thread_name_prefix="dbprofile") as pool:
            futures = {}
            for position, chunk in enumerate(chunks):
                try:
                    futures[pool.submit(analyze_chunk, self.engine, chunk, self.context)] = chunk
                except RuntimeError as e:
                    # threads unavailable (e.g. interpreter shutting down)
                    logger.warning("parallel_execution_unavailable", error=str(e))
                    unscheduled = chunks[position:]
                    break

            for future in as_completed(futures):
                chunk = futures[future]
                try:
                    results.extend(future.result())
                except Exception as e:
                    logger.error("worker_failed", error=str(e), exc_info=True)
                    results.extend(
                        (index, _failed(name, kind, f"Worker failed: {e}"))
                        for index, name, kind in chunk
                    )

        if unscheduled:
            results.extend(self._run_sequential(unscheduled))
        return results

    def run(self, targets: Sequence[Target]) -> dict[str, TableAnalysis]:
        """Analyze every target; the mapping follows the order of ``targets``."""
        if not targets:
            self._transition(SchedulerState.DONE)
            return {}

        self._transition(SchedulerState.DISPATCHING)
        chunks = partition_targets(targets, self.max_workers)
        logger.info("analysis_started", tables=len(targets), workers=len(chunks))

        self._transition(SchedulerState.RUNNING)
        if len(chunks) == 1:
            results = self._run_sequential(chunks)
        else:
            results = self._run_parallel(chunks)

        self._transition(SchedulerState.COLLECTING)
        by_index = dict(results)
        report: dict[str, TableAnalysis] = {}
        for index, (name, _kind) in enumerate(targets):
            if index in by_index:
                report[name] = by_index[index]

        self._transition(SchedulerState.DONE)
        return report


@dataclass(frozen=True)
class Selection:
    """One selected relation, or a requested name that could not be resolved."""

    name: str
    kind: RelationKind = RelationKind.UNKNOWN
    error: str | None = None


def select_targets(
    engine: Engine,
    tables: Sequence[str] | None,
    include_views: bool = False,
    include_materialized_views: bool = False,
) -> list[Selection]:
    """Resolve the relations to analyze, in selection order."""
    with engine.connect() as conn:
        catalog = discover_relations(conn)

    if not tables:
        return [
            Selection(name=r.name, kind=r.kind)
            for r in catalog.default_selection(include_views, include_materialized_views)
        ]

    selections: list[Selection] = []
    seen: set[str] = set()
    for requested in tables:
        outcome = catalog.resolve_name(requested)
        if isinstance(outcome, str):
            logger.warning("table_not_resolved", table=requested, reason=outcome)
            selections.append(Selection(name=requested, error=outcome))
        elif outcome.name not in seen:
            seen.add(outcome.name)
            selections.append(Selection(name=outcome.name, kind=outcome.kind))
    return selections


def build_search_summary(search_value: str, tables: dict[str, TableAnalysis]) -> SearchSummary:
    """Collect ``table.column`` locations where the search value was found."""
    locations = [
        f"{table_name}.{column_name}"
        for table_name, analysis in tables.items()
        for column_name, stats in analysis.columns.items()
        if stats.found
    ]
    return SearchSummary(
        search_value=search_value, total_found=len(locations), found_locations=locations
    )


def run_analysis(
    engine: Engine,
    tables: Sequence[str] | None = None,
    context: AnalysisContext | None = None,
    max_workers: int = 1,
    include_views: bool = False,
    include_materialized_views: bool = False,
) -> AnalysisReport:
    """Profile the selected relations and assemble the report.

    Args:
        engine: Engine for the target database (one connection per worker)
        tables: Requested table names; None selects every user table
        context: Run options; defaults to a plain full analysis
        max_workers: Upper bound on worker threads
        include_views: Add views to the default selection
        include_materialized_views: Add materialized views to the default selection

    Returns:
        AnalysisReport with tables in selection order

    Raises:
        sqlalchemy.exc.OperationalError: If the database cannot be reached
    """
    context = context or AnalysisContext()
    start = time.perf_counter()
    generated_at = datetime.now(UTC)

    database = describe_database(engine)
    selections = select_targets(engine, tables, include_views, include_materialized_views)

    scheduler = TableScheduler(engine, max_workers, context)
    analyzed = scheduler.run([(s.name, s.kind) for s in selections if s.error is None])

    results: dict[str, TableAnalysis] = {}
    for selection in selections:
        if selection.error is not None:
            results[selection.name] = _failed(selection.name, selection.kind, selection.error)
        elif selection.name in analyzed:
            results[selection.name] = analyzed[selection.name]

    metadata = RunMetadata(
        **database,
        generated_at=generated_at,
        analysis_duration_seconds=round(time.perf_counter() - start, 3),
        analyzed_tables=list(results),
        search_value=context.search_value,
    )
    summary = None
    if context.search_value:
        summary = build_search_summary(context.search_value, results)

    logger.info(
        "analysis_completed",
        tables=len(results),
        errors=sum(1 for a in results.values() if a.error),
        duration_seconds=metadata.analysis_duration_seconds,
    )
    return AnalysisReport(metadata=metadata, tables=results, search_summary=summary)
