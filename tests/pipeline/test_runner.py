"""Tests for the parallel table scheduler and report assembly."""

from collections import Counter
from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy import text

from dbprofile.analysis.statistics.models import AnalysisContext, TableAnalysis
from dbprofile.core.models.base import RelationKind
from dbprofile.pipeline import runner
from dbprofile.pipeline.runner import (
    SchedulerState,
    TableScheduler,
    partition_targets,
    run_analysis,
)

TARGETS = [
    ("people", RelationKind.TABLE),
    ("events", RelationKind.TABLE),
    ("orders", RelationKind.TABLE),
    ("empty_table", RelationKind.TABLE),
]


class TestPartitionTargets:
    def test_round_robin(self):
        chunks = partition_targets(TARGETS, 2)

        assert [[t[1] for t in chunk] for chunk in chunks] == [
            ["people", "orders"],
            ["events", "empty_table"],
        ]

    def test_never_more_chunks_than_targets(self):
        assert len(partition_targets(TARGETS[:2], 8)) == 2

    def test_at_least_one_chunk(self):
        assert len(partition_targets(TARGETS, 0)) == 1


class TestTableScheduler:
    """Scheduling behaviour against the fixture database."""

    @pytest.mark.parametrize("workers", [1, 2, 4])
    def test_results_follow_selection_order(self, engine, workers):
        scheduler = TableScheduler(engine, workers, AnalysisContext())

        results = scheduler.run(TARGETS)

        assert list(results) == [name for name, _ in TARGETS]
        assert scheduler.state == SchedulerState.DONE
        assert results["people"].row_count == 10

    def test_table_error_does_not_stop_siblings(self, engine):
        targets = [("people", RelationKind.TABLE), ("missing", RelationKind.UNKNOWN)]
        targets += [("orders", RelationKind.TABLE)]

        results = TableScheduler(engine, 3, AnalysisContext()).run(targets)

        assert results["missing"].error is not None
        assert results["people"].error is None
        assert results["orders"].error is None

    def test_falls_back_to_sequential(self, engine, monkeypatch):
        class NoThreads(ThreadPoolExecutor):
            def submit(self, *args, **kwargs):
                raise RuntimeError("can't start new thread")

        monkeypatch.setattr(runner, "ThreadPoolExecutor", NoThreads)

        results = TableScheduler(engine, 4, AnalysisContext()).run(TARGETS)

        assert list(results) == [name for name, _ in TARGETS]
        assert all(a.error is None for a in results.values())

    def test_unscheduled_chunks_run_once(self, engine, monkeypatch):
        calls = Counter()
        real_analyze = runner.analyze_relation

        def counting(conn, name, kind, context):
            calls[name] += 1
            return real_analyze(conn, name, kind, context)

        class OneThread(ThreadPoolExecutor):
            submitted = 0

            def submit(self, *args, **kwargs):
                if OneThread.submitted:
                    raise RuntimeError("can't start new thread")
                OneThread.submitted += 1
                return super().submit(*args, **kwargs)

        monkeypatch.setattr(runner, "analyze_relation", counting)
        monkeypatch.setattr(runner, "ThreadPoolExecutor", OneThread)

        results = TableScheduler(engine, 2, AnalysisContext()).run(TARGETS)

        assert list(results) == [name for name, _ in TARGETS]
        assert calls == Counter({name: 1 for name, _ in TARGETS})

    def test_worker_exception_keeps_finished_results(self, engine, monkeypatch):
        calls = Counter()
        real_analyze = runner.analyze_relation

        def failing_on_events(conn, name, kind, context):
            calls[name] += 1
            if name == "events":
                raise RuntimeError("worker blew up")
            return real_analyze(conn, name, kind, context)

        monkeypatch.setattr(runner, "analyze_relation", failing_on_events)

        results = TableScheduler(engine, 2, AnalysisContext()).run(TARGETS)

        assert list(results) == [name for name, _ in TARGETS]
        assert results["people"].error is None
        assert results["orders"].error is None
        assert "worker blew up" in results["events"].error
        assert results["empty_table"].error is not None
        assert calls["people"] == 1
        assert calls["orders"] == 1

    def test_cancelled_run_skips_remaining_tables(self, engine):
        context = AnalysisContext()
        context.cancel()

        results = TableScheduler(engine, 2, context).run(TARGETS)

        assert results == {}

    def test_one_connection_per_worker(self, engine, monkeypatch):
        opened = []
        original = engine.connect

        def counting_connect():
            opened.append(1)
            return original()

        monkeypatch.setattr(engine, "connect", counting_connect)

        TableScheduler(engine, 2, AnalysisContext()).run(TARGETS)

        assert len(opened) == 2

    def test_empty_target_list(self, engine):
        assert TableScheduler(engine, 4, AnalysisContext()).run([]) == {}


class TestRunAnalysis:
    """Report assembly."""

    def test_default_selection(self, engine):
        report = run_analysis(engine, max_workers=2)

        assert "people" in report.tables
        assert "adults" not in report.tables
        assert "alembic_version" not in report.tables
        assert report.metadata.database_adapter == "sqlite"
        assert report.metadata.analyzed_tables == list(report.tables)
        assert report.search_summary is None

    def test_requested_tables_keep_request_order(self, engine):
        report = run_analysis(engine, tables=["orders", "adults", "people"], max_workers=2)

        assert list(report.tables) == ["orders", "adults", "people"]
        assert report.tables["adults"].relation_kind == RelationKind.VIEW

    def test_unknown_table_is_reported(self, engine):
        report = run_analysis(engine, tables=["people", "nope"])

        assert report.tables["nope"].error is not None
        assert report.tables["people"].error is None

    def test_search_summary(self, engine):
        report = run_analysis(
            engine, tables=["people", "orders"], context=AnalysisContext(search_value="Freund")
        )

        assert report.search_summary.search_value == "Freund"
        assert report.search_summary.total_found == 1
        assert report.search_summary.found_locations == ["people.name"]
        assert report.metadata.search_value == "Freund"

    def test_include_views(self, engine):
        report = run_analysis(engine, include_views=True)

        assert report.tables["adults"].view_definition is not None

    def test_serialization_drops_empty_fields(self, engine):
        report = run_analysis(engine, tables=["people"])

        payload = report.model_dump(exclude_none=True, mode="json")
        columns = payload["tables"]["people"]["columns"]
        assert "most_frequent" not in columns["id"]
        assert "avg" not in columns["id"]
        assert columns["active"]["true_percentage"] == pytest.approx(70.0)

    def test_chunk_connection_failure_marks_tables(self, engine, monkeypatch):
        from sqlalchemy.exc import OperationalError

        def broken_connect():
            raise OperationalError("connect", {}, Exception("refused"))

        monkeypatch.setattr(engine, "connect", broken_connect)

        results = runner.analyze_chunk(
            engine, [(0, "people", RelationKind.TABLE)], AnalysisContext()
        )

        assert len(results) == 1
        assert isinstance(results[0][1], TableAnalysis)
        assert "Connection failed" in results[0][1].error

    def test_bad_value_does_not_abort_the_run(self, engine):
        with engine.begin() as conn:
            conn.execute(text("CREATE TABLE bad_dates (id INTEGER PRIMARY KEY, happened DATE)"))
            conn.execute(text("INSERT INTO bad_dates VALUES (1, '2024-01-01'), (2, 'not a date')"))

        report = run_analysis(engine, tables=["people", "bad_dates"], max_workers=2)

        assert list(report.tables) == ["people", "bad_dates"]
        assert report.tables["people"].error is None
        assert report.tables["people"].row_count == 10
        assert "ValueError" in report.tables["bad_dates"].error
