"""Analyze command - profile the tables of a database."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any

import typer
from rich.table import Table as RichTable
from sqlalchemy.exc import ArgumentError, SQLAlchemyError

from dbprofile.cli.common import (
    JsonFlag,
    LogFormatOption,
    VerboseOption,
    console,
    err_console,
    setup_logging,
)


def analyze(
    database_url: Annotated[
        str | None,
        typer.Argument(
            help="SQLAlchemy database URL (default: DBPROFILE_DATABASE_URL)",
            show_default=False,
        ),
    ] = None,
    tables: Annotated[
        list[str] | None,
        typer.Option(
            "--table",
            "-t",
            help="Table to analyze (repeatable; default: all user tables)",
        ),
    ] = None,
    search: Annotated[
        str | None,
        typer.Option(
            "--search",
            "-s",
            help="Look for this value in every column",
        ),
    ] = None,
    workers: Annotated[
        int | None,
        typer.Option(
            "--workers",
            "-w",
            min=1,
            help="Parallel table workers (default: DBPROFILE_MAX_WORKERS or CPU count)",
        ),
    ] = None,
    schema_only: Annotated[
        bool,
        typer.Option(
            "--schema-only",
            help="Report column types only, without statistics",
        ),
    ] = False,
    include_views: Annotated[
        bool,
        typer.Option(
            "--include-views",
            help="Also analyze views",
        ),
    ] = False,
    include_materialized_views: Annotated[
        bool,
        typer.Option(
            "--include-materialized-views",
            help="Also analyze materialized views",
        ),
    ] = False,
    no_sample: Annotated[
        bool,
        typer.Option(
            "--no-sample",
            help="Scan views in full instead of sampling them for frequencies",
        ),
    ] = False,
    json_output: JsonFlag = False,
    output: Annotated[
        Path | None,
        typer.Option(
            "--output",
            "-o",
            help="Write the JSON report to this file",
            dir_okay=False,
        ),
    ] = None,
    verbose: VerboseOption = 0,
    log_format: LogFormatOption = None,
) -> None:
    """Profile every column of the selected tables.

    Examples:

        dbprofile analyze sqlite:///app.db

        dbprofile analyze postgresql+psycopg://localhost/shop -t orders -t customers

        dbprofile analyze postgresql+psycopg://localhost/shop -s Freund --json

        dbprofile analyze sqlite:///app.db --include-views -o report.json -vv
    """
    setup_logging(verbosity=verbose, log_format=log_format)

    from dbprofile.analysis.statistics.models import AnalysisContext
    from dbprofile.core.config import get_settings
    from dbprofile.core.connections import ConnectionConfig, create_profiling_engine
    from dbprofile.pipeline.runner import run_analysis

    settings = get_settings()
    config = ConnectionConfig(
        url=database_url or settings.database_url,
        connect_timeout=settings.connect_timeout,
    )
    context = AnalysisContext(
        debug=verbose >= 2,
        search_value=search,
        schema_only=schema_only,
        sample=not no_sample,
    )

    try:
        engine = create_profiling_engine(config)
    except ArgumentError as e:
        err_console.print(f"[red]Invalid database URL: {e}[/red]")
        raise typer.Exit(1) from e

    try:
        report = run_analysis(
            engine,
            tables=tables or None,
            context=context,
            max_workers=workers or settings.resolved_workers(),
            include_views=include_views,
            include_materialized_views=include_materialized_views,
        )
    except SQLAlchemyError as e:
        err_console.print(f"[red]Could not connect to database: {e}[/red]")
        raise typer.Exit(1) from e
    finally:
        engine.dispose()

    payload = report.model_dump_json(exclude_none=True, indent=2)
    if output is not None:
        output.write_text(payload + "\n", encoding="utf-8")
        err_console.print(f"Report written to {output}")
    elif json_output:
        typer.echo(payload)
    else:
        _print_summary(report)


def _format_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float):
        return f"{value:.2f}"
    text = str(value)
    return text if len(text) <= 30 else text[:27] + "..."


def _format_frequencies(counts: dict[str, int] | None) -> str:
    if not counts:
        return ""
    return ", ".join(f"{_format_value(key)} ({count})" for key, count in counts.items())


def _print_summary(report: Any) -> None:
    """Print one rich table per analyzed relation."""
    metadata = report.metadata
    console.print("\n[bold]Database Profile[/bold]")
    console.print("=" * 60)
    console.print(f"Adapter: {metadata.database_adapter} {metadata.database_version or ''}")
    console.print(f"Tables: {len(report.tables)}")
    console.print(f"Duration: {metadata.analysis_duration_seconds:.2f}s")

    for name, analysis in report.tables.items():
        console.print()
        kind = analysis.relation_kind.value.replace("_", " ")
        if analysis.error:
            console.print(f"[bold]{name}[/bold] ({kind})")
            console.print(f"  [red]Error: {analysis.error}[/red]")
            continue

        rows = "" if analysis.schema_only else f", {analysis.row_count or 0:,} rows"
        sampled = (
            f", frequencies sampled from {analysis.sample_row_limit:,} rows"
            if analysis.sample_row_limit
            else ""
        )
        console.print(f"[bold]{name}[/bold] ({kind}{rows}{sampled})")

        table = RichTable(show_header=True, header_style="bold")
        table.add_column("Column")
        table.add_column("Type")
        if not analysis.schema_only:
            table.add_column("Nulls", justify="right")
            table.add_column("Distinct", justify="right")
            table.add_column("Min")
            table.add_column("Max")
            table.add_column("Avg", justify="right")
            table.add_column("Most frequent")

        for column_name, stats in analysis.columns.items():
            label = f"[green]{column_name}[/green]" if stats.found else column_name
            if analysis.schema_only:
                table.add_row(label, stats.db_type)
                continue
            avg = stats.true_percentage if stats.true_percentage is not None else stats.avg
            table.add_row(
                label,
                stats.type,
                _format_value(stats.null_count),
                _format_value(stats.distinct_count),
                _format_value(stats.min),
                _format_value(stats.max),
                _format_value(avg) + ("%" if stats.true_percentage is not None else ""),
                _format_frequencies(stats.most_frequent),
            )
        console.print(table)

        for warning in analysis.warnings:
            console.print(f"  [yellow]Warning: {warning}[/yellow]")

    if report.search_summary is not None:
        summary = report.search_summary
        console.print()
        console.print(f"[bold]Search[/bold] '{summary.search_value}'")
        console.print("-" * 60)
        if summary.found_locations:
            for location in summary.found_locations:
                console.print(f"  [green]found[/green] {location}")
        else:
            console.print("  not found")

    console.print()
