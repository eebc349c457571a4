"""Column statistics models.

Data structures flowing through one analysis run:
- ColumnSchema: immutable per-column schema facts (derived once per table)
- ColumnStats: mutable per-column statistics accumulator
- TableAnalysis: result for one relation
- FrequencyBatchGroup: columns sharing a physical type, unioned together
- SamplingDecision: row limit applied before frequency analysis
- AnalysisContext: run options threaded through every component
- AnalysisReport: all tables plus run metadata, handed to reporting
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field
from sqlalchemy.types import TypeEngine

from dbprofile.analysis.statistics.types import AbstractType
from dbprofile.core.models.base import RelationKind


@dataclass(frozen=True)
class ColumnSchema:
    """Schema facts for one column. Never mutated after creation."""

    name: str
    abstract_type: AbstractType
    db_type: str
    is_likely_key: bool
    is_unique: bool = False
    sql_type: TypeEngine[Any] | None = field(default=None, repr=False, compare=False)


class ColumnStats(BaseModel):
    """Statistics accumulated for one column of one table.

    ``null_count`` is None when the aggregate query failed and the value is
    unknown; otherwise ``0 <= null_count <= count``.
    """

    type: str
    db_type: str
    count: int = 0
    null_count: int | None = 0
    min: Any = None
    max: Any = None
    avg: float | None = None
    true_percentage: float | None = None
    distinct_count: int | None = None
    most_frequent: dict[str, int] | None = None
    least_frequent: dict[str, int] | None = None
    is_unique: bool = False
    found: bool | None = None
    search_value: str | None = None

    @property
    def non_null_count(self) -> int | None:
        """Rows with a value, or None when unknown."""
        if self.null_count is None:
            return None
        return self.count - self.null_count

    @classmethod
    def for_column(cls, column: ColumnSchema) -> ColumnStats:
        """Create empty stats for a column."""
        return cls(
            type=column.abstract_type.value,
            db_type=column.db_type,
            is_unique=column.is_unique,
        )


class TableAnalysis(BaseModel):
    """Analysis of one relation (table, view or materialized view)."""

    table_name: str
    relation_kind: RelationKind = RelationKind.UNKNOWN
    columns: dict[str, ColumnStats] = Field(default_factory=dict)
    error: str | None = None
    warnings: list[str] = Field(default_factory=list)
    view_definition: str | None = None
    schema_only: bool = False
    sample_row_limit: int | None = None
    duration_seconds: float | None = None

    @property
    def row_count(self) -> int | None:
        """Total rows, taken from any column (all share the table COUNT)."""
        for stats in self.columns.values():
            return stats.count
        return None


@dataclass
class FrequencyBatchGroup:
    """Columns sharing one physical type, analyzed with one UNION ALL query."""

    type_key: str
    columns: list[ColumnSchema] = field(default_factory=list)


@dataclass(frozen=True)
class SamplingDecision:
    """Row limit for frequency analysis. ``row_limit=None`` means full scan."""

    relation_kind: RelationKind
    estimated_row_count: int
    row_limit: int | None = None

    @property
    def is_sampled(self) -> bool:
        return self.row_limit is not None


@dataclass
class AnalysisContext:
    """Run options and cancellation state passed to every component."""

    debug: bool = False
    search_value: str | None = None
    schema_only: bool = False
    sample: bool = True
    cancel_event: threading.Event = field(default_factory=threading.Event, repr=False)

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def cancel(self) -> None:
        """Stop picking up new tables; in-flight tables finish."""
        self.cancel_event.set()


class RunMetadata(BaseModel):
    """Run-level facts populated by the engine, formatted by reporting."""

    database_adapter: str | None = None
    database_driver: str | None = None
    database_version: str | None = None
    generated_at: datetime
    analysis_duration_seconds: float = 0.0
    analyzed_tables: list[str] = Field(default_factory=list)
    search_value: str | None = None


class SearchSummary(BaseModel):
    """Where a searched value was found across the run."""

    search_value: str
    total_found: int = 0
    found_locations: list[str] = Field(default_factory=list)


class AnalysisReport(BaseModel):
    """Everything one run produced, keyed by table in selection order."""

    metadata: RunMetadata
    tables: dict[str, TableAnalysis] = Field(default_factory=dict)
    search_summary: SearchSummary | None = None
