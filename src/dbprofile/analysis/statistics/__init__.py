"""Column statistics: types, aggregates, frequencies and value search."""

from dbprofile.analysis.statistics.models import (
    AnalysisContext,
    AnalysisReport,
    ColumnSchema,
    ColumnStats,
    TableAnalysis,
)
from dbprofile.analysis.statistics.profiler import analyze_relation, profile_table
from dbprofile.analysis.statistics.types import AbstractType

__all__ = [
    "AbstractType",
    "AnalysisContext",
    "AnalysisReport",
    "ColumnSchema",
    "ColumnStats",
    "TableAnalysis",
    "analyze_relation",
    "profile_table",
]
