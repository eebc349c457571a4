"""Core models: ONLY truly shared base types.

Domain models live in their respective packages:
- analysis/statistics/models.py → Column statistics, table analysis, report models

Import domain models directly from their packages:
    from dbprofile.analysis.statistics.models import ColumnStats, TableAnalysis
"""

from dbprofile.core.models.base import (
    RelationKind,
    Result,
    TableRef,
)

__all__ = [
    "RelationKind",
    "Result",
    "TableRef",
]
