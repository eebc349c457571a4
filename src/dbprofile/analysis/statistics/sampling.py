"""Sampling policy for frequency analysis.

Regular views re-run their defining query on every read, so they get
small samples. Materialized views are stored results and can afford larger
ones. Tables are always scanned in full. The limit only ever applies to the
frequency dataset; the aggregate COUNT(*) always sees every row.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.sql import FromClause
from sqlalchemy.sql.expression import TableClause

from dbprofile.analysis.statistics.models import SamplingDecision
from dbprofile.core.models.base import RelationKind

# (row count threshold, sample size), checked largest first
MATERIALIZED_VIEW_TIERS: tuple[tuple[int, int], ...] = (
    (1_000_000, 10_000),
    (100_000, 5_000),
    (10_000, 2_000),
)
VIEW_TIERS: tuple[tuple[int, int], ...] = (
    (100_000, 2_000),
    (10_000, 1_000),
    (1_000, 500),
)


def decide_sampling(relation_kind: RelationKind, estimated_row_count: int) -> SamplingDecision:
    """Choose the frequency-analysis row limit for a relation."""
    if relation_kind == RelationKind.MATERIALIZED_VIEW:
        tiers = MATERIALIZED_VIEW_TIERS
    elif relation_kind == RelationKind.VIEW:
        tiers = VIEW_TIERS
    else:
        tiers = ()

    row_limit = None
    for threshold, sample_size in tiers:
        if estimated_row_count > threshold:
            row_limit = sample_size
            break

    return SamplingDecision(
        relation_kind=relation_kind,
        estimated_row_count=estimated_row_count,
        row_limit=row_limit,
    )


def sampled_relation(relation: TableClause, decision: SamplingDecision) -> FromClause:
    """The relation to group over: the table itself, or a LIMITed subquery of it."""
    if decision.row_limit is None:
        return relation
    return select(*relation.c).select_from(relation).limit(decision.row_limit).subquery("sampled")
