"""Shared helpers for building and running profiling statements."""

from __future__ import annotations

from collections.abc import Generator, Sequence
from contextlib import contextmanager
from typing import Any

from sqlalchemy import column, table
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql import Executable
from sqlalchemy.sql.expression import TableClause

from dbprofile.analysis.statistics.models import AnalysisContext, ColumnSchema
from dbprofile.core.logging import get_logger
from dbprofile.core.models.base import TableRef

logger = get_logger(__name__)


def relation_for(ref: TableRef, columns: Sequence[ColumnSchema]) -> TableClause:
    """Lightweight table construct carrying the reflected column types."""
    return table(
        ref.table_name,
        *(column(c.name, c.sql_type) for c in columns),
        schema=ref.schema_name,
    )


def render_sql(stmt: Executable, conn: Connection) -> str:
    """SQL text for debug logging, in the connection's dialect."""
    try:
        return str(stmt.compile(dialect=conn.dialect))
    except SQLAlchemyError:
        return repr(stmt)


@contextmanager
def statement_scope(conn: Connection) -> Generator[None]:
    """Roll back after a failed statement so the connection stays usable.

    PostgreSQL aborts the whole transaction on any error; without the
    rollback every later query on this worker's connection would fail too.
    """
    try:
        yield
    except Exception:
        conn.rollback()
        raise


def execute(
    conn: Connection, stmt: Executable, context: AnalysisContext, event: str
) -> Sequence[Any]:
    """Run a statement and return all rows.

    Raises:
        SQLAlchemyError: After rolling back, for the caller to handle
    """
    if context.debug:
        logger.debug(event, sql=render_sql(stmt, conn))
    with statement_scope(conn):
        return conn.execute(stmt).all()
