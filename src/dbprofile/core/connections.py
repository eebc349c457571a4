"""Connection management for the database being profiled.

Workers never share a connection: the engine uses NullPool so every
``engine.connect()`` opens a fresh DBAPI connection and ``close()`` really
closes it. Each table worker holds exactly one connection for its lifetime.

Usage:
    from dbprofile.core.connections import ConnectionConfig, create_profiling_engine

    engine = create_profiling_engine(ConnectionConfig(url="postgresql+psycopg://localhost/app"))

    with engine.connect() as conn:
        ...

    engine.dispose()
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import NullPool

from dbprofile.core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class ConnectionConfig:
    """Connection configuration for the profiled database.

    Attributes:
        url: SQLAlchemy database URL
        connect_timeout: Seconds to wait for a connection to be established
        echo_sql: Whether to echo SQL statements (for debugging)
    """

    url: str
    connect_timeout: int = 10
    echo_sql: bool = False


def _connect_args(backend: str, timeout: int) -> dict[str, Any]:
    """Driver-specific connect arguments carrying the timeout."""
    if backend == "sqlite":
        # File-backed SQLite is read from several worker threads
        return {"timeout": timeout, "check_same_thread": False}
    if backend in ("postgresql", "mysql", "mariadb"):
        return {"connect_timeout": timeout}
    return {}


def create_profiling_engine(config: ConnectionConfig) -> Engine:
    """Create an engine suitable for one-connection-per-worker profiling.

    Args:
        config: Connection configuration

    Returns:
        SQLAlchemy engine (no pooling)

    Raises:
        sqlalchemy.exc.ArgumentError: If the URL cannot be parsed
    """
    url = make_url(config.url)
    engine = create_engine(
        url,
        echo=config.echo_sql,
        poolclass=NullPool,
        connect_args=_connect_args(url.get_backend_name(), config.connect_timeout),
    )
    logger.debug("engine_created", dialect=engine.dialect.name, database=url.database)
    return engine


def describe_database(engine: Engine) -> dict[str, str | None]:
    """Return adapter name and server version for run metadata.

    Opens (and verifies) a connection; connection failures propagate since
    they are fatal to the run.
    """
    with engine.connect() as conn:
        version: str | None = None
        info = engine.dialect.server_version_info
        if info:
            version = ".".join(str(part) for part in info)
        elif engine.dialect.name == "sqlite":
            try:
                version = conn.execute(text("SELECT sqlite_version()")).scalar()
            except SQLAlchemyError as e:
                logger.debug("server_version_unavailable", error=str(e))
    return {
        "database_adapter": engine.dialect.name,
        "database_driver": engine.dialect.driver,
        "database_version": version,
    }
