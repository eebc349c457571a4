"""Shared pytest fixtures for all tests."""

from datetime import date

import pytest
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    Engine,
    Float,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    text,
)

from dbprofile.analysis.statistics.models import AnalysisContext
from dbprofile.core.connections import ConnectionConfig, create_profiling_engine
from dbprofile.core.logging import configure_logging

PEOPLE_ROWS = [
    # name, age, active, city, category, created, score
    ("Anna", 30, True, "Berlin", "a", date(2024, 1, 5), 1.5),
    ("Ben", 25, True, "Berlin", "a", date(2024, 2, 1), 2.5),
    ("Clara", 30, False, None, "a", date(2024, 3, 1), 3.0),
    ("Freund", 41, True, "Hamburg", "b", date(2024, 1, 1), 4.0),
    ("Eva", 25, True, None, "b", date(2024, 4, 2), 1.0),
    ("Finn", 30, False, "Berlin", "c", date(2024, 5, 9), 2.0),
    ("Greta", 52, True, "Köln", "d", date(2024, 6, 1), 5.5),
    ("Hans", 30, True, None, "e", date(2024, 7, 7), 2.5),
    ("Ida", 33, False, "Hamburg", "f", date(2024, 8, 8), 3.5),
    ("Jonas", 25, True, "Berlin", "g", date(2024, 12, 31), 4.5),
]

EVENT_PAYLOADS = [{"a": 1}, {"a": 1}, {"b": 2}, {"b": 2}, {"c": 3}]


def _build_schema(engine: Engine) -> None:
    metadata = MetaData()
    people = Table(
        "people",
        metadata,
        Column("id", Integer, primary_key=True),
        Column("name", String(50), nullable=False),
        Column("age", Integer),
        Column("active", Boolean),
        Column("city", String(30)),
        Column("category", String(10)),
        Column("created", Date),
        Column("score", Float),
    )
    events = Table(
        "events",
        metadata,
        Column("id", Integer, primary_key=True),
        Column("payload", JSON),
    )
    orders = Table(
        "orders",
        metadata,
        Column("id", Integer, primary_key=True),
        Column("person_id", Integer),
        Column("amount", Numeric(10, 2)),
    )
    Table("alembic_version", metadata, Column("version_num", String(32), primary_key=True))
    Table("empty_table", metadata, Column("id", Integer, primary_key=True), Column("label", String))
    metadata.create_all(engine)

    with engine.begin() as conn:
        conn.execute(
            people.insert(),
            [
                {
                    "id": index + 1,
                    "name": name,
                    "age": age,
                    "active": active,
                    "city": city,
                    "category": category,
                    "created": created,
                    "score": score,
                }
                for index, (name, age, active, city, category, created, score) in enumerate(
                    PEOPLE_ROWS
                )
            ],
        )
        conn.execute(
            events.insert(),
            [{"id": index + 1, "payload": payload} for index, payload in enumerate(EVENT_PAYLOADS)],
        )
        conn.execute(
            orders.insert(),
            [
                {"id": 1, "person_id": 1, "amount": 10},
                {"id": 2, "person_id": 1, "amount": 20},
                {"id": 3, "person_id": 4, "amount": 30},
            ],
        )
        conn.execute(text("CREATE VIEW adults AS SELECT id, name, age FROM people WHERE age >= 30"))


@pytest.fixture
def db_path(tmp_path):
    """Path of a populated file-backed SQLite database."""
    path = tmp_path / "profile.db"
    engine = create_profiling_engine(ConnectionConfig(url=f"sqlite:///{path}"))
    _build_schema(engine)
    engine.dispose()
    return path


@pytest.fixture
def engine(db_path):
    """Profiling engine for the test database.

    File-backed so several worker connections see the same data.
    """
    test_engine = create_profiling_engine(ConnectionConfig(url=f"sqlite:///{db_path}"))
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def conn(engine):
    """A single connection, as one worker would hold it."""
    with engine.connect() as connection:
        yield connection


@pytest.fixture
def context():
    """Default run options."""
    return AnalysisContext()


@pytest.fixture(autouse=True)
def reset_logging():
    """Rebind log output after tests that swap out stderr (CliRunner)."""
    yield
    configure_logging()
