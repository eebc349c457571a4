"""Tests for value search."""

import pytest
from sqlalchemy import column
from sqlalchemy import types as sqltypes
from sqlalchemy.dialects import postgresql

from dbprofile.analysis.statistics.models import AnalysisContext, ColumnSchema, ColumnStats
from dbprofile.analysis.statistics.query import relation_for
from dbprofile.analysis.statistics.schema import fetch_column_schemas
from dbprofile.analysis.statistics.search import parse_boolean, search_columns, search_predicate
from dbprofile.analysis.statistics.types import AbstractType
from dbprofile.core.models.base import TableRef


def _schema(name, abstract_type):
    return ColumnSchema(
        name=name, abstract_type=abstract_type, db_type=abstract_type.value, is_likely_key=False
    )


def _compile(predicate):
    return str(predicate.compile(dialect=postgresql.dialect()))


class TestParseBoolean:
    @pytest.mark.parametrize("token", ["true", "T", "yes", "Y", "1"])
    def test_truthy(self, token):
        assert parse_boolean(token) is True

    @pytest.mark.parametrize("token", ["false", "f", "NO", "n", "0"])
    def test_falsy(self, token):
        assert parse_boolean(token) is False

    def test_other_tokens(self):
        assert parse_boolean("maybe") is None


class TestSearchPredicate:
    """Predicate shape per abstract type."""

    def test_integer_needs_parseable_value(self):
        col = column("age", sqltypes.Integer())
        schema = _schema("age", AbstractType.INTEGER)

        assert search_predicate(col, schema, "Freund") is None
        assert "age = " in _compile(search_predicate(col, schema, "42"))

    def test_float_and_decimal(self):
        assert search_predicate(column("x"), _schema("x", AbstractType.FLOAT), "1.5") is not None
        assert search_predicate(column("x"), _schema("x", AbstractType.DECIMAL), "abc") is None

    def test_temporal_columns_are_skipped(self):
        for kind in (AbstractType.DATE, AbstractType.TIMESTAMP, AbstractType.TIME):
            assert search_predicate(column("d"), _schema("d", kind), "2024-01-01") is None

    def test_boolean_tokens(self):
        col = column("active", sqltypes.Boolean())
        schema = _schema("active", AbstractType.BOOLEAN)

        assert "IS true" in _compile(search_predicate(col, schema, "yes"))
        assert search_predicate(col, schema, "Freund") is None

    def test_json_is_cast_to_text(self):
        col = column("payload", sqltypes.JSON())

        sql = _compile(search_predicate(col, _schema("payload", AbstractType.JSON), "abc"))

        assert "CAST(payload AS VARCHAR) LIKE" in sql

    def test_strings_use_like(self):
        col = column("name", sqltypes.String())

        sql = _compile(search_predicate(col, _schema("name", AbstractType.STRING), "Fre"))

        assert "name LIKE" in sql


class TestSearchOnSqlite:
    def test_found_only_where_value_occurs(self, conn):
        ref = TableRef(table_name="people")
        columns = fetch_column_schemas(conn, ref).unwrap()
        stats = {c.name: ColumnStats.for_column(c) for c in columns}
        context = AnalysisContext(search_value="Freund")

        found = search_columns(conn, relation_for(ref, columns), columns, stats, context)

        assert found == ["name"]
        assert stats["name"].found is True
        assert stats["name"].search_value == "Freund"
        assert stats["age"].found is None
        assert stats["age"].search_value is None

    def test_numeric_search(self, conn):
        ref = TableRef(table_name="people")
        columns = fetch_column_schemas(conn, ref).unwrap()
        stats = {c.name: ColumnStats.for_column(c) for c in columns}

        found = search_columns(
            conn, relation_for(ref, columns), columns, stats, AnalysisContext(search_value="52")
        )

        assert "age" in found
        assert "id" not in found

    def test_failed_probe_is_skipped(self, conn):
        ref = TableRef(table_name="people")
        columns = [_schema("missing", AbstractType.STRING)]
        stats = {"missing": ColumnStats.for_column(columns[0])}

        found = search_columns(
            conn,
            relation_for(ref, columns),
            columns,
            stats,
            AnalysisContext(search_value="x"),
        )

        assert found == []
        assert stats["missing"].found is None
