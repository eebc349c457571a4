"""Tests for relation discovery and name resolution."""

from dbprofile.core.models.base import RelationKind, TableRef
from dbprofile.sources.catalog import RelationCatalog, RelationInfo, discover_relations


def _info(name, kind=RelationKind.TABLE):
    ref = TableRef.parse(name)
    return RelationInfo(name=name, ref=ref, kind=kind)


class TestDiscoverRelations:
    """Discovery against the fixture database."""

    def test_lists_tables_and_views(self, conn):
        catalog = discover_relations(conn)

        assert catalog.relation_kind_for("people") == RelationKind.TABLE
        assert catalog.relation_kind_for("adults") == RelationKind.VIEW
        assert catalog.relation_kind_for("missing") == RelationKind.UNKNOWN

    def test_default_schema_names_are_bare(self, conn):
        catalog = discover_relations(conn)

        assert all(r.ref.schema_name is None for r in catalog.relations)

    def test_default_selection_skips_views_and_internal_tables(self, conn):
        selection = [r.name for r in discover_relations(conn).default_selection()]

        assert "people" in selection
        assert "adults" not in selection
        assert "alembic_version" not in selection

    def test_views_can_be_included(self, conn):
        catalog = discover_relations(conn)

        selection = [r.name for r in catalog.default_selection(include_views=True)]

        assert "adults" in selection


class TestResolveName:
    """Resolution order for requested names."""

    def test_bare_name_prefers_default_schema(self):
        catalog = RelationCatalog(
            relations=[_info("orders"), _info("sales.orders")], default_schema="main"
        )

        assert catalog.resolve_name("orders").name == "orders"

    def test_public_before_other_schemas(self):
        catalog = RelationCatalog(
            relations=[_info("public.orders"), _info("sales.orders")], default_schema="app"
        )

        assert catalog.resolve_name("orders").name == "public.orders"

    def test_unique_match_in_other_schema(self):
        catalog = RelationCatalog(relations=[_info("sales.orders")], default_schema="public")

        assert catalog.resolve_name("orders").name == "sales.orders"

    def test_ambiguous_name(self):
        catalog = RelationCatalog(
            relations=[_info("sales.orders"), _info("archive.orders")], default_schema="public"
        )

        outcome = catalog.resolve_name("orders")

        assert isinstance(outcome, str)
        assert "ambiguous" in outcome

    def test_qualified_name_must_exist(self):
        catalog = RelationCatalog(relations=[_info("sales.orders")], default_schema="public")

        assert catalog.resolve_name("sales.orders").name == "sales.orders"
        assert "not found" in catalog.resolve_name("archive.orders")

    def test_qualified_default_schema_name(self):
        catalog = RelationCatalog(relations=[_info("orders")], default_schema="main")

        assert catalog.resolve_name("main.orders").name == "orders"
