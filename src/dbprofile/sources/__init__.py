"""Relation discovery for connected databases."""

from dbprofile.sources.catalog import RelationCatalog, RelationInfo, discover_relations

__all__ = ["RelationCatalog", "RelationInfo", "discover_relations"]
