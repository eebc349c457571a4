"""Base models and types used across all modules.

This module contains the fundamental types that don't belong to any specific
domain module (statistics, catalog, pipeline, etc.).
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class Result[T](BaseModel):
    """Result type for operations that can fail.

    Use this instead of exceptions for expected failures.
    Exceptions are reserved for unexpected/programming errors.
    """

    success: bool
    value: T | None = None
    error: str | None = None
    warnings: list[str] = Field(default_factory=list)

    @classmethod
    def ok(cls, value: T, warnings: list[str] | None = None) -> Result[T]:
        """Create a successful result."""
        return cls(success=True, value=value, warnings=warnings or [])

    @classmethod
    def fail(cls, error: str) -> Result[T]:
        """Create a failed result."""
        return cls(success=False, error=error)

    def unwrap(self) -> T:
        """Get the value or raise if failed."""
        if not self.success:
            raise ValueError(f"Result failed: {self.error}")
        assert self.value is not None
        return self.value


# === Enums ===


class RelationKind(str, Enum):
    """Kind of queryable relation."""

    TABLE = "table"
    VIEW = "view"
    MATERIALIZED_VIEW = "materialized_view"
    UNKNOWN = "unknown"


# === Identifiers ===


class TableRef(BaseModel):
    """Reference to a table by name."""

    table_name: str
    schema_name: str | None = None

    def __str__(self) -> str:
        if self.schema_name:
            return f"{self.schema_name}.{self.table_name}"
        return self.table_name

    def __hash__(self) -> int:
        return hash((self.schema_name, self.table_name))

    @classmethod
    def parse(cls, qualified_name: str) -> TableRef:
        """Split ``schema.table`` (or a bare ``table``) into a reference."""
        schema_name, sep, table_name = qualified_name.partition(".")
        if not sep:
            return cls(table_name=schema_name)
        return cls(table_name=table_name, schema_name=schema_name)
