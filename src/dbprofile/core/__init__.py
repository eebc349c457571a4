"""Core module - configuration, connections, and shared models."""

from dbprofile.core.config import Settings, get_settings
from dbprofile.core.connections import create_profiling_engine, describe_database
from dbprofile.core.models.base import (
    RelationKind,
    Result,
    TableRef,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Connections
    "create_profiling_engine",
    "describe_database",
    # Models
    "RelationKind",
    "Result",
    "TableRef",
]
