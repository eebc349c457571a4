"""Abstract column types and the likely-key heuristic.

Maps what the driver reports about a column (a SQLAlchemy type object plus
the raw database type string) onto a closed set of engine-independent
kinds. Every later stage (aggregates, frequency, search) dispatches on
``AbstractType`` only.
"""

from __future__ import annotations

from enum import Enum

from sqlalchemy import types as sqltypes
from sqlalchemy.types import TypeEngine


class AbstractType(str, Enum):
    """Engine-independent column classification."""

    INTEGER = "integer"
    FLOAT = "float"
    DECIMAL = "decimal"
    STRING = "string"
    TEXT = "text"
    BLOB = "blob"
    ENUM = "enum"
    INET = "inet"
    UUID = "uuid"
    JSON = "json"
    BOOLEAN = "boolean"
    ARRAY = "array"
    DATE = "date"
    DATETIME = "datetime"
    TIME = "time"
    TIMESTAMP = "timestamp"
    UNSUPPORTED = "unsupported"


NUMERIC_TYPES = frozenset({AbstractType.INTEGER, AbstractType.FLOAT, AbstractType.DECIMAL})
TEMPORAL_TYPES = frozenset(
    {AbstractType.DATE, AbstractType.DATETIME, AbstractType.TIME, AbstractType.TIMESTAMP}
)
# Cannot be ordered or grouped cheaply
NON_GROUPABLE_TYPES = frozenset(
    {AbstractType.TEXT, AbstractType.BLOB, AbstractType.ARRAY, AbstractType.UNSUPPORTED}
)

# Raw string types that are plain character columns, never enums
_CHARACTER_DB_TYPES = frozenset({"character varying", "varchar", "text", "char", "character"})
_CHARACTER_DB_PREFIXES = ("varchar(", "character varying(", "char(", "character(")

# Text types too large to group (CLOB family); plain "text" behaves like varchar
_LARGE_TEXT_DB_TYPES = frozenset({"clob", "tinytext", "mediumtext", "longtext", "ntext"})

# Raw types with no useful ordering or grouping
_UNSUPPORTED_DB_TYPES = frozenset({"xml", "hstore", "interval", "bit varying", "money"})

# Driver symbols produced by driver_type_symbol(), keyed to abstract types
_DRIVER_SYMBOLS: dict[str, AbstractType] = {
    "integer": AbstractType.INTEGER,
    "float": AbstractType.FLOAT,
    "decimal": AbstractType.DECIMAL,
    "string": AbstractType.STRING,
    "text": AbstractType.TEXT,
    "blob": AbstractType.BLOB,
    "enum": AbstractType.ENUM,
    "inet": AbstractType.INET,
    "uuid": AbstractType.UUID,
    "json": AbstractType.JSON,
    "boolean": AbstractType.BOOLEAN,
    "array": AbstractType.ARRAY,
    "date": AbstractType.DATE,
    "datetime": AbstractType.DATETIME,
    "time": AbstractType.TIME,
    "timestamp": AbstractType.TIMESTAMP,
}


def base_db_type(db_type: str) -> str:
    """Strip size/precision from a raw type: ``varchar(255)`` -> ``varchar``."""
    return db_type.lower().split("(", 1)[0].strip()


def is_character_db_type(db_type: str) -> bool:
    """True for varchar/char/text spellings (never an enum candidate)."""
    lowered = db_type.lower()
    return lowered in _CHARACTER_DB_TYPES or lowered.startswith(_CHARACTER_DB_PREFIXES)


def driver_type_symbol(sql_type: TypeEngine | None, db_type: str = "") -> str | None:
    """Classify a reflected SQLAlchemy type the way a driver would report it.

    Returns ``None`` when the type is unknown to SQLAlchemy (NullType).
    Order matters: subclasses are checked before their bases.
    """
    if sql_type is None or isinstance(sql_type, sqltypes.NullType):
        return None
    lowered = db_type.lower()
    if base_db_type(lowered) in ("inet", "cidr"):
        return "inet"

    if isinstance(sql_type, sqltypes.Boolean):
        return "boolean"
    if isinstance(sql_type, sqltypes.Enum):
        return "enum"
    if isinstance(sql_type, sqltypes.Integer):
        return "integer"
    if isinstance(sql_type, sqltypes.Float):
        return "float"
    if isinstance(sql_type, sqltypes.Numeric):
        # Numeric(asdecimal=False) is still a decimal column on the server
        return "decimal"
    if isinstance(sql_type, sqltypes.ARRAY):
        return "array"
    if isinstance(sql_type, sqltypes.JSON):
        return "json"
    if isinstance(sql_type, sqltypes.Uuid):
        return "uuid"
    if isinstance(sql_type, sqltypes.DateTime):
        return "timestamp" if "timestamp" in lowered else "datetime"
    if isinstance(sql_type, sqltypes.Date):
        return "date"
    if isinstance(sql_type, sqltypes.Time):
        return "time"
    if isinstance(sql_type, (sqltypes.LargeBinary, sqltypes.BINARY, sqltypes.VARBINARY)):
        return "blob"
    if isinstance(sql_type, sqltypes.Interval):
        return None
    if isinstance(sql_type, sqltypes.String):
        if base_db_type(lowered) in _LARGE_TEXT_DB_TYPES:
            return "text"
        return "string"
    return None


def normalize_type(driver_type: str | None, db_type: str) -> AbstractType:
    """Map a driver type symbol and raw DB type to an abstract type.

    Rules, first match wins:
    1. A specific driver type is trusted, unless the raw type names json,
       uuid or tsvector: those override a misleadingly generic driver type.
    2. With no driver type, infer json/uuid from the raw type string.
    3. Anything else is unsupported (counted, but otherwise skipped).

    Enum detection needs the database catalog and happens in
    ``schema.apply_enum_types``.
    """
    lowered = db_type.lower().strip()
    base = base_db_type(lowered)

    if "json" in lowered:
        return AbstractType.JSON
    if lowered == "uuid":
        return AbstractType.UUID
    if lowered == "tsvector":
        return AbstractType.TEXT
    if base in _UNSUPPORTED_DB_TYPES:
        return AbstractType.UNSUPPORTED

    if driver_type:
        return _DRIVER_SYMBOLS.get(driver_type, AbstractType.UNSUPPORTED)
    return AbstractType.UNSUPPORTED


def is_groupable(abstract_type: AbstractType) -> bool:
    """Whether GROUP BY / DISTINCT / MIN / MAX are meaningful for the type."""
    return abstract_type not in NON_GROUPABLE_TYPES


def is_likely_key(column_name: str, is_unique_indexed: bool) -> bool:
    """Guess whether a column is a primary/foreign key or unique identifier.

    Name-based: any ``id`` or ``*_id`` column counts, so a non-key column
    that happens to end in ``_id`` loses AVG/DISTINCT/frequency stats. This
    is a known approximation, not a correctness guarantee.
    """
    return is_unique_indexed or column_name == "id" or column_name.endswith("_id")
