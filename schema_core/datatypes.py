"""
Canonical column data types.

A column type is a tagged variant: `kind` selects the variant and the
optional `length` / `precision` / `scale` fields carry its parameters.
Type names coming from SQL or Prisma text go through `resolve_type`, which
maps known spellings exactly and falls back to the nearest supported kind
for anything else instead of failing the import.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, model_validator

from .errors import SchemaSyntaxError, SchemaWarning, UnsupportedTypeWarning


class SQLType(str, Enum):
    """Canonical data type kinds."""
    # Integers
    SMALLINT = "SMALLINT"
    INTEGER = "INTEGER"
    BIGINT = "BIGINT"
    # Strings
    VARCHAR = "VARCHAR"
    CHAR = "CHAR"
    TEXT = "TEXT"
    # Numbers
    DECIMAL = "DECIMAL"
    FLOAT = "FLOAT"
    DOUBLE = "DOUBLE"
    REAL = "REAL"
    # Date/Time
    DATE = "DATE"
    TIME = "TIME"
    TIMESTAMP = "TIMESTAMP"
    TIMESTAMPTZ = "TIMESTAMPTZ"
    BOOLEAN = "BOOLEAN"
    # Binary
    BYTEA = "BYTEA"
    BLOB = "BLOB"
    # JSON
    JSON = "JSON"
    JSONB = "JSONB"
    # PostgreSQL specific
    UUID = "UUID"
    INET = "INET"
    CIDR = "CIDR"
    ARRAY = "ARRAY"
    TSVECTOR = "TSVECTOR"


INTEGER_TYPES = frozenset({SQLType.SMALLINT, SQLType.INTEGER, SQLType.BIGINT})
SIZED_STRING_TYPES = frozenset({SQLType.VARCHAR, SQLType.CHAR})

# Size defaults and limits
DEFAULT_VARCHAR_LENGTH = 255
DEFAULT_CHAR_LENGTH = 1
DEFAULT_DECIMAL_PRECISION = 10
DEFAULT_DECIMAL_SCALE = 2
MAX_VARCHAR_LENGTH = 65535
MAX_CHAR_LENGTH = 255
MAX_DECIMAL_PRECISION = 65
MAX_DECIMAL_SCALE = 30


class DataType(BaseModel):
    """A column data type with its parameters."""
    kind: SQLType
    length: Optional[int] = None     # VARCHAR / CHAR
    precision: Optional[int] = None  # DECIMAL
    scale: Optional[int] = None      # DECIMAL

    @model_validator(mode="after")
    def drop_foreign_params(self) -> "DataType":
        """Parameters only survive on the kinds that use them."""
        if self.kind not in SIZED_STRING_TYPES:
            self.length = None
        if self.kind != SQLType.DECIMAL:
            self.precision = None
            self.scale = None
        return self

    def render(self) -> str:
        """SQL spelling, e.g. VARCHAR(255) or DECIMAL(10,2)."""
        if self.kind in SIZED_STRING_TYPES and self.length:
            return f"{self.kind.value}({self.length})"
        if self.kind == SQLType.DECIMAL and self.precision:
            if self.scale:
                return f"DECIMAL({self.precision},{self.scale})"
            return f"DECIMAL({self.precision})"
        return self.kind.value

    def __str__(self) -> str:
        return self.render()


# Known spellings from PostgreSQL, MySQL and SQLite
TYPE_ALIASES: dict[str, SQLType] = {
    # Integers
    "TINYINT": SQLType.SMALLINT,
    "SMALLINT": SQLType.SMALLINT,
    "INT2": SQLType.SMALLINT,
    "MEDIUMINT": SQLType.INTEGER,
    "INT": SQLType.INTEGER,
    "INT4": SQLType.INTEGER,
    "INTEGER": SQLType.INTEGER,
    "BIGINT": SQLType.BIGINT,
    "INT8": SQLType.BIGINT,
    "SERIAL": SQLType.INTEGER,
    "SERIAL4": SQLType.INTEGER,
    "BIGSERIAL": SQLType.BIGINT,
    "SERIAL8": SQLType.BIGINT,
    "SMALLSERIAL": SQLType.SMALLINT,
    "SERIAL2": SQLType.SMALLINT,
    # Strings
    "VARCHAR": SQLType.VARCHAR,
    "CHARACTER VARYING": SQLType.VARCHAR,
    "NVARCHAR": SQLType.VARCHAR,
    "VARCHAR2": SQLType.VARCHAR,
    "CHAR": SQLType.CHAR,
    "CHARACTER": SQLType.CHAR,
    "NCHAR": SQLType.CHAR,
    "BPCHAR": SQLType.CHAR,
    "TEXT": SQLType.TEXT,
    "TINYTEXT": SQLType.TEXT,
    "MEDIUMTEXT": SQLType.TEXT,
    "LONGTEXT": SQLType.TEXT,
    "CITEXT": SQLType.TEXT,
    # Numbers
    "DECIMAL": SQLType.DECIMAL,
    "NUMERIC": SQLType.DECIMAL,
    "FLOAT": SQLType.FLOAT,
    "FLOAT4": SQLType.FLOAT,
    "DOUBLE": SQLType.DOUBLE,
    "DOUBLE PRECISION": SQLType.DOUBLE,
    "FLOAT8": SQLType.DOUBLE,
    "REAL": SQLType.REAL,
    # Date/Time
    "DATE": SQLType.DATE,
    "TIME": SQLType.TIME,
    "TIME WITHOUT TIME ZONE": SQLType.TIME,
    "TIME WITH TIME ZONE": SQLType.TIME,
    "TIMETZ": SQLType.TIME,
    "DATETIME": SQLType.TIMESTAMP,
    "TIMESTAMP": SQLType.TIMESTAMP,
    "TIMESTAMP WITHOUT TIME ZONE": SQLType.TIMESTAMP,
    "TIMESTAMPTZ": SQLType.TIMESTAMPTZ,
    "TIMESTAMP WITH TIME ZONE": SQLType.TIMESTAMPTZ,
    # Boolean
    "BOOLEAN": SQLType.BOOLEAN,
    "BOOL": SQLType.BOOLEAN,
    # Binary
    "BYTEA": SQLType.BYTEA,
    "BLOB": SQLType.BLOB,
    "TINYBLOB": SQLType.BLOB,
    "MEDIUMBLOB": SQLType.BLOB,
    "LONGBLOB": SQLType.BLOB,
    "BINARY": SQLType.BLOB,
    "VARBINARY": SQLType.BLOB,
    # JSON
    "JSON": SQLType.JSON,
    "JSONB": SQLType.JSONB,
    # PostgreSQL specific
    "UUID": SQLType.UUID,
    "INET": SQLType.INET,
    "CIDR": SQLType.CIDR,
    "ARRAY": SQLType.ARRAY,
    "TSVECTOR": SQLType.TSVECTOR,
}

SERIAL_TYPES = frozenset({
    "SERIAL", "SERIAL2", "SERIAL4", "SERIAL8", "BIGSERIAL", "SMALLSERIAL",
})

# Words that may continue a type name, e.g. DOUBLE PRECISION
MULTIWORD_TYPES = frozenset(name for name in TYPE_ALIASES if " " in name)

# Nearest-match fallback, checked in order against the unknown name
_FALLBACK_RULES: list[tuple[str, SQLType]] = [
    ("INTERVAL", SQLType.TEXT),
    ("POINT", SQLType.TEXT),
    ("INT", SQLType.INTEGER),
    ("BOOL", SQLType.BOOLEAN),
    ("JSON", SQLType.JSON),
    ("CLOB", SQLType.TEXT),
    ("TEXT", SQLType.TEXT),
    ("CHAR", SQLType.TEXT),
    ("STRING", SQLType.TEXT),
    ("MONEY", SQLType.DECIMAL),
    ("DEC", SQLType.DECIMAL),
    ("NUM", SQLType.DECIMAL),
    ("DOUBLE", SQLType.DOUBLE),
    ("FLOAT", SQLType.FLOAT),
    ("TIMESTAMP", SQLType.TIMESTAMP),
    ("DATETIME", SQLType.TIMESTAMP),
    ("TIME", SQLType.TIME),
    ("DATE", SQLType.DATE),
    ("YEAR", SQLType.SMALLINT),
    ("BLOB", SQLType.BLOB),
    ("BINARY", SQLType.BLOB),
    ("BYTE", SQLType.BYTEA),
    ("BIT", SQLType.BOOLEAN),
    ("UUID", SQLType.UUID),
]


def normalize_type_name(name: str) -> str:
    """Uppercase and collapse whitespace."""
    return " ".join(name.upper().split())


def _with_params(kind: SQLType, params: list[int]) -> DataType:
    first = params[0] if params else None
    second = params[1] if len(params) > 1 else None
    if kind in SIZED_STRING_TYPES:
        return DataType(kind=kind, length=first)
    if kind == SQLType.DECIMAL:
        return DataType(kind=kind, precision=first, scale=second)
    return DataType(kind=kind)


def resolve_type(
    name: str,
    params: Optional[list[int]] = None,
    table: Optional[str] = None,
    column: Optional[str] = None,
) -> tuple[DataType, Optional[UnsupportedTypeWarning]]:
    """
    Map a type spelling to a canonical DataType.

    Known spellings map exactly. Anything else goes through the fallback
    rules and comes back with an UnsupportedTypeWarning describing the
    coercion; this function never raises.

    Args:
        name: Type name as written (any case, may contain spaces)
        params: Numeric parameters, e.g. [10, 2] for DECIMAL(10, 2)
        table: Table name for warning messages
        column: Column name for warning messages

    Returns:
        (data_type, warning_or_None)
    """
    params = params or []
    key = normalize_type_name(name)

    # MySQL convention for booleans
    if key == "TINYINT" and params == [1]:
        return DataType(kind=SQLType.BOOLEAN), None

    if key in TYPE_ALIASES:
        return _with_params(TYPE_ALIASES[key], params), None

    for needle, kind in _FALLBACK_RULES:
        if needle in key:
            coerced = _with_params(kind, params)
            break
    else:
        coerced = DataType(kind=SQLType.VARCHAR, length=DEFAULT_VARCHAR_LENGTH)

    warning = UnsupportedTypeWarning(name, coerced.render(), table=table, column=column)
    return coerced, warning


def apply_size_defaults(
    data_type: DataType,
    table: Optional[str] = None,
    column: Optional[str] = None,
) -> tuple[DataType, list[SchemaWarning]]:
    """
    Fill missing sizes and enforce size limits.

    Raises:
        SchemaSyntaxError: If a length, precision or scale is out of range
    """
    warnings: list[SchemaWarning] = []
    where = f"{table}.{column}" if table else (column or "?")
    kind = data_type.kind

    if kind == SQLType.VARCHAR:
        if not data_type.length:
            data_type.length = DEFAULT_VARCHAR_LENGTH
            warnings.append(SchemaWarning(
                f"Column \"{where}\" is VARCHAR without length - defaulting to {DEFAULT_VARCHAR_LENGTH}",
                table=table, column=column,
            ))
        elif not 1 <= data_type.length <= MAX_VARCHAR_LENGTH:
            raise SchemaSyntaxError(
                f"Column \"{where}\" VARCHAR length must be between 1 and {MAX_VARCHAR_LENGTH:,}",
                data_type.render(),
            )

    elif kind == SQLType.CHAR:
        if not data_type.length:
            data_type.length = DEFAULT_CHAR_LENGTH
            warnings.append(SchemaWarning(
                f"Column \"{where}\" is CHAR without length - defaulting to {DEFAULT_CHAR_LENGTH}",
                table=table, column=column,
            ))
        elif not 1 <= data_type.length <= MAX_CHAR_LENGTH:
            raise SchemaSyntaxError(
                f"Column \"{where}\" CHAR length must be between 1 and {MAX_CHAR_LENGTH}",
                data_type.render(),
            )

    elif kind == SQLType.DECIMAL:
        if not data_type.precision:
            data_type.precision = DEFAULT_DECIMAL_PRECISION
            data_type.scale = DEFAULT_DECIMAL_SCALE
            warnings.append(SchemaWarning(
                f"Column \"{where}\" is DECIMAL without precision - defaulting to "
                f"DECIMAL({DEFAULT_DECIMAL_PRECISION},{DEFAULT_DECIMAL_SCALE})",
                table=table, column=column,
            ))
        else:
            if not 1 <= data_type.precision <= MAX_DECIMAL_PRECISION:
                raise SchemaSyntaxError(
                    f"Column \"{where}\" DECIMAL precision must be between 1 and {MAX_DECIMAL_PRECISION}",
                    data_type.render(),
                )
            scale = data_type.scale or 0
            if scale > MAX_DECIMAL_SCALE or scale > data_type.precision:
                raise SchemaSyntaxError(
                    f"Column \"{where}\" DECIMAL scale must not exceed the precision or {MAX_DECIMAL_SCALE}",
                    data_type.render(),
                )

    return data_type, warnings


_COMPATIBLE_FAMILIES = [
    INTEGER_TYPES,
    frozenset({SQLType.FLOAT, SQLType.DOUBLE, SQLType.REAL}),
    frozenset({SQLType.VARCHAR, SQLType.TEXT, SQLType.CHAR}),
    frozenset({SQLType.TIMESTAMP, SQLType.TIMESTAMPTZ}),
    frozenset({SQLType.JSON, SQLType.JSONB}),
    frozenset({SQLType.BYTEA, SQLType.BLOB}),
]


def are_types_compatible(first: SQLType, second: SQLType) -> bool:
    """Whether two kinds may sit on either end of a foreign key."""
    if first == second:
        return True
    return any(first in family and second in family for family in _COMPATIBLE_FAMILIES)
