"""
Schema Core - Relational schema model, parsers, FK graph and layout.

This package provides the core functionality used by the backend API, the
CLI and the MCP tools, ensuring a single source of truth for all schema
logic.
"""

from .datatypes import DataType, SQLType, resolve_type
from .errors import (
    SchemaParseError,
    EmptySchemaError,
    InputTooLargeError,
    SchemaSyntaxError,
    SchemaWarning,
    UnsupportedTypeWarning,
)
from .models import (
    # Enums
    CascadeAction,
    IndexType,
    # Core models
    Position,
    ForeignKeyReference,
    Column,
    Index,
    Table,
    SchemaModel,
    ParseResult,
    FK_INDEX_COMMENT,
    # Request models (for API)
    ImportRequest,
    LoadSchemaRequest,
    AutoLayoutRequest,
    DetectRequest,
    CompareRequest,
)

from .sql_parser import parse_sql
from .prisma_parser import parse_prisma
from .detection import SchemaFormat, detect_format, parse_schema
from .graph import (
    FKEdge,
    derive_edges,
    on_edge_removed,
    make_edge_id,
    parse_edge_id,
    clear_reference,
    delete_column,
    ensure_fk_indexes,
)
from .layout import LayoutResult, auto_layout, table_width, table_height
from .generator import generate_sql, generate_prisma
from .validation import validate_schema, validation_summary, ValidationIssue, IssueSeverity
from .analysis import summarize_schema, find_connected_components, find_cycles
from .diff import SchemaDiff, TableChange, ColumnChange, IndexChange, FieldChange, compare_schemas
from .migration import Migration, generate_migration
from .presets import SchemaPreset, PRESETS, list_presets, get_preset, build_preset

__all__ = [
    # Types
    "DataType",
    "SQLType",
    "resolve_type",
    # Errors
    "SchemaParseError",
    "EmptySchemaError",
    "InputTooLargeError",
    "SchemaSyntaxError",
    "SchemaWarning",
    "UnsupportedTypeWarning",
    # Enums
    "CascadeAction",
    "IndexType",
    # Models
    "Position",
    "ForeignKeyReference",
    "Column",
    "Index",
    "Table",
    "SchemaModel",
    "ParseResult",
    "FK_INDEX_COMMENT",
    # Request models
    "ImportRequest",
    "LoadSchemaRequest",
    "AutoLayoutRequest",
    "DetectRequest",
    "CompareRequest",
    # Parsing
    "parse_sql",
    "parse_prisma",
    "SchemaFormat",
    "detect_format",
    "parse_schema",
    # Graph
    "FKEdge",
    "derive_edges",
    "on_edge_removed",
    "make_edge_id",
    "parse_edge_id",
    "clear_reference",
    "delete_column",
    "ensure_fk_indexes",
    # Layout
    "LayoutResult",
    "auto_layout",
    "table_width",
    "table_height",
    # Export
    "generate_sql",
    "generate_prisma",
    # Validation
    "validate_schema",
    "validation_summary",
    "ValidationIssue",
    "IssueSeverity",
    # Analysis
    "summarize_schema",
    "find_connected_components",
    "find_cycles",
    # Comparison and migration
    "SchemaDiff",
    "TableChange",
    "ColumnChange",
    "IndexChange",
    "FieldChange",
    "compare_schemas",
    "Migration",
    "generate_migration",
    # Presets
    "SchemaPreset",
    "PRESETS",
    "list_presets",
    "get_preset",
    "build_preset",
]
