"""
Core data models for relational schemas.

These models define the canonical schema every format converts to and from:
- Tables with stable ids, ordered columns, indexes and a canvas position
- Columns with a tagged data type and an optional foreign-key reference
- Indexes, including the FK auto-indexes marked by a sentinel comment

Field Naming Convention:
- Python attributes and JSON output use snake_case
- For compatibility with the browser editor, camelCase keys (`primaryKey`,
  `autoIncrement`, `references: {table, column}` ...) are accepted on input
  and converted

Foreign keys live only on `Column.reference`. Edges shown on the canvas are
derived from these references (see graph.py) and never stored.
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator

from .datatypes import DataType, SQLType
from .errors import SchemaWarning


# Reserved comment marking an index as auto-created for a foreign key
FK_INDEX_COMMENT = "Auto-created for foreign key performance"


class CascadeAction(str, Enum):
    """Referential actions for ON DELETE / ON UPDATE."""
    CASCADE = "CASCADE"
    SET_NULL = "SET NULL"
    RESTRICT = "RESTRICT"
    NO_ACTION = "NO ACTION"


class IndexType(str, Enum):
    """Index access methods."""
    BTREE = "BTREE"
    HASH = "HASH"
    GIN = "GIN"
    GIST = "GIST"
    BRIN = "BRIN"


def normalize_cascade_action(text: Optional[str]) -> Optional[CascadeAction]:
    """Map 'set  null', 'NoAction', 'cascade' ... to a CascadeAction."""
    if not text:
        return None
    key = " ".join(text.upper().split())
    aliases = {"SETNULL": "SET NULL", "NOACTION": "NO ACTION"}
    key = aliases.get(key, key)
    try:
        return CascadeAction(key)
    except ValueError:
        return None


def generate_table_id() -> str:
    """Generate a unique table ID."""
    return f"t{uuid.uuid4().hex[:8]}"


def generate_column_id() -> str:
    """Generate a unique column ID."""
    return f"c{uuid.uuid4().hex[:8]}"


def generate_index_id() -> str:
    """Generate a unique index ID."""
    return f"i{uuid.uuid4().hex[:8]}"


class Position(BaseModel):
    """Top-left corner of a table on the canvas."""
    x: float = 0
    y: float = 0


class ForeignKeyReference(BaseModel):
    """
    Column-level foreign key.

    Targets are held by name. A reference whose target does not resolve is
    kept as-is; it simply yields no edge until it does.
    """
    target_table: str
    target_column: str
    on_delete: Optional[CascadeAction] = None
    on_update: Optional[CascadeAction] = None

    @model_validator(mode='before')
    @classmethod
    def convert_legacy_fields(cls, data: Any) -> Any:
        """Convert editor-style 'table'/'column'/'onDelete' keys."""
        if isinstance(data, dict):
            data = dict(data)
            if 'table' in data and 'target_table' not in data:
                data['target_table'] = data.pop('table')
            if 'column' in data and 'target_column' not in data:
                data['target_column'] = data.pop('column')
            if 'onDelete' in data and 'on_delete' not in data:
                data['on_delete'] = data.pop('onDelete')
            if 'onUpdate' in data and 'on_update' not in data:
                data['on_update'] = data.pop('onUpdate')
            for key in ('on_delete', 'on_update'):
                if isinstance(data.get(key), str):
                    data[key] = normalize_cascade_action(data[key])
        return data


class Column(BaseModel):
    """A column of a table."""
    id: str = Field(default_factory=generate_column_id)
    name: str
    data_type: DataType = Field(default_factory=lambda: DataType(kind=SQLType.VARCHAR, length=255))
    nullable: bool = True
    unique: bool = False
    primary_key: bool = False
    auto_increment: bool = False
    default_value: Optional[str] = None  # Raw expression, never evaluated
    comment: Optional[str] = None
    reference: Optional[ForeignKeyReference] = None

    @model_validator(mode='before')
    @classmethod
    def convert_legacy_fields(cls, data: Any) -> Any:
        """Convert editor-style camelCase keys and flat type fields."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        renames = {
            'primaryKey': 'primary_key',
            'autoIncrement': 'auto_increment',
            'defaultValue': 'default_value',
            'references': 'reference',
            'dataType': 'data_type',
        }
        for old, new in renames.items():
            if old in data and new not in data:
                data[new] = data.pop(old)

        # Flat {type, length, precision, scale} -> data_type
        if 'data_type' not in data and 'type' in data:
            data['data_type'] = {
                'kind': str(data.pop('type')).upper(),
                'length': data.pop('length', None),
                'precision': data.pop('precision', None),
                'scale': data.pop('scale', None),
            }
        elif isinstance(data.get('data_type'), str):
            data['data_type'] = {'kind': data['data_type'].upper()}
        return data

    @property
    def is_foreign_key(self) -> bool:
        return self.reference is not None


class Index(BaseModel):
    """An index over one or more columns (by name)."""
    id: str = Field(default_factory=generate_index_id)
    name: str
    columns: list[str] = Field(default_factory=list)
    type: IndexType = IndexType.BTREE
    unique: bool = False
    where: Optional[str] = None  # Partial index predicate
    comment: Optional[str] = None

    @property
    def is_fk_auto_index(self) -> bool:
        """Whether this index was auto-created for a foreign key."""
        return bool(self.comment) and FK_INDEX_COMMENT in self.comment


class Table(BaseModel):
    """A table in the schema."""
    id: str = Field(default_factory=generate_table_id)
    name: str
    columns: list[Column] = Field(default_factory=list)
    indexes: list[Index] = Field(default_factory=list)
    position: Optional[Position] = None
    comment: Optional[str] = None

    def get_column(self, column_id: str) -> Optional[Column]:
        """Get a column by ID."""
        for column in self.columns:
            if column.id == column_id:
                return column
        return None

    def find_column(self, name: str) -> Optional[Column]:
        """Get a column by name (case-insensitive)."""
        lowered = name.lower()
        for column in self.columns:
            if column.name.lower() == lowered:
                return column
        return None

    @property
    def primary_key_columns(self) -> list[Column]:
        return [c for c in self.columns if c.primary_key]


class SchemaModel(BaseModel):
    """
    The complete schema.

    Table order is insertion order and is kept on every re-export.
    """
    name: str = "Untitled Schema"
    description: str = ""
    tables: list[Table] = Field(default_factory=list)

    def to_json_dict(self) -> dict:
        """Convert to JSON-serializable dict."""
        return self.model_dump(mode="json")

    @classmethod
    def from_json_dict(cls, data: dict) -> "SchemaModel":
        """
        Create a SchemaModel from a JSON dict (handles legacy formats).

        A legacy `relationships` list is folded into column references and
        then dropped.
        """
        data = dict(data)
        relationships = data.pop('relationships', None) or []
        schema = cls(
            name=data.get('name') or 'Untitled Schema',
            description=data.get('description') or '',
            tables=[Table(**t) for t in data.get('tables', [])],
        )
        for rel in relationships:
            _apply_legacy_relationship(schema, rel)
        return schema

    def get_table(self, table_id: str) -> Optional[Table]:
        """Get a table by ID (O(n) - use SchemaManager for indexed access)."""
        for table in self.tables:
            if table.id == table_id:
                return table
        return None

    def find_table(self, name: str) -> Optional[Table]:
        """Get a table by name (case-insensitive)."""
        lowered = name.lower()
        for table in self.tables:
            if table.name.lower() == lowered:
                return table
        return None


@dataclass
class ParseResult:
    """A successfully imported schema plus the non-fatal notes raised on the way."""
    schema: SchemaModel
    warnings: list[SchemaWarning] = field(default_factory=list)
    format: str = "sql"

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "format": self.format,
            "schema": self.schema.to_json_dict(),
            "warnings": [w.to_dict() for w in self.warnings],
        }


def _apply_legacy_relationship(schema: SchemaModel, rel: dict) -> None:
    """Turn one legacy relationship entry into a column reference."""
    source = schema.get_table(rel.get('fromTable', '')) or schema.find_table(rel.get('fromTable', ''))
    target = schema.get_table(rel.get('toTable', '')) or schema.find_table(rel.get('toTable', ''))
    if source is None or target is None:
        return
    column = source.get_column(rel.get('fromColumn', '')) or source.find_column(rel.get('fromColumn', ''))
    target_column = target.get_column(rel.get('toColumn', '')) or target.find_column(rel.get('toColumn', ''))
    if column is None or target_column is None or column.reference is not None:
        return
    column.reference = ForeignKeyReference(
        target_table=target.name,
        target_column=target_column.name,
        on_delete=rel.get('onDelete'),
        on_update=rel.get('onUpdate'),
    )


# --- API Request/Response Models ---

class ImportRequest(BaseModel):
    """Request to import schema text."""
    text: str
    format: str = "auto"  # auto, sql, prisma


class LoadSchemaRequest(BaseModel):
    """Request to replace the session schema with a JSON document."""
    schema_data: dict = Field(alias="schema")

    model_config = {"populate_by_name": True}


class AutoLayoutRequest(BaseModel):
    """Request to arrange tables."""
    algorithm: str = "hierarchical"  # hierarchical, grid, circular
    for_export: bool = False
    only_missing: bool = False


class DetectRequest(BaseModel):
    """Request to detect the format of schema text."""
    text: str


class CompareRequest(BaseModel):
    """Request to compare the session schema against a baseline document."""
    baseline: dict
    dialect: str = "postgres"  # For migrations: postgres, mysql, sqlite
