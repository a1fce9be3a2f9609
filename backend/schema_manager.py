"""
Schema Manager - Core logic for the session schema.

This module implements:
- Single schema state management (one schema loaded at a time)
- O(1) table lookups via an index dictionary
- Foreign-key edge operations delegated to schema_core.graph
- Layout operations delegated to schema_core.layout
"""

import json
import logging
from typing import Callable, Optional

from schema_core.analysis import summarize_schema
from schema_core.detection import parse_schema
from schema_core.diff import SchemaDiff, compare_schemas
from schema_core.generator import generate_prisma, generate_sql
from schema_core.graph import (
    FKEdge,
    clear_reference as graph_clear_reference,
    delete_column as graph_delete_column,
    derive_edges,
    ensure_fk_indexes as graph_ensure_fk_indexes,
    on_edge_removed,
)
from schema_core.layout import LayoutResult, auto_layout as layout_tables
from schema_core.migration import Migration, generate_migration
from schema_core.models import Column, Index, ParseResult, SchemaModel, Table
from schema_core.presets import build_preset
from schema_core.validation import validate_schema, validation_summary

logger = logging.getLogger(__name__)

EXPORT_FORMATS = ("sql", "prisma", "json")


class SchemaManager:
    """
    Manages the schema being edited in this process.

    Features:
    - O(1) table lookups via an index dictionary
    - Change callbacks for whoever mirrors the state

    Edges are never stored; they are derived from column references each
    time they are asked for.
    """

    def __init__(self):
        self._schema: SchemaModel = SchemaModel()
        self._warnings: list[dict] = []  # From the last import
        self._on_change_callbacks: list[Callable] = []

        # O(1) lookup index
        self._table_index: dict[str, Table] = {}  # table_id -> Table

    # --- Index Management ---

    def _rebuild_indexes(self):
        """Rebuild the table index from the current schema."""
        self._table_index = {table.id: table for table in self._schema.tables}

    # --- Properties ---

    @property
    def schema(self) -> SchemaModel:
        """Get the current schema."""
        return self._schema

    @property
    def warnings(self) -> list[dict]:
        return list(self._warnings)

    # --- Change Callbacks ---

    def on_change(self, callback: Callable):
        """Register a callback for schema changes."""
        self._on_change_callbacks.append(callback)

    def _notify_change(self):
        """Notify all registered callbacks of a change."""
        for callback in self._on_change_callbacks:
            callback()

    # --- Schema Operations ---

    def _replace(self, schema: SchemaModel, warnings: Optional[list[dict]] = None):
        self._schema = schema
        self._warnings = warnings or []
        self._rebuild_indexes()
        self._notify_change()

    def new_schema(self, name: str = "Untitled Schema") -> SchemaModel:
        """Start over with an empty schema."""
        self._replace(SchemaModel(name=name))
        logger.info("New schema %r", name)
        return self._schema

    def import_text(self, text: str, format: str = "auto") -> ParseResult:
        """
        Parse SQL or Prisma text and make it the session schema.

        Tables without a position are laid out hierarchically.

        Raises:
            SchemaParseError: If the text cannot be imported; the session
                schema is left untouched
            ValueError: If format is unknown
        """
        result = parse_schema(text, format)
        layout_tables(result.schema.tables, algorithm="hierarchical", only_missing=True)
        self._replace(result.schema, [w.to_dict() for w in result.warnings])
        logger.info(
            "Imported %d table(s) from %s with %d warning(s)",
            len(result.schema.tables), result.format, len(result.warnings),
        )
        return result

    def load_schema(self, data: dict) -> SchemaModel:
        """Replace the session schema with a JSON document (legacy shapes accepted)."""
        schema = SchemaModel.from_json_dict(data)
        self._replace(schema)
        logger.info("Loaded schema %r with %d table(s)", schema.name, len(schema.tables))
        return schema

    def load_preset(self, preset_id: str) -> SchemaModel:
        """
        Replace the session schema with a starter schema.

        Raises:
            ValueError: If the preset id is unknown
        """
        schema = build_preset(preset_id)
        self._replace(schema)
        logger.info("Loaded preset %r with %d table(s)", preset_id, len(schema.tables))
        return schema

    def get_state(self) -> dict:
        """Get the full current state for API responses."""
        return {
            "schema": self._schema.to_json_dict(),
            "edges": [edge.to_json_dict() for edge in self.get_edges()],
            "warnings": self.warnings,
        }

    # --- Table Lookups ---

    def get_table(self, table_id: str) -> Optional[Table]:
        """Get a table by ID - O(1) lookup."""
        return self._table_index.get(table_id)

    def get_column(self, table_id: str, column_id: str) -> Optional[Column]:
        table = self.get_table(table_id)
        if table is None:
            return None
        return table.get_column(column_id)

    # --- Edge Operations (delegated to schema_core.graph) ---

    def get_edges(self) -> list[FKEdge]:
        """Current edges, derived from column references."""
        return derive_edges(self._schema.tables)

    def remove_edge(self, edge_id: str) -> bool:
        """
        Remove an edge by clearing the reference behind it.

        Returns False for unknown or already removed edges.
        """
        removed = on_edge_removed(self._schema.tables, edge_id)
        if removed:
            self._notify_change()
        return removed

    def clear_reference(self, table_id: str, column_id: str) -> bool:
        """Clear a column's foreign key. Returns False if it had none."""
        cleared = graph_clear_reference(self._schema.tables, table_id, column_id)
        if cleared:
            self._notify_change()
        return cleared

    def delete_column(self, table_id: str, column_id: str) -> Optional[Column]:
        """Delete a column (and its edge). Returns None if the ids are unknown."""
        column = graph_delete_column(self._schema.tables, table_id, column_id)
        if column is not None:
            self._notify_change()
        return column

    def ensure_fk_indexes(self) -> list[Index]:
        """Index every foreign-key column that has no covering index."""
        created = graph_ensure_fk_indexes(self._schema.tables)
        if created:
            self._notify_change()
        return created

    # --- Layout Operations (delegated to schema_core.layout) ---

    def auto_layout(
        self,
        algorithm: str = "hierarchical",
        for_export: bool = False,
        only_missing: bool = False,
    ) -> LayoutResult:
        """
        Automatically arrange tables.

        Algorithms:
        - hierarchical: Referenced tables above the tables that reference them
        - grid: Fixed three-column grid
        - circular: Tables on a circle

        Raises:
            ValueError: If algorithm is unknown
        """
        result = layout_tables(
            self._schema.tables,
            algorithm=algorithm,
            for_export=for_export,
            only_missing=only_missing,
        )
        if result.positioned:
            self._notify_change()
        return result

    # --- Reporting ---

    def validate(self) -> dict:
        issues = validate_schema(self._schema)
        return {
            "issues": [issue.to_dict() for issue in issues],
            "summary": validation_summary(issues),
        }

    def summarize(self) -> dict:
        return summarize_schema(self._schema).to_dict()

    def export(self, format: str = "sql", dialect: str = "postgres") -> str:
        """
        Render the schema as SQL, Prisma or JSON text.

        Raises:
            ValueError: If format or dialect is unknown
        """
        if format == "sql":
            return generate_sql(self._schema, dialect)
        if format == "prisma":
            return generate_prisma(self._schema)
        if format == "json":
            return json.dumps(self._schema.to_json_dict(), indent=2) + "\n"
        raise ValueError(f"Unknown export format: {format}. Use {', '.join(EXPORT_FORMATS)}")

    # --- Comparison ---

    def compare(self, baseline: dict) -> SchemaDiff:
        """
        Changes from a baseline JSON document to the session schema.

        Raises:
            ValueError: If the baseline is not a valid schema document
        """
        return compare_schemas(SchemaModel.from_json_dict(baseline), self._schema)

    def migration(self, baseline: dict, dialect: str = "postgres") -> Migration:
        """
        SQL that migrates a database at the baseline to the session schema.

        Raises:
            ValueError: If the baseline is invalid or the dialect is unknown
        """
        return generate_migration(SchemaModel.from_json_dict(baseline), self._schema, dialect)


# Global instance for the application
schema_manager = SchemaManager()
