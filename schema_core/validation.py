"""
Schema validation - Check schemas for structural issues.

Provides validation that can be used by the backend, the CLI and MCP tools.
Validation only reports: it never raises and never blocks an import.
"""

import re
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional

from .analysis import find_cycles
from .datatypes import are_types_compatible
from .generator import RESERVED_WORDS
from .graph import dangling_references, derive_edges

if TYPE_CHECKING:
    from .models import SchemaModel

MAX_IDENTIFIER_LENGTH = 63

_VALID_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class IssueSeverity(str, Enum):
    """Severity levels for validation issues."""
    ERROR = "error"      # Invalid state, must be fixed
    WARNING = "warning"  # Potential problem, should review
    INFO = "info"        # Informational, may be intentional


@dataclass
class ValidationIssue:
    """A single validation issue found in a schema."""
    severity: IssueSeverity
    message: str
    table_id: Optional[str] = None
    column_id: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        result = {
            "type": self.severity.value,
            "message": self.message
        }
        if self.table_id:
            result["table_id"] = self.table_id
        if self.column_id:
            result["column_id"] = self.column_id
        return result


def _check_name(issues: list[ValidationIssue], kind: str, name: str, table_id: str, column_id: Optional[str] = None):
    if name.upper() in RESERVED_WORDS:
        issues.append(ValidationIssue(
            severity=IssueSeverity.WARNING,
            message=f"{kind} name \"{name}\" is a reserved SQL keyword",
            table_id=table_id, column_id=column_id,
        ))
    if len(name) > MAX_IDENTIFIER_LENGTH:
        issues.append(ValidationIssue(
            severity=IssueSeverity.WARNING,
            message=f"{kind} name \"{name[:20]}...\" is longer than {MAX_IDENTIFIER_LENGTH} characters",
            table_id=table_id, column_id=column_id,
        ))
    if not _VALID_NAME_RE.match(name):
        issues.append(ValidationIssue(
            severity=IssueSeverity.WARNING,
            message=f"{kind} name \"{name}\" contains characters that need quoting",
            table_id=table_id, column_id=column_id,
        ))


def validate_schema(schema: "SchemaModel") -> list[ValidationIssue]:
    """
    Validate a schema and return a list of issues.

    Checks for:
    - Empty schema - INFO
    - Duplicate table / column names, tables without columns,
      several auto-increment columns, indexes on unknown columns - ERROR
    - Dangling references, FK type mismatches, FKs to non-unique columns,
      missing primary keys, reserved or invalid names, reference cycles - WARNING

    Args:
        schema: The schema to validate

    Returns:
        List of ValidationIssue objects
    """
    issues: list[ValidationIssue] = []
    tables = schema.tables

    if not tables:
        issues.append(ValidationIssue(
            severity=IssueSeverity.INFO,
            message="Schema has no tables"
        ))
        return issues

    # Duplicate table names
    seen_tables: dict[str, str] = {}
    for table in tables:
        key = table.name.lower()
        if key in seen_tables:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Duplicate table name \"{table.name}\"",
                table_id=table.id,
            ))
        else:
            seen_tables[key] = table.id

    for table in tables:
        _check_name(issues, "Table", table.name, table.id)

        if not table.columns:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Table \"{table.name}\" has no columns",
                table_id=table.id,
            ))
            continue

        if not table.primary_key_columns:
            issues.append(ValidationIssue(
                severity=IssueSeverity.WARNING,
                message=f"Table \"{table.name}\" has no primary key",
                table_id=table.id,
            ))

        seen_columns: set[str] = set()
        for column in table.columns:
            key = column.name.lower()
            if key in seen_columns:
                issues.append(ValidationIssue(
                    severity=IssueSeverity.ERROR,
                    message=f"Table \"{table.name}\" has duplicate column \"{column.name}\"",
                    table_id=table.id, column_id=column.id,
                ))
            seen_columns.add(key)
            _check_name(issues, "Column", column.name, table.id, column.id)

        auto_columns = [c.name for c in table.columns if c.auto_increment]
        if len(auto_columns) > 1:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Table \"{table.name}\" has {len(auto_columns)} auto-increment columns "
                        f"({', '.join(auto_columns)})",
                table_id=table.id,
            ))

        for index in table.indexes:
            for name in index.columns:
                # Expression entries are not checked
                if _VALID_NAME_RE.match(name) and table.find_column(name) is None:
                    issues.append(ValidationIssue(
                        severity=IssueSeverity.ERROR,
                        message=f"Index \"{index.name}\" on \"{table.name}\" uses unknown column \"{name}\"",
                        table_id=table.id,
                    ))

    # Dangling references
    for table, column in dangling_references(tables):
        reference = column.reference
        issues.append(ValidationIssue(
            severity=IssueSeverity.WARNING,
            message=f"\"{table.name}.{column.name}\" references missing "
                    f"\"{reference.target_table}.{reference.target_column}\"",
            table_id=table.id, column_id=column.id,
        ))

    # Resolved references
    edges = derive_edges(tables)
    by_id = {t.id: t for t in tables}
    for edge in edges:
        source_column = by_id[edge.source].get_column(edge.source_column)
        target_table = by_id[edge.target]
        target_column = target_table.get_column(edge.target_column)

        if not are_types_compatible(source_column.data_type.kind, target_column.data_type.kind):
            issues.append(ValidationIssue(
                severity=IssueSeverity.WARNING,
                message=f"Type mismatch: \"{edge.source_table_name}.{edge.source_column_name}\" "
                        f"({source_column.data_type.render()}) references "
                        f"\"{edge.target_table_name}.{edge.target_column_name}\" "
                        f"({target_column.data_type.render()})",
                table_id=edge.source, column_id=edge.source_column,
            ))

        single_pk = target_column.primary_key and len(target_table.primary_key_columns) == 1
        unique_index = any(
            i.unique and len(i.columns) == 1 and i.columns[0].lower() == target_column.name.lower()
            for i in target_table.indexes
        )
        if not (single_pk or target_column.unique or unique_index):
            issues.append(ValidationIssue(
                severity=IssueSeverity.WARNING,
                message=f"\"{edge.source_table_name}.{edge.source_column_name}\" references "
                        f"\"{edge.target_table_name}.{edge.target_column_name}\", "
                        f"which is neither a primary key nor unique",
                table_id=edge.source, column_id=edge.source_column,
            ))

    for cycle in find_cycles(tables, edges):
        names = " -> ".join(by_id[t].name for t in cycle)
        issues.append(ValidationIssue(
            severity=IssueSeverity.WARNING,
            message=f"Circular dependency: {names}",
            table_id=cycle[0],
        ))

    return issues


def validation_summary(issues: list[ValidationIssue]) -> dict:
    """Counts by severity; a schema is valid when it has no errors."""
    counts = Counter(issue.severity for issue in issues)
    return {
        "total": len(issues),
        "errors": counts[IssueSeverity.ERROR],
        "warnings": counts[IssueSeverity.WARNING],
        "info": counts[IssueSeverity.INFO],
        "valid": counts[IssueSeverity.ERROR] == 0,
    }
