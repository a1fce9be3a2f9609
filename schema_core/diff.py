"""
Schema comparison - what changed between two versions of a schema.

Tables, columns and indexes are paired by id first, so a rename is seen as a
change of name rather than a drop plus an add. Whatever is left unpaired is
then matched by name (case-insensitive), which covers schemas that were
imported separately and so carry different ids.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, TypeVar

from .models import Column, Index, SchemaModel, Table

logger = logging.getLogger(__name__)

T = TypeVar("T", Table, Column, Index)


@dataclass
class FieldChange:
    """One attribute that differs between the old and new version."""
    field: str
    old: Any
    new: Any

    def to_dict(self) -> dict:
        return {"field": self.field, "old": self.old, "new": self.new}


@dataclass
class ColumnChange:
    old: Column
    new: Column
    changes: list[FieldChange] = field(default_factory=list)

    def get(self, name: str) -> Optional[FieldChange]:
        """The change to one attribute, if it changed."""
        for change in self.changes:
            if change.field == name:
                return change
        return None

    def to_dict(self) -> dict:
        return {
            "column": self.new.name,
            "column_id": self.new.id,
            "changes": [change.to_dict() for change in self.changes],
        }


@dataclass
class IndexChange:
    old: Index
    new: Index
    changes: list[FieldChange] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "index": self.new.name,
            "changes": [change.to_dict() for change in self.changes],
        }


@dataclass
class TableChange:
    """Everything that changed inside a table present in both versions."""
    old: Table
    new: Table
    changes: list[FieldChange] = field(default_factory=list)  # Name and comment
    columns_added: list[Column] = field(default_factory=list)
    columns_removed: list[Column] = field(default_factory=list)
    columns_modified: list[ColumnChange] = field(default_factory=list)
    indexes_added: list[Index] = field(default_factory=list)
    indexes_removed: list[Index] = field(default_factory=list)
    indexes_modified: list[IndexChange] = field(default_factory=list)

    @property
    def renamed(self) -> bool:
        return self.old.name != self.new.name

    @property
    def has_changes(self) -> bool:
        return bool(
            self.changes
            or self.columns_added or self.columns_removed or self.columns_modified
            or self.indexes_added or self.indexes_removed or self.indexes_modified
        )

    def count_changes(self) -> int:
        return (
            len(self.changes)
            + len(self.columns_added) + len(self.columns_removed) + len(self.columns_modified)
            + len(self.indexes_added) + len(self.indexes_removed) + len(self.indexes_modified)
        )

    def to_dict(self) -> dict:
        return {
            "table": self.new.name,
            "table_id": self.new.id,
            "changes": [change.to_dict() for change in self.changes],
            "columns_added": [c.name for c in self.columns_added],
            "columns_removed": [c.name for c in self.columns_removed],
            "columns_modified": [c.to_dict() for c in self.columns_modified],
            "indexes_added": [i.name for i in self.indexes_added],
            "indexes_removed": [i.name for i in self.indexes_removed],
            "indexes_modified": [i.to_dict() for i in self.indexes_modified],
        }


@dataclass
class SchemaDiff:
    """The differences between an old and a new schema."""
    tables_added: list[Table] = field(default_factory=list)
    tables_removed: list[Table] = field(default_factory=list)
    tables_modified: list[TableChange] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.tables_added or self.tables_removed or self.tables_modified)

    def count_changes(self) -> int:
        """Total number of individual changes."""
        return (
            len(self.tables_added)
            + len(self.tables_removed)
            + sum(change.count_changes() for change in self.tables_modified)
        )

    def summary(self) -> str:
        """One line such as '1 table added, 2 tables modified'."""
        parts = []
        for count, verb in (
            (len(self.tables_added), "added"),
            (len(self.tables_removed), "removed"),
            (len(self.tables_modified), "modified"),
        ):
            if count:
                parts.append(f"{count} table{'s' if count != 1 else ''} {verb}")
        return ", ".join(parts) if parts else "No changes detected"

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "has_changes": self.has_changes,
            "summary": self.summary(),
            "change_count": self.count_changes(),
            "tables_added": [t.name for t in self.tables_added],
            "tables_removed": [t.name for t in self.tables_removed],
            "tables_modified": [t.to_dict() for t in self.tables_modified],
        }


def _pair(old_items: list[T], new_items: list[T]) -> tuple[list[tuple[T, T]], list[T], list[T]]:
    """
    Pair items by id, then the rest by lower-cased name.

    Returns (pairs in new order, removed in old order, added in new order).
    """
    old_by_id = {item.id: item for item in old_items}
    matched: dict[str, T] = {}  # new id -> old item
    for item in new_items:
        if item.id in old_by_id:
            matched[item.id] = old_by_id[item.id]

    used = {id(item) for item in matched.values()}
    old_by_name: dict[str, T] = {}
    for item in old_items:
        if id(item) not in used:
            old_by_name.setdefault(item.name.lower(), item)
    for item in new_items:
        if item.id in matched:
            continue
        candidate = old_by_name.pop(item.name.lower(), None)
        if candidate is not None:
            matched[item.id] = candidate
            used.add(id(candidate))

    pairs = [(matched[item.id], item) for item in new_items if item.id in matched]
    removed = [item for item in old_items if id(item) not in used]
    added = [item for item in new_items if item.id not in matched]
    return pairs, removed, added


def _compare_fields(old, new, fields: list[tuple[str, Callable[[Any], Any]]]) -> list[FieldChange]:
    changes = []
    for name, value in fields:
        before, after = value(old), value(new)
        if before != after:
            changes.append(FieldChange(name, before, after))
    return changes


def _reference_target(column: Column) -> Optional[str]:
    reference = column.reference
    if reference is None:
        return None
    return f"{reference.target_table}.{reference.target_column}"


def _action(column: Column, attribute: str) -> Optional[str]:
    if column.reference is None:
        return None
    action = getattr(column.reference, attribute)
    return action.value if action else None


COLUMN_FIELDS = [
    ("name", lambda c: c.name),
    ("type", lambda c: c.data_type.render()),
    ("primary_key", lambda c: c.primary_key),
    ("nullable", lambda c: c.nullable),
    ("default", lambda c: c.default_value),
    ("unique", lambda c: c.unique),
    ("auto_increment", lambda c: c.auto_increment),
    ("reference", _reference_target),
    ("on_delete", lambda c: _action(c, "on_delete")),
    ("on_update", lambda c: _action(c, "on_update")),
    ("comment", lambda c: c.comment),
]

INDEX_FIELDS = [
    ("name", lambda i: i.name),
    ("columns", lambda i: list(i.columns)),
    ("type", lambda i: i.type.value),
    ("unique", lambda i: i.unique),
    ("where", lambda i: i.where),
]

TABLE_FIELDS = [
    ("name", lambda t: t.name),
    ("comment", lambda t: t.comment),
]


def compare_columns(old: Column, new: Column) -> list[FieldChange]:
    return _compare_fields(old, new, COLUMN_FIELDS)


def compare_indexes(old: Index, new: Index) -> list[FieldChange]:
    return _compare_fields(old, new, INDEX_FIELDS)


def compare_tables(old: Table, new: Table) -> TableChange:
    """Compare two versions of one table."""
    change = TableChange(old=old, new=new, changes=_compare_fields(old, new, TABLE_FIELDS))

    pairs, change.columns_removed, change.columns_added = _pair(old.columns, new.columns)
    for old_column, new_column in pairs:
        column_changes = compare_columns(old_column, new_column)
        if column_changes:
            change.columns_modified.append(ColumnChange(old_column, new_column, column_changes))

    pairs, change.indexes_removed, change.indexes_added = _pair(old.indexes, new.indexes)
    for old_index, new_index in pairs:
        index_changes = compare_indexes(old_index, new_index)
        if index_changes:
            change.indexes_modified.append(IndexChange(old_index, new_index, index_changes))

    return change


def compare_schemas(old: SchemaModel, new: SchemaModel) -> SchemaDiff:
    """
    Compare two schemas.

    Args:
        old: The baseline, e.g. what is deployed
        new: The version to move to

    Returns:
        SchemaDiff listing added, removed and modified tables; a modified
        table carries its column, index and reference changes
    """
    diff = SchemaDiff()
    pairs, diff.tables_removed, diff.tables_added = _pair(old.tables, new.tables)
    for old_table, new_table in pairs:
        change = compare_tables(old_table, new_table)
        if change.has_changes:
            diff.tables_modified.append(change)

    logger.debug("Compared schemas: %s", diff.summary())
    return diff
