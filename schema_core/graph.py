"""
Foreign-key graph synchronizer.

Edges are never stored. `derive_edges` rebuilds them from column references
whenever a renderer or the layout engine needs them, and `on_edge_removed`
is the single path by which an edge disappears: it clears the reference
and drops the single-column index that was auto-created for it.

Edge ids have the form `fk-{table_id}-{column_id}`.
"""

import logging
from typing import Optional

from pydantic import BaseModel

from .models import (
    FK_INDEX_COMMENT,
    CascadeAction,
    Column,
    Index,
    IndexType,
    Table,
)

logger = logging.getLogger(__name__)

EDGE_ID_PREFIX = "fk-"
MAX_INDEX_NAME_LENGTH = 64


class FKEdge(BaseModel):
    """A directed foreign-key edge: source column -> target column."""
    id: str
    source: str         # Source table ID
    source_column: str  # Source column ID
    target: str         # Target table ID
    target_column: str  # Target column ID
    # Names for display
    source_table_name: str
    source_column_name: str
    target_table_name: str
    target_column_name: str
    on_delete: Optional[CascadeAction] = None
    on_update: Optional[CascadeAction] = None

    @property
    def is_self_reference(self) -> bool:
        return self.source == self.target

    def to_json_dict(self) -> dict:
        """Convert to JSON-serializable dict."""
        return self.model_dump(mode="json")


def make_edge_id(table_id: str, column_id: str) -> str:
    """Build the edge id for a reference-bearing column."""
    return f"{EDGE_ID_PREFIX}{table_id}-{column_id}"


def parse_edge_id(tables: list[Table], edge_id: str) -> Optional[tuple[str, str]]:
    """
    Recover (table_id, column_id) from an edge id.

    Ids are matched against the tables present so that ids containing '-'
    still split correctly. Returns None for anything that does not name an
    existing table and column.
    """
    if not isinstance(edge_id, str) or not edge_id.startswith(EDGE_ID_PREFIX):
        return None
    rest = edge_id[len(EDGE_ID_PREFIX):]
    for table in tables:
        prefix = f"{table.id}-"
        if rest.startswith(prefix):
            column_id = rest[len(prefix):]
            if table.get_column(column_id) is not None:
                return table.id, column_id
    return None


def _resolve(lookup: dict[str, Table], column: Column) -> Optional[tuple[Table, Column]]:
    reference = column.reference
    if reference is None:
        return None
    target = lookup.get(reference.target_table.lower())
    if target is None:
        return None
    target_column = target.find_column(reference.target_column)
    if target_column is None:
        return None
    return target, target_column


def derive_edges(tables: list[Table]) -> list[FKEdge]:
    """
    Build one edge per resolvable column reference.

    Targets are looked up by table name, then column name (both
    case-insensitive); dangling references are skipped. Edges come out in
    table order then column order, but the set does not depend on the order
    of `tables`.
    """
    lookup: dict[str, Table] = {}
    for table in tables:
        lookup.setdefault(table.name.lower(), table)

    edges = []
    dangling = 0
    for table in tables:
        for column in table.columns:
            if column.reference is None:
                continue
            resolved = _resolve(lookup, column)
            if resolved is None:
                dangling += 1
                continue
            target, target_column = resolved
            edges.append(FKEdge(
                id=make_edge_id(table.id, column.id),
                source=table.id,
                source_column=column.id,
                target=target.id,
                target_column=target_column.id,
                source_table_name=table.name,
                source_column_name=column.name,
                target_table_name=target.name,
                target_column_name=target_column.name,
                on_delete=column.reference.on_delete,
                on_update=column.reference.on_update,
            ))

    if dangling:
        logger.debug("Skipped %d dangling reference(s) while deriving edges", dangling)
    return edges


def dangling_references(tables: list[Table]) -> list[tuple[Table, Column]]:
    """(table, column) pairs whose reference does not resolve."""
    lookup: dict[str, Table] = {}
    for table in tables:
        lookup.setdefault(table.name.lower(), table)
    return [
        (table, column)
        for table in tables
        for column in table.columns
        if column.reference is not None and _resolve(lookup, column) is None
    ]


def on_edge_removed(tables: list[Table], edge_id: str) -> bool:
    """
    Clear the reference behind an edge and drop its auto-created index.

    Only single-column indexes on that column whose comment carries the
    FK sentinel are removed; composite and user-made indexes stay.
    Unknown or stale ids are a no-op, so calling this twice is harmless.

    Returns:
        True if a reference was cleared
    """
    parsed = parse_edge_id(tables, edge_id)
    if parsed is None:
        logger.debug("Edge %s does not match any column, nothing to remove", edge_id)
        return False

    table_id, column_id = parsed
    table = next(t for t in tables if t.id == table_id)
    column = table.get_column(column_id)
    if column.reference is None:
        return False

    column.reference = None
    name = column.name.lower()
    before = len(table.indexes)
    table.indexes = [
        index for index in table.indexes
        if not (
            len(index.columns) == 1
            and index.columns[0].lower() == name
            and index.is_fk_auto_index
        )
    ]
    removed = before - len(table.indexes)
    logger.debug("Removed edge %s (%s.%s), dropped %d auto index(es)",
                 edge_id, table.name, column.name, removed)
    return True


def clear_reference(tables: list[Table], table_id: str, column_id: str) -> bool:
    """Clear a column's foreign key through the edge-removal path."""
    return on_edge_removed(tables, make_edge_id(table_id, column_id))


def delete_column(tables: list[Table], table_id: str, column_id: str) -> Optional[Column]:
    """
    Delete a column, first removing its edge if it carries a reference.

    Returns:
        The deleted column, or None if the table or column does not exist
    """
    table = next((t for t in tables if t.id == table_id), None)
    if table is None:
        return None
    column = table.get_column(column_id)
    if column is None:
        return None
    if column.reference is not None:
        on_edge_removed(tables, make_edge_id(table_id, column_id))
    table.columns = [c for c in table.columns if c.id != column_id]
    return column


def ensure_fk_indexes(tables: list[Table]) -> list[Index]:
    """
    Add an index for every foreign-key column that has none.

    A column counts as indexed when an index has it as its only or its
    leftmost column. New indexes are BTREE, named `fk_<table>_<column>`
    (suffixed `_1`, `_2` ... until unique across the schema) and carry the
    FK sentinel comment so edge removal can clean them up.

    Returns:
        The indexes that were created
    """
    used_names = {index.name for table in tables for index in table.indexes}
    created = []

    for table in tables:
        for column in table.columns:
            if column.reference is None:
                continue
            name = column.name.lower()
            if any(index.columns and index.columns[0].lower() == name for index in table.indexes):
                continue

            index_name = f"fk_{table.name}_{column.name}"
            counter = 1
            while index_name in used_names:
                index_name = f"fk_{table.name}_{column.name}_{counter}"
                counter += 1
            if len(index_name) > MAX_INDEX_NAME_LENGTH:
                logger.warning(
                    "Cannot create index for %s.%s: name too long (%d > %d chars)",
                    table.name, column.name, len(index_name), MAX_INDEX_NAME_LENGTH,
                )
                continue

            index = Index(
                name=index_name,
                columns=[column.name],
                type=IndexType.BTREE,
                comment=FK_INDEX_COMMENT,
            )
            table.indexes.append(index)
            used_names.add(index_name)
            created.append(index)

    logger.debug("Created %d foreign key index(es)", len(created))
    return created
