"""
Schema analysis - Graph analysis and summarization utilities.

Provides analysis functions that can be used by the backend, the CLI and
MCP tools to understand the structure of the foreign-key graph.
"""

from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

from .graph import dangling_references, derive_edges

if TYPE_CHECKING:
    from .graph import FKEdge
    from .models import SchemaModel, Table


@dataclass
class ConnectedComponent:
    """A group of tables linked by foreign keys (direction ignored)."""
    table_ids: list[str] = field(default_factory=list)
    edge_count: int = 0

    @property
    def size(self) -> int:
        return len(self.table_ids)


@dataclass
class TableConnectionInfo:
    """Foreign-key counts for a single table."""
    table_id: str
    name: str
    incoming: int = 0   # References pointing at this table
    outgoing: int = 0   # References this table holds

    @property
    def total(self) -> int:
        return self.incoming + self.outgoing


@dataclass
class SchemaSummary:
    """Complete summary of a schema's structure."""
    name: str
    total_tables: int
    total_columns: int
    total_edges: int
    total_indexes: int
    auto_indexes: int
    dangling_references: int
    columns_by_type: dict[str, int]
    connected_components: int
    most_referenced_tables: list[TableConnectionInfo]
    orphan_tables: list[str]

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "total_tables": self.total_tables,
            "total_columns": self.total_columns,
            "total_edges": self.total_edges,
            "total_indexes": self.total_indexes,
            "auto_indexes": self.auto_indexes,
            "dangling_references": self.dangling_references,
            "columns_by_type": self.columns_by_type,
            "connected_components": self.connected_components,
            "most_referenced_tables": [
                {
                    "id": t.table_id,
                    "name": t.name,
                    "incoming": t.incoming,
                    "outgoing": t.outgoing,
                }
                for t in self.most_referenced_tables
            ],
            "orphan_tables": self.orphan_tables,
        }


def find_connected_components(
    tables: list["Table"],
    edges: Optional[list["FKEdge"]] = None,
) -> list[ConnectedComponent]:
    """
    Find groups of tables connected by foreign keys using BFS.

    Edges are treated as undirected. Components come out in the order of
    their first table.
    """
    if not tables:
        return []
    if edges is None:
        edges = derive_edges(tables)

    table_ids = [t.id for t in tables]
    adjacency: dict[str, set[str]] = {tid: set() for tid in table_ids}
    for edge in edges:
        if edge.source in adjacency and edge.target in adjacency and edge.source != edge.target:
            adjacency[edge.source].add(edge.target)
            adjacency[edge.target].add(edge.source)

    visited: set[str] = set()
    components: list[ConnectedComponent] = []

    for start in table_ids:
        if start in visited:
            continue

        members: list[str] = []
        queue = [start]
        visited.add(start)
        while queue:
            current = queue.pop(0)
            members.append(current)
            for neighbor in sorted(adjacency[current], key=table_ids.index):
                if neighbor not in visited:
                    visited.add(neighbor)
                    queue.append(neighbor)

        member_set = set(members)
        edge_count = sum(1 for e in edges if e.source in member_set)
        components.append(ConnectedComponent(table_ids=members, edge_count=edge_count))

    return components


def calculate_table_connections(
    tables: list["Table"],
    edges: Optional[list["FKEdge"]] = None,
) -> dict[str, TableConnectionInfo]:
    """Incoming/outgoing reference counts per table id."""
    if edges is None:
        edges = derive_edges(tables)
    connections = {t.id: TableConnectionInfo(table_id=t.id, name=t.name) for t in tables}
    for edge in edges:
        if edge.source in connections:
            connections[edge.source].outgoing += 1
        if edge.target in connections:
            connections[edge.target].incoming += 1
    return connections


def _strongly_connected(table_ids: list[str], adjacency: dict[str, list[str]]) -> list[list[str]]:
    """Tarjan's algorithm with an explicit work stack."""
    index_of: dict[str, int] = {}
    lowlink: dict[str, int] = {}
    stack: list[str] = []
    on_stack: set[str] = set()
    components: list[list[str]] = []

    for root in table_ids:
        if root in index_of:
            continue
        index_of[root] = lowlink[root] = len(index_of)
        stack.append(root)
        on_stack.add(root)
        work = [(root, iter(adjacency[root]))]
        while work:
            node, neighbors = work[-1]
            for neighbor in neighbors:
                if neighbor not in index_of:
                    index_of[neighbor] = lowlink[neighbor] = len(index_of)
                    stack.append(neighbor)
                    on_stack.add(neighbor)
                    work.append((neighbor, iter(adjacency[neighbor])))
                    break
                if neighbor in on_stack:
                    lowlink[node] = min(lowlink[node], index_of[neighbor])
            else:
                work.pop()
                if work:
                    parent = work[-1][0]
                    lowlink[parent] = min(lowlink[parent], lowlink[node])
                if lowlink[node] == index_of[node]:
                    component = []
                    while True:
                        member = stack.pop()
                        on_stack.discard(member)
                        component.append(member)
                        if member == node:
                            break
                    components.append(component)

    return components


def _cycle_through(start: str, members: set[str], adjacency: dict[str, list[str]]) -> list[str]:
    """Shortest cycle from start back to itself, staying inside members (BFS)."""
    came_from: dict[str, str] = {}
    queue = deque([start])
    while queue:
        current = queue.popleft()
        for neighbor in adjacency[current]:
            if neighbor not in members:
                continue
            if neighbor == start:
                path = [current]
                while path[-1] != start:
                    path.append(came_from[path[-1]])
                return list(reversed(path)) + [start]
            if neighbor not in came_from:
                came_from[neighbor] = current
                queue.append(neighbor)
    return [start, start]


def find_cycles(
    tables: list["Table"],
    edges: Optional[list["FKEdge"]] = None,
) -> list[list[str]]:
    """
    Find reference cycles between tables.

    One cycle is reported per strongly connected group of two or more
    tables: the shortest loop through the group's first table, as table ids
    starting and ending at that table. Self-references are not reported.
    """
    if edges is None:
        edges = derive_edges(tables)
    table_ids = [t.id for t in tables]
    position = {tid: i for i, tid in enumerate(table_ids)}
    adjacency: dict[str, list[str]] = {tid: [] for tid in table_ids}
    for edge in edges:
        if edge.source == edge.target or edge.source not in adjacency or edge.target not in adjacency:
            continue
        if edge.target not in adjacency[edge.source]:
            adjacency[edge.source].append(edge.target)

    cycles = []
    for component in _strongly_connected(table_ids, adjacency):
        if len(component) < 2:
            continue
        start = min(component, key=position.__getitem__)
        cycles.append(_cycle_through(start, set(component), adjacency))

    cycles.sort(key=lambda cycle: position[cycle[0]])
    return cycles


def summarize_schema(schema: "SchemaModel", top_n: int = 5) -> SchemaSummary:
    """
    Generate a comprehensive summary of a schema.

    Args:
        schema: The schema to summarize
        top_n: Number of most referenced tables to include
    """
    tables = schema.tables
    edges = derive_edges(tables)

    type_counts: dict[str, int] = defaultdict(int)
    for table in tables:
        for column in table.columns:
            type_counts[column.data_type.kind.value] += 1

    connections = calculate_table_connections(tables, edges)
    by_incoming = sorted(connections.values(), key=lambda c: c.incoming, reverse=True)
    most_referenced = [c for c in by_incoming[:top_n] if c.incoming > 0]

    return SchemaSummary(
        name=schema.name,
        total_tables=len(tables),
        total_columns=sum(len(t.columns) for t in tables),
        total_edges=len(edges),
        total_indexes=sum(len(t.indexes) for t in tables),
        auto_indexes=sum(1 for t in tables for i in t.indexes if i.is_fk_auto_index),
        dangling_references=len(dangling_references(tables)),
        columns_by_type=dict(sorted(type_counts.items())),
        connected_components=len(find_connected_components(tables, edges)),
        most_referenced_tables=most_referenced,
        orphan_tables=[c.name for c in connections.values() if c.total == 0],
    )
