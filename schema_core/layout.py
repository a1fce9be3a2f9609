"""
Layout algorithms for schema tables.

Provides the layout strategies that can be applied to a schema:
- Hierarchical: Layered layout driven by foreign keys (referenced tables on top)
- Grid: Simple 3-column grid
- Circular: Tables evenly spaced on a circle

All layout functions write `Table.position` in place and return the list.
The hierarchical layout is a pure function of the table/edge structure:
identical graphs always give identical layers, orders and coordinates.
"""

import logging
import math
from collections import defaultdict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

from .graph import derive_edges
from .models import Position

if TYPE_CHECKING:
    from .graph import FKEdge
    from .models import Table

logger = logging.getLogger(__name__)


# Table size estimation
MIN_TABLE_WIDTH = 280
MAX_TABLE_WIDTH = 500
MIN_TABLE_HEIGHT = 150

# Canvas the layouts are centred on
CANVAS_CENTER_X = 600
CANVAS_CENTER_Y = 400

# Hierarchical spacing (canvas / export)
NODE_GAP = 100
LAYER_GAP = 200
MARGIN = 50
EXPORT_NODE_GAP = 180
EXPORT_LAYER_GAP = 250
EXPORT_MARGIN = 80

ORDERING_PASSES = 4

# Grid / circular parameters
GRID_COLUMNS = 3
GRID_CELL_WIDTH = 400
GRID_CELL_HEIGHT = 300
CIRCLE_MIN_RADIUS = 300
CIRCLE_RADIUS_PER_TABLE = 50
AVERAGE_TABLE_WIDTH = 280
AVERAGE_TABLE_HEIGHT = 200

LAYOUT_ALGORITHMS = ("hierarchical", "grid", "circular")


@dataclass
class LayoutResult:
    """Outcome of one layout run."""
    algorithm: str
    layers: dict[str, int] = field(default_factory=dict)   # table_id -> layer
    order: list[list[str]] = field(default_factory=list)   # table ids per layer, left to right
    width: float = 0
    height: float = 0
    positioned: list[str] = field(default_factory=list)    # table ids whose position was written

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "algorithm": self.algorithm,
            "layers": self.layers,
            "order": self.order,
            "width": self.width,
            "height": self.height,
            "positioned": self.positioned,
        }


def table_width(table: "Table") -> float:
    """
    Estimate the rendered width of a table card from its text.

    The title and the widest column row (name, type and constraint badges)
    decide the width, clamped to 280..500 px.
    """
    width = float(MIN_TABLE_WIDTH)
    if not table.name:
        return width

    width = max(width, len(table.name[:40]) * 8.5 + 40)
    for column in table.columns:
        if not column.name:
            continue
        name_width = len(column.name[:28]) * 7.5
        type_width = len(column.data_type.render()) * 6.5
        badges = (
            (25 if not column.nullable and not column.primary_key else 0)
            + (25 if column.unique and not column.primary_key else 0)
            + (22 if column.auto_increment else 0)
        )
        width = max(width, name_width + type_width + badges + 40)

    return min(max(width, MIN_TABLE_WIDTH), MAX_TABLE_WIDTH)


def table_height(table: "Table") -> float:
    """Header, one 32 px row per column and padding."""
    return float(max(MIN_TABLE_HEIGHT, 70 + len(table.columns) * 32 + 20))


def _usable(value) -> bool:
    return isinstance(value, (int, float)) and math.isfinite(value) and value > 0


def _table_sizes(
    tables: list["Table"],
    sizes: Optional[dict[str, tuple[float, float]]] = None,
) -> dict[str, tuple[float, float]]:
    """Measured sizes where usable, estimated ones otherwise."""
    sizes = sizes or {}
    result = {}
    for table in tables:
        measured = sizes.get(table.id)
        width = height = None
        if measured is not None:
            try:
                width, height = measured
            except (TypeError, ValueError):
                width = height = None
        if not _usable(width):
            width = table_width(table)
        if not _usable(height):
            height = table_height(table)
        result[table.id] = (float(width), float(height))
    return result


def _outgoing(tables: list["Table"], edges: list["FKEdge"]) -> dict[str, list[str]]:
    """table_id -> referenced table ids, self-references dropped."""
    targets: dict[str, list[str]] = {t.id: [] for t in tables}
    for edge in edges:
        if edge.source == edge.target:
            continue
        if edge.source in targets and edge.target in targets and edge.target not in targets[edge.source]:
            targets[edge.source].append(edge.target)
    return targets


def assign_layers(tables: list["Table"], edges: list["FKEdge"]) -> dict[str, int]:
    """
    Assign each table a layer from its foreign keys.

    Tables that reference nothing are layer 0; any other table sits one
    layer below the deepest table it references. Tables are visited depth
    first in list order; a reference back to a table still being visited
    closes a cycle and is ignored, so the first-visited table of a cycle
    ends up below the rest of it.

    Returns:
        Mapping of table_id -> layer
    """
    targets = _outgoing(tables, edges)
    layers: dict[str, int] = {}
    visiting: set[str] = set()
    pending: dict[str, int] = {}  # Layer so far for tables on the stack

    # Post-order walk with an explicit stack; chains may be thousands long
    for table in tables:
        if table.id in layers:
            continue
        visiting.add(table.id)
        pending[table.id] = 0
        stack = [(table.id, iter(targets[table.id]))]
        while stack:
            table_id, remaining = stack[-1]
            for target in remaining:
                if target in visiting:
                    continue  # Back edge
                if target in layers:
                    pending[table_id] = max(pending[table_id], layers[target] + 1)
                    continue
                visiting.add(target)
                pending[target] = 0
                stack.append((target, iter(targets[target])))
                break
            else:
                stack.pop()
                visiting.discard(table_id)
                layers[table_id] = pending.pop(table_id)
                if stack:
                    parent = stack[-1][0]
                    pending[parent] = max(pending[parent], layers[table_id] + 1)

    return layers


def order_layers(
    tables: list["Table"],
    layers: dict[str, int],
    edges: list["FKEdge"],
    passes: int = ORDERING_PASSES,
) -> list[list[str]]:
    """
    Order the tables inside each layer with the barycenter heuristic.

    Starting from list order, each pass sorts a layer by the mean position
    of its neighbours in the layer just swept (downward on even passes,
    upward on odd ones). A table with no neighbour there keeps its current
    position as its key, and ties keep their current order. Stops early
    once a full pass changes nothing.

    Returns:
        Table ids per layer, layer 0 first
    """
    if not layers:
        return []

    depth = max(layers.values()) + 1
    order: list[list[str]] = [[] for _ in range(depth)]
    for table in tables:
        order[layers[table.id]].append(table.id)

    neighbours: dict[str, set[str]] = defaultdict(set)
    for edge in edges:
        if edge.source != edge.target and edge.source in layers and edge.target in layers:
            neighbours[edge.source].add(edge.target)
            neighbours[edge.target].add(edge.source)

    def sweep(layer: int, fixed: int) -> bool:
        rank = {table_id: i for i, table_id in enumerate(order[fixed])}
        keyed = []
        for current, table_id in enumerate(order[layer]):
            ranks = [rank[n] for n in neighbours[table_id] if n in rank]
            barycenter = sum(ranks) / len(ranks) if ranks else float(current)
            keyed.append((barycenter, current, table_id))
        keyed.sort()
        reordered = [table_id for _, _, table_id in keyed]
        changed = reordered != order[layer]
        order[layer] = reordered
        return changed

    for index in range(passes):
        changed = False
        if index % 2 == 0:
            for layer in range(1, depth):
                changed |= sweep(layer, layer - 1)
        else:
            for layer in range(depth - 2, -1, -1):
                changed |= sweep(layer, layer + 1)
        if not changed and index > 0:
            logger.debug("Layer ordering stable after %d passes", index + 1)
            break

    return order


def _apply(tables: list["Table"], coords: dict[str, tuple[float, float]], only_missing: bool) -> list[str]:
    written = []
    for table in tables:
        if table.id not in coords:
            continue
        if only_missing and table.position is not None:
            continue
        x, y = coords[table.id]
        table.position = Position(x=round(x, 2), y=round(y, 2))
        written.append(table.id)
    return written


def hierarchical_layout(
    tables: list["Table"],
    edges: Optional[list["FKEdge"]] = None,
    for_export: bool = False,
    only_missing: bool = False,
    sizes: Optional[dict[str, tuple[float, float]]] = None,
) -> LayoutResult:
    """
    Layered layout: referenced tables on top, referencing tables below.

    Rows are stacked top to bottom, each row centred on the widest one.
    Within a row the pitch fits the widest table of that row. On the canvas
    the whole drawing is centred on the viewport; in export mode it starts
    at the margin so every coordinate is positive.

    Args:
        tables: Tables to arrange
        edges: Derived FK edges (derived from `tables` if None)
        for_export: Use the wider export spacing
        only_missing: Only write positions of tables that have none
        sizes: Measured (width, height) per table id

    Returns:
        LayoutResult with layers, order and the bounding size
    """
    result = LayoutResult(algorithm="hierarchical")
    if not tables:
        return result

    if edges is None:
        edges = derive_edges(tables)
    node_gap, layer_gap, margin = (
        (EXPORT_NODE_GAP, EXPORT_LAYER_GAP, EXPORT_MARGIN) if for_export
        else (NODE_GAP, LAYER_GAP, MARGIN)
    )

    dims = _table_sizes(tables, sizes)
    layers = assign_layers(tables, edges)
    order = order_layers(tables, layers, edges)

    row_widths = []
    for row in order:
        widest = max(dims[t][0] for t in row)
        row_widths.append(widest * len(row) + node_gap * (len(row) - 1))
    total_width = max(row_widths)

    coords: dict[str, tuple[float, float]] = {}
    y = float(margin)
    for row, row_width in zip(order, row_widths):
        pitch = max(dims[t][0] for t in row) + node_gap
        x = margin + (total_width - row_width) / 2
        for table_id in row:
            coords[table_id] = (x, y)
            x += pitch
        y += max(dims[t][1] for t in row) + layer_gap
    total_height = y - layer_gap - margin

    if not for_export:
        offset_x = CANVAS_CENTER_X - (margin + total_width / 2)
        offset_y = CANVAS_CENTER_Y - (margin + total_height / 2)
        coords = {t: (cx + offset_x, cy + offset_y) for t, (cx, cy) in coords.items()}

    result.layers = layers
    result.order = order
    result.width = total_width + 2 * margin
    result.height = total_height + 2 * margin
    result.positioned = _apply(tables, coords, only_missing)
    logger.debug("Hierarchical layout: %d tables in %d layers", len(tables), len(order))
    return result


def grid_layout(tables: list["Table"], only_missing: bool = False) -> LayoutResult:
    """Arrange tables in a 3-column grid centred on the canvas."""
    result = LayoutResult(algorithm="grid")
    if not tables:
        return result

    rows = math.ceil(len(tables) / GRID_COLUMNS)
    grid_width = GRID_COLUMNS * GRID_CELL_WIDTH
    grid_height = rows * GRID_CELL_HEIGHT
    start_x = CANVAS_CENTER_X - grid_width / 2 + GRID_CELL_WIDTH / 2
    start_y = CANVAS_CENTER_Y - grid_height / 2 + GRID_CELL_HEIGHT / 2

    coords = {}
    for i, table in enumerate(tables):
        coords[table.id] = (
            start_x + (i % GRID_COLUMNS) * GRID_CELL_WIDTH,
            start_y + (i // GRID_COLUMNS) * GRID_CELL_HEIGHT,
        )
        result.layers[table.id] = i // GRID_COLUMNS
    result.order = [
        [t.id for t in tables[i:i + GRID_COLUMNS]] for i in range(0, len(tables), GRID_COLUMNS)
    ]
    result.width = grid_width
    result.height = grid_height
    result.positioned = _apply(tables, coords, only_missing)
    return result


def circular_layout(tables: list["Table"], only_missing: bool = False) -> LayoutResult:
    """Arrange tables evenly on a circle, starting at the top."""
    result = LayoutResult(algorithm="circular")
    if not tables:
        return result

    radius = max(CIRCLE_MIN_RADIUS, len(tables) * CIRCLE_RADIUS_PER_TABLE)
    coords = {}
    for i, table in enumerate(tables):
        angle = 2 * math.pi * i / len(tables) - math.pi / 2
        coords[table.id] = (
            CANVAS_CENTER_X + radius * math.cos(angle) - AVERAGE_TABLE_WIDTH / 2,
            CANVAS_CENTER_Y + radius * math.sin(angle) - AVERAGE_TABLE_HEIGHT / 2,
        )
        result.layers[table.id] = 0
    result.order = [[t.id for t in tables]]
    result.width = 2 * radius + AVERAGE_TABLE_WIDTH
    result.height = 2 * radius + AVERAGE_TABLE_HEIGHT
    result.positioned = _apply(tables, coords, only_missing)
    return result


def auto_layout(
    tables: list["Table"],
    algorithm: str = "hierarchical",
    for_export: bool = False,
    only_missing: bool = False,
    sizes: Optional[dict[str, tuple[float, float]]] = None,
) -> LayoutResult:
    """
    Position tables with the chosen algorithm.

    Zero tables is a no-op returning an empty result.

    Raises:
        ValueError: If algorithm is not hierarchical, grid or circular
    """
    if algorithm not in LAYOUT_ALGORITHMS:
        raise ValueError(f"Unknown layout algorithm: {algorithm}. Use {', '.join(LAYOUT_ALGORITHMS)}")

    if algorithm == "grid":
        return grid_layout(tables, only_missing=only_missing)
    if algorithm == "circular":
        return circular_layout(tables, only_missing=only_missing)
    return hierarchical_layout(
        tables, for_export=for_export, only_missing=only_missing, sizes=sizes
    )
