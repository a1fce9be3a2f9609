"""Unit tests for the layout engine."""

import math

import pytest

from schema_core import Position, auto_layout, derive_edges, parse_sql, table_width
from schema_core.layout import (
    EXPORT_MARGIN,
    MAX_TABLE_WIDTH,
    MIN_TABLE_WIDTH,
    assign_layers,
    hierarchical_layout,
    order_layers,
)


BASIC_SQL = """
CREATE TABLE a(id INTEGER PRIMARY KEY);
CREATE TABLE b(id INTEGER PRIMARY KEY, a_id INTEGER REFERENCES a(id));
"""


def _ids(tables):
    return {t.name: t.id for t in tables}


def test_referenced_table_on_layer_zero():
    """Test a is layer 0 and b layer 1."""
    tables = parse_sql(BASIC_SQL).schema.tables
    result = auto_layout(tables)
    ids = _ids(tables)
    assert result.layers[ids["a"]] == 0
    assert result.layers[ids["b"]] == 1
    assert result.order == [[ids["a"]], [ids["b"]]]


def test_layers_follow_longest_path():
    """Test a table sits below the deepest table it references."""
    sql = """
    CREATE TABLE c (id INTEGER PRIMARY KEY, b_id INTEGER REFERENCES b(id), a_id INTEGER REFERENCES a(id));
    CREATE TABLE b (id INTEGER PRIMARY KEY, a_id INTEGER REFERENCES a(id));
    CREATE TABLE a (id INTEGER PRIMARY KEY);
    """
    tables = parse_sql(sql).schema.tables
    layers = assign_layers(tables, derive_edges(tables))
    ids = _ids(tables)
    assert (layers[ids["a"]], layers[ids["b"]], layers[ids["c"]]) == (0, 1, 2)


def test_mutual_reference_terminates():
    """Test A -> B -> A gets finite layers."""
    sql = """
    CREATE TABLE a (id INTEGER PRIMARY KEY, b_id INTEGER REFERENCES b(id));
    CREATE TABLE b (id INTEGER PRIMARY KEY, a_id INTEGER REFERENCES a(id));
    """
    tables = parse_sql(sql).schema.tables
    result = auto_layout(tables)
    assert set(result.layers.values()) <= {0, 1}
    assert len(result.layers) == 2
    for table in tables:
        assert math.isfinite(table.position.x) and math.isfinite(table.position.y)


def test_self_reference_is_ignored():
    """Test a self-referencing table stays on layer 0."""
    sql = "CREATE TABLE node (id INTEGER PRIMARY KEY, parent_id INTEGER REFERENCES node(id));"
    tables = parse_sql(sql).schema.tables
    assert auto_layout(tables).layers == {tables[0].id: 0}


def test_layout_is_deterministic():
    """Test identical graphs give identical layers, orders and positions."""
    sql = """
    CREATE TABLE users (id INTEGER PRIMARY KEY);
    CREATE TABLE teams (id INTEGER PRIMARY KEY);
    CREATE TABLE members (id INTEGER PRIMARY KEY,
        user_id INTEGER REFERENCES users(id), team_id INTEGER REFERENCES teams(id));
    CREATE TABLE posts (id INTEGER PRIMARY KEY, user_id INTEGER REFERENCES users(id));
    CREATE TABLE audit (id INTEGER PRIMARY KEY);
    """
    tables = parse_sql(sql).schema.tables
    copy = [t.model_copy(deep=True) for t in tables]
    first = auto_layout(tables)
    second = auto_layout(copy)
    assert first.layers == second.layers
    assert first.order == second.order
    assert [t.position for t in tables] == [t.position for t in copy]


def test_barycenter_reduces_crossings():
    """Test children follow the order of the parents they reference."""
    sql = """
    CREATE TABLE p1 (id INTEGER PRIMARY KEY);
    CREATE TABLE p2 (id INTEGER PRIMARY KEY);
    CREATE TABLE c2 (id INTEGER PRIMARY KEY, p_id INTEGER REFERENCES p2(id));
    CREATE TABLE c1 (id INTEGER PRIMARY KEY, p_id INTEGER REFERENCES p1(id));
    """
    tables = parse_sql(sql).schema.tables
    edges = derive_edges(tables)
    ids = _ids(tables)
    order = order_layers(tables, assign_layers(tables, edges), edges)
    assert order[0] == [ids["p1"], ids["p2"]]
    assert order[1] == [ids["c1"], ids["c2"]]


def test_export_mode_anchors_at_margin():
    """Test export coordinates start at the margin, rows top to bottom."""
    tables = parse_sql(BASIC_SQL).schema.tables
    auto_layout(tables, for_export=True)
    a, b = tables
    assert a.position.y == EXPORT_MARGIN
    assert a.position.x == b.position.x
    assert b.position.y > a.position.y


def test_empty_input_is_noop():
    """Test zero tables gives an empty layout."""
    result = auto_layout([])
    assert result.layers == {}
    assert result.order == []
    assert result.positioned == []


def test_only_missing_keeps_existing_positions():
    """Test only tables without a position are moved."""
    tables = parse_sql(BASIC_SQL).schema.tables
    tables[0].position = Position(x=5, y=7)
    result = auto_layout(tables, only_missing=True)
    assert tables[0].position == Position(x=5, y=7)
    assert result.positioned == [tables[1].id]


def test_unusable_sizes_fall_back_to_estimates():
    """Test bad measured sizes do not abort the layout."""
    tables = parse_sql(BASIC_SQL).schema.tables
    sizes = {tables[0].id: (float("nan"), -1), tables[1].id: None}
    result = hierarchical_layout(tables, sizes=sizes)
    assert len(result.positioned) == 2


def test_table_width_is_clamped():
    """Test width estimates stay within bounds."""
    tables = parse_sql(
        "CREATE TABLE t (id INTEGER PRIMARY KEY, "
        + ", ".join(f"column_with_a_really_long_name_{i} VARCHAR(255) NOT NULL UNIQUE" for i in range(3))
        + ");"
    ).schema.tables
    assert MIN_TABLE_WIDTH <= table_width(tables[0]) <= MAX_TABLE_WIDTH


@pytest.mark.parametrize("algorithm", ["grid", "circular"])
def test_other_algorithms_position_every_table(algorithm):
    """Test grid and circular layouts place all tables."""
    tables = parse_sql(BASIC_SQL).schema.tables
    result = auto_layout(tables, algorithm=algorithm)
    assert result.algorithm == algorithm
    assert all(t.position is not None for t in tables)


def test_unknown_algorithm():
    """Test an unknown algorithm is rejected."""
    with pytest.raises(ValueError):
        auto_layout([], algorithm="force")


def test_long_reference_chain():
    """Test a chain of 1200 forward references is layered without recursion limits."""
    count = 1200
    sql = "\n".join(
        f"CREATE TABLE t{i}(id INT PRIMARY KEY, n INT REFERENCES t{i + 1}(id));"
        for i in range(count - 1)
    ) + f"\nCREATE TABLE t{count - 1}(id INT PRIMARY KEY);"
    tables = parse_sql(sql).schema.tables
    result = auto_layout(tables)
    assert result.layers[tables[0].id] == count - 1
    assert result.layers[tables[-1].id] == 0
    assert len(result.positioned) == count
