"""Unit tests for schema validation and summary."""

from schema_core import (
    Column,
    DataType,
    ForeignKeyReference,
    IssueSeverity,
    SchemaModel,
    SQLType,
    Table,
    ensure_fk_indexes,
    find_connected_components,
    find_cycles,
    parse_sql,
    summarize_schema,
    validate_schema,
    validation_summary,
)


def _messages(issues, severity):
    return [i.message for i in issues if i.severity == severity]


def test_empty_schema_is_info():
    """Test an empty schema gives a single INFO issue."""
    issues = validate_schema(SchemaModel())
    assert len(issues) == 1
    assert issues[0].severity == IssueSeverity.INFO
    assert validation_summary(issues)["valid"] is True


def test_clean_schema_has_no_issues():
    """Test a well-formed schema validates cleanly."""
    schema = parse_sql("""
        CREATE TABLE a (id INTEGER PRIMARY KEY);
        CREATE TABLE b (id INTEGER PRIMARY KEY, a_id INTEGER REFERENCES a(id));
    """).schema
    assert validate_schema(schema) == []


def test_dangling_reference_is_warning():
    """Test a reference to a missing table is reported, not fatal."""
    table = Table(name="orders", columns=[
        Column(name="id", primary_key=True, nullable=False),
        Column(name="customer_id", data_type=DataType(kind=SQLType.INTEGER),
               reference=ForeignKeyReference(target_table="customers", target_column="id")),
    ])
    issues = validate_schema(SchemaModel(tables=[table]))
    warnings = _messages(issues, IssueSeverity.WARNING)
    assert any("customers.id" in m for m in warnings)
    assert validation_summary(issues)["valid"] is True


def test_duplicate_names_are_errors():
    """Test duplicate table and column names."""
    first = Table(name="users", columns=[Column(name="id", primary_key=True), Column(name="ID")])
    second = Table(name="Users", columns=[Column(name="id", primary_key=True)])
    issues = validate_schema(SchemaModel(tables=[first, second]))
    errors = _messages(issues, IssueSeverity.ERROR)
    assert any("Duplicate table name" in m for m in errors)
    assert any("duplicate column" in m for m in errors)
    assert validation_summary(issues)["valid"] is False


def test_type_mismatch_and_missing_pk():
    """Test FK type mismatches and tables without a primary key."""
    schema = parse_sql("""
        CREATE TABLE a (id INTEGER PRIMARY KEY);
        CREATE TABLE b (note TEXT, a_id VARCHAR(10) REFERENCES a(id));
    """).schema
    warnings = _messages(validate_schema(schema), IssueSeverity.WARNING)
    assert any("Type mismatch" in m for m in warnings)
    assert any("has no primary key" in m for m in warnings)


def test_cycles_are_reported():
    """Test a reference cycle is found once."""
    schema = parse_sql("""
        CREATE TABLE a (id INTEGER PRIMARY KEY, b_id INTEGER REFERENCES b(id));
        CREATE TABLE b (id INTEGER PRIMARY KEY, a_id INTEGER REFERENCES a(id));
    """).schema
    cycles = find_cycles(schema.tables)
    assert len(cycles) == 1
    assert cycles[0][0] == cycles[0][-1]
    warnings = _messages(validate_schema(schema), IssueSeverity.WARNING)
    assert any("Circular dependency" in m for m in warnings)


def test_connected_components():
    """Test FK-linked tables group together."""
    schema = parse_sql("""
        CREATE TABLE a (id INTEGER PRIMARY KEY);
        CREATE TABLE b (id INTEGER PRIMARY KEY, a_id INTEGER REFERENCES a(id));
        CREATE TABLE lonely (id INTEGER PRIMARY KEY);
    """).schema
    components = find_connected_components(schema.tables)
    assert [c.size for c in components] == [2, 1]
    assert components[0].edge_count == 1


def test_summary():
    """Test summary counts."""
    schema = parse_sql("""
        CREATE TABLE a (id INTEGER PRIMARY KEY, name TEXT);
        CREATE TABLE b (id INTEGER PRIMARY KEY, a_id INTEGER REFERENCES a(id));
        CREATE TABLE c (id INTEGER PRIMARY KEY, a_id INTEGER REFERENCES a(id));
        CREATE TABLE lonely (id INTEGER PRIMARY KEY);
    """).schema
    ensure_fk_indexes(schema.tables)
    summary = summarize_schema(schema).to_dict()
    assert summary["total_tables"] == 4
    assert summary["total_columns"] == 7
    assert summary["total_edges"] == 2
    assert summary["auto_indexes"] == 2
    assert summary["columns_by_type"] == {"INTEGER": 6, "TEXT": 1}
    assert summary["most_referenced_tables"][0]["name"] == "a"
    assert summary["most_referenced_tables"][0]["incoming"] == 2
    assert summary["orphan_tables"] == ["lonely"]
    assert summary["connected_components"] == 2


def test_one_cycle_per_strongly_connected_group():
    """Test overlapping loops in one group give a single shortest cycle."""
    schema = parse_sql("""
        CREATE TABLE a (id INTEGER PRIMARY KEY, b_id INTEGER REFERENCES b(id), c_id INTEGER REFERENCES c(id));
        CREATE TABLE b (id INTEGER PRIMARY KEY, c_id INTEGER REFERENCES c(id));
        CREATE TABLE c (id INTEGER PRIMARY KEY, a_id INTEGER REFERENCES a(id));
        CREATE TABLE d (id INTEGER PRIMARY KEY, e_id INTEGER REFERENCES e(id));
        CREATE TABLE e (id INTEGER PRIMARY KEY, d_id INTEGER REFERENCES d(id));
        CREATE TABLE node (id INTEGER PRIMARY KEY, parent_id INTEGER REFERENCES node(id));
    """).schema
    names = {t.id: t.name for t in schema.tables}
    cycles = [[names[t] for t in cycle] for cycle in find_cycles(schema.tables)]
    assert cycles == [["a", "c", "a"], ["d", "e", "d"]]


def test_long_chain_validates():
    """Test validation finishes on a long reference chain and a long loop."""
    count = 1200
    sql = "\n".join(
        f"CREATE TABLE t{i}(id INT PRIMARY KEY, n INT REFERENCES t{(i + 1) % count}(id));"
        for i in range(count)
    )
    schema = parse_sql(sql).schema
    cycles = find_cycles(schema.tables)
    assert len(cycles) == 1
    assert len(cycles[0]) == count + 1
    warnings = _messages(validate_schema(schema), IssueSeverity.WARNING)
    assert sum("Circular dependency" in m for m in warnings) == 1
