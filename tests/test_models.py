"""Unit tests for schema models."""

from schema_core import (
    FK_INDEX_COMMENT,
    CascadeAction,
    Column,
    DataType,
    ForeignKeyReference,
    Index,
    SchemaModel,
    SQLType,
    Table,
)


def test_column_defaults():
    """Test Column basic construction."""
    col = Column(name="email")
    assert col.name == "email"
    assert col.id.startswith("c")
    assert col.nullable is True
    assert col.primary_key is False
    assert col.reference is None
    assert col.data_type.render() == "VARCHAR(255)"


def test_ids_are_stable_and_unique():
    """Test that generated ids differ and survive a rename."""
    first = Table(name="users")
    second = Table(name="users")
    assert first.id != second.id
    original = first.id
    first.name = "accounts"
    assert first.id == original


def test_data_type_render():
    """Test DataType SQL spelling."""
    assert DataType(kind=SQLType.VARCHAR, length=50).render() == "VARCHAR(50)"
    assert DataType(kind=SQLType.DECIMAL, precision=12, scale=4).render() == "DECIMAL(12,4)"
    assert DataType(kind=SQLType.INTEGER).render() == "INTEGER"


def test_data_type_drops_foreign_params():
    """Test that parameters only stay on the kinds that use them."""
    dt = DataType(kind=SQLType.INTEGER, length=10, precision=5)
    assert dt.length is None
    assert dt.precision is None


def test_column_accepts_camel_case_keys():
    """Test Column conversion of editor-style keys."""
    col = Column(**{
        "name": "user_id",
        "type": "integer",
        "primaryKey": False,
        "autoIncrement": False,
        "references": {"table": "users", "column": "id", "onDelete": "cascade"},
    })
    assert col.data_type.kind == SQLType.INTEGER
    assert col.reference.target_table == "users"
    assert col.reference.target_column == "id"
    assert col.reference.on_delete == CascadeAction.CASCADE


def test_cascade_action_spellings():
    """Test referential action normalization."""
    ref = ForeignKeyReference(target_table="a", target_column="id", on_delete="SetNull", on_update="no action")
    assert ref.on_delete == CascadeAction.SET_NULL
    assert ref.on_update == CascadeAction.NO_ACTION


def test_fk_auto_index_flag():
    """Test the sentinel comment marks auto indexes."""
    auto = Index(name="fk_b_a_id", columns=["a_id"], comment=FK_INDEX_COMMENT)
    manual = Index(name="idx_b_a_id", columns=["a_id"], comment="hand made")
    assert auto.is_fk_auto_index is True
    assert manual.is_fk_auto_index is False


def test_table_find_column_is_case_insensitive():
    """Test Table lookups by name and id."""
    col = Column(name="Email")
    table = Table(name="users", columns=[col])
    assert table.find_column("email") is col
    assert table.get_column(col.id) is col
    assert table.get_column("missing") is None


def test_schema_json_roundtrip():
    """Test SchemaModel to_json_dict / from_json_dict."""
    table = Table(name="users", columns=[Column(name="id", primary_key=True)])
    schema = SchemaModel(name="demo", tables=[table])
    restored = SchemaModel.from_json_dict(schema.to_json_dict())
    assert restored.name == "demo"
    assert restored.tables[0].id == table.id
    assert restored.tables[0].columns[0].primary_key is True


def test_legacy_relationships_become_references():
    """Test that a legacy relationship list is folded into column references."""
    data = {
        "name": "legacy",
        "tables": [
            {"id": "t1", "name": "users", "columns": [{"id": "c1", "name": "id", "type": "INTEGER"}]},
            {"id": "t2", "name": "posts", "columns": [
                {"id": "c2", "name": "id", "type": "INTEGER"},
                {"id": "c3", "name": "user_id", "type": "INTEGER"},
            ]},
        ],
        "relationships": [
            {"fromTable": "t2", "fromColumn": "c3", "toTable": "t1", "toColumn": "c1", "onDelete": "CASCADE"},
        ],
    }
    schema = SchemaModel.from_json_dict(data)
    column = schema.get_table("t2").get_column("c3")
    assert column.reference.target_table == "users"
    assert column.reference.target_column == "id"
    assert column.reference.on_delete == CascadeAction.CASCADE
    assert "relationships" not in schema.to_json_dict()
