"""Unit tests for SQL and Prisma generation, including re-import."""

import pytest

from schema_core import (
    FK_INDEX_COMMENT,
    SchemaModel,
    ensure_fk_indexes,
    generate_prisma,
    generate_sql,
    parse_prisma,
    parse_sql,
)
from schema_core.generator import quote_identifier, to_camel_case, to_pascal_case


SHOP_SQL = """
CREATE TABLE customers (
    id SERIAL PRIMARY KEY,
    email VARCHAR(120) NOT NULL UNIQUE,
    status VARCHAR(20) DEFAULT 'new'
);
CREATE TABLE orders (
    id BIGSERIAL PRIMARY KEY,
    customer_id INTEGER NOT NULL REFERENCES customers(id) ON DELETE CASCADE,
    total DECIMAL(12, 2) NOT NULL,
    placed_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);
CREATE TABLE order_items (
    order_id BIGINT REFERENCES orders(id),
    line_no INTEGER,
    sku CHAR(8),
    PRIMARY KEY (order_id, line_no)
);
CREATE INDEX idx_orders_placed ON orders (customer_id, placed_at);
COMMENT ON TABLE orders IS 'Customer orders';
"""


def _structure(schema):
    """Name-level structure used to compare imports."""
    tables = []
    for table in schema.tables:
        columns = []
        for c in table.columns:
            ref = c.reference
            columns.append((
                c.name, c.data_type.render(), c.nullable, c.unique, c.primary_key, c.auto_increment,
                (ref.target_table, ref.target_column, ref.on_delete) if ref else None,
            ))
        indexes = sorted((i.name, tuple(i.columns), i.unique, i.comment) for i in table.indexes)
        tables.append((table.name, columns, indexes))
    return tables


@pytest.mark.parametrize("dialect", ["postgres", "mysql"])
def test_sql_roundtrip(dialect):
    """Test regenerated DDL re-parses to the same structure."""
    original = parse_sql(SHOP_SQL).schema
    ensure_fk_indexes(original.tables)
    regenerated = parse_sql(generate_sql(original, dialect)).schema
    assert _structure(regenerated) == _structure(original)


def test_sqlite_roundtrip_keeps_tables_and_references():
    """Test SQLite output re-parses with the same references."""
    original = parse_sql(SHOP_SQL).schema
    regenerated = parse_sql(generate_sql(original, "sqlite")).schema
    assert [t.name for t in regenerated.tables] == [t.name for t in original.tables]
    ref = regenerated.tables[1].find_column("customer_id").reference
    assert (ref.target_table, ref.target_column) == ("customers", "id")


def test_postgres_output():
    """Test PostgreSQL specific spellings."""
    schema = parse_sql(SHOP_SQL).schema
    ensure_fk_indexes(schema.tables)
    sql = generate_sql(schema, "postgres")
    assert "id SERIAL PRIMARY KEY" in sql
    assert "id BIGSERIAL PRIMARY KEY" in sql
    assert "PRIMARY KEY (order_id, line_no)" in sql
    assert "COMMENT ON TABLE orders IS 'Customer orders';" in sql
    assert f"COMMENT ON INDEX fk_order_items_order_id IS '{FK_INDEX_COMMENT}';" in sql
    assert "ON DELETE CASCADE" in sql


def test_mysql_foreign_keys_after_tables():
    """Test MySQL adds foreign keys with ALTER TABLE at the end."""
    sql = generate_sql(parse_sql(SHOP_SQL).schema, "mysql")
    assert "AUTO_INCREMENT" in sql
    last_create = sql.rindex("CREATE TABLE")
    assert sql.index("ALTER TABLE orders ADD CONSTRAINT fk_orders_customer_id") > last_create


def test_empty_schema_sql():
    """Test the placeholder for an empty schema."""
    assert generate_sql(SchemaModel()).startswith("-- No tables defined")


def test_unknown_dialect():
    """Test an unknown dialect is rejected."""
    with pytest.raises(ValueError):
        generate_sql(parse_sql(SHOP_SQL).schema, "oracle")


def test_quote_identifier():
    """Test reserved and unusual names are quoted."""
    assert quote_identifier("users") == "users"
    assert quote_identifier("user") == '"user"'
    assert quote_identifier("order items", "mysql") == "`order items`"


def test_case_helpers():
    """Test model and field name conversion."""
    assert to_pascal_case("order_items") == "OrderItems"
    assert to_pascal_case("User") == "User"
    assert to_camel_case("placed_at") == "placedAt"
    assert to_camel_case("email") == "email"


def test_prisma_output():
    """Test the generated Prisma document."""
    text = generate_prisma(parse_sql(SHOP_SQL).schema)
    assert "model Customers {" in text
    assert '@@map("customers")' in text
    assert "id Int @id @default(autoincrement())" in text
    assert "customerId Int @map(\"customer_id\")" in text
    assert "@relation(fields: [customerId], references: [id], onDelete: Cascade)" in text
    assert "@@id([orderId, lineNo])" in text


def test_prisma_roundtrip():
    """Test generated Prisma re-parses to the same tables, columns and references."""
    original = parse_sql(SHOP_SQL).schema
    reparsed = parse_prisma(generate_prisma(original)).schema

    assert [t.name for t in reparsed.tables] == [t.name for t in original.tables]
    for before, after in zip(original.tables, reparsed.tables):
        assert [c.name for c in after.columns] == [c.name for c in before.columns]
        assert [c.name for c in after.primary_key_columns] == [c.name for c in before.primary_key_columns]
        for column in before.columns:
            other = after.find_column(column.name)
            assert other.data_type.kind == column.data_type.kind
            if column.reference is None:
                assert other.reference is None
            else:
                assert other.reference.target_table == column.reference.target_table
                assert other.reference.target_column == column.reference.target_column
