"""Unit tests for migration script generation."""

import pytest

from schema_core import build_preset, generate_migration, parse_sql


ITEMS_OLD = """
CREATE TABLE items (
    id INTEGER PRIMARY KEY,
    title VARCHAR(100),
    qty INTEGER NOT NULL DEFAULT 0,
    code VARCHAR(20)
);
CREATE INDEX idx_items_title ON items (title);
"""

ITEMS_NEW = """
CREATE TABLE items (
    id INTEGER PRIMARY KEY,
    title VARCHAR(200) NOT NULL,
    qty INTEGER NOT NULL,
    code VARCHAR(20) UNIQUE,
    note TEXT
);
CREATE UNIQUE INDEX idx_items_title ON items (title);
"""

ORDERS_OLD = """
CREATE TABLE customers (id INTEGER PRIMARY KEY);
CREATE TABLE orders (
    id INTEGER PRIMARY KEY,
    customer_id INTEGER REFERENCES customers(id)
);
"""

ORDERS_NEW = """
CREATE TABLE customers (id INTEGER PRIMARY KEY);
CREATE TABLE coupons (id INTEGER PRIMARY KEY, code TEXT NOT NULL);
CREATE TABLE orders (
    id INTEGER PRIMARY KEY,
    customer_id INTEGER REFERENCES customers(id) ON DELETE CASCADE,
    coupon_id INTEGER REFERENCES coupons(id)
);
"""


def _migration(old_sql, new_sql, dialect="postgres"):
    return generate_migration(parse_sql(old_sql).schema, parse_sql(new_sql).schema, dialect)


def test_no_changes_gives_empty_scripts():
    """Test identical schemas produce no statements at all."""
    schema = build_preset("blog")
    migration = generate_migration(schema, schema.model_copy(deep=True))
    assert migration.up == [] and migration.down == []
    assert migration.warnings == []
    assert migration.has_changes is False
    assert migration.up_sql == ""


def test_script_is_wrapped_in_a_transaction():
    """Test header, BEGIN and COMMIT around the statements."""
    migration = _migration(ITEMS_OLD, ITEMS_NEW)
    assert migration.up[0].startswith("-- Migration:")
    assert "-- Dialect: PostgreSQL" in migration.up
    assert "BEGIN;" in migration.up
    assert migration.up[-1] == "COMMIT;"
    assert migration.down[-1] == "COMMIT;"

    mysql = _migration(ITEMS_OLD, ITEMS_NEW, "mysql")
    assert "START TRANSACTION;" in mysql.up


def test_postgres_column_alterations():
    """Test type, nullability, default, unique and new columns both ways."""
    migration = _migration(ITEMS_OLD, ITEMS_NEW)
    for statement in (
        "ALTER TABLE items ALTER COLUMN title TYPE VARCHAR(200);",
        "ALTER TABLE items ALTER COLUMN title SET NOT NULL;",
        "ALTER TABLE items ALTER COLUMN qty DROP DEFAULT;",
        "ALTER TABLE items ADD CONSTRAINT items_code_key UNIQUE (code);",
        "ALTER TABLE items ADD COLUMN note TEXT;",
    ):
        assert statement in migration.up

    for statement in (
        "ALTER TABLE items ALTER COLUMN title TYPE VARCHAR(100);",
        "ALTER TABLE items ALTER COLUMN title DROP NOT NULL;",
        "ALTER TABLE items ALTER COLUMN qty SET DEFAULT 0;",
        "ALTER TABLE items DROP CONSTRAINT IF EXISTS items_code_key;",
        "ALTER TABLE items DROP COLUMN note;",
    ):
        assert statement in migration.down


def test_modified_index_is_rebuilt():
    """Test a redefined index is dropped before it is created again."""
    migration = _migration(ITEMS_OLD, ITEMS_NEW)
    drop = migration.up.index("DROP INDEX IF EXISTS idx_items_title;")
    create = migration.up.index("CREATE UNIQUE INDEX idx_items_title ON items (title);")
    assert drop < create
    assert 'Table "items": 1 index(es) will be rebuilt' in migration.warnings

    mysql = _migration(ITEMS_OLD, ITEMS_NEW, "mysql")
    assert "DROP INDEX idx_items_title ON items;" in mysql.up


def test_mysql_modifies_whole_column():
    """Test MySQL restates the column definition with MODIFY COLUMN."""
    migration = _migration(ITEMS_OLD, ITEMS_NEW, "mysql")
    assert "ALTER TABLE items MODIFY COLUMN title VARCHAR(200) NOT NULL;" in migration.up
    assert "ALTER TABLE items ADD UNIQUE (code);" in migration.up
    assert "ALTER TABLE items DROP INDEX code;" in migration.down


def test_foreign_keys_follow_their_tables():
    """Test new tables come before the constraints that point at them."""
    migration = _migration(ORDERS_OLD, ORDERS_NEW)
    up = migration.up

    drop_old = up.index("ALTER TABLE orders DROP CONSTRAINT IF EXISTS fk_orders_customer_id;")
    create_coupons = up.index("CREATE TABLE coupons (")
    add_column = up.index("ALTER TABLE orders ADD COLUMN coupon_id INTEGER;")
    add_coupon_fk = up.index(
        "ALTER TABLE orders ADD CONSTRAINT fk_orders_coupon_id "
        "FOREIGN KEY (coupon_id) REFERENCES coupons(id);"
    )
    add_customer_fk = up.index(
        "ALTER TABLE orders ADD CONSTRAINT fk_orders_customer_id "
        "FOREIGN KEY (customer_id) REFERENCES customers(id) ON DELETE CASCADE;"
    )
    assert drop_old < create_coupons < add_column < add_coupon_fk
    assert drop_old < add_customer_fk

    down = migration.down
    assert "ALTER TABLE orders DROP CONSTRAINT IF EXISTS fk_orders_coupon_id;" in down
    assert "ALTER TABLE orders DROP COLUMN coupon_id;" in down
    assert "DROP TABLE coupons;" in down
    assert (
        "ALTER TABLE orders ADD CONSTRAINT fk_orders_customer_id "
        "FOREIGN KEY (customer_id) REFERENCES customers(id);"
    ) in down


def test_mysql_drops_foreign_key():
    """Test MySQL's spelling for dropping a foreign key."""
    migration = _migration(ORDERS_OLD, ORDERS_NEW, "mysql")
    assert "ALTER TABLE orders DROP FOREIGN KEY fk_orders_customer_id;" in migration.up


def test_sqlite_reports_what_it_cannot_alter():
    """Test SQLite gets inline references and comments for unsupported changes."""
    migration = _migration(ORDERS_OLD, ORDERS_NEW, "sqlite")
    assert "ALTER TABLE orders ADD COLUMN coupon_id INTEGER REFERENCES coupons(id);" in migration.up
    message = "SQLite cannot drop foreign key orders.customer_id; rebuild the table"
    assert f"-- {message}" in migration.up
    assert message in migration.warnings
    assert "BEGIN TRANSACTION;" in migration.up

    items = _migration(ITEMS_OLD, ITEMS_NEW, "sqlite")
    assert any(
        w.startswith("SQLite cannot alter column items.title (type, nullable)")
        for w in items.warnings
    )


def test_renames():
    """Test renamed tables and columns are renamed, not dropped."""
    old = parse_sql("CREATE TABLE users (id INTEGER PRIMARY KEY, mail VARCHAR(100));").schema
    new = old.model_copy(deep=True)
    new.tables[0].name = "accounts"
    new.tables[0].columns[1].name = "email"

    migration = generate_migration(old, new)
    assert "ALTER TABLE users RENAME TO accounts;" in migration.up
    assert "ALTER TABLE accounts RENAME COLUMN mail TO email;" in migration.up
    assert not any(line.startswith("DROP TABLE") for line in migration.up)
    assert "ALTER TABLE accounts RENAME TO users;" in migration.down
    assert "ALTER TABLE users RENAME COLUMN email TO mail;" in migration.down

    mysql = generate_migration(old, new, "mysql")
    assert "RENAME TABLE users TO accounts;" in mysql.up


def test_data_loss_warnings():
    """Test dropped tables, dropped columns and new NOT NULLs are flagged."""
    old = parse_sql("""
        CREATE TABLE a (id INTEGER PRIMARY KEY, legacy TEXT, label TEXT);
        CREATE TABLE b (id INTEGER PRIMARY KEY);
    """).schema
    new = parse_sql("CREATE TABLE a (id INTEGER PRIMARY KEY, label TEXT NOT NULL);").schema

    migration = generate_migration(old, new)
    assert "DROP TABLE b;" in migration.up
    assert "ALTER TABLE a DROP COLUMN legacy;" in migration.up
    assert migration.warnings == [
        "1 table(s) will be dropped along with their data",
        'Table "a": 1 column(s) will be dropped along with their data',
        'Column "a.label": adding NOT NULL fails if existing rows hold NULL',
    ]
    assert "CREATE TABLE b (" in migration.down


def test_unknown_dialect():
    """Test an unknown dialect is rejected."""
    schema = build_preset("blog")
    with pytest.raises(ValueError, match="Unknown SQL dialect"):
        generate_migration(schema, schema, "oracle")
