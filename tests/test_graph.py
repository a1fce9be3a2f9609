"""Unit tests for foreign-key edge derivation and synchronization."""

from schema_core import (
    FK_INDEX_COMMENT,
    Column,
    ForeignKeyReference,
    Index,
    Table,
    clear_reference,
    delete_column,
    derive_edges,
    ensure_fk_indexes,
    make_edge_id,
    on_edge_removed,
    parse_edge_id,
    parse_sql,
)


def _schema():
    """users <- posts <- comments, plus comments -> users."""
    sql = """
    CREATE TABLE users (id INTEGER PRIMARY KEY);
    CREATE TABLE posts (id INTEGER PRIMARY KEY, user_id INTEGER REFERENCES users(id));
    CREATE TABLE comments (
        id INTEGER PRIMARY KEY,
        post_id INTEGER REFERENCES posts(id),
        author_id INTEGER REFERENCES users(id)
    );
    """
    return parse_sql(sql).schema


def _edge_set(tables):
    return {(e.id, e.source, e.target) for e in derive_edges(tables)}


def test_derive_edges():
    """Test one edge per resolvable reference."""
    schema = _schema()
    edges = derive_edges(schema.tables)
    pairs = {(e.source_table_name, e.source_column_name, e.target_table_name) for e in edges}
    assert pairs == {
        ("posts", "user_id", "users"),
        ("comments", "post_id", "posts"),
        ("comments", "author_id", "users"),
    }


def test_derive_edges_is_order_independent():
    """Test permuting the table list does not change the edge set."""
    schema = _schema()
    forward = _edge_set(schema.tables)
    assert _edge_set(list(reversed(schema.tables))) == forward
    assert _edge_set([schema.tables[1], schema.tables[2], schema.tables[0]]) == forward


def test_dangling_reference_is_skipped():
    """Test an unresolvable reference yields no edge and no error."""
    table = Table(name="orders", columns=[
        Column(name="id", primary_key=True),
        Column(name="customer_id", reference=ForeignKeyReference(target_table="customers", target_column="id")),
    ])
    assert derive_edges([table]) == []


def test_edge_id_roundtrip():
    """Test edge ids parse back to their table and column ids."""
    schema = _schema()
    posts = schema.tables[1]
    column = posts.find_column("user_id")
    edge_id = make_edge_id(posts.id, column.id)
    assert parse_edge_id(schema.tables, edge_id) == (posts.id, column.id)
    assert parse_edge_id(schema.tables, "fk-nope-nope") is None
    assert parse_edge_id(schema.tables, "garbage") is None


def test_edge_id_with_dashes():
    """Test ids containing '-' still split on the right table."""
    table = Table(id="t-1", name="a", columns=[Column(id="c-2", name="x")])
    assert parse_edge_id([table], "fk-t-1-c-2") == ("t-1", "c-2")


def test_remove_edge_drops_auto_index():
    """Test removing an edge removes its single-column auto index."""
    schema = _schema()
    ensure_fk_indexes(schema.tables)
    posts = schema.tables[1]
    assert [i.name for i in posts.indexes] == ["fk_posts_user_id"]

    edge_id = make_edge_id(posts.id, posts.find_column("user_id").id)
    assert on_edge_removed(schema.tables, edge_id) is True
    assert posts.find_column("user_id").reference is None
    assert posts.indexes == []


def test_remove_edge_keeps_composite_and_manual_indexes():
    """Test composite and user-made indexes survive edge removal."""
    schema = _schema()
    comments = schema.tables[2]
    comments.indexes.append(Index(name="idx_post_author", columns=["post_id", "author_id"], comment=FK_INDEX_COMMENT))
    comments.indexes.append(Index(name="idx_author", columns=["author_id"]))

    on_edge_removed(schema.tables, make_edge_id(comments.id, comments.find_column("post_id").id))
    on_edge_removed(schema.tables, make_edge_id(comments.id, comments.find_column("author_id").id))
    assert sorted(i.name for i in comments.indexes) == ["idx_author", "idx_post_author"]


def test_remove_edge_is_idempotent():
    """Test a second removal with the same id is a no-op."""
    schema = _schema()
    ensure_fk_indexes(schema.tables)
    posts = schema.tables[1]
    edge_id = make_edge_id(posts.id, posts.find_column("user_id").id)

    assert on_edge_removed(schema.tables, edge_id) is True
    snapshot = [t.model_dump() for t in schema.tables]
    assert on_edge_removed(schema.tables, edge_id) is False
    assert [t.model_dump() for t in schema.tables] == snapshot


def test_remove_stale_edge_never_raises():
    """Test unknown ids degrade to a no-op."""
    schema = _schema()
    before = _edge_set(schema.tables)
    assert on_edge_removed(schema.tables, "fk-missing-missing") is False
    assert on_edge_removed(schema.tables, "") is False
    assert _edge_set(schema.tables) == before


def test_clear_reference():
    """Test clearing a column reference goes through edge removal."""
    schema = _schema()
    ensure_fk_indexes(schema.tables)
    posts = schema.tables[1]
    column = posts.find_column("user_id")
    assert clear_reference(schema.tables, posts.id, column.id) is True
    assert column.reference is None
    assert posts.indexes == []


def test_delete_column_removes_edge_first():
    """Test deleting an FK column also drops its auto index."""
    schema = _schema()
    ensure_fk_indexes(schema.tables)
    comments = schema.tables[2]
    column = comments.find_column("post_id")
    deleted = delete_column(schema.tables, comments.id, column.id)
    assert deleted is column
    assert comments.find_column("post_id") is None
    assert [i.name for i in comments.indexes] == ["fk_comments_author_id"]
    assert delete_column(schema.tables, comments.id, column.id) is None


def test_ensure_fk_indexes():
    """Test auto indexes are created once and carry the sentinel."""
    schema = _schema()
    created = ensure_fk_indexes(schema.tables)
    assert sorted(i.name for i in created) == [
        "fk_comments_author_id", "fk_comments_post_id", "fk_posts_user_id",
    ]
    assert all(i.comment == FK_INDEX_COMMENT for i in created)
    assert ensure_fk_indexes(schema.tables) == []


def test_ensure_fk_indexes_respects_leftmost_column():
    """Test an index with the FK column first already covers it."""
    schema = _schema()
    comments = schema.tables[2]
    comments.indexes.append(Index(name="idx_post_author", columns=["post_id", "author_id"]))
    created = ensure_fk_indexes(schema.tables)
    assert "fk_comments_post_id" not in [i.name for i in created]
    assert "fk_comments_author_id" in [i.name for i in created]


def test_ensure_fk_indexes_avoids_name_clash():
    """Test a taken name gets a numeric suffix."""
    schema = _schema()
    users = schema.tables[0]
    users.indexes.append(Index(name="fk_posts_user_id", columns=["id"]))
    created = ensure_fk_indexes(schema.tables)
    assert "fk_posts_user_id_1" in [i.name for i in created]
