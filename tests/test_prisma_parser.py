"""Unit tests for the Prisma schema parser."""

import pytest

from schema_core import (
    CascadeAction,
    EmptySchemaError,
    SchemaSyntaxError,
    SQLType,
    derive_edges,
    parse_prisma,
)


BLOG_SCHEMA = """
generator client {
  provider = "prisma-client-js"
}

datasource db {
  provider = "postgresql"
  url      = env("DATABASE_URL")
}

enum Role {
  USER
  ADMIN
}

/// Registered people
model User {
  id        Int      @id @default(autoincrement())
  email     String   @unique
  name      String?  @db.VarChar(80)
  role      Role     @default(USER)
  bio       String?  @db.Text
  createdAt DateTime @default(now()) @map("created_at")
  posts     Post[]

  @@map("users")
}

model Post {
  id       String  @id @default(uuid())
  title    String
  authorId Int
  author   User    @relation(fields: [authorId], references: [id], onDelete: Cascade)
  price    Decimal
  // plain comment
  data     Json?

  @@index([authorId])
  @@unique([authorId, title])
}
"""


def test_models_become_tables():
    """Test model blocks map to tables and non-model blocks are ignored."""
    result = parse_prisma(BLOG_SCHEMA)
    assert result.format == "prisma"
    assert [t.name for t in result.schema.tables] == ["users", "Post"]


def test_scalar_mapping():
    """Test scalar types, optional marker and attributes."""
    users = parse_prisma(BLOG_SCHEMA).schema.tables[0]
    id_col = users.find_column("id")
    assert id_col.primary_key and id_col.auto_increment and not id_col.nullable
    assert id_col.data_type.kind == SQLType.INTEGER

    email = users.find_column("email")
    assert email.unique is True
    assert email.nullable is False
    assert email.data_type.render() == "VARCHAR(255)"

    assert users.find_column("name").nullable is True
    assert users.find_column("name").data_type.length == 80
    assert users.find_column("bio").data_type.kind == SQLType.TEXT
    assert users.find_column("role").default_value == "'USER'"
    assert users.comment == "Registered people"


def test_map_renames_column():
    """Test @map sets the column name."""
    users = parse_prisma(BLOG_SCHEMA).schema.tables[0]
    created = users.find_column("created_at")
    assert created is not None
    assert created.default_value == "CURRENT_TIMESTAMP"
    assert users.find_column("createdAt") is None


def test_relation_sets_reference():
    """Test @relation(fields, references) on the scalar FK field."""
    schema = parse_prisma(BLOG_SCHEMA).schema
    post = schema.tables[1]
    assert post.find_column("author") is None  # relation fields are virtual
    ref = post.find_column("authorId").reference
    assert ref.target_table == "users"
    assert ref.target_column == "id"
    assert ref.on_delete == CascadeAction.CASCADE

    edges = derive_edges(schema.tables)
    assert len(edges) == 1
    assert edges[0].target_table_name == "users"


def test_uuid_default_and_decimal():
    """Test uuid() default and the Decimal default size."""
    post = parse_prisma(BLOG_SCHEMA).schema.tables[1]
    id_col = post.find_column("id")
    assert id_col.data_type.kind == SQLType.UUID
    assert id_col.default_value == "gen_random_uuid()"
    price = post.find_column("price")
    assert (price.data_type.precision, price.data_type.scale) == (10, 2)
    assert post.find_column("data").data_type.kind == SQLType.JSONB


def test_block_attributes():
    """Test @@index and composite @@unique."""
    post = parse_prisma(BLOG_SCHEMA).schema.tables[1]
    by_name = {i.name: i for i in post.indexes}
    assert by_name["Post_authorId_idx"].columns == ["authorId"]
    assert by_name["Post_authorId_title_key"].unique is True


def test_composite_id():
    """Test @@id gives a composite primary key."""
    text = """
    model Membership {
      groupId Int
      userId  Int
      @@id([groupId, userId])
    }
    """
    table = parse_prisma(text).schema.tables[0]
    assert [c.name for c in table.primary_key_columns] == ["groupId", "userId"]


def test_unknown_type_warns():
    """Test an unknown field type is coerced with a warning."""
    text = """
    model Place {
      id   Int @id
      area Unsupported("geography")
    }
    """
    result = parse_prisma(text)
    assert result.schema.tables[0].find_column("area").data_type.kind == SQLType.VARCHAR
    assert len(result.warnings) == 1


def test_no_models_raises():
    """Test EmptySchemaError without model blocks."""
    with pytest.raises(EmptySchemaError):
        parse_prisma('datasource db {\n  provider = "postgresql"\n}\n')
    with pytest.raises(EmptySchemaError):
        parse_prisma("   ")


def test_malformed_field_raises():
    """Test SchemaSyntaxError names the bad line."""
    text = """
    model Broken {
      id Int @id
      !!! nonsense
    }
    """
    with pytest.raises(SchemaSyntaxError) as exc_info:
        parse_prisma(text)
    assert exc_info.value.fragment == "!!! nonsense"


def test_relation_with_unknown_field_raises():
    """Test a @relation naming a field that does not exist."""
    text = """
    model A {
      id Int @id
    }
    model B {
      id Int @id
      a  A   @relation(fields: [aId], references: [id])
    }
    """
    with pytest.raises(SchemaSyntaxError):
        parse_prisma(text)


def test_braces_inside_strings_and_comments():
    """Test a `}` inside a default string or comment does not end the model."""
    schema = """
    model Account {
      id       Int   @id
      settings Json  @default("{}")
      extra    Json  @default(dbgenerated("'{}'::jsonb")) // ends with }
      name     String
    }

    model Audit {
      id Int @id
    }
    """
    result = parse_prisma(schema)
    assert [t.name for t in result.schema.tables] == ["Account", "Audit"]
    account = result.schema.tables[0]
    assert [c.name for c in account.columns] == ["id", "settings", "extra", "name"]
    assert account.find_column("settings").default_value == "'{}'"
    assert account.find_column("extra").default_value == "'{}'::jsonb"
