"""
Migration generator - SQL that moves a database from one schema to another.

Statements run in an order every supported dialect accepts:
1. Drop foreign keys, unique constraints and indexes that go away or change
2. Rename tables and columns
3. Create new tables (foreign keys deferred except on SQLite)
4. Add, alter and drop columns of existing tables
5. Drop removed tables
6. Create indexes, unique constraints and foreign keys

The rollback script is the migration from the new schema back to the old
one. Alterations a dialect cannot express are written as comments and
reported as warnings.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from .diff import ColumnChange, SchemaDiff, TableChange, compare_schemas
from .generator import (
    SQL_DIALECTS,
    _add_foreign_key,
    _column_definition,
    _column_type,
    _create_index,
    _create_table,
    _sql_string,
    fk_constraint_name,
    quote_identifier,
)
from .models import Column, Index, SchemaModel, Table

logger = logging.getLogger(__name__)

_DIALECT_NAMES = {"postgres": "PostgreSQL", "mysql": "MySQL", "sqlite": "SQLite"}
_BEGIN = {"postgres": "BEGIN;", "mysql": "START TRANSACTION;", "sqlite": "BEGIN TRANSACTION;"}

# Column attributes each dialect can alter in place
_ALTERABLE = ("type", "nullable", "default", "auto_increment", "comment")


@dataclass
class Migration:
    """Forward and rollback scripts for one schema change."""
    dialect: str
    up: list[str] = field(default_factory=list)
    down: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.up)

    @property
    def up_sql(self) -> str:
        return "\n".join(self.up) + "\n" if self.up else ""

    @property
    def down_sql(self) -> str:
        return "\n".join(self.down) + "\n" if self.down else ""

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "dialect": self.dialect,
            "up": self.up_sql,
            "down": self.down_sql,
            "warnings": list(self.warnings),
        }


class _Script:
    """Statements for one direction, plus the notes raised writing them."""

    def __init__(self, dialect: str):
        self.dialect = dialect
        self.lines: list[str] = []
        self.warnings: list[str] = []

    def q(self, name: str) -> str:
        return quote_identifier(name, self.dialect)

    def add(self, *lines: str):
        self.lines.extend(lines)

    def unsupported(self, message: str):
        self.lines.append(f"-- {message}")
        self.warnings.append(message)

    def section(self, title: str, lines: list[str]):
        if lines:
            self.lines.append(f"-- {title}")
            self.lines.extend(lines)
            self.lines.append("")


def _foreign_key(table: Table, column: Column, dialect: str) -> Optional[str]:
    """The ADD CONSTRAINT statement for a column's reference, or None."""
    if column.reference is None:
        return None
    return _add_foreign_key(table, column, dialect)


def _foreign_key_replaced(change: TableChange, column_change: ColumnChange, dialect: str) -> bool:
    return (
        _foreign_key(change.old, column_change.old, dialect)
        != _foreign_key(change.new, column_change.new, dialect)
    )


def _unique_name(table: Table, column: Column) -> str:
    # PostgreSQL's own name for an inline UNIQUE
    return f"{table.name}_{column.name}_key"


# --- Statement builders ---

def _drop_foreign_key(script: _Script, table: Table, column: Column):
    name = script.q(fk_constraint_name(table.name, column.name))
    if script.dialect == "postgres":
        script.add(f"ALTER TABLE {script.q(table.name)} DROP CONSTRAINT IF EXISTS {name};")
    elif script.dialect == "mysql":
        script.add(f"ALTER TABLE {script.q(table.name)} DROP FOREIGN KEY {name};")
    else:
        script.unsupported(
            f"SQLite cannot drop foreign key {table.name}.{column.name}; rebuild the table"
        )


def _add_reference(script: _Script, table: Table, column: Column):
    if script.dialect == "sqlite":
        script.unsupported(
            f"SQLite cannot add foreign key {table.name}.{column.name}; rebuild the table"
        )
    else:
        script.add(_add_foreign_key(table, column, script.dialect))


def _drop_index(script: _Script, table: Table, index: Index):
    if script.dialect == "mysql":
        script.add(f"DROP INDEX {script.q(index.name)} ON {script.q(table.name)};")
    else:
        script.add(f"DROP INDEX IF EXISTS {script.q(index.name)};")


def _drop_unique(script: _Script, table: Table, column: Column):
    if script.dialect == "postgres":
        script.add(
            f"ALTER TABLE {script.q(table.name)} DROP CONSTRAINT IF EXISTS "
            f"{script.q(_unique_name(table, column))};"
        )
    elif script.dialect == "mysql":
        # MySQL names an inline UNIQUE after its column
        script.add(f"ALTER TABLE {script.q(table.name)} DROP INDEX {script.q(column.name)};")
    else:
        script.unsupported(f"SQLite cannot drop the unique constraint on {table.name}.{column.name}")


def _add_unique(script: _Script, table: Table, column: Column):
    if script.dialect == "postgres":
        script.add(
            f"ALTER TABLE {script.q(table.name)} ADD CONSTRAINT "
            f"{script.q(_unique_name(table, column))} UNIQUE ({script.q(column.name)});"
        )
    elif script.dialect == "mysql":
        script.add(f"ALTER TABLE {script.q(table.name)} ADD UNIQUE ({script.q(column.name)});")
    else:
        script.unsupported(f"SQLite cannot add a unique constraint to {table.name}.{column.name}")


def _rename_table(script: _Script, old: Table, new: Table):
    if script.dialect == "mysql":
        script.add(f"RENAME TABLE {script.q(old.name)} TO {script.q(new.name)};")
    else:
        script.add(f"ALTER TABLE {script.q(old.name)} RENAME TO {script.q(new.name)};")


def _add_column(script: _Script, table: Table, column: Column):
    definition = _column_definition(column, table, script.dialect)
    reference = column.reference
    if script.dialect == "sqlite" and reference is not None:
        # The only way SQLite takes a new foreign key
        definition += f" REFERENCES {script.q(reference.target_table)}({script.q(reference.target_column)})"
        if reference.on_delete:
            definition += f" ON DELETE {reference.on_delete.value}"
    script.add(f"ALTER TABLE {script.q(table.name)} ADD COLUMN {definition};")


def _alter_column(script: _Script, table: Table, column_change: ColumnChange):
    """In-place changes to type, nullability, default, identity and comment."""
    column = column_change.new
    target = f"{table.name}.{column.name}"
    changed = [name for name in _ALTERABLE if column_change.get(name)]

    if script.dialect == "sqlite":
        # SQLite keeps no column comments
        changed = [name for name in changed if name != "comment"]
        if changed:
            script.unsupported(f"SQLite cannot alter column {target} ({', '.join(changed)}); rebuild the table")
        return

    if script.dialect == "mysql":
        if changed:
            definition = _column_definition(column, table, "mysql", with_keys=False)
            script.add(f"ALTER TABLE {script.q(table.name)} MODIFY COLUMN {definition};")
        return

    prefix = f"ALTER TABLE {script.q(table.name)} ALTER COLUMN {script.q(column.name)}"
    if "type" in changed:
        plain = column.model_copy(update={"auto_increment": False})
        script.add(f"{prefix} TYPE {_column_type(plain, 'postgres')};")
    if "nullable" in changed:
        script.add(f"{prefix} {'DROP' if column.nullable else 'SET'} NOT NULL;")
    if "default" in changed:
        if column.default_value is None:
            script.add(f"{prefix} DROP DEFAULT;")
        else:
            script.add(f"{prefix} SET DEFAULT {column.default_value};")
    if "auto_increment" in changed:
        script.unsupported(f"Identity change on {target} must be migrated by hand")
    if "comment" in changed:
        comment = _sql_string(column.comment) if column.comment else "NULL"
        script.add(f"COMMENT ON COLUMN {script.q(table.name)}.{script.q(column.name)} IS {comment};")


def _table_comment(script: _Script, table: Table):
    comment = _sql_string(table.comment) if table.comment else None
    if script.dialect == "postgres":
        script.add(f"COMMENT ON TABLE {script.q(table.name)} IS {comment or 'NULL'};")
    elif script.dialect == "mysql":
        script.add(f"ALTER TABLE {script.q(table.name)} COMMENT = {comment or _sql_string('')};")


# --- Script assembly ---

def _write_script(diff: SchemaDiff, dialect: str) -> _Script:
    script = _Script(dialect)
    body = _Script(dialect)

    # 1. Drops that use the old names
    for change in diff.tables_modified:
        for column in change.columns_removed:
            if column.reference is not None:
                _drop_foreign_key(body, change.old, column)
        for column_change in change.columns_modified:
            if column_change.old.reference is not None and _foreign_key_replaced(change, column_change, dialect):
                _drop_foreign_key(body, change.old, column_change.old)
            unique = column_change.get("unique")
            if unique and unique.old and not column_change.old.primary_key:
                _drop_unique(body, change.old, column_change.old)
        for index in change.indexes_removed:
            _drop_index(body, change.old, index)
        for index_change in change.indexes_modified:
            _drop_index(body, change.old, index_change.old)
    script.section("Drop changed constraints and indexes", body.lines)
    script.warnings.extend(body.warnings)

    # 2. Renames
    body = _Script(dialect)
    for change in diff.tables_modified:
        if change.renamed:
            _rename_table(body, change.old, change.new)
        for column_change in change.columns_modified:
            if column_change.get("name"):
                body.add(
                    f"ALTER TABLE {body.q(change.new.name)} RENAME COLUMN "
                    f"{body.q(column_change.old.name)} TO {body.q(column_change.new.name)};"
                )
    script.section("Rename tables and columns", body.lines)

    # 3. New tables
    body = _Script(dialect)
    for table in diff.tables_added:
        body.add(*_create_table(table, dialect, inline_references=dialect == "sqlite"))
    script.section("Create new tables", body.lines)

    # 4. Columns of existing tables
    body = _Script(dialect)
    for change in diff.tables_modified:
        table = change.new
        if any(c.field == "comment" for c in change.changes):
            _table_comment(body, table)
        for column in change.columns_added:
            _add_column(body, table, column)
        for column_change in change.columns_modified:
            _alter_column(body, table, column_change)
            if column_change.get("primary_key"):
                body.unsupported(f"Primary key change on {table.name}.{column_change.new.name} must be migrated by hand")
        for column in change.columns_removed:
            body.add(f"ALTER TABLE {body.q(table.name)} DROP COLUMN {body.q(column.name)};")
    script.section("Alter existing tables", body.lines)
    script.warnings.extend(body.warnings)

    # 5. Removed tables, dependents first
    body = _Script(dialect)
    for table in reversed(diff.tables_removed):
        body.add(f"DROP TABLE {body.q(table.name)};")
    script.section("Drop removed tables", body.lines)

    # 6. Indexes, unique constraints and foreign keys under the new names
    body = _Script(dialect)
    for change in diff.tables_modified:
        table = change.new
        for index in change.indexes_added:
            body.add(_create_index(index, table, dialect))
        for index_change in change.indexes_modified:
            body.add(_create_index(index_change.new, table, dialect))
        for column_change in change.columns_modified:
            unique = column_change.get("unique")
            if unique and unique.new and not column_change.new.primary_key:
                _add_unique(body, table, column_change.new)
    if dialect != "sqlite":
        for table in diff.tables_added:
            for column in table.columns:
                if column.reference is not None:
                    _add_reference(body, table, column)
    for change in diff.tables_modified:
        for column in change.columns_added:
            # SQLite took these inline with ADD COLUMN
            if column.reference is not None and dialect != "sqlite":
                _add_reference(body, change.new, column)
        for column_change in change.columns_modified:
            if column_change.new.reference is not None and _foreign_key_replaced(change, column_change, dialect):
                _add_reference(body, change.new, column_change.new)
    script.section("Create indexes and foreign keys", body.lines)
    script.warnings.extend(body.warnings)

    return script


def _data_warnings(diff: SchemaDiff) -> list[str]:
    """What applying the forward script may lose or fail on."""
    warnings = []
    if diff.tables_removed:
        warnings.append(f"{len(diff.tables_removed)} table(s) will be dropped along with their data")
        if diff.tables_added:
            warnings.append("A table renamed under a new id shows up as dropped and added")
    for change in diff.tables_modified:
        name = change.new.name
        if change.columns_removed:
            warnings.append(f'Table "{name}": {len(change.columns_removed)} column(s) will be dropped along with their data')
        for column_change in change.columns_modified:
            target = f"{name}.{column_change.new.name}"
            type_change = column_change.get("type")
            if type_change:
                warnings.append(f'Column "{target}": type change ({type_change.old} to {type_change.new}) may need a data conversion')
            nullable = column_change.get("nullable")
            if nullable and not nullable.new:
                warnings.append(f'Column "{target}": adding NOT NULL fails if existing rows hold NULL')
        if change.indexes_modified:
            warnings.append(f'Table "{name}": {len(change.indexes_modified)} index(es) will be rebuilt')
    return warnings


def _wrap(script: _Script, dialect: str, title: str) -> list[str]:
    if not script.lines:
        return []
    lines = script.lines[:-1] if script.lines[-1] == "" else list(script.lines)
    return [
        f"-- Migration: {title}",
        f"-- Dialect: {_DIALECT_NAMES[dialect]}",
        "-- Review before applying: dropped tables and columns lose their data",
        "",
        _BEGIN[dialect],
        "",
        *lines,
        "",
        "COMMIT;",
    ]


def generate_migration(
    old: SchemaModel,
    new: SchemaModel,
    dialect: str = "postgres",
    title: Optional[str] = None,
) -> Migration:
    """
    Generate the SQL that turns the `old` schema into the `new` one.

    Args:
        old: The baseline schema
        new: The schema to migrate to
        dialect: postgres, mysql or sqlite
        title: Name written in the script header (defaults to the new
            schema's name)

    Returns:
        Migration with `up` and `down` scripts and warnings about data that
        may be lost or alterations the dialect cannot express. Both scripts
        are empty when nothing changed.

    Raises:
        ValueError: If the dialect is unknown
    """
    if dialect not in SQL_DIALECTS:
        raise ValueError(f"Unknown SQL dialect: {dialect}. Use {', '.join(SQL_DIALECTS)}")

    forward = compare_schemas(old, new)
    backward = compare_schemas(new, old)
    title = title or new.name
    up = _write_script(forward, dialect)
    down = _write_script(backward, dialect)

    warnings = []
    for warning in _data_warnings(forward) + up.warnings:
        if warning not in warnings:
            warnings.append(warning)

    logger.debug("Generated %s migration: %s", dialect, forward.summary())
    return Migration(
        dialect=dialect,
        up=_wrap(up, dialect, title),
        down=_wrap(down, dialect, f"Rollback of {title}"),
        warnings=warnings,
    )
