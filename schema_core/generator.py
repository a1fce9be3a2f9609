"""
Schema to text generators - SQL DDL (PostgreSQL, MySQL, SQLite) and Prisma.

The output is meant to be re-imported: parsing generated DDL gives back the
same tables, columns, references and indexes by name.
"""

import logging
import re
from typing import Optional

from .datatypes import DataType, SQLType
from .models import CascadeAction, Column, Index, IndexType, SchemaModel, Table

logger = logging.getLogger(__name__)

SQL_DIALECTS = ("postgres", "mysql", "sqlite")

_PLAIN_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Names that must be quoted to be read back as identifiers
RESERVED_WORDS = frozenset({
    "ALL", "ALTER", "AND", "AS", "ASC", "BETWEEN", "BY", "CASE", "CHECK",
    "COLUMN", "CONSTRAINT", "CREATE", "DEFAULT", "DELETE", "DESC",
    "DISTINCT", "DROP", "ELSE", "END", "EXISTS", "FOREIGN", "FROM", "GRANT",
    "GROUP", "HAVING", "IN", "INDEX", "INSERT", "INTO", "IS", "JOIN", "KEY",
    "LIKE", "LIMIT", "NOT", "NULL", "ON", "OR", "ORDER", "PRIMARY",
    "REFERENCES", "SELECT", "SET", "TABLE", "THEN", "TO", "UNION", "UNIQUE",
    "UPDATE", "USER", "USING", "VALUES", "WHEN", "WHERE", "WITH",
})

_PRISMA_ACTIONS = {
    CascadeAction.CASCADE: "Cascade",
    CascadeAction.SET_NULL: "SetNull",
    CascadeAction.RESTRICT: "Restrict",
    CascadeAction.NO_ACTION: "NoAction",
}


def quote_identifier(name: str, dialect: str = "postgres") -> str:
    """Quote a name only when it would not read back as a plain identifier."""
    if _PLAIN_IDENTIFIER_RE.match(name) and name.upper() not in RESERVED_WORDS:
        return name
    if dialect == "mysql":
        return "`" + name.replace("`", "``") + "`"
    return '"' + name.replace('"', '""') + '"'


def _sql_string(text: str) -> str:
    return "'" + text.replace("'", "''") + "'"


# --- SQL ---

def _column_type(column: Column, dialect: str) -> str:
    kind = column.data_type.kind
    if dialect == "postgres" and column.auto_increment:
        serial = {
            SQLType.SMALLINT: "SMALLSERIAL",
            SQLType.INTEGER: "SERIAL",
            SQLType.BIGINT: "BIGSERIAL",
        }.get(kind)
        if serial:
            return serial
    if kind == SQLType.DOUBLE and dialect == "postgres":
        return "DOUBLE PRECISION"
    if kind == SQLType.ARRAY:
        return "TEXT[]"
    return column.data_type.render()


def _column_definition(column: Column, table: Table, dialect: str, with_keys: bool = True) -> str:
    """
    One column definition line.

    With `with_keys` off the PRIMARY KEY and UNIQUE clauses are left out,
    as MySQL's MODIFY COLUMN needs.
    """
    q = lambda name: quote_identifier(name, dialect)
    single_pk = with_keys and column.primary_key and len(table.primary_key_columns) == 1
    parts = [q(column.name), _column_type(column, dialect)]

    if dialect == "sqlite" and single_pk and column.auto_increment:
        parts.append("PRIMARY KEY AUTOINCREMENT")
        return " ".join(parts)

    if dialect == "mysql" and column.auto_increment:
        parts.append("AUTO_INCREMENT")
    if single_pk:
        parts.append("PRIMARY KEY")
    if not column.nullable and not (with_keys and column.primary_key):
        parts.append("NOT NULL")
    if with_keys and column.unique and not column.primary_key:
        parts.append("UNIQUE")
    if column.default_value is not None and not column.auto_increment:
        parts.append(f"DEFAULT {column.default_value}")
    if dialect == "mysql" and column.comment:
        parts.append(f"COMMENT {_sql_string(column.comment)}")
    return " ".join(parts)


def _reference_clause(column: Column, dialect: str) -> str:
    reference = column.reference
    q = lambda name: quote_identifier(name, dialect)
    clause = f"FOREIGN KEY ({q(column.name)}) REFERENCES {q(reference.target_table)}({q(reference.target_column)})"
    if reference.on_delete:
        clause += f" ON DELETE {reference.on_delete.value}"
    if reference.on_update:
        clause += f" ON UPDATE {reference.on_update.value}"
    return clause


def fk_constraint_name(table_name: str, column_name: str) -> str:
    return f"fk_{table_name}_{column_name}"


def _add_foreign_key(table: Table, column: Column, dialect: str) -> str:
    q = lambda name: quote_identifier(name, dialect)
    return (
        f"ALTER TABLE {q(table.name)} ADD CONSTRAINT {q(fk_constraint_name(table.name, column.name))} "
        f"{_reference_clause(column, dialect)};"
    )


def _create_index(index: Index, table: Table, dialect: str) -> str:
    q = lambda name: quote_identifier(name, dialect)
    # Expression entries are written back verbatim
    columns = ", ".join(
        q(c) if table.find_column(c) is not None else c
        for c in index.columns
    )
    unique = "UNIQUE " if index.unique else ""
    statement = f"CREATE {unique}INDEX {q(index.name)} ON {q(table.name)}"
    if dialect == "postgres" and index.type != IndexType.BTREE:
        statement += f" USING {index.type.value}"
    statement += f" ({columns})"
    if dialect == "mysql" and index.type == IndexType.HASH:
        statement += " USING HASH"
    if dialect == "mysql" and index.comment:
        statement += f" COMMENT {_sql_string(index.comment)}"
    if index.where and dialect != "mysql":
        statement += f" WHERE {index.where}"
    return statement + ";"


def _create_table(table: Table, dialect: str, inline_references: Optional[bool] = None) -> list[str]:
    """
    CREATE TABLE plus its indexes and comments.

    Foreign keys are inlined as named constraints unless `inline_references`
    is off (the MySQL default), in which case the caller adds them later.
    """
    q = lambda name: quote_identifier(name, dialect)
    if inline_references is None:
        inline_references = dialect != "mysql"
    lines = []
    if table.comment and dialect != "postgres":
        lines.extend(f"-- {line}" for line in table.comment.splitlines())

    definitions = [f"  {_column_definition(c, table, dialect)}" for c in table.columns]
    primary_keys = table.primary_key_columns
    if len(primary_keys) > 1:
        definitions.append(f"  PRIMARY KEY ({', '.join(q(c.name) for c in primary_keys)})")
    if inline_references:
        for column in table.columns:
            if column.reference is not None:
                definitions.append(
                    f"  CONSTRAINT {q(fk_constraint_name(table.name, column.name))} "
                    f"{_reference_clause(column, dialect)}"
                )

    lines.append(f"CREATE TABLE {q(table.name)} (")
    lines.append(",\n".join(definitions))
    if dialect == "mysql" and table.comment:
        lines.append(f") COMMENT={_sql_string(table.comment)};")
    else:
        lines.append(");")

    for index in table.indexes:
        lines.append(_create_index(index, table, dialect))

    if dialect == "postgres":
        if table.comment:
            lines.append(f"COMMENT ON TABLE {q(table.name)} IS {_sql_string(table.comment)};")
        for column in table.columns:
            if column.comment:
                lines.append(
                    f"COMMENT ON COLUMN {q(table.name)}.{q(column.name)} IS {_sql_string(column.comment)};"
                )
        for index in table.indexes:
            if index.comment:
                lines.append(f"COMMENT ON INDEX {q(index.name)} IS {_sql_string(index.comment)};")

    return lines


def generate_sql(schema: SchemaModel, dialect: str = "postgres") -> str:
    """
    Generate CREATE TABLE / CREATE INDEX statements for a schema.

    Args:
        schema: The schema to export
        dialect: postgres, mysql or sqlite

    Raises:
        ValueError: If the dialect is unknown
    """
    if dialect not in SQL_DIALECTS:
        raise ValueError(f"Unknown SQL dialect: {dialect}. Use {', '.join(SQL_DIALECTS)}")
    if not schema.tables:
        return "-- No tables defined. Add tables to generate SQL."

    statements = []
    if schema.name:
        statements.append(f"-- Schema: {schema.name}")
        if schema.description:
            statements.append(f"-- {schema.description}")
        statements.append("")

    for table in schema.tables:
        statements.extend(_create_table(table, dialect))
        statements.append("")

    # MySQL: foreign keys after every table exists
    if dialect == "mysql":
        for table in schema.tables:
            for column in table.columns:
                if column.reference is not None:
                    statements.append(_add_foreign_key(table, column, dialect))

    logger.debug("Generated %s DDL for %d tables", dialect, len(schema.tables))
    return "\n".join(statements).rstrip() + "\n"


# --- Prisma ---

def to_pascal_case(name: str) -> str:
    """user_accounts -> UserAccounts (names without '_' keep their inner case)."""
    words = [w for w in re.split(r"[^A-Za-z0-9]+", name) if w]
    if not words:
        return "Model"
    if len(words) == 1:
        result = words[0][0].upper() + words[0][1:]
    else:
        result = "".join(w[0].upper() + w[1:].lower() for w in words)
    return result if result[0].isalpha() else f"M{result}"


def to_camel_case(name: str) -> str:
    """created_at -> createdAt (names without '_' keep their inner case)."""
    words = [w for w in re.split(r"[^A-Za-z0-9]+", name) if w]
    if not words:
        return "field"
    if len(words) == 1:
        result = words[0][0].lower() + words[0][1:]
    else:
        result = words[0].lower() + "".join(w[0].upper() + w[1:].lower() for w in words[1:])
    return result if result[0].isalpha() else f"f{result}"


def _prisma_type(data_type: DataType) -> tuple[str, Optional[str]]:
    """(scalar type, native @db attribute or None)."""
    kind = data_type.kind
    if kind == SQLType.INTEGER:
        return "Int", None
    if kind == SQLType.SMALLINT:
        return "Int", "@db.SmallInt"
    if kind == SQLType.BIGINT:
        return "BigInt", None
    if kind == SQLType.VARCHAR:
        return "String", None if data_type.length in (None, 255) else f"@db.VarChar({data_type.length})"
    if kind == SQLType.CHAR:
        return "String", f"@db.Char({data_type.length or 1})"
    if kind == SQLType.TEXT:
        return "String", "@db.Text"
    if kind == SQLType.UUID:
        return "String", "@db.Uuid"
    if kind == SQLType.INET:
        return "String", "@db.Inet"
    if kind == SQLType.BOOLEAN:
        return "Boolean", None
    if kind == SQLType.DATE:
        return "DateTime", "@db.Date"
    if kind == SQLType.TIME:
        return "DateTime", "@db.Time"
    if kind == SQLType.TIMESTAMP:
        return "DateTime", None
    if kind == SQLType.TIMESTAMPTZ:
        return "DateTime", "@db.Timestamptz"
    if kind == SQLType.DECIMAL:
        if (data_type.precision, data_type.scale) in ((None, None), (10, 2)):
            return "Decimal", None
        return "Decimal", f"@db.Decimal({data_type.precision}, {data_type.scale or 0})"
    if kind == SQLType.FLOAT:
        return "Float", None
    if kind == SQLType.DOUBLE:
        return "Float", "@db.DoublePrecision"
    if kind == SQLType.REAL:
        return "Float", "@db.Real"
    if kind == SQLType.JSONB:
        return "Json", None
    if kind == SQLType.JSON:
        return "Json", "@db.Json"
    if kind in (SQLType.BYTEA, SQLType.BLOB):
        return "Bytes", None
    if kind == SQLType.ARRAY:
        return "String[]", None
    return f'Unsupported("{kind.value.lower()}")', None


def _prisma_default(value: str) -> str:
    """Translate a raw SQL default into a Prisma @default argument."""
    text = value.strip()
    upper = text.upper()
    if upper in ("CURRENT_TIMESTAMP", "NOW()", "CURRENT_TIMESTAMP()", "LOCALTIMESTAMP"):
        return "now()"
    if upper in ("GEN_RANDOM_UUID()", "UUID_GENERATE_V4()", "UUID()"):
        return "uuid()"
    if upper in ("TRUE", "FALSE"):
        return text.lower()
    if re.match(r"^-?\d+(\.\d+)?$", text):
        return text
    match = re.match(r"^'((?:[^']|'')*)'$", text)
    if match:
        inner = match.group(1).replace("''", "'")
        return '"' + inner.replace("\\", "\\\\").replace('"', '\\"') + '"'
    return 'dbgenerated("' + text.replace("\\", "\\\\").replace('"', '\\"') + '")'


def _unique_name(base: str, taken: set[str]) -> str:
    name = base
    counter = 2
    while name in taken:
        name = f"{base}{counter}"
        counter += 1
    taken.add(name)
    return name


def generate_prisma(schema: SchemaModel, provider: str = "postgresql") -> str:
    """
    Generate a schema.prisma document.

    Table and column names that do not survive the PascalCase / camelCase
    conversion are kept with @@map / @map. Every resolvable foreign key
    gets a relation field on both models.
    """
    if not schema.tables:
        return "// No tables defined"

    lookup = {t.name.lower(): t for t in schema.tables}
    model_names = {}
    taken_models: set[str] = set()
    for table in schema.tables:
        model_names[table.id] = _unique_name(to_pascal_case(table.name), taken_models)

    field_names: dict[str, dict[str, str]] = {}     # table_id -> column_id -> field
    taken_fields: dict[str, set[str]] = {}
    for table in schema.tables:
        taken = set()
        field_names[table.id] = {c.id: _unique_name(to_camel_case(c.name), taken) for c in table.columns}
        taken_fields[table.id] = taken

    # Relation fields: (line, on which model)
    relation_lines: dict[str, list[str]] = {t.id: [] for t in schema.tables}
    pair_counts: dict[tuple[str, str], int] = {}
    for table in schema.tables:
        for column in table.columns:
            if column.reference is None:
                continue
            target = lookup.get(column.reference.target_table.lower())
            if target is not None:
                key = (table.id, target.id)
                pair_counts[key] = pair_counts.get(key, 0) + 1

    for table in schema.tables:
        for column in table.columns:
            reference = column.reference
            if reference is None:
                continue
            target = lookup.get(reference.target_table.lower())
            target_column = target.find_column(reference.target_column) if target is not None else None
            if target_column is None:
                relation_lines[table.id].append(
                    f"// {field_names[table.id][column.id]} references missing "
                    f"{reference.target_table}.{reference.target_column}"
                )
                continue

            source_model = model_names[table.id]
            target_model = model_names[target.id]
            fk_field = field_names[table.id][column.id]
            base = re.sub(r"_?[Ii]d$", "", fk_field) or to_camel_case(target.name)
            forward = _unique_name(base if base != fk_field else f"{base}Rel", taken_fields[table.id])

            named = pair_counts[(table.id, target.id)] > 1 or table.id == target.id
            relation_name = f'"{source_model}_{fk_field}", ' if named else ""

            arguments = (
                f"{relation_name}fields: [{fk_field}], "
                f"references: [{field_names[target.id][target_column.id]}]"
            )
            if reference.on_delete:
                arguments += f", onDelete: {_PRISMA_ACTIONS[reference.on_delete]}"
            if reference.on_update:
                arguments += f", onUpdate: {_PRISMA_ACTIONS[reference.on_update]}"
            optional = "?" if column.nullable else ""
            relation_lines[table.id].append(f"{forward} {target_model}{optional} @relation({arguments})")

            # One-to-one when the FK column is unique
            back_base = to_camel_case(source_model)
            if column.unique:
                back_type = f"{source_model}?"
            else:
                back_base = back_base if back_base.endswith("s") else back_base + "s"
                back_type = f"{source_model}[]"
            back = _unique_name(back_base, taken_fields[target.id])
            back_relation = f' @relation("{source_model}_{fk_field}")' if named else ""
            relation_lines[target.id].append(f"{back} {back_type}{back_relation}")

    lines = [
        "generator client {",
        '  provider = "prisma-client-js"',
        "}",
        "",
        "datasource db {",
        f'  provider = "{provider}"',
        '  url      = env("DATABASE_URL")',
        "}",
        "",
    ]

    for table in schema.tables:
        if table.comment:
            lines.extend(f"/// {line}" for line in table.comment.splitlines())
        lines.append(f"model {model_names[table.id]} {{")
        fields = field_names[table.id]
        primary_keys = table.primary_key_columns

        for column in table.columns:
            if column.comment:
                lines.extend(f"  /// {line}" for line in column.comment.splitlines())
            scalar, native = _prisma_type(column.data_type)
            if column.nullable and not column.primary_key and not scalar.endswith("[]"):
                scalar += "?"
            attributes = []
            if column.primary_key and len(primary_keys) == 1:
                attributes.append("@id")
            if column.unique and not column.primary_key:
                attributes.append("@unique")
            if column.auto_increment:
                attributes.append("@default(autoincrement())")
            elif column.default_value is not None:
                attributes.append(f"@default({_prisma_default(column.default_value)})")
            if fields[column.id] != column.name:
                attributes.append(f'@map("{column.name}")')
            if native:
                attributes.append(native)
            line = f"  {fields[column.id]} {scalar}"
            if attributes:
                line += " " + " ".join(attributes)
            lines.append(line)

        for relation in relation_lines[table.id]:
            lines.append(f"  {relation}")

        block = []
        if len(primary_keys) > 1:
            block.append(f"@@id([{', '.join(fields[c.id] for c in primary_keys)}])")
        for index in table.indexes:
            columns = [table.find_column(name) for name in index.columns]
            if any(c is None for c in columns):
                lines.append(f"  // index {index.name} on an expression is not representable")
                continue
            field_list = ", ".join(fields[c.id] for c in columns)
            if index.unique:
                block.append(f'@@unique([{field_list}], map: "{index.name}")')
            elif index.type != IndexType.BTREE:
                block.append(f'@@index([{field_list}], map: "{index.name}", type: {index.type.value.title()})')
            else:
                block.append(f'@@index([{field_list}], map: "{index.name}")')
        if model_names[table.id] != table.name:
            block.append(f'@@map("{table.name}")')
        if block:
            lines.append("")
            lines.extend(f"  {attribute}" for attribute in block)

        lines.append("}")
        lines.append("")

    logger.debug("Generated Prisma schema for %d models", len(schema.tables))
    return "\n".join(lines).rstrip() + "\n"
