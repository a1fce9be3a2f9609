"""
Prisma schema parser - `schema.prisma` text into a SchemaModel.

Each `model` block becomes a table and each scalar field a column. Relation
fields (typed with another model) are virtual: they produce no column, but
their `@relation(fields: [...], references: [...])` sets the reference on
the scalar FK fields. `enum` blocks are collected so enum-typed fields can
be recognized; `generator`, `datasource`, `type` and `view` blocks are
ignored.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from .datatypes import DataType, SQLType, apply_size_defaults, resolve_type
from .errors import (
    EmptySchemaError,
    InputTooLargeError,
    SchemaSyntaxError,
    SchemaWarning,
    UnsupportedTypeWarning,
)
from .models import (
    CascadeAction,
    Column,
    ForeignKeyReference,
    Index,
    IndexType,
    ParseResult,
    SchemaModel,
    Table,
    normalize_cascade_action,
)
from .sql_parser import MAX_INPUT_LENGTH

logger = logging.getLogger(__name__)

_BLOCK_RE = re.compile(r"^[ \t]*(model|enum|type|view|generator|datasource)\s+(\w+)\s*\{", re.MULTILINE)
_FIELD_RE = re.compile(r"^(\w+)\s+(Unsupported\(\s*\"[^\"]*\"\s*\)|\w+(?:\.\w+)?)(\[\])?(\?)?\s*(.*)$")
_ATTRIBUTE_NAME_RE = re.compile(r"@@?[\w.]+")

# Prisma scalar -> canonical type
PRISMA_SCALARS: dict[str, DataType] = {
    "Int": DataType(kind=SQLType.INTEGER),
    "BigInt": DataType(kind=SQLType.BIGINT),
    "String": DataType(kind=SQLType.VARCHAR, length=255),
    "Boolean": DataType(kind=SQLType.BOOLEAN),
    "DateTime": DataType(kind=SQLType.TIMESTAMP),
    "Float": DataType(kind=SQLType.FLOAT),
    "Decimal": DataType(kind=SQLType.DECIMAL, precision=10, scale=2),
    "Json": DataType(kind=SQLType.JSONB),
    "Bytes": DataType(kind=SQLType.BYTEA),
}

# Native type attributes (@db.X) -> canonical kind
NATIVE_TYPES: dict[str, SQLType] = {
    "VARCHAR": SQLType.VARCHAR,
    "CHAR": SQLType.CHAR,
    "TEXT": SQLType.TEXT,
    "CITEXT": SQLType.TEXT,
    "UUID": SQLType.UUID,
    "DATE": SQLType.DATE,
    "TIME": SQLType.TIME,
    "TIMETZ": SQLType.TIME,
    "TIMESTAMP": SQLType.TIMESTAMP,
    "TIMESTAMPTZ": SQLType.TIMESTAMPTZ,
    "DATETIME": SQLType.TIMESTAMP,
    "DECIMAL": SQLType.DECIMAL,
    "MONEY": SQLType.DECIMAL,
    "SMALLINT": SQLType.SMALLINT,
    "TINYINT": SQLType.SMALLINT,
    "INTEGER": SQLType.INTEGER,
    "INT": SQLType.INTEGER,
    "BIGINT": SQLType.BIGINT,
    "DOUBLEPRECISION": SQLType.DOUBLE,
    "DOUBLE": SQLType.DOUBLE,
    "REAL": SQLType.REAL,
    "FLOAT": SQLType.FLOAT,
    "JSON": SQLType.JSON,
    "JSONB": SQLType.JSONB,
    "INET": SQLType.INET,
    "BYTEA": SQLType.BYTEA,
    "BLOB": SQLType.BLOB,
    "BOOLEAN": SQLType.BOOLEAN,
    "BIT": SQLType.BOOLEAN,
}


@dataclass
class _Block:
    kind: str
    name: str
    body: str
    doc: Optional[str]


@dataclass
class _Relation:
    """A @relation with fields/references, resolved once every model is known."""
    table: Table
    model: str
    fields: list[str]
    target_model: str
    references: list[str]
    on_delete: Optional[CascadeAction]
    on_update: Optional[CascadeAction]


@dataclass
class _Model:
    table: Table
    field_columns: dict[str, str] = field(default_factory=dict)  # field name -> column name


def _strip_comment(line: str) -> tuple[str, Optional[str]]:
    """Split a line into code and its `///` doc text; drop `//` comments."""
    in_string = False
    i = 0
    while i < len(line):
        char = line[i]
        if char == "\\" and in_string:
            i += 2
            continue
        if char == '"':
            in_string = not in_string
        elif not in_string and line.startswith("//", i):
            comment = line[i:]
            doc = comment[3:].strip() if comment.startswith("///") else None
            return line[:i].rstrip(), doc
        i += 1
    return line.rstrip(), None


def _closing_brace(text: str, start: int) -> int:
    """Index of the `}` closing a block body, skipping strings and `//` comments; -1 if none."""
    in_string = False
    i = start
    while i < len(text):
        char = text[i]
        if in_string:
            if char == "\\":
                i += 2
                continue
            if char == '"':
                in_string = False
            elif char == "\n":
                in_string = False  # Strings never span lines
        elif char == '"':
            in_string = True
        elif text.startswith("//", i):
            newline = text.find("\n", i)
            if newline == -1:
                return -1
            i = newline
            continue
        elif char == "}":
            return i
        i += 1
    return -1


def _split_args(text: str) -> list[str]:
    """Split on top-level commas, respecting (), [] and strings."""
    parts = []
    depth = 0
    in_string = False
    current = []
    for char in text:
        if char == '"':
            in_string = not in_string
        elif not in_string:
            if char in "([":
                depth += 1
            elif char in ")]":
                depth -= 1
            elif char == "," and depth == 0:
                parts.append("".join(current).strip())
                current = []
                continue
        current.append(char)
    tail = "".join(current).strip()
    if tail:
        parts.append(tail)
    return parts


def _parse_args(text: Optional[str]) -> tuple[list[str], dict[str, str]]:
    """Positional and named (`key: value`) attribute arguments."""
    positional: list[str] = []
    named: dict[str, str] = {}
    if not text:
        return positional, named
    for part in _split_args(text):
        match = re.match(r"^(\w+)\s*:\s*(.*)$", part, re.DOTALL)
        if match and not part.startswith('"'):
            named[match.group(1)] = match.group(2).strip()
        else:
            positional.append(part)
    return positional, named


def _list_values(text: str) -> list[str]:
    """`[a, b(sort: Desc)]` -> ['a', 'b']."""
    text = text.strip()
    if not (text.startswith("[") and text.endswith("]")):
        raise SchemaSyntaxError("Expected a field list in brackets", text)
    names = []
    for item in _split_args(text[1:-1]):
        match = re.match(r"^(\w+)", item)
        if match:
            names.append(match.group(1))
    return names


def _string_value(text: str) -> str:
    text = text.strip()
    if len(text) >= 2 and text[0] == '"' and text[-1] == '"':
        return text[1:-1].replace('\\"', '"')
    return text


def _attributes(text: str, fragment: str) -> list[tuple[str, Optional[str]]]:
    """Read `@id @default(now()) @db.VarChar(50)` into (name, args) pairs."""
    result = []
    i = 0
    while i < len(text):
        if text[i].isspace():
            i += 1
            continue
        match = _ATTRIBUTE_NAME_RE.match(text, i)
        if not match:
            raise SchemaSyntaxError("Unexpected text in field attributes", fragment)
        name = match.group(0)
        i = match.end()
        args = None
        if i < len(text) and text[i] == "(":
            depth = 0
            in_string = False
            start = i
            while i < len(text):
                char = text[i]
                if char == '"' and text[i - 1] != "\\":
                    in_string = not in_string
                elif not in_string:
                    if char == "(":
                        depth += 1
                    elif char == ")":
                        depth -= 1
                        if depth == 0:
                            break
                i += 1
            if depth != 0:
                raise SchemaSyntaxError("Unbalanced parentheses in attribute", fragment)
            args = text[start + 1:i]
            i += 1
        result.append((name, args))
    return result


class PrismaParser:
    """Single-use parser for one schema.prisma text. Use `parse_prisma()`."""

    def __init__(self):
        self.warnings: list[SchemaWarning] = []
        self.models: dict[str, _Model] = {}
        self.enums: set[str] = set()
        self._relations: list[_Relation] = []

    def _warn(self, message: str, table: Optional[str] = None, column: Optional[str] = None):
        self.warnings.append(SchemaWarning(message, table=table, column=column))

    def parse(self, text: str) -> ParseResult:
        blocks = self._blocks(text)
        model_blocks = [b for b in blocks if b.kind == "model"]
        if not model_blocks:
            raise EmptySchemaError("No Prisma models found. Please check your schema syntax.")

        self.enums = {b.name for b in blocks if b.kind == "enum"}
        model_names = {b.name for b in model_blocks}

        seen: set[str] = set()
        for block in model_blocks:
            if block.name.lower() in seen:
                raise SchemaSyntaxError(f"Duplicate model name \"{block.name}\"", f"model {block.name}")
            seen.add(block.name.lower())

        tables = []
        table_names: set[str] = set()
        for block in model_blocks:
            model = self._model(block, model_names)
            if model is None:
                continue
            key = model.table.name.lower()
            if key in table_names:
                raise SchemaSyntaxError(f"Duplicate table name \"{model.table.name}\"", f"model {block.name}")
            table_names.add(key)
            self.models[block.name] = model
            tables.append(model.table)

        if not tables:
            raise EmptySchemaError("Every Prisma model in the input is ignored (@@ignore)")

        for relation in self._relations:
            self._resolve_relation(relation)

        for warning in self.warnings:
            logger.warning(warning.message)

        count = len(tables)
        description = f"Imported {count} model{'s' if count != 1 else ''} from Prisma"
        if self.warnings:
            noun = "warning" if len(self.warnings) == 1 else "warnings"
            description += f" ({len(self.warnings)} {noun})"
        schema = SchemaModel(name="Imported Prisma Schema", description=description, tables=tables)
        return ParseResult(schema=schema, warnings=self.warnings, format="prisma")

    def _blocks(self, text: str) -> list[_Block]:
        blocks = []
        consumed = 0
        for match in _BLOCK_RE.finditer(text):
            if match.start() < consumed:
                continue  # Header-like text inside the previous body
            close = _closing_brace(text, match.end())
            if close == -1:
                raise SchemaSyntaxError(f"Unclosed {match.group(1)} block", match.group(0))
            consumed = close + 1
            # Doc comments directly above the block header
            before = text[:match.start()].rstrip("\n").split("\n")
            doc_lines = []
            for line in reversed(before):
                stripped = line.strip()
                if not stripped.startswith("///"):
                    break
                doc_lines.insert(0, stripped[3:].strip())
            blocks.append(_Block(
                kind=match.group(1),
                name=match.group(2),
                body=text[match.end():close],
                doc=" ".join(doc_lines) or None,
            ))
        return blocks

    def _model(self, block: _Block, model_names: set[str]) -> Optional[_Model]:
        table = Table(name=block.name, comment=block.doc)
        model = _Model(table=table)
        block_attributes: list[tuple[str, Optional[str], str]] = []
        pending_doc: list[str] = []

        for raw_line in block.body.split("\n"):
            line, doc = _strip_comment(raw_line.strip())
            if not line:
                if doc is not None:
                    pending_doc.append(doc)
                continue
            if line.startswith("@@"):
                for name, args in _attributes(line, line):
                    block_attributes.append((name, args, line))
                pending_doc = []
                continue

            column = self._field(block.name, table, line, model_names)
            comment_parts = pending_doc + ([doc] if doc else [])
            pending_doc = []
            if column is None:
                continue
            field_name, column = column
            if comment_parts:
                column.comment = " ".join(comment_parts)
            model.field_columns[field_name] = column.name
            table.columns.append(column)

        for name, args, line in block_attributes:
            if name == "@@ignore":
                self._warn(f"Model \"{block.name}\" is marked @@ignore - skipped", table=block.name)
                return None
            if name == "@@map":
                positional, named = _parse_args(args)
                value = named.get("name") or (positional[0] if positional else None)
                if value:
                    table.name = _string_value(value)

        if not table.columns:
            raise SchemaSyntaxError(
                f"Model \"{block.name}\" has no valid fields. Each model must have at least one field",
                f"model {block.name}",
            )

        seen: set[str] = set()
        for column in table.columns:
            if column.name.lower() in seen:
                raise SchemaSyntaxError(
                    f"Model \"{block.name}\" has duplicate field \"{column.name}\"", f"model {block.name}"
                )
            seen.add(column.name.lower())

        for name, args, line in block_attributes:
            self._block_attribute(model, block.name, name, args, line)

        auto_columns = [c.name for c in table.columns if c.auto_increment]
        if len(auto_columns) > 1:
            raise SchemaSyntaxError(
                f"Model \"{block.name}\" has {len(auto_columns)} @default(autoincrement()) fields "
                f"({', '.join(auto_columns)}). Only one is allowed per model",
                f"model {block.name}",
            )
        if not table.primary_key_columns:
            logger.debug("Model %s has no @id field", block.name)
        return model

    def _field(self, model_name: str, table: Table, line: str, model_names: set[str]):
        match = _FIELD_RE.match(line)
        if not match:
            raise SchemaSyntaxError(f"Invalid field definition in model \"{model_name}\"", line)
        field_name, type_name, is_list, optional, rest = match.groups()
        attributes = _attributes(rest, line)
        names = {name for name, _ in attributes}

        if type_name in model_names:
            for name, args in attributes:
                if name == "@relation":
                    self._relation(table, model_name, type_name, args, line)
            return None
        if "@ignore" in names:
            return None

        data_type = self._field_type(type_name, table.name, field_name)
        if is_list:
            data_type = DataType(kind=SQLType.ARRAY)

        column = Column(name=field_name, data_type=data_type, nullable=optional is not None)

        for name, args in attributes:
            if name == "@id":
                column.primary_key = True
                column.nullable = False
            elif name == "@unique":
                column.unique = True
            elif name == "@map":
                positional, named = _parse_args(args)
                value = named.get("name") or (positional[0] if positional else None)
                if value:
                    column.name = _string_value(value)
            elif name == "@default":
                self._default(column, args, type_name)
            elif name.startswith("@db."):
                column.data_type = self._native_type(name[4:], args, table.name, field_name) \
                    if not is_list else column.data_type
            elif name in ("@updatedAt", "@relation"):
                pass
            else:
                self._warn(f"Ignored attribute {name} on \"{model_name}.{field_name}\"",
                           table=table.name, column=field_name)

        column.data_type, warnings = apply_size_defaults(column.data_type, table.name, column.name)
        self.warnings.extend(warnings)
        if column.auto_increment:
            column.nullable = False
        return field_name, column

    def _field_type(self, type_name: str, table: str, column: str) -> DataType:
        if type_name in PRISMA_SCALARS:
            return PRISMA_SCALARS[type_name].model_copy()
        if type_name in self.enums:
            return DataType(kind=SQLType.VARCHAR, length=255)
        unsupported = re.match(r'^Unsupported\(\s*"([^"]*)"\s*\)$', type_name)
        if unsupported:
            data_type, warning = resolve_type(unsupported.group(1), table=table, column=column)
            if warning is None:
                return data_type
            self.warnings.append(warning)
            return data_type
        data_type = DataType(kind=SQLType.VARCHAR, length=255)
        self.warnings.append(UnsupportedTypeWarning(type_name, data_type.render(), table=table, column=column))
        return data_type

    def _native_type(self, name: str, args: Optional[str], table: str, column: str) -> DataType:
        params = [int(p) for p in re.findall(r"\d+", args or "")]
        kind = NATIVE_TYPES.get(name.upper())
        if kind is None:
            data_type, warning = resolve_type(name, params, table=table, column=column)
            if warning is not None:
                self.warnings.append(warning)
            return data_type
        if kind in (SQLType.VARCHAR, SQLType.CHAR):
            return DataType(kind=kind, length=params[0] if params else None)
        if kind == SQLType.DECIMAL:
            return DataType(
                kind=kind,
                precision=params[0] if params else None,
                scale=params[1] if len(params) > 1 else None,
            )
        return DataType(kind=kind)

    def _default(self, column: Column, args: Optional[str], type_name: str):
        value = (args or "").strip()
        compact = value.replace(" ", "")
        if compact == "autoincrement()":
            column.auto_increment = True
        elif compact == "uuid()":
            if type_name == "String":
                column.data_type = DataType(kind=SQLType.UUID)
            column.default_value = "gen_random_uuid()"
        elif compact in ("cuid()", "nanoid()", "ulid()"):
            # Generated by the Prisma client, nothing to store in the database
            column.default_value = None
        elif compact == "now()":
            column.default_value = "CURRENT_TIMESTAMP"
        elif compact.startswith("dbgenerated("):
            inner = value[value.index("(") + 1:value.rindex(")")].strip()
            column.default_value = _string_value(inner) or None
        elif value.startswith('"'):
            column.default_value = "'" + _string_value(value).replace("'", "''") + "'"
        elif re.match(r"^[A-Za-z_]\w*$", value) and value not in ("true", "false"):
            # Enum member
            column.default_value = f"'{value}'"
        else:
            column.default_value = value or None

    def _relation(self, table: Table, model_name: str, target_model: str, args: Optional[str], line: str):
        positional, named = _parse_args(args)
        if "fields" not in named and "references" not in named:
            return
        if "fields" not in named or "references" not in named:
            raise SchemaSyntaxError("@relation needs both fields and references", line)
        fields = _list_values(named["fields"])
        references = _list_values(named["references"])
        if len(fields) != len(references):
            raise SchemaSyntaxError(
                f"@relation has {len(fields)} fields but {len(references)} references", line
            )
        self._relations.append(_Relation(
            table=table,
            model=model_name,
            fields=fields,
            target_model=target_model,
            references=references,
            on_delete=self._action(named.get("onDelete"), line),
            on_update=self._action(named.get("onUpdate"), line),
        ))

    def _action(self, value: Optional[str], line: str) -> Optional[CascadeAction]:
        if value is None:
            return None
        if value == "SetDefault":
            self._warn(f"SetDefault referential action is not supported and was dropped: {line}")
            return None
        action = normalize_cascade_action(value)
        if action is None:
            raise SchemaSyntaxError(f"Unknown referential action '{value}'", line)
        return action

    def _resolve_relation(self, relation: _Relation):
        source = self.models[relation.model]
        target = self.models.get(relation.target_model)
        if target is None:
            self._warn(
                f"Relation {relation.model} -> {relation.target_model} points at an ignored model",
                table=relation.table.name,
            )
            return
        for field_name, reference_name in zip(relation.fields, relation.references):
            column_name = source.field_columns.get(field_name)
            if column_name is None:
                raise SchemaSyntaxError(
                    f"@relation field \"{field_name}\" not found in model \"{relation.model}\"",
                    f"fields: [{', '.join(relation.fields)}]",
                )
            column = relation.table.find_column(column_name)
            column.reference = ForeignKeyReference(
                target_table=target.table.name,
                target_column=target.field_columns.get(reference_name, reference_name),
                on_delete=relation.on_delete,
                on_update=relation.on_update,
            )

    def _block_attribute(self, model: _Model, model_name: str, name: str, args: Optional[str], line: str):
        table = model.table
        positional, named = _parse_args(args)
        if name in ("@@map", "@@ignore", "@@schema", "@@fulltext"):
            return

        fields_text = named.get("fields") or (positional[0] if positional else None)
        if fields_text is None:
            raise SchemaSyntaxError(f"{name} needs a field list", line)
        columns = []
        for field_name in _list_values(fields_text):
            column_name = model.field_columns.get(field_name)
            if column_name is None:
                raise SchemaSyntaxError(f"Field \"{field_name}\" not found in model \"{model_name}\"", line)
            columns.append(table.find_column(column_name))

        index_name = named.get("map") or named.get("name")
        index_name = _string_value(index_name) if index_name else None
        column_names = [c.name for c in columns]

        if name == "@@id":
            for column in columns:
                column.primary_key = True
                column.nullable = False
                if len(columns) > 1:
                    column.auto_increment = False
        elif name == "@@unique":
            if len(columns) == 1 and index_name is None:
                columns[0].unique = True
            else:
                table.indexes.append(Index(
                    name=index_name or f"{table.name}_{'_'.join(column_names)}_key",
                    columns=column_names,
                    unique=True,
                ))
        elif name == "@@index":
            index_type = IndexType.BTREE
            if "type" in named:
                try:
                    index_type = IndexType(named["type"].upper())
                except ValueError:
                    self._warn(f"Index type {named['type']} on \"{table.name}\" is not supported - using BTREE",
                               table=table.name)
            table.indexes.append(Index(
                name=index_name or f"{table.name}_{'_'.join(column_names)}_idx",
                columns=column_names,
                type=index_type,
            ))
        else:
            self._warn(f"Ignored block attribute {name} on model \"{model_name}\"", table=table.name)


def parse_prisma(text: str) -> ParseResult:
    """
    Parse a Prisma schema into a SchemaModel.

    Raises:
        InputTooLargeError: If the text exceeds MAX_INPUT_LENGTH
        EmptySchemaError: If no model block is present
        SchemaSyntaxError: If a field or attribute is malformed
    """
    if len(text) > MAX_INPUT_LENGTH:
        raise InputTooLargeError(len(text), MAX_INPUT_LENGTH)
    if not text.strip():
        raise EmptySchemaError("Input is empty. Paste a Prisma schema with model blocks.")
    return PrismaParser().parse(text)
