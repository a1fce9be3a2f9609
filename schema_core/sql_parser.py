"""
SQL DDL parser - CREATE TABLE / CREATE INDEX text into a SchemaModel.

Handles PostgreSQL, MySQL and SQLite flavoured DDL:
- Column types with length / precision / scale, SERIAL and AUTO_INCREMENT
- NOT NULL, UNIQUE, PRIMARY KEY, DEFAULT <expr>, REFERENCES t(c) ON ...
- Table-level PRIMARY KEY / FOREIGN KEY / UNIQUE / INDEX constraints
- CREATE INDEX, ALTER TABLE ... ADD FOREIGN KEY, COMMENT ON

Parsing is all-or-nothing: the whole script is read and either a complete
model comes back or a SchemaParseError is raised. Statement order does not
matter; indexes, ALTERs and comments are applied once every table is known,
and references are never resolved here (see graph.derive_edges).
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

from .datatypes import (
    INTEGER_TYPES,
    MULTIWORD_TYPES,
    SERIAL_TYPES,
    SQLType,
    TYPE_ALIASES,
    apply_size_defaults,
    normalize_type_name,
    resolve_type,
)
from .errors import (
    EmptySchemaError,
    InputTooLargeError,
    SchemaSyntaxError,
    SchemaWarning,
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
)

logger = logging.getLogger(__name__)

MAX_INPUT_LENGTH = 100_000

_TOKEN_RE = re.compile(r"""
    (?P<ws>\s+)
  | (?P<string>[EeNn]?'(?:[^'\\]|\\.|'')*')
  | (?P<dollar>\$(?P<tag>[A-Za-z_]*)\$.*?\$(?P=tag)\$)
  | (?P<ident>"(?:[^"]|"")*"|`(?:[^`]|``)*`|\[[A-Za-z_][^\]]*\])
  | (?P<number>\d+(?:\.\d+)?(?:[eE][-+]?\d+)?)
  | (?P<word>[A-Za-z_][A-Za-z0-9_$]*)
  | (?P<op>::|\|\||<=|>=|<>|!=|\S)
""", re.VERBOSE | re.DOTALL)

_DOLLAR_QUOTE_RE = re.compile(r"\$([A-Za-z_]*)\$")

# Words that end a DEFAULT expression or a cast type name
_COLUMN_KEYWORDS = frozenset({
    "NOT", "NULL", "PRIMARY", "UNIQUE", "DEFAULT", "REFERENCES", "CONSTRAINT",
    "CHECK", "COLLATE", "COMMENT", "AUTO_INCREMENT", "AUTOINCREMENT",
    "GENERATED", "ON", "CHARACTER", "CHARSET", "UNSIGNED", "SIGNED",
    "ZEROFILL", "IDENTITY", "DEFERRABLE", "INITIALLY", "VISIBLE", "INVISIBLE",
})

_INDEX_METHODS = {method.value: method for method in IndexType}

# First words of known type spellings, to tell `KEY name (...)` from a column
_TYPE_WORDS = frozenset(name.split()[0] for name in TYPE_ALIASES) | SERIAL_TYPES


@dataclass
class Token:
    """A lexical token with its span in the statement text."""
    kind: str  # word, ident, string, number, op
    value: str
    start: int
    end: int

    def is_word(self, *words: str) -> bool:
        return self.kind == "word" and self.value.upper() in words

    def is_op(self, op: str) -> bool:
        return self.kind == "op" and self.value == op


def _skip_quoted(text: str, start: int, quote: str) -> int:
    """Return the index just past the closing quote."""
    i = start + 1
    n = len(text)
    while i < n:
        char = text[i]
        if quote == "'" and char == "\\":
            i += 2
            continue
        if char == quote:
            if i + 1 < n and text[i + 1] == quote:
                i += 2
                continue
            return i + 1
        i += 1
    raise SchemaSyntaxError("Unterminated quoted text", text[start:start + 60])


def split_statements(sql: str) -> list[str]:
    """
    Strip comments and split a script on top-level semicolons.

    Quotes, dollar-quoted bodies and parentheses are respected.

    Raises:
        SchemaSyntaxError: On unbalanced parentheses, unterminated quotes
            or an unterminated block comment
    """
    statements: list[str] = []
    buf: list[str] = []
    depth = 0
    i = 0
    n = len(sql)

    def flush():
        statement = "".join(buf).strip()
        if statement:
            statements.append(statement)
        buf.clear()

    while i < n:
        char = sql[i]
        nxt = sql[i + 1] if i + 1 < n else ""

        if char == "-" and nxt == "-":
            end = sql.find("\n", i)
            i = n if end == -1 else end
            buf.append(" ")
            continue
        if char == "/" and nxt == "*":
            end = sql.find("*/", i + 2)
            if end == -1:
                raise SchemaSyntaxError("Unterminated block comment", sql[i:i + 60])
            buf.append(" ")
            i = end + 2
            continue
        if char in ("'", '"', "`"):
            end = _skip_quoted(sql, i, char)
            buf.append(sql[i:end])
            i = end
            continue
        if char == "$":
            match = _DOLLAR_QUOTE_RE.match(sql, i)
            if match:
                close = sql.find(match.group(0), match.end())
                if close == -1:
                    raise SchemaSyntaxError("Unterminated dollar-quoted text", sql[i:i + 60])
                end = close + len(match.group(0))
                buf.append(sql[i:end])
                i = end
                continue

        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth < 0:
                raise SchemaSyntaxError(
                    "Unbalanced parentheses - unexpected ')'", "".join(buf) + ")"
                )
        elif char == ";" and depth == 0:
            flush()
            i += 1
            continue

        buf.append(char)
        i += 1

    if depth != 0:
        raise SchemaSyntaxError(
            f"Unbalanced parentheses - {depth} unclosed '('", "".join(buf)
        )
    flush()
    return statements


def tokenize(statement: str) -> list[Token]:
    """Split one statement into tokens (whitespace dropped)."""
    tokens: list[Token] = []
    for match in _TOKEN_RE.finditer(statement):
        kind = match.lastgroup
        if kind == "tag":
            kind = "dollar"
        if kind == "ws":
            continue
        raw = match.group(0)
        if match.group("dollar") is not None:
            kind = "string"
        if kind == "ident":
            quote = raw[0]
            value = raw[1:-1] if quote == "[" else raw[1:-1].replace(quote * 2, quote)
        else:
            value = raw
        tokens.append(Token(kind=kind, value=value, start=match.start(), end=match.end()))
    return tokens


def unquote_string(raw: str) -> str:
    """Turn a SQL string literal into its text."""
    if raw[:1] in "EeNn" and raw[1:2] == "'":
        raw = raw[1:]
    if raw.startswith("$"):
        tag_end = raw.index("$", 1) + 1
        return raw[tag_end:-tag_end]
    inner = raw[1:-1]
    return inner.replace("''", "'").replace("\\'", "'")


class TokenStream:
    """Cursor over a token list with keyword helpers."""

    def __init__(self, tokens: list[Token], text: str, fragment: Optional[str] = None):
        self.tokens = tokens
        self.text = text
        self.fragment = fragment if fragment is not None else text
        self.pos = 0

    def peek(self, offset: int = 0) -> Optional[Token]:
        index = self.pos + offset
        if index < len(self.tokens):
            return self.tokens[index]
        return None

    @property
    def at_end(self) -> bool:
        return self.pos >= len(self.tokens)

    def next(self, what: str = "more input") -> Token:
        token = self.peek()
        if token is None:
            raise SchemaSyntaxError(f"Unexpected end of statement, expected {what}", self.fragment)
        self.pos += 1
        return token

    def peek_word(self, *words: str) -> bool:
        token = self.peek()
        return token is not None and token.is_word(*words)

    def peek_op(self, op: str) -> bool:
        token = self.peek()
        return token is not None and token.is_op(op)

    def accept(self, *words: str) -> Optional[str]:
        """Consume one keyword out of `words`; return it uppercased."""
        token = self.peek()
        if token is not None and token.is_word(*words):
            self.pos += 1
            return token.value.upper()
        return None

    def accept_seq(self, *words: str) -> bool:
        """Consume an exact keyword sequence, or nothing."""
        for offset, word in enumerate(words):
            token = self.peek(offset)
            if token is None or not token.is_word(word):
                return False
        self.pos += len(words)
        return True

    def accept_op(self, op: str) -> bool:
        if self.peek_op(op):
            self.pos += 1
            return True
        return False

    def expect_word(self, *words: str) -> str:
        found = self.accept(*words)
        if found is None:
            raise SchemaSyntaxError(f"Expected {' or '.join(words)}", self.fragment)
        return found

    def identifier(self, what: str = "identifier") -> str:
        """Read a (possibly schema-qualified) name and return its last part."""
        token = self.next(what)
        if token.kind not in ("word", "ident"):
            raise SchemaSyntaxError(f"Expected {what}", self.fragment)
        name = token.value
        while self.peek_op("."):
            self.pos += 1
            token = self.next(what)
            if token.kind not in ("word", "ident"):
                raise SchemaSyntaxError(f"Expected {what}", self.fragment)
            name = token.value
        return name

    def group(self) -> list[Token]:
        """Consume a parenthesized group and return the tokens inside it."""
        if not self.accept_op("("):
            raise SchemaSyntaxError("Expected '('", self.fragment)
        start = self.pos
        depth = 1
        while not self.at_end:
            token = self.tokens[self.pos]
            self.pos += 1
            if token.is_op("("):
                depth += 1
            elif token.is_op(")"):
                depth -= 1
                if depth == 0:
                    return self.tokens[start:self.pos - 1]
        raise SchemaSyntaxError("Unbalanced parentheses", self.fragment)

    def rest_text(self) -> str:
        """Consume everything left and return it as source text."""
        if self.at_end:
            return ""
        first = self.tokens[self.pos]
        last = self.tokens[-1]
        self.pos = len(self.tokens)
        return self.text[first.start:last.end]

    def span_text(self, tokens: list[Token]) -> str:
        if not tokens:
            return ""
        return self.text[tokens[0].start:tokens[-1].end]


def split_on_commas(tokens: list[Token]) -> list[list[Token]]:
    """Split tokens on top-level commas."""
    parts: list[list[Token]] = []
    current: list[Token] = []
    depth = 0
    for token in tokens:
        if token.is_op("("):
            depth += 1
        elif token.is_op(")"):
            depth -= 1
        elif token.is_op(",") and depth == 0:
            if current:
                parts.append(current)
            current = []
            continue
        current.append(token)
    if current:
        parts.append(current)
    return parts


@dataclass
class _PendingReference:
    """A foreign key whose target columns were left implicit."""
    table: Table
    columns: list[str]
    target_table: str
    on_delete: Optional[CascadeAction]
    on_update: Optional[CascadeAction]


class DDLParser:
    """
    Single-use parser for one SQL script.

    Use `parse_sql()` rather than instantiating this directly.
    """

    def __init__(self):
        self.tables: list[Table] = []
        self._by_name: dict[str, Table] = {}
        self.warnings: list[SchemaWarning] = []
        self._deferred: list[tuple[str, TokenStream, bool]] = []
        self._pending: list[_PendingReference] = []

    # --- Entry point ---

    def parse(self, sql: str) -> ParseResult:
        statements = split_statements(sql)

        for statement in statements:
            tokens = tokenize(statement)
            if not tokens:
                continue
            stream = TokenStream(tokens, statement)
            self._dispatch(stream)

        if not self.tables:
            raise EmptySchemaError(
                "No CREATE TABLE statements found. Paste SQL with CREATE TABLE syntax."
            )

        # Indexes first so that COMMENT ON INDEX finds them whatever the order
        for kind, stream, flag in self._deferred:
            if kind == "index":
                self._create_index(stream, unique=flag)
        for kind, stream, flag in self._deferred:
            if kind == "alter":
                self._alter_table(stream)
            elif kind == "comment":
                self._comment_on(stream)

        self._resolve_pending()

        for warning in self.warnings:
            logger.warning(warning.message)

        count = len(self.tables)
        description = f"Imported {count} table{'s' if count != 1 else ''} from SQL"
        if self.warnings:
            noun = "warning" if len(self.warnings) == 1 else "warnings"
            description += f" ({len(self.warnings)} {noun})"

        schema = SchemaModel(name="Imported Schema", description=description, tables=self.tables)
        logger.debug("Parsed %d tables from %d statements", count, len(statements))
        return ParseResult(schema=schema, warnings=self.warnings, format="sql")

    def _warn(self, message: str, table: Optional[str] = None, column: Optional[str] = None):
        self.warnings.append(SchemaWarning(message, table=table, column=column))

    def _dispatch(self, stream: TokenStream):
        if stream.accept("CREATE"):
            if stream.accept("OR"):
                stream.accept("REPLACE")
            stream.accept("GLOBAL", "LOCAL")
            stream.accept("TEMP", "TEMPORARY")
            stream.accept("UNLOGGED")
            if stream.accept("TABLE"):
                self._create_table(stream)
                return
            unique = stream.accept("UNIQUE") is not None
            stream.accept("FULLTEXT", "SPATIAL")
            if stream.accept("INDEX"):
                self._deferred.append(("index", stream, unique))
                return
        elif stream.accept_seq("ALTER", "TABLE"):
            self._deferred.append(("alter", stream, False))
            return
        elif stream.accept_seq("COMMENT", "ON"):
            self._deferred.append(("comment", stream, False))
            return

        head = " ".join(stream.text.split()[:3])
        self._warn(f"Skipped unsupported statement: {head} ...")

    # --- CREATE TABLE ---

    def _create_table(self, stream: TokenStream):
        statement = stream.text
        stream.accept_seq("IF", "NOT", "EXISTS")
        name = stream.identifier("table name")

        if stream.peek_word("AS", "LIKE"):
            self._warn(f"Skipped CREATE TABLE {name} {stream.peek().value.upper()} ... (no column list)", table=name)
            return
        if not stream.peek_op("("):
            raise SchemaSyntaxError(f"Expected column list after table name \"{name}\"", statement)
        if name.lower() in self._by_name:
            raise SchemaSyntaxError(f"Duplicate table name \"{name}\"", statement)

        body = stream.group()
        table = Table(name=name)
        table.comment = self._table_option_comment(stream)

        constraints: list[TokenStream] = []
        for clause in split_on_commas(body):
            clause_stream = TokenStream(clause, statement, stream.span_text(clause))
            if self._is_table_constraint(clause_stream):
                constraints.append(clause_stream)
            else:
                table.columns.append(self._column(table, clause_stream))

        if not table.columns:
            raise SchemaSyntaxError(
                f"Table \"{name}\" has no valid columns. Each table must have at least one column",
                statement,
            )

        seen: set[str] = set()
        for column in table.columns:
            key = column.name.lower()
            if key in seen:
                raise SchemaSyntaxError(f"Table \"{name}\" has duplicate column \"{column.name}\"", statement)
            seen.add(key)

        for clause_stream in constraints:
            self._table_constraint(table, clause_stream)

        auto_columns = [c.name for c in table.columns if c.auto_increment]
        if len(auto_columns) > 1:
            raise SchemaSyntaxError(
                f"Table \"{name}\" has {len(auto_columns)} AUTO_INCREMENT columns "
                f"({', '.join(auto_columns)}). Only one is allowed per table",
                statement,
            )

        self.tables.append(table)
        self._by_name[name.lower()] = table

    def _table_option_comment(self, stream: TokenStream) -> Optional[str]:
        """MySQL `COMMENT='...'` after the column list."""
        comment = None
        while not stream.at_end:
            if stream.accept("COMMENT"):
                stream.accept_op("=")
                token = stream.peek()
                if token is not None and token.kind == "string":
                    comment = unquote_string(stream.next().value)
                continue
            stream.next()
        return comment

    def _is_table_constraint(self, cs: TokenStream) -> bool:
        first = cs.peek()
        second = cs.peek(1)
        third = cs.peek(2)
        if first is None:
            return False
        if first.is_word("CONSTRAINT"):
            return True
        if first.is_word("EXCLUDE") and second is not None and (second.is_op("(") or second.is_word("USING")):
            return True
        if first.is_word("PRIMARY", "FOREIGN") and second is not None and second.is_word("KEY"):
            return True
        if first.is_word("CHECK") and second is not None and second.is_op("("):
            return True
        if first.is_word("FULLTEXT", "SPATIAL") and second is not None and second.is_word("KEY", "INDEX"):
            return True
        if first.is_word("UNIQUE", "INDEX", "KEY"):
            if second is None:
                return False
            if second.is_op("(") or second.is_word("KEY", "INDEX"):
                return True
            # `KEY idx_name (col)` vs a column called `key`
            if second.kind in ("word", "ident") and third is not None and third.is_op("("):
                return normalize_type_name(second.value) not in _TYPE_WORDS
        return False

    # --- Columns ---

    def _column(self, table: Table, cs: TokenStream) -> Column:
        name = cs.identifier("column name")
        token = cs.peek()
        if token is None or token.kind not in ("word", "ident"):
            raise SchemaSyntaxError(f"Missing data type for column \"{table.name}.{name}\"", cs.fragment)

        type_name, params, is_array = self._data_type(cs)
        data_type, warning = resolve_type(type_name, params, table=table.name, column=name)
        if warning is not None:
            self.warnings.append(warning)
        if is_array:
            data_type.kind = SQLType.ARRAY
            data_type.length = None

        column = Column(name=name, data_type=data_type)
        if normalize_type_name(type_name) in SERIAL_TYPES:
            column.auto_increment = True
            column.nullable = False

        self._column_modifiers(table, column, cs)
        self._finalize_column(table, column)
        return column

    def _data_type(self, cs: TokenStream) -> tuple[str, list[int], bool]:
        words = [cs.next("data type").value]

        # Extend over multi-word spellings, keeping the longest exact match
        candidate = list(words)
        best = 1
        offset = 0
        while True:
            token = cs.peek(offset)
            if token is None or token.kind != "word":
                break
            joined = normalize_type_name(" ".join(candidate + [token.value]))
            if not any(m == joined or m.startswith(joined + " ") for m in MULTIWORD_TYPES):
                break
            candidate.append(token.value)
            offset += 1
            if joined in MULTIWORD_TYPES:
                best = len(candidate)
        cs.pos += best - 1
        type_name = " ".join(candidate[:best])

        params: list[int] = []
        if cs.peek_op("("):
            inner = cs.group()
            values = [t for t in inner if not t.is_op(",")]
            if values and all(t.kind == "number" for t in values):
                if not all(t.value.isdigit() for t in values):
                    raise SchemaSyntaxError("Type size must be a whole number", cs.fragment)
                if any(len(t.value) > 9 for t in values):
                    raise SchemaSyntaxError("Type size is out of range", cs.fragment)
                params = [int(t.value) for t in values]

        if cs.accept_seq("WITH", "TIME", "ZONE"):
            type_name += " WITH TIME ZONE"
        elif cs.accept_seq("WITHOUT", "TIME", "ZONE"):
            type_name += " WITHOUT TIME ZONE"

        is_array = False
        while cs.accept_op("["):
            is_array = True
            while not cs.at_end and not cs.accept_op("]"):
                cs.next()
        if cs.accept("ARRAY"):
            is_array = True
            while cs.accept_op("["):
                while not cs.at_end and not cs.accept_op("]"):
                    cs.next()

        return type_name, params, is_array

    def _column_modifiers(self, table: Table, column: Column, cs: TokenStream):
        while not cs.at_end:
            if cs.accept_seq("NOT", "NULL"):
                column.nullable = False
            elif cs.accept("NULL"):
                column.nullable = True
            elif cs.accept_seq("PRIMARY", "KEY"):
                column.primary_key = True
                column.nullable = False
                cs.accept("ASC", "DESC")
                if cs.accept("AUTOINCREMENT"):
                    column.auto_increment = True
            elif cs.accept("UNIQUE"):
                cs.accept("KEY")
                column.unique = True
            elif cs.accept("DEFAULT"):
                expression = self._expression(cs)
                column.default_value = None if expression.upper() == "NULL" else expression
            elif cs.accept("REFERENCES"):
                target, target_columns, on_delete, on_update = self._references(cs)
                if target_columns:
                    column.reference = ForeignKeyReference(
                        target_table=target,
                        target_column=target_columns[0],
                        on_delete=on_delete,
                        on_update=on_update,
                    )
                else:
                    self._pending.append(_PendingReference(table, [column.name], target, on_delete, on_update))
            elif cs.accept("AUTO_INCREMENT", "AUTOINCREMENT"):
                column.auto_increment = True
            elif cs.accept("IDENTITY"):
                column.auto_increment = True
                if cs.peek_op("("):
                    cs.group()
            elif cs.accept("GENERATED"):
                self._generated(column, cs)
            elif cs.accept("CONSTRAINT"):
                cs.identifier("constraint name")
            elif cs.accept("CHECK"):
                cs.group()
            elif cs.accept("COLLATE"):
                cs.next("collation")
            elif cs.accept_seq("CHARACTER", "SET") or cs.accept("CHARSET"):
                cs.next("character set")
            elif cs.accept("UNSIGNED", "SIGNED", "ZEROFILL", "VISIBLE", "INVISIBLE", "DEFERRABLE"):
                pass
            elif cs.accept_seq("NOT", "DEFERRABLE"):
                pass
            elif cs.accept("INITIALLY"):
                cs.accept("DEFERRED", "IMMEDIATE")
            elif cs.accept("COMMENT"):
                token = cs.next("comment text")
                if token.kind != "string":
                    raise SchemaSyntaxError("COMMENT must be followed by a string", cs.fragment)
                column.comment = unquote_string(token.value)
            elif cs.accept_seq("ON", "UPDATE"):
                # MySQL ON UPDATE CURRENT_TIMESTAMP
                self._expression(cs)
            else:
                token = cs.peek()
                raise SchemaSyntaxError(
                    f"Unexpected '{token.value}' in definition of column \"{table.name}.{column.name}\"",
                    cs.fragment,
                )

    def _generated(self, column: Column, cs: TokenStream):
        if cs.accept("ALWAYS") is None:
            cs.expect_word("BY")
            cs.expect_word("DEFAULT")
            cs.accept_seq("ON", "NULL")
        cs.expect_word("AS")
        if cs.accept("IDENTITY"):
            column.auto_increment = True
            if cs.peek_op("("):
                cs.group()
            return
        # Computed column: GENERATED ALWAYS AS (expr) [STORED | VIRTUAL]
        cs.group()
        cs.accept("STORED", "VIRTUAL")

    def _finalize_column(self, table: Table, column: Column):
        column.data_type, warnings = apply_size_defaults(column.data_type, table.name, column.name)
        self.warnings.extend(warnings)
        if column.auto_increment:
            column.nullable = False
            if column.data_type.kind not in INTEGER_TYPES:
                self._warn(
                    f"Column \"{table.name}.{column.name}\" is AUTO_INCREMENT but type is "
                    f"{column.data_type.kind.value} - should be INTEGER, SMALLINT, or BIGINT",
                    table=table.name, column=column.name,
                )

    def _expression(self, cs: TokenStream) -> str:
        """Consume one DEFAULT / ON UPDATE expression and return its raw text."""
        if cs.at_end:
            raise SchemaSyntaxError("Missing expression after DEFAULT", cs.fragment)
        start = cs.pos
        self._operand(cs)
        while True:
            token = cs.peek()
            if token is not None and token.kind == "op" and token.value in ("+", "-", "*", "/", "%", "||"):
                cs.next()
                self._operand(cs)
            else:
                break
        return cs.span_text(cs.tokens[start:cs.pos])

    def _operand(self, cs: TokenStream):
        while cs.peek_op("-") or cs.peek_op("+"):
            cs.next()
        token = cs.next("expression")
        if token.is_op("("):
            cs.pos -= 1
            cs.group()
        elif token.kind == "word":
            if cs.peek_op("("):
                cs.group()
            elif token.is_word("INTERVAL", "DATE", "TIME", "TIMESTAMP") and cs.peek() and cs.peek().kind == "string":
                cs.next()
        elif token.kind not in ("string", "number", "ident"):
            raise SchemaSyntaxError(f"Invalid expression starting at '{token.value}'", cs.fragment)

        while cs.accept_op("::"):
            cs.next("type name after '::'")
            while cs.peek() is not None and cs.peek().kind == "word" \
                    and cs.peek().value.upper() not in _COLUMN_KEYWORDS:
                cs.next()
            if cs.peek_op("("):
                cs.group()
            while cs.accept_op("["):
                while not cs.at_end and not cs.accept_op("]"):
                    cs.next()

    # --- References and table constraints ---

    def _references(self, cs: TokenStream):
        target = cs.identifier("referenced table")
        target_columns = self._column_list(cs) if cs.peek_op("(") else []
        on_delete: Optional[CascadeAction] = None
        on_update: Optional[CascadeAction] = None
        while not cs.at_end:
            if cs.peek_word("ON") and cs.peek(1) is not None and cs.peek(1).is_word("DELETE"):
                cs.pos += 2
                on_delete = self._action(cs)
            elif cs.peek_word("ON") and cs.peek(1) is not None and cs.peek(1).is_word("UPDATE"):
                cs.pos += 2
                on_update = self._action(cs)
            elif cs.accept("MATCH"):
                cs.accept("FULL", "PARTIAL", "SIMPLE")
            elif cs.accept_seq("NOT", "DEFERRABLE") or cs.accept("DEFERRABLE"):
                pass
            elif cs.accept("INITIALLY"):
                cs.accept("DEFERRED", "IMMEDIATE")
            else:
                break
        return target, target_columns, on_delete, on_update

    def _action(self, cs: TokenStream) -> Optional[CascadeAction]:
        if cs.accept("CASCADE"):
            return CascadeAction.CASCADE
        if cs.accept("RESTRICT"):
            return CascadeAction.RESTRICT
        if cs.accept_seq("NO", "ACTION"):
            return CascadeAction.NO_ACTION
        if cs.accept_seq("SET", "NULL"):
            return CascadeAction.SET_NULL
        if cs.accept_seq("SET", "DEFAULT"):
            self._warn(f"SET DEFAULT referential action is not supported and was dropped: {cs.fragment}")
            return None
        token = cs.peek()
        found = token.value if token is not None else "end of statement"
        raise SchemaSyntaxError(f"Unknown referential action '{found}'", cs.fragment)

    def _column_list(self, cs: TokenStream) -> list[str]:
        """Read `(a, b DESC, c(10))` and return the plain column names."""
        names = []
        for element in split_on_commas(cs.group()):
            first = element[0]
            if first.kind not in ("word", "ident"):
                raise SchemaSyntaxError("Expected column name", cs.span_text(element) or cs.fragment)
            names.append(first.value)
        if not names:
            raise SchemaSyntaxError("Empty column list", cs.fragment)
        return names

    def _index_columns(self, cs: TokenStream) -> list[str]:
        """Index elements: plain columns by name, expressions as raw text."""
        columns = []
        for element in split_on_commas(cs.group()):
            first = element[0]
            second = element[1] if len(element) > 1 else None
            if first.kind in ("word", "ident") and (second is None or not second.is_op("(")):
                columns.append(first.value)
                continue
            if first.kind in ("word", "ident") and second is not None and second.is_op("("):
                inner = TokenStream(element[1:], cs.text)
                values = inner.group()
                if values and all(t.kind == "number" for t in values):
                    # MySQL prefix length: col(10)
                    columns.append(first.value)
                    continue
            columns.append(cs.span_text(element))
        return columns

    def _table_constraint(self, table: Table, cs: TokenStream):
        constraint_name = None
        if cs.accept("CONSTRAINT"):
            constraint_name = cs.identifier("constraint name")

        if cs.accept_seq("PRIMARY", "KEY"):
            names = self._column_list(cs)
            columns = [self._require_column(table, n, cs) for n in names]
            for column in columns:
                column.primary_key = True
                column.nullable = False
                if len(columns) > 1:
                    column.auto_increment = False

        elif cs.accept_seq("FOREIGN", "KEY"):
            if not cs.peek_op("("):
                cs.identifier("foreign key name")
            names = self._column_list(cs)
            columns = [self._require_column(table, n, cs) for n in names]
            cs.expect_word("REFERENCES")
            target, target_columns, on_delete, on_update = self._references(cs)
            if target_columns and len(target_columns) != len(columns):
                raise SchemaSyntaxError(
                    f"FOREIGN KEY has {len(columns)} columns but REFERENCES lists {len(target_columns)}",
                    cs.fragment,
                )
            if not target_columns:
                self._pending.append(_PendingReference(table, names, target, on_delete, on_update))
            for column, target_column in zip(columns, target_columns):
                column.reference = ForeignKeyReference(
                    target_table=target,
                    target_column=target_column,
                    on_delete=on_delete,
                    on_update=on_update,
                )

        elif cs.accept("UNIQUE"):
            cs.accept("KEY", "INDEX")
            name = constraint_name
            if not cs.peek_op("("):
                name = cs.identifier("index name")
            names = self._column_list(cs)
            columns = [self._require_column(table, n, cs) for n in names]
            if len(columns) == 1:
                columns[0].unique = True
            else:
                table.indexes.append(Index(
                    name=name or _index_name("uq", table.name, names),
                    columns=[c.name for c in columns],
                    unique=True,
                ))

        elif cs.accept("FULLTEXT", "SPATIAL") or cs.peek_word("INDEX", "KEY"):
            cs.expect_word("INDEX", "KEY")
            name = None
            if not cs.peek_op("(") and not cs.peek_word("USING"):
                name = cs.identifier("index name")
            method = self._index_method(cs, table.name)
            names = self._index_columns(cs)
            method = self._index_method(cs, table.name) or method
            table.indexes.append(Index(
                name=name or _index_name("idx", table.name, names),
                columns=names,
                type=method or IndexType.BTREE,
            ))

        elif cs.accept("CHECK", "EXCLUDE"):
            return

        else:
            raise SchemaSyntaxError(f"Unrecognized constraint in table \"{table.name}\"", cs.fragment)

    def _index_method(self, cs: TokenStream, table_name: str) -> Optional[IndexType]:
        if not cs.accept("USING"):
            return None
        method = cs.identifier("index method").upper()
        if method in _INDEX_METHODS:
            return _INDEX_METHODS[method]
        self._warn(f"Index method {method} on table \"{table_name}\" is not supported - using BTREE", table=table_name)
        return IndexType.BTREE

    def _require_column(self, table: Table, name: str, cs: TokenStream) -> Column:
        column = table.find_column(name)
        if column is None:
            raise SchemaSyntaxError(f"Column \"{name}\" not found in table \"{table.name}\"", cs.fragment)
        return column

    # --- Deferred statements ---

    def _create_index(self, stream: TokenStream, unique: bool):
        stream.accept("CONCURRENTLY")
        stream.accept_seq("IF", "NOT", "EXISTS")
        name = None
        if not stream.peek_word("ON"):
            name = stream.identifier("index name")
        stream.expect_word("ON")
        stream.accept("ONLY")
        table_name = stream.identifier("table name")
        method = self._index_method(stream, table_name)
        if not stream.peek_op("("):
            raise SchemaSyntaxError("Expected column list in CREATE INDEX", stream.text)
        columns = self._index_columns(stream)
        if not columns:
            raise SchemaSyntaxError("CREATE INDEX has an empty column list", stream.text)

        where = None
        comment = None
        while not stream.at_end:
            if stream.peek_word("USING"):
                method = self._index_method(stream, table_name) or method
            elif stream.accept("COMMENT"):
                stream.accept_op("=")
                token = stream.next("comment text")
                if token.kind == "string":
                    comment = unquote_string(token.value)
            elif stream.accept("WHERE"):
                where = stream.rest_text()
            elif stream.peek_op("("):
                stream.group()
            else:
                stream.next()

        table = self._by_name.get(table_name.lower())
        if table is None:
            self._warn(f"Index \"{name or '?'}\" refers to unknown table \"{table_name}\" - skipped")
            return
        table.indexes.append(Index(
            name=name or _index_name("idx", table.name, columns),
            columns=columns,
            type=method or IndexType.BTREE,
            unique=unique,
            where=where,
            comment=comment,
        ))

    def _alter_table(self, stream: TokenStream):
        stream.accept("ONLY")
        stream.accept_seq("IF", "EXISTS")
        table_name = stream.identifier("table name")
        table = self._by_name.get(table_name.lower())
        if table is None:
            self._warn(f"ALTER TABLE refers to unknown table \"{table_name}\" - skipped")
            return

        rest = stream.tokens[stream.pos:]
        for action in split_on_commas(rest):
            action_stream = TokenStream(action, stream.text, stream.span_text(action))
            if action_stream.accept("ADD") and action_stream.peek_word(
                    "CONSTRAINT", "FOREIGN", "PRIMARY", "UNIQUE"):
                self._table_constraint(table, action_stream)
            else:
                head = " ".join(action_stream.fragment.split()[:3])
                self._warn(f"Skipped ALTER TABLE {table.name} action: {head} ...", table=table.name)

    def _comment_on(self, stream: TokenStream):
        kind = stream.accept("TABLE", "COLUMN", "INDEX")
        if kind is None:
            return
        parts = [stream.next("name").value]
        while stream.accept_op("."):
            parts.append(stream.next("name").value)
        stream.expect_word("IS")
        token = stream.next("comment text")
        text = None if token.is_word("NULL") else unquote_string(token.value)

        if kind == "TABLE":
            table = self._by_name.get(parts[-1].lower())
            if table is not None:
                table.comment = text
            return
        if kind == "INDEX":
            for table in self.tables:
                for index in table.indexes:
                    if index.name.lower() == parts[-1].lower():
                        index.comment = text
            return
        if len(parts) < 2:
            return
        table = self._by_name.get(parts[-2].lower())
        column = table.find_column(parts[-1]) if table is not None else None
        if column is not None:
            column.comment = text

    def _resolve_pending(self):
        """Give implicit REFERENCES t targets their primary key columns."""
        for pending in self._pending:
            target = self._by_name.get(pending.target_table.lower())
            pk = [c.name for c in target.primary_key_columns] if target is not None else []
            if len(pk) == len(pending.columns):
                targets = pk
            else:
                targets = ["id"] * len(pending.columns)
                self._warn(
                    f"Could not infer referenced column of {pending.table.name}"
                    f"({', '.join(pending.columns)}) -> {pending.target_table} - assuming \"id\"",
                    table=pending.table.name,
                )
            for column_name, target_column in zip(pending.columns, targets):
                column = pending.table.find_column(column_name)
                if column is None:
                    continue
                column.reference = ForeignKeyReference(
                    target_table=pending.target_table,
                    target_column=target_column,
                    on_delete=pending.on_delete,
                    on_update=pending.on_update,
                )


def _index_name(prefix: str, table: str, columns: list[str]) -> str:
    parts = [re.sub(r"\W+", "_", c).strip("_") for c in columns]
    return f"{prefix}_{table}_{'_'.join(p for p in parts if p)}"


def parse_sql(sql: str) -> ParseResult:
    """
    Parse a SQL DDL script into a schema.

    Args:
        sql: Script with CREATE TABLE / CREATE INDEX statements

    Returns:
        ParseResult with the complete schema and any non-fatal warnings

    Raises:
        InputTooLargeError: If the script exceeds MAX_INPUT_LENGTH
        EmptySchemaError: If no CREATE TABLE statement is present
        SchemaSyntaxError: If a statement or column clause is malformed
    """
    if len(sql) > MAX_INPUT_LENGTH:
        raise InputTooLargeError(len(sql), MAX_INPUT_LENGTH)
    if not sql.strip():
        raise EmptySchemaError("Input is empty. Paste a SQL schema with CREATE TABLE statements.")
    return DDLParser().parse(sql)
