"""
Error and warning types raised or collected while importing schemas.

Parse failures are exceptions and always abort the whole import - a caller
never receives a partially built model. Non-fatal notes (coerced types,
defaulted lengths, skipped statements) are warning objects collected on the
parse result so the caller can show them next to a still-valid model.
"""

from typing import Optional


class SchemaParseError(ValueError):
    """Base class for every import failure."""


class EmptySchemaError(SchemaParseError):
    """The input contained no table definitions."""

    def __init__(self, message: str = "No tables found in the input"):
        super().__init__(message)


class InputTooLargeError(SchemaParseError):
    """The input exceeds the accepted size."""

    def __init__(self, length: int, limit: int):
        self.length = length
        self.limit = limit
        super().__init__(
            f"Input is {length:,} characters - maximum accepted is {limit:,}"
        )


class SchemaSyntaxError(SchemaParseError):
    """
    A statement, column clause or field could not be understood.

    `fragment` holds the offending piece of source text so the user can
    find and fix it.
    """

    def __init__(self, message: str, fragment: Optional[str] = None):
        self.fragment = fragment
        if fragment:
            snippet = " ".join(fragment.split())
            if len(snippet) > 120:
                snippet = snippet[:117] + "..."
            message = f"{message}: {snippet!r}"
        super().__init__(message)


class SchemaWarning(UserWarning):
    """A non-fatal note produced during import."""

    def __init__(
        self,
        message: str,
        table: Optional[str] = None,
        column: Optional[str] = None,
    ):
        self.message = message
        self.table = table
        self.column = column
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        result = {"type": type(self).__name__, "message": self.message}
        if self.table:
            result["table"] = self.table
        if self.column:
            result["column"] = self.column
        return result


class UnsupportedTypeWarning(SchemaWarning):
    """An unknown data type was coerced to the nearest supported type."""

    def __init__(
        self,
        type_name: str,
        coerced_to: str,
        table: Optional[str] = None,
        column: Optional[str] = None,
    ):
        self.type_name = type_name
        self.coerced_to = coerced_to
        location = f"{table}.{column}" if table and column else (column or table or "")
        prefix = f"Column \"{location}\": " if location else ""
        super().__init__(
            f"{prefix}unsupported type {type_name!r} coerced to {coerced_to}",
            table=table,
            column=column,
        )
