"""
Format detection and parser dispatch.
"""

import logging
import re
from enum import Enum
from typing import Union

from .models import ParseResult
from .prisma_parser import parse_prisma
from .sql_parser import parse_sql

logger = logging.getLogger(__name__)

_PRISMA_MODEL_RE = re.compile(r"\bmodel\s+\w+\s*\{")
_SQL_RE = re.compile(r"\bcreate\s+(?:(?:unique|temp|temporary|global|local|unlogged)\s+)*(?:table|index)\b",
                     re.IGNORECASE)


class SchemaFormat(str, Enum):
    """Supported schema text formats."""
    SQL = "sql"
    PRISMA = "prisma"


def detect_format(text: str) -> SchemaFormat:
    """
    Guess whether text is SQL DDL or a Prisma schema.

    A `model X {` block header together with an `@` attribute sigil means
    Prisma; anything else, including text with no recognizable markers,
    is treated as SQL.
    """
    if _PRISMA_MODEL_RE.search(text) and "@" in text:
        return SchemaFormat.PRISMA
    if _SQL_RE.search(text):
        return SchemaFormat.SQL
    return SchemaFormat.SQL


def parse_schema(text: str, format: Union[str, SchemaFormat] = "auto") -> ParseResult:
    """
    Parse schema text with the parser for its format.

    Args:
        text: SQL DDL or Prisma schema
        format: "auto" (detect), "sql" or "prisma"

    Raises:
        ValueError: If format is not one of the above
        SchemaParseError: From the selected parser
    """
    if isinstance(format, str) and format.lower() == "auto":
        chosen = detect_format(text)
        logger.debug("Detected %s input", chosen.value)
    else:
        try:
            chosen = SchemaFormat(format.lower() if isinstance(format, str) else format)
        except ValueError:
            raise ValueError(f"Unknown schema format: {format}. Use auto, sql or prisma") from None

    if chosen == SchemaFormat.PRISMA:
        return parse_prisma(text)
    return parse_sql(text)
