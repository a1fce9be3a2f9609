#!/usr/bin/env python3
"""schema-core CLI - import, inspect, lay out and export schemas from the shell."""

import argparse
import json
import sys

from .analysis import summarize_schema
from .detection import detect_format, parse_schema
from .diff import compare_schemas
from .errors import SchemaParseError
from .generator import SQL_DIALECTS, generate_prisma, generate_sql
from .graph import derive_edges, ensure_fk_indexes
from .layout import LAYOUT_ALGORITHMS, auto_layout
from .logger import setup_logging
from .migration import generate_migration
from .models import SchemaModel
from .presets import build_preset, list_presets
from .validation import validate_schema, validation_summary


def _json_out(data, code: int = 0):
    print(json.dumps(data, indent=2))
    sys.exit(code)


def _error_out(message: str, **extra):
    _json_out({"status": "error", "error": message, **extra}, code=1)


def _read_input(path):
    if path in (None, "-"):
        return sys.stdin.read()
    try:
        with open(path, encoding="utf-8") as f:
            return f.read()
    except OSError as e:
        _error_out(f"Cannot read {path}: {e.strerror}")
    except UnicodeDecodeError as e:
        _error_out(f"Cannot read {path}: not valid UTF-8 ({e.reason} at byte {e.start})")


def _load_schema(args) -> SchemaModel:
    return _load_path(args.input, args.format)


def _load_path(path, format: str = "auto") -> SchemaModel:
    """Schema text (SQL / Prisma) or a JSON schema document."""
    text = _read_input(path)
    if format == "json" or (format == "auto" and text.lstrip().startswith("{")):
        try:
            return SchemaModel.from_json_dict(json.loads(text))
        except json.JSONDecodeError as e:
            _error_out(f"Invalid JSON: {e}")
        except ValueError as e:
            _error_out(f"Invalid schema document: {e}")
    try:
        return parse_schema(text, format).schema
    except SchemaParseError as e:
        _error_out(str(e), fragment=getattr(e, "fragment", None))


# ── Import ───────────────────────────────────────────────────────────────────

def cmd_detect(args):
    text = _read_input(args.input)
    _json_out({"success": True, "format": detect_format(text).value})


def cmd_parse(args):
    text = _read_input(args.input)
    try:
        result = parse_schema(text, args.format)
    except SchemaParseError as e:
        _error_out(str(e), fragment=getattr(e, "fragment", None))
    except ValueError as e:
        _error_out(str(e))
    if args.layout:
        auto_layout(result.schema.tables, algorithm="hierarchical", only_missing=True)
    _json_out({"success": True, **result.to_dict()})


# ── Graph ────────────────────────────────────────────────────────────────────

def cmd_edges(args):
    schema = _load_schema(args)
    edges = derive_edges(schema.tables)
    _json_out({
        "success": True,
        "count": len(edges),
        "edges": [edge.to_json_dict() for edge in edges],
    })


def cmd_fk_indexes(args):
    schema = _load_schema(args)
    created = ensure_fk_indexes(schema.tables)
    _json_out({
        "success": True,
        "created": [index.model_dump(mode="json") for index in created],
        "schema": schema.to_json_dict(),
    })


# ── Layout ───────────────────────────────────────────────────────────────────

def cmd_layout(args):
    schema = _load_schema(args)
    result = auto_layout(
        schema.tables,
        algorithm=args.algorithm,
        for_export=args.export,
        only_missing=args.only_missing,
    )
    _json_out({
        "success": True,
        "layout": result.to_dict(),
        "schema": schema.to_json_dict(),
    })


# ── Analysis ─────────────────────────────────────────────────────────────────

def cmd_validate(args):
    schema = _load_schema(args)
    issues = validate_schema(schema)
    _json_out({
        "success": True,
        "issues": [issue.to_dict() for issue in issues],
        "summary": validation_summary(issues),
    })


def cmd_summarize(args):
    schema = _load_schema(args)
    _json_out({
        "success": True,
        "summary": summarize_schema(schema).to_dict(),
    })


# ── Export ───────────────────────────────────────────────────────────────────

def cmd_export(args):
    schema = _load_schema(args)
    if args.to == "sql":
        output = generate_sql(schema, args.dialect)
    elif args.to == "prisma":
        output = generate_prisma(schema)
    else:
        output = json.dumps(schema.to_json_dict(), indent=2) + "\n"
    sys.stdout.write(output)


# ── Main ─────────────────────────────────────────────────────────────────────

def main(argv=None):
    parser = argparse.ArgumentParser(description="Relational schema import, layout and export")
    parser.add_argument("--log-level", default=None)
    sub = parser.add_subparsers(dest="command", required=True)

    def add_input(p, formats=("auto", "sql", "prisma", "json")):
        p.add_argument("input", nargs="?", default=None, help="File to read (stdin if omitted)")
        p.add_argument("--format", default="auto", choices=formats)

    p = sub.add_parser("detect")
    p.add_argument("input", nargs="?", default=None)

    p = sub.add_parser("parse")
    add_input(p, formats=("auto", "sql", "prisma"))
    p.add_argument("--layout", action="store_true", help="Position the imported tables")

    p = sub.add_parser("edges")
    add_input(p)

    p = sub.add_parser("layout")
    add_input(p)
    p.add_argument("--algorithm", default="hierarchical", choices=LAYOUT_ALGORITHMS)
    p.add_argument("--export", action="store_true")
    p.add_argument("--only-missing", action="store_true")

    p = sub.add_parser("validate")
    add_input(p)

    p = sub.add_parser("summarize")
    add_input(p)

    p = sub.add_parser("export")
    add_input(p)
    p.add_argument("--to", default="sql", choices=("sql", "prisma", "json"))
    p.add_argument("--dialect", default="postgres", choices=SQL_DIALECTS)

    p = sub.add_parser("fk-indexes")
    add_input(p)

    p = sub.add_parser("preset", help="List starter schemas, or print one")
    p.add_argument("name", nargs="?", default=None)
    p.add_argument("--to", default="sql", choices=("sql", "json"))
    p.add_argument("--dialect", default="postgres", choices=SQL_DIALECTS)

    for name in ("compare", "migrate"):
        p = sub.add_parser(name)
        p.add_argument("old", help="Baseline schema file")
        p.add_argument("new", help="Schema file to move to")
        p.add_argument("--format", default="auto", choices=("auto", "sql", "prisma", "json"))
        if name == "migrate":
            p.add_argument("--dialect", default="postgres", choices=SQL_DIALECTS)
            p.add_argument("--down", action="store_true", help="Print the rollback script")

    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    cmd_map = {
        "detect": cmd_detect,
        "parse": cmd_parse,
        "edges": cmd_edges,
        "layout": cmd_layout,
        "validate": cmd_validate,
        "summarize": cmd_summarize,
        "export": cmd_export,
        "fk-indexes": cmd_fk_indexes,
        "preset": cmd_preset,
        "compare": cmd_compare,
        "migrate": cmd_migrate,
    }
    cmd_map[args.command](args)


if __name__ == "__main__":
    main()
