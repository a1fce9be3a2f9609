#!/usr/bin/env python3
"""
Schema Core MCP Server

Provides MCP tools for AI agents to work with the schema held by the
schema-core backend. Every tool goes through the HTTP API, so the backend
must be running (python -m backend.main).
"""

import json
import os
from typing import Optional

import httpx
from mcp.server.fastmcp import FastMCP

# Backend API URL
API_BASE = os.environ.get("SCHEMA_CORE_API", "http://127.0.0.1:8765/api").rstrip("/")

# Create MCP server
mcp = FastMCP("schema-core")


# --- HTTP Client Helper ---

def api_request(method: str, endpoint: str, **kwargs) -> dict:
    """Make a request to the schema-core backend."""
    url = f"{API_BASE}{endpoint}"
    with httpx.Client(timeout=30.0) as client:
        if method == "GET":
            response = client.get(url, params=kwargs.get("params"))
        elif method == "POST":
            response = client.post(url, json=kwargs.get("json"), params=kwargs.get("params"))
        elif method == "DELETE":
            response = client.delete(url)
        else:
            raise ValueError(f"Unknown method: {method}")

        if response.status_code >= 400:
            error = response.json().get("detail", "Unknown error")
            if isinstance(error, dict):
                error = error.get("message", error)
            raise RuntimeError(f"API error: {error}")

        return response.json()


# ============================================================================
# SCHEMA TOOLS
# ============================================================================

@mcp.tool()
def schema_get_current() -> str:
    """
    Get the full current schema state.

    Returns every table with its columns and indexes, the foreign-key edges
    derived from column references, and the warnings from the last import.
    Use this to see what's loaded before making changes.
    """
    result = api_request("GET", "/schema")
    return json.dumps(result, indent=2)


@mcp.tool()
def schema_new(name: str = "Untitled Schema") -> str:
    """
    Start a new empty schema.

    Args:
        name: Name for the new schema
    """
    result = api_request("POST", "/schema/new", params={"name": name})
    return json.dumps(result, indent=2)


@mcp.tool()
def schema_import(text: str, format: str = "auto") -> str:
    """
    Import SQL DDL or a Prisma schema, replacing the current schema.

    Args:
        text: CREATE TABLE / CREATE INDEX / ALTER TABLE statements, or
            Prisma model blocks
        format: "auto" (detect), "sql" or "prisma"

    Tables are laid out automatically. Unknown types are coerced and
    reported as warnings; a statement that can't be read fails the whole
    import and nothing is changed.
    """
    result = api_request("POST", "/schema/import", json={"text": text, "format": format})
    return json.dumps(result, indent=2)


@mcp.tool()
def schema_load(schema_json: str) -> str:
    """
    Replace the current schema with a JSON schema document.

    Args:
        schema_json: A document as returned by schema_get_current()["schema"]
            or schema_export(format="json")
    """
    try:
        document = json.loads(schema_json)
    except json.JSONDecodeError as e:
        return json.dumps({"success": False, "error": f"Invalid JSON: {e}"})
    result = api_request("POST", "/schema/load", json={"schema": document})
    return json.dumps(result, indent=2)


@mcp.tool()
def schema_detect_format(text: str) -> str:
    """
    Tell whether text looks like SQL DDL or a Prisma schema.

    Args:
        text: The schema text to check
    """
    result = api_request("POST", "/detect", json={"text": text})
    return json.dumps(result, indent=2)


# ============================================================================
# RELATIONSHIP TOOLS
# ============================================================================

@mcp.tool()
def schema_list_edges() -> str:
    """
    List foreign-key relationships.

    Each edge has an id of the form fk-<table_id>-<column_id>, the source
    and target table/column ids and names, and the ON DELETE / ON UPDATE
    actions.
    """
    result = api_request("GET", "/edges")
    return json.dumps(result, indent=2)


@mcp.tool()
def schema_remove_edge(edge_id: str) -> str:
    """
    Remove a foreign-key relationship.

    Args:
        edge_id: Edge id from schema_list_edges()

    Clears the reference on the source column and drops the index that
    was auto-created for it. Other indexes are kept.
    """
    result = api_request("DELETE", f"/edges/{edge_id}")
    return json.dumps(result, indent=2)


@mcp.tool()
def schema_clear_reference(table_id: str, column_id: str) -> str:
    """
    Clear the foreign key on a column.

    Args:
        table_id: ID of the table
        column_id: ID of the column
    """
    result = api_request("DELETE", f"/tables/{table_id}/columns/{column_id}/reference")
    return json.dumps(result, indent=2)


@mcp.tool()
def schema_delete_column(table_id: str, column_id: str) -> str:
    """
    Delete a column, removing its relationship first if it has one.

    Args:
        table_id: ID of the table
        column_id: ID of the column
    """
    result = api_request("DELETE", f"/tables/{table_id}/columns/{column_id}")
    return json.dumps(result, indent=2)


@mcp.tool()
def schema_ensure_fk_indexes() -> str:
    """
    Create an index for every foreign-key column that has none.

    Returns the indexes that were created. Running it again creates nothing.
    """
    result = api_request("POST", "/indexes/fk")
    return json.dumps(result, indent=2)


# ============================================================================
# LAYOUT TOOLS
# ============================================================================

@mcp.tool()
def schema_auto_layout(
    algorithm: str = "hierarchical",
    for_export: bool = False,
    only_missing: bool = False
) -> str:
    """
    Arrange tables on the canvas.

    Args:
        algorithm: Layout algorithm
            - "hierarchical": Referenced tables above the tables that
              reference them, rows ordered to reduce crossings
            - "grid": Three-column grid
            - "circular": Tables on a circle
        for_export: Use the tighter spacing anchored at the top-left margin
        only_missing: Only place tables that have no position yet
    """
    result = api_request("POST", "/layout/auto", json={
        "algorithm": algorithm,
        "for_export": for_export,
        "only_missing": only_missing,
    })
    return json.dumps({"success": True, "layout": result.get("layout")}, indent=2)


# ============================================================================
# REPORT TOOLS
# ============================================================================

@mcp.tool()
def schema_validate() -> str:
    """
    Check the schema for problems.

    Reports duplicate names, missing primary keys, dangling references,
    type mismatches between foreign keys and their targets, reserved
    words and reference cycles.
    """
    result = api_request("GET", "/validate")
    return json.dumps(result, indent=2)


@mcp.tool()
def schema_summarize() -> str:
    """
    Get a summary of the schema.

    Returns table, column, edge and index counts, column types in use,
    connected components, the most referenced tables and tables with no
    relationships.
    """
    result = api_request("GET", "/summary")
    return json.dumps(result, indent=2)


@mcp.tool()
def schema_export(format: str = "sql", dialect: str = "postgres", output_path: Optional[str] = None) -> str:
    """
    Export the schema as text.

    Args:
        format: "sql", "prisma" or "json"
        dialect: SQL dialect when format is "sql": postgres, mysql or sqlite
        output_path: Also write the text to this file

    Returns the exported text.
    """
    result = api_request("GET", "/export", params={"format": format, "dialect": dialect})
    content = result.get("content", "")
    if output_path:
        with open(output_path, "w", encoding="utf-8") as f:
            f.write(content)
        return json.dumps({"success": True, "path": output_path, "characters": len(content)})
    return content


# ============================================================================
# PRESET TOOLS
# ============================================================================

@mcp.tool()
def schema_list_presets() -> str:
    """
    List the starter schemas that schema_load_preset() can load.

    Each entry has an id, a name, a description, a category and a
    difficulty.
    """
    result = api_request("GET", "/presets")
    return json.dumps(result, indent=2)


@mcp.tool()
def schema_load_preset(preset_id: str) -> str:
    """
    Replace the current schema with a starter schema.

    Args:
        preset_id: Id from schema_list_presets(), e.g. "blog" or "ecommerce"

    The loaded tables already have foreign-key indexes and a layout.
    """
    result = api_request("POST", f"/presets/{preset_id}/load")
    return json.dumps(result, indent=2)


# ============================================================================
# COMPARISON TOOLS
# ============================================================================

def _baseline(baseline_json: str) -> Optional[dict]:
    try:
        return json.loads(baseline_json)
    except json.JSONDecodeError:
        return None


@mcp.tool()
def schema_compare(baseline_json: str) -> str:
    """
    List what changed from a baseline schema to the current one.

    Args:
        baseline_json: An earlier schema document, e.g. a saved
            schema_export(format="json")

    Tables, columns and indexes are matched by id, then by name. Reports
    tables added, removed and modified; for modified tables, the columns,
    indexes and references that changed with old and new values.
    """
    baseline = _baseline(baseline_json)
    if baseline is None:
        return json.dumps({"success": False, "error": "Invalid JSON baseline"})
    result = api_request("POST", "/compare", json={"baseline": baseline})
    return json.dumps(result, indent=2)


@mcp.tool()
def schema_migration(baseline_json: str, dialect: str = "postgres") -> str:
    """
    Generate SQL that migrates a database from a baseline schema to the
    current one.

    Args:
        baseline_json: The schema document the database is at now
        dialect: postgres, mysql or sqlite

    Returns the forward ("up") and rollback ("down") scripts and warnings
    about data loss or changes the dialect can't make in place.
    """
    baseline = _baseline(baseline_json)
    if baseline is None:
        return json.dumps({"success": False, "error": "Invalid JSON baseline"})
    result = api_request("POST", "/migration", json={"baseline": baseline, "dialect": dialect})
    return json.dumps(result, indent=2)


# ============================================================================
# MAIN
# ============================================================================

if __name__ == "__main__":
    mcp.run()
