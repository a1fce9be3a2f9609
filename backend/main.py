"""
Schema Core Backend - FastAPI Application

This is the main entry point for the schema backend.
It provides:
- REST API for the session schema (import, load, edges, layout, export)
- Validation and summary reports
- Starter presets, schema comparison and migration scripts
- CORS configuration for local frontend development
"""
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware

from schema_core import (
    AutoLayoutRequest,
    CompareRequest,
    DetectRequest,
    ImportRequest,
    LoadSchemaRequest,
    SchemaParseError,
    detect_format,
    list_presets,
)
from schema_core.logger import setup_logging

from .schema_manager import schema_manager

logger = logging.getLogger(__name__)

DEFAULT_CORS_ORIGINS = "http://localhost:5173,http://localhost:3000,http://127.0.0.1:5173"


def cors_origins() -> list[str]:
    raw = os.environ.get("SCHEMA_CORE_CORS_ORIGINS", DEFAULT_CORS_ORIGINS)
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def on_schema_change():
    """Callback for schema changes."""
    schema = schema_manager.schema
    logger.debug("Schema %r changed (%d tables)", schema.name, len(schema.tables))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan handler for startup/shutdown tasks."""
    setup_logging()
    schema_manager.on_change(on_schema_change)
    yield


# --- FastAPI App ---

app = FastAPI(
    title="Schema Core API",
    description="Backend API for importing, arranging and exporting relational schemas",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _parse_error(e: SchemaParseError) -> HTTPException:
    return HTTPException(
        status_code=400,
        detail={"message": str(e), "fragment": getattr(e, "fragment", None)},
    )


# --- Health Check ---

@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok", "tables": len(schema_manager.schema.tables)}


# --- Schema State ---

@app.get("/api/schema")
async def get_schema():
    """Get the current schema, its edges and the last import's warnings."""
    return schema_manager.get_state()


@app.post("/api/schema/new")
async def new_schema(name: str = Query(default="Untitled Schema")):
    """Create a new empty schema."""
    schema = schema_manager.new_schema(name=name)
    return {"success": True, "schema": schema.to_json_dict()}


@app.post("/api/schema/import")
async def import_schema(request: ImportRequest):
    """Import SQL DDL or a Prisma schema, replacing the current schema."""
    try:
        result = schema_manager.import_text(request.text, request.format)
    except SchemaParseError as e:
        raise _parse_error(e)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {
        "success": True,
        **result.to_dict(),
        "edges": [edge.to_json_dict() for edge in schema_manager.get_edges()],
    }


@app.post("/api/schema/load")
async def load_schema(request: LoadSchemaRequest):
    """Replace the current schema with a JSON document."""
    try:
        schema = schema_manager.load_schema(request.schema_data)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Invalid schema document: {e}")
    return {"success": True, "schema": schema.to_json_dict()}


@app.post("/api/detect")
async def detect(request: DetectRequest):
    """Detect whether text is SQL or Prisma."""
    return {"success": True, "format": detect_format(request.text).value}


# --- Edge Operations ---

@app.get("/api/edges")
async def list_edges():
    """List the foreign-key edges derived from column references."""
    edges = schema_manager.get_edges()
    return {"success": True, "edges": [edge.to_json_dict() for edge in edges]}


@app.delete("/api/edges/{edge_id}")
async def delete_edge(edge_id: str):
    """Delete an edge by clearing the reference behind it."""
    if schema_manager.remove_edge(edge_id):
        return {"success": True}
    raise HTTPException(status_code=404, detail="Edge not found")


# --- Column Operations ---

@app.delete("/api/tables/{table_id}/columns/{column_id}/reference")
async def clear_reference(table_id: str, column_id: str):
    """Clear a column's foreign key."""
    if schema_manager.get_column(table_id, column_id) is None:
        raise HTTPException(status_code=404, detail="Column not found")
    cleared = schema_manager.clear_reference(table_id, column_id)
    return {"success": True, "cleared": cleared}


@app.delete("/api/tables/{table_id}/columns/{column_id}")
async def delete_column(table_id: str, column_id: str):
    """Delete a column and the edge it carries."""
    column = schema_manager.delete_column(table_id, column_id)
    if column is None:
        raise HTTPException(status_code=404, detail="Column not found")
    return {"success": True, "column": column.model_dump(mode="json")}


# --- Layout and Indexes ---

@app.post("/api/layout/auto")
async def auto_layout(request: AutoLayoutRequest):
    """Arrange tables with the chosen algorithm."""
    try:
        result = schema_manager.auto_layout(
            algorithm=request.algorithm,
            for_export=request.for_export,
            only_missing=request.only_missing,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {
        "success": True,
        "layout": result.to_dict(),
        "schema": schema_manager.schema.to_json_dict(),
    }


@app.post("/api/indexes/fk")
async def ensure_fk_indexes():
    """Create missing indexes for foreign-key columns."""
    created = schema_manager.ensure_fk_indexes()
    return {
        "success": True,
        "created": [index.model_dump(mode="json") for index in created],
    }


# --- Reports ---

@app.get("/api/validate")
async def validate():
    """Validate the current schema."""
    return {"success": True, **schema_manager.validate()}


@app.get("/api/summary")
async def summary():
    """Summarize the current schema."""
    return {"success": True, "summary": schema_manager.summarize()}


@app.get("/api/export")
async def export(
    format: str = Query(default="sql"),
    dialect: str = Query(default="postgres"),
):
    """Export the current schema as SQL, Prisma or JSON text."""
    try:
        content = schema_manager.export(format=format, dialect=dialect)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "format": format, "dialect": dialect, "content": content}


# --- Presets ---

@app.get("/api/presets")
async def get_presets():
    """List the starter schemas."""
    return {"success": True, "presets": [preset.to_dict() for preset in list_presets()]}


@app.post("/api/presets/{preset_id}/load")
async def load_preset(preset_id: str):
    """Replace the current schema with a starter schema."""
    try:
        schema = schema_manager.load_preset(preset_id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"success": True, "schema": schema.to_json_dict()}


# --- Comparison ---

@app.post("/api/compare")
async def compare(request: CompareRequest):
    """List what changed from a baseline document to the current schema."""
    try:
        diff = schema_manager.compare(request.baseline)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Invalid baseline: {e}")
    return {"success": True, "diff": diff.to_dict()}


@app.post("/api/migration")
async def migration(request: CompareRequest):
    """Generate up and down SQL from a baseline document to the current schema."""
    try:
        result = schema_manager.migration(request.baseline, request.dialect)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, **result.to_dict()}


# --- Run with uvicorn ---

def run():
    import uvicorn
    setup_logging()
    uvicorn.run(
        app,
        host=os.environ.get("SCHEMA_CORE_HOST", "127.0.0.1"),
        port=int(os.environ.get("SCHEMA_CORE_PORT", "8765")),
    )


if __name__ == "__main__":
    run()
