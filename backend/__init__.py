"""Schema Core backend - FastAPI app and session schema manager."""
