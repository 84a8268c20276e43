"""API layer: FastAPI app factory + exception handlers."""
