"""HTTP adapter (FastAPI): routers, schemas y dependencias."""
