"""
Name: FastAPI Application Entry Point

Responsibilities:
  - Build the FastAPI application (create_app factory)
  - Configure middleware (CORS, request context)
  - Mount the authorization router under /v1
  - Expose health check and metrics endpoints

Collaborators:
  - FastAPI: ASGI web framework
  - CORSMiddleware: Cross-Origin Resource Sharing handler
  - RequestContextMiddleware: Request ID and logging context
  - interfaces.api.http.router: nodes / grants / invitations / share links

Constraints:
  - CORS configurable via ALLOWED_ORIGINS env var (comma-separated)
  - Identity comes from trusted gateway headers (X-User-Id, X-Org-Id, ...)

Notes:
  - Middleware order matters: RequestContext → CORS → routes
  - /healthz follows Kubernetes health check convention
  - /metrics exposes Prometheus metrics (METRICS_ENABLED)
  - The DB pool is only opened when REPOSITORY_BACKEND=postgres
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from ..container import get_repositories, reset_container
from ..crosscutting.config import Settings, get_settings
from ..crosscutting.logger import logger, setup_logger
from ..crosscutting.metrics import get_metrics_response
from ..crosscutting.middleware import RequestContextMiddleware
from ..infrastructure.db.pool import close_pool, init_pool
from ..interfaces.api.http.router import router
from .exception_handlers import register_exception_handlers


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle. Configures logging and the DB pool."""
    settings = get_settings()
    setup_logger()

    uses_postgres = settings.repository_backend == "postgres"
    if uses_postgres:
        init_pool(
            database_url=settings.database_url,
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
        )

    try:
        logger.info(
            "Workspace Authz API starting up",
            extra={
                "app_env": settings.app_env,
                "repository_backend": settings.repository_backend,
                "max_tree_depth": settings.max_tree_depth,
                "metrics_enabled": settings.metrics_enabled,
            },
        )
        yield
    finally:
        if uses_postgres:
            close_pool()
        reset_container()
        logger.info("Workspace Authz API shutting down")


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()

    app = FastAPI(
        title="Workspace Authz API",
        version="0.1.0",
        lifespan=lifespan,
        openapi_tags=[
            {"name": "nodes", "description": "Folder / document tree"},
            {"name": "access", "description": "Access resolution"},
            {"name": "grants", "description": "Explicit per-folder grants"},
            {"name": "invitations", "description": "Email-bound folder invitations"},
            {"name": "share-links", "description": "Bearer share links"},
        ],
    )

    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_allowed_origins_list(),
        allow_credentials=False,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=[
            "Content-Type",
            "X-Request-Id",
            "X-User-Id",
            "X-Org-Id",
            "X-Org-Admin",
            "X-User-Email",
        ],
    )

    app.include_router(router, prefix="/v1")
    register_exception_handlers(app)

    @app.get("/healthz")
    def healthz(request: Request):
        """
        Health check against the configured storage backend.

        Returns:
            ok: True if storage answers
            backend: memory | postgres
            request_id: Correlation ID for this request
        """
        storage = "disconnected"
        try:
            if get_repositories().nodes.ping():
                storage = "connected"
        except Exception as e:
            logger.warning("Health check: storage unavailable", extra={"error": str(e)})

        return {
            "ok": storage == "connected",
            "backend": get_settings().repository_backend,
            "storage": storage,
            "request_id": getattr(request.state, "request_id", None),
        }

    if settings.metrics_enabled:

        @app.get("/metrics")
        def metrics():
            """Expose Prometheus metrics (text format)."""
            body, content_type = get_metrics_response()
            return Response(content=body, media_type=content_type)

    return app


app = create_app()
