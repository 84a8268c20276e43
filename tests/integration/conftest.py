"""
Name: Integration Test DB Setup

Responsibilities:
  - Aplicar migraciones Alembic una vez por sesión
  - Abrir el pool global contra la DB real y cerrarlo al final
  - Dejar las tablas vacías antes de cada test

Notes:
  - Solo corre con RUN_INTEGRATION=1
  - Usa DATABASE_URL del entorno (ver alembic/env.py)
"""

from __future__ import annotations

import os
from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from psycopg import connect

from workspace_authz.crosscutting.config import get_settings
from workspace_authz.infrastructure.db.pool import close_pool, get_pool, init_pool

DB_USER = os.getenv("POSTGRES_USER", "postgres")
DB_PASSWORD = os.getenv("POSTGRES_PASSWORD", "postgres")
DB_HOST = os.getenv("POSTGRES_HOST", "localhost")
DB_PORT = os.getenv("POSTGRES_HOST_PORT", "5432")
DB_NAME = os.getenv("POSTGRES_DB", "workspace_authz")
DEFAULT_DATABASE_URL = (
    f"postgresql://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}"
)

RUN_INTEGRATION = os.getenv("RUN_INTEGRATION") == "1"

_TABLES = ("share_links", "folder_invitations", "folder_grants", "nodes")

if RUN_INTEGRATION:
    os.environ["APP_ENV"] = "integration"
    os.environ["REPOSITORY_BACKEND"] = "postgres"
    os.environ.setdefault("DATABASE_URL", DEFAULT_DATABASE_URL)
    get_settings.cache_clear()


@pytest.fixture(scope="session")
def apply_migrations() -> None:
    """Run Alembic migrations for integration tests."""
    database_url = os.environ["DATABASE_URL"]
    try:
        with connect(database_url, autocommit=True, connect_timeout=2) as conn:
            conn.execute("SELECT 1")
    except Exception as exc:
        raise RuntimeError(
            "Integration tests need a reachable PostgreSQL (set DATABASE_URL)."
        ) from exc

    root_dir = Path(__file__).resolve().parents[2]
    config = Config(str(root_dir / "alembic.ini"))
    config.set_main_option("script_location", str(root_dir / "alembic"))
    command.upgrade(config, "head")


@pytest.fixture(scope="session")
def pg_pool(apply_migrations):
    settings = get_settings()
    close_pool()
    init_pool(
        database_url=settings.database_url,
        min_size=settings.db_pool_min_size,
        max_size=settings.db_pool_max_size,
    )
    yield get_pool()
    close_pool()


@pytest.fixture
def clean_db(pg_pool):
    with pg_pool.connection() as conn:
        conn.execute(f"TRUNCATE {', '.join(_TABLES)} CASCADE")
    yield pg_pool
