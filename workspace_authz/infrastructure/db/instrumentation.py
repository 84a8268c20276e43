"""
===============================================================================
CRC CARD — infrastructure/db/instrumentation.py
===============================================================================

Clases:
  - TimedConnection (Proxy)
  - InstrumentedConnectionPool (Facade/Proxy)

Responsabilidades:
  - Medir duración de conn.execute(...) sin tocar repositorios.
  - Loguear slow queries (baja cardinalidad: solo el tipo de statement).
  - Healthcheck opcional al adquirir conexión (SELECT 1).

Colaboradores:
  - crosscutting.logger / crosscutting.metrics
  - psycopg_pool.ConnectionPool (pool real)
===============================================================================
"""

from __future__ import annotations

import time
from typing import Any, ContextManager

import psycopg

from ...crosscutting.logger import get_logger
from ...crosscutting.metrics import observe_db_query_duration
from ...crosscutting.exceptions import DatabaseConnectionError

logger = get_logger("db")


def _statement_kind(sql: Any) -> str:
    """Primer keyword del statement (SELECT / UPDATE / ...)."""
    parts = str(sql).split(None, 1)
    return parts[0].upper() if parts else "UNKNOWN"


class TimedConnection:
    """
    Proxy de conexión: intercepta execute para medir tiempo.

    Delegamos todo lo demás al conn real con __getattr__.
    """

    def __init__(self, inner_conn, *, slow_query_seconds: float) -> None:
        self._conn = inner_conn
        self._slow = slow_query_seconds

    def execute(self, sql, *args, **kwargs):
        start = time.perf_counter()
        try:
            return self._conn.execute(sql, *args, **kwargs)
        finally:
            elapsed = time.perf_counter() - start
            kind = _statement_kind(sql)
            observe_db_query_duration(kind, elapsed)
            if elapsed >= self._slow:
                logger.warning(
                    "DB query lenta",
                    extra={"kind": kind, "seconds": round(elapsed, 4)},
                )

    def __getattr__(self, item: str):
        return getattr(self._conn, item)


class _ConnectionContext(ContextManager[TimedConnection]):
    """Envuelve el context manager del pool."""

    def __init__(
        self, inner_ctx, *, slow_query_seconds: float, healthcheck: bool
    ) -> None:
        self._inner_ctx = inner_ctx
        self._slow = slow_query_seconds
        self._healthcheck = healthcheck

    def __enter__(self) -> TimedConnection:
        try:
            conn = self._inner_ctx.__enter__()
            if self._healthcheck:
                conn.execute("SELECT 1")
        except psycopg.Error as exc:
            raise DatabaseConnectionError(
                "No se pudo adquirir/validar conexión DB."
            ) from exc
        return TimedConnection(conn, slow_query_seconds=self._slow)

    def __exit__(self, exc_type, exc, tb):
        return self._inner_ctx.__exit__(exc_type, exc, tb)


class InstrumentedConnectionPool:
    """
    Facade del pool real.

    Los repositorios siguen haciendo `with pool.connection() as conn:` pero
    `conn` es un TimedConnection.
    """

    def __init__(
        self, inner_pool, *, slow_query_seconds: float, healthcheck: bool
    ) -> None:
        self._pool = inner_pool
        self._slow_seconds = slow_query_seconds
        self._healthcheck = healthcheck

    def connection(self, *args, **kwargs) -> ContextManager[TimedConnection]:
        return _ConnectionContext(
            self._pool.connection(*args, **kwargs),
            slow_query_seconds=self._slow_seconds,
            healthcheck=self._healthcheck,
        )

    def __getattr__(self, item: str):
        return getattr(self._pool, item)
