"""
============================================================
TARJETA CRC — infrastructure/repositories/postgres/_base.py
============================================================
Class: PostgresRepositoryBase

Responsibilities:
- Resolver el pool (inyectado en tests, singleton en prod).
- Reusar la conexión del PostgresUnitOfWork activo (misma transacción).
- Ejecutar SQL parametrizado con manejo de errores consistente:
  log con contexto + DatabaseError (503) hacia arriba.

Collaborators:
- infrastructure.db.pool.get_pool
- crosscutting.exceptions.DatabaseError
============================================================
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator, Mapping, Optional

import psycopg
from psycopg_pool import ConnectionPool

from ....crosscutting.exceptions import DatabaseError, DatabasePoolError
from ....crosscutting.logger import get_logger
from ...db.pool import get_pool
from .unit_of_work import current_connection

logger = get_logger("repositories.postgres")

Params = Mapping[str, Any]


class PostgresRepositoryBase:
    def __init__(self, pool: Optional[ConnectionPool] = None):
        # Pool inyectable para tests. En prod se obtiene por factory global.
        self._pool = pool

    def _get_pool(self) -> ConnectionPool:
        return self._pool if self._pool is not None else get_pool()

    @contextmanager
    def _connection(self, context_msg: str, extra: dict) -> Iterator[Any]:
        """
        Conexión para el statement: la del UnitOfWork en curso si la hay,
        si no una del pool. Fallas de driver salen como DatabaseError.
        """
        try:
            active = current_connection()
            if active is not None:
                yield active
            else:
                with self._get_pool().connection() as conn:
                    yield conn
        except psycopg.Error as exc:
            logger.exception(context_msg, extra={**extra, "error": str(exc)})
            raise DatabaseError(f"{context_msg}: {exc}", original_error=exc) from exc
        except DatabasePoolError:
            logger.exception(context_msg, extra=extra)
            raise

    def _fetchall(
        self, *, query: str, params: Params, context_msg: str, extra: dict
    ) -> list[tuple]:
        with self._connection(context_msg, extra) as conn:
            return conn.execute(query, params).fetchall()

    def _fetchone(
        self, *, query: str, params: Params, context_msg: str, extra: dict
    ) -> tuple | None:
        with self._connection(context_msg, extra) as conn:
            return conn.execute(query, params).fetchone()

    def _execute(
        self, *, query: str, params: Params, context_msg: str, extra: dict
    ) -> int:
        """Ejecuta un statement sin filas de salida. Devuelve rowcount."""
        with self._connection(context_msg, extra) as conn:
            return conn.execute(query, params).rowcount
