"""
============================================================
TARJETA CRC — infrastructure/repositories/postgres/unit_of_work.py
============================================================
Class: PostgresUnitOfWork

Responsibilities:
- Abrir UNA conexión + transacción y publicarla en un ContextVar para que
  todos los repos Postgres del bloque la reutilicen.
- Commit al salir del bloque; rollback si el bloque levanta.

Collaborators:
- PostgresRepositoryBase._connection (lee current_connection)
- infrastructure.db.pool.get_pool
- crosscutting.exceptions.DatabaseError

Constraints / Notes:
- Bloques anidados usan savepoints (conn.transaction() de psycopg).
- El ContextVar es por hilo/tarea: requests concurrentes no se mezclan.
============================================================
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Iterator, Optional

import psycopg
from psycopg_pool import ConnectionPool

from ....crosscutting.exceptions import DatabaseError
from ....crosscutting.logger import get_logger
from ....domain.repositories import UnitOfWork
from ...db.pool import get_pool

logger = get_logger("repositories.postgres")

_current_connection: ContextVar[Optional[Any]] = ContextVar(
    "postgres_uow_connection", default=None
)


def current_connection() -> Optional[Any]:
    """Conexión de la transacción en curso (None fuera de atomic())."""
    return _current_connection.get()


class PostgresUnitOfWork(UnitOfWork):
    def __init__(self, pool: Optional[ConnectionPool] = None):
        self._pool = pool

    def _get_pool(self) -> ConnectionPool:
        return self._pool if self._pool is not None else get_pool()

    @contextmanager
    def atomic(self) -> Iterator[None]:
        active = current_connection()
        if active is not None:
            with active.transaction():
                yield
            return

        try:
            with self._get_pool().connection() as conn:
                with conn.transaction():
                    token = _current_connection.set(conn)
                    try:
                        yield
                    finally:
                        _current_connection.reset(token)
        except psycopg.Error as exc:
            logger.exception("PostgresUnitOfWork: transaction failed")
            raise DatabaseError(
                f"PostgresUnitOfWork: transaction failed: {exc}", original_error=exc
            ) from exc
