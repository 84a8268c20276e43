"""
===============================================================================
TARJETA CRC — api/exception_handlers.py (Manejo Centralizado de Excepciones)
===============================================================================

Responsabilidades:
  - Traducir AuthzError (y derivadas) a respuestas HTTP RFC7807.
  - Centralizar logging de errores con request_id + error_id.
  - Evitar filtrar detalles internos en errores no controlados.

Patrones aplicados:
  - Exception Mapping (Presentation Layer): status/code salen de la clase.
  - Fail-safe: cualquier excepción no tipada -> INTERNAL_ERROR (con logging).

Colaboradores:
  - crosscutting.error_responses: AppHTTPException, ErrorCode, app_exception_handler
  - crosscutting.exceptions: AuthzError y derivadas
  - crosscutting.config.get_settings (para decidir nivel de detalle)
===============================================================================
"""

from __future__ import annotations

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from ..crosscutting.config import get_settings
from ..crosscutting.error_responses import (
    AppHTTPException,
    ErrorCode,
    app_exception_handler,
)
from ..crosscutting.exceptions import AuthzError
from ..crosscutting.logger import get_logger

logger = get_logger("api")


def _request_id_from(request: Request) -> str | None:
    return getattr(getattr(request, "state", None), "request_id", None)


async def authz_error_handler(request: Request, exc: AuthzError) -> JSONResponse:
    """Errores tipados: 4xx se loguean como WARNING, 5xx como ERROR."""
    request_id = _request_id_from(request)
    level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    logger.log(
        level,
        "Error de servicio",
        extra={
            "code": exc.error_code,
            "status": exc.status_code,
            "error_id": exc.error_id,
            "error": exc.message,
            "request_id": request_id,
        },
    )

    app_exc = AppHTTPException(
        status_code=exc.status_code,
        code=exc.error_code,
        detail=exc.message,
        errors=[{"error_id": exc.error_id, "request_id": request_id}],
        title=exc.title,
    )
    return await app_exception_handler(request, app_exc)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handler para excepciones no tipadas.

    - Log completo (stacktrace).
    - Respuesta genérica en producción.
    """
    request_id = _request_id_from(request)
    logger.error(
        "Excepción no controlada",
        exc_info=exc,
        extra={"request_id": request_id, "error": str(exc)},
    )

    detail = "Error interno." if get_settings().is_production() else str(exc)
    app_exc = AppHTTPException(
        status_code=500,
        code=ErrorCode.INTERNAL_ERROR,
        detail=detail,
        errors=[{"request_id": request_id}],
    )
    return await app_exception_handler(request, app_exc)


def register_exception_handlers(app) -> None:
    """
    Registra handlers en la app FastAPI.

    Exception genérica se registra al final como fallback.
    """
    app.add_exception_handler(AuthzError, authz_error_handler)
    app.add_exception_handler(AppHTTPException, app_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)


__all__ = ["register_exception_handlers"]
