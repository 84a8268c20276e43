"""
===============================================================================
MÓDULO: Middleware HTTP (contexto de request)
===============================================================================

Objetivo
--------
RequestContextMiddleware:
   - Generar/propagar request_id (X-Request-Id)
   - Setear contextvars (method/path)
   - Log y métricas por request

-------------------------------------------------------------------------------
CRC (Component Card)
-------------------------------------------------------------------------------
Responsabilidades:
  - Observabilidad (request_id + logs + métricas)
  - Garantizar clear_context() para evitar leaks entre requests

Colaboradores:
  - workspace_authz/context.py
  - crosscutting/metrics.py
  - crosscutting/logger.py
===============================================================================
"""

from __future__ import annotations

import time
import uuid
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from ..context import clear_context, set_request_context
from .logger import get_logger
from .metrics import _normalize_endpoint, record_request_metrics

logger = get_logger("http")


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    ----------------------------------------------------------------------------
    CRC (Class Card)
    ----------------------------------------------------------------------------
    Clase:
      RequestContextMiddleware

    Responsabilidades:
      - Generar/aceptar X-Request-Id y devolverlo en la respuesta
      - Setear contextvars para correlación de logs
      - Emitir logs y métricas por request
    ----------------------------------------------------------------------------
    """

    _QUIET_PATHS = {"/healthz", "/metrics"}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        incoming = (request.headers.get("x-request-id") or "").strip()
        request_id = (
            incoming if self._is_valid_request_id(incoming) else str(uuid.uuid4())
        )

        # Los tokens viajan en el path: se loguea la versión normalizada.
        set_request_context(
            request_id=request_id,
            method=request.method,
            path=_normalize_endpoint(request.url.path),
        )
        request.state.request_id = request_id

        start = time.perf_counter()
        status_code = 500

        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers["X-Request-Id"] = request_id
            return response
        except Exception:
            logger.exception(
                "request falló",
                extra={
                    "status_code": 500,
                    "latency_ms": round((time.perf_counter() - start) * 1000, 2),
                },
            )
            raise
        finally:
            latency = time.perf_counter() - start
            record_request_metrics(
                endpoint=request.url.path,
                method=request.method,
                status_code=status_code,
                latency_seconds=latency,
            )

            if request.url.path not in self._QUIET_PATHS:
                logger.info(
                    "request completado",
                    extra={
                        "status_code": status_code,
                        "latency_ms": round(latency * 1000, 2),
                    },
                )

            clear_context()

    @staticmethod
    def _is_valid_request_id(value: str) -> bool:
        return bool(value) and len(value) <= 128
