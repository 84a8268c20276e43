"""
===============================================================================
TARJETA CRC — router.py (Router raíz / Composición)
===============================================================================

Responsabilidades:
  - Definir el APIRouter raíz que se incluye en FastAPI con prefix="/v1".
  - Centralizar responses RFC7807 para OpenAPI.
  - Componer routers por feature (nodes / grants / invitations / share links).

Patrones aplicados:
  - Factory: build_router() para testear composición sin side-effects.
===============================================================================
"""

from __future__ import annotations

from fastapi import APIRouter

from ....crosscutting.error_responses import OPENAPI_ERROR_RESPONSES
from .routers import (
    grants_router,
    invitations_router,
    nodes_router,
    share_links_router,
)


def build_router() -> APIRouter:
    api_router = APIRouter(responses=OPENAPI_ERROR_RESPONSES)

    # grants primero: /folders/accessible antes de rutas con {folder_id}.
    api_router.include_router(grants_router)
    api_router.include_router(nodes_router)
    api_router.include_router(invitations_router)
    api_router.include_router(share_links_router)

    return api_router


router = build_router()

__all__ = ["router", "build_router"]
