"""
===============================================================================
TARJETA CRC — interfaces/api/http/routers/__init__.py
===============================================================================

Name:
    Routers Package (HTTP)

Responsibilities:
    - Exponer routers segmentados por feature para el router principal.

Notas:
    - Este archivo NO define endpoints. Solo re-exporta routers.
===============================================================================
"""

from .grants import router as grants_router
from .invitations import router as invitations_router
from .nodes import router as nodes_router
from .share_links import router as share_links_router

__all__ = [
    "grants_router",
    "invitations_router",
    "nodes_router",
    "share_links_router",
]
