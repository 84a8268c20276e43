"""
===============================================================================
TARJETA CRC — dependencies.py (Dependencias comunes de routers)
===============================================================================

Responsabilidades:
  - Re-exportar las dependencias FastAPI que usan todos los routers:
      * get_services: grafo de servicios (container)
      * get_access_context / require_access_context: identidad del caller

Notas:
  - Tests: app.dependency_overrides[get_services] = lambda: services_in_memory
===============================================================================
"""

from __future__ import annotations

from ....container import Services, get_services
from ....identity.org_context import get_access_context, require_access_context

__all__ = [
    "Services",
    "get_services",
    "get_access_context",
    "require_access_context",
]
