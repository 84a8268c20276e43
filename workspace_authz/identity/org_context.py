"""
===============================================================================
TARJETA CRC — identity/org_context.py
===============================================================================

Módulo:
    Contexto de identidad (caller) para resolución de acceso

Responsabilidades:
    - Construir AccessContext a partir de los headers que inyecta el gateway
      de identidad aguas arriba:
        X-User-Id     -> user_id (obligatorio en endpoints protegidos)
        X-Org-Id      -> organización activa del caller
        X-Org-Admin   -> true/1/yes si es admin de esa organización
        X-User-Email  -> email (para listar invitaciones recibidas)
    - Publicar user_id / org_id en el contexto de logging.

Colaboradores:
    - domain.access_policy.AccessContext
    - context.set_identity_context
    - crosscutting.exceptions.NotAuthenticatedError (401)

Notas:
    - La autenticación (firmas, sesiones) vive fuera de este servicio; acá
      solo se traduce identidad ya verificada a un contexto neutro.
===============================================================================
"""

from __future__ import annotations

from typing import Optional

from fastapi import Header

from ..context import set_identity_context
from ..crosscutting.exceptions import NotAuthenticatedError
from ..domain.access_policy import AccessContext

_TRUTHY = {"1", "true", "yes", "on"}


def _clean(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip()
    return value or None


def build_access_context(
    user_id: Optional[str],
    org_id: Optional[str] = None,
    org_admin: Optional[str] = None,
    email: Optional[str] = None,
) -> AccessContext:
    user = _clean(user_id)
    org = _clean(org_id)
    ctx = AccessContext(
        user_id=user,
        org_id=org,
        # Sin org activa no hay a qué ser admin.
        is_org_admin=org is not None and (org_admin or "").strip().lower() in _TRUTHY,
        email=_clean(email),
    )
    set_identity_context(user_id=user, org_id=org)
    return ctx


def get_access_context(
    x_user_id: Optional[str] = Header(default=None),
    x_org_id: Optional[str] = Header(default=None),
    x_org_admin: Optional[str] = Header(default=None),
    x_user_email: Optional[str] = Header(default=None),
) -> AccessContext:
    """Dependencia FastAPI: caller opcional (sin X-User-Id = anónimo)."""
    return build_access_context(x_user_id, x_org_id, x_org_admin, x_user_email)


def require_access_context(
    x_user_id: Optional[str] = Header(default=None),
    x_org_id: Optional[str] = Header(default=None),
    x_org_admin: Optional[str] = Header(default=None),
    x_user_email: Optional[str] = Header(default=None),
) -> AccessContext:
    """Dependencia FastAPI: exige X-User-Id (401 si falta)."""
    ctx = build_access_context(x_user_id, x_org_id, x_org_admin, x_user_email)
    if not ctx.user_id:
        raise NotAuthenticatedError("Missing X-User-Id header")
    return ctx
