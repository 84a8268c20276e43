"""
===============================================================================
TARJETA CRC — workspace_authz/context.py (Contexto por request / job)
===============================================================================

Responsabilidades:
  - Mantener contexto "request-scoped" usando ContextVars (async-safe).
  - Correlacionar logs con request_id y con la identidad que pregunta
    (user_id / org_id) sin pasar parámetros por todo el stack.

Colaboradores:
  - crosscutting.middleware: setea request_id/method/path al inicio del request.
  - identity.org_context: setea user_id/org_id una vez resuelta la identidad.
  - crosscutting.logger: enriquece logs leyendo get_context_dict().
  - scripts/backfill_ancestor_paths.py: setea request_id por corrida.

Restricciones:
  - Solo strings; "" significa "no disponible".
===============================================================================
"""

from __future__ import annotations

from contextvars import ContextVar
from typing import Final

request_id_var: ContextVar[str] = ContextVar("request_id", default="")
http_method_var: ContextVar[str] = ContextVar("http_method", default="")
http_path_var: ContextVar[str] = ContextVar("http_path", default="")

# Identidad (opaca) del proveedor externo.
user_id_var: ContextVar[str] = ContextVar("user_id", default="")
org_id_var: ContextVar[str] = ContextVar("org_id", default="")

_CTX_KEYS: Final[tuple[tuple[str, ContextVar[str]], ...]] = (
    ("request_id", request_id_var),
    ("method", http_method_var),
    ("path", http_path_var),
    ("user_id", user_id_var),
    ("org_id", org_id_var),
)


def set_request_context(
    *, request_id: str = "", method: str = "", path: str = ""
) -> None:
    request_id_var.set(request_id or "")
    http_method_var.set(method or "")
    http_path_var.set(path or "")


def set_identity_context(*, user_id: str | None = "", org_id: str | None = "") -> None:
    user_id_var.set(user_id or "")
    org_id_var.set(org_id or "")


def get_context_dict() -> dict[str, str]:
    """Contexto actual como dict, omitiendo claves vacías."""
    return {key: val for key, var in _CTX_KEYS if (val := var.get())}


def clear_context() -> None:
    """
    Limpia el contexto al final del request/job.

    Evita "filtración de contexto" entre requests con workers reutilizados.
    """
    for _, var in _CTX_KEYS:
        var.set("")
