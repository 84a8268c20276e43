"""
===============================================================================
MÓDULO: Excepciones tipadas del motor de autorización
===============================================================================

Objetivo
--------
Tener excepciones internas coherentes, con:
- error_code estable (contrato con clientes)
- error_id para correlación con logs
- message "humana" (sin filtrar tokens ni secretos)
- status_code HTTP sugerido (lo usa api/exception_handlers.py)

-------------------------------------------------------------------------------
CRC (Component Card)
-------------------------------------------------------------------------------
Componente:
  AuthzError + subclases

Responsabilidades:
  - Estandarizar errores de dominio/infra que luego se mapean a HTTP (RFC 7807)
  - Distinguir "no autenticado", "no autorizado", "estado inválido" y "vencido"

Colaboradores:
  - application/*: levantan estas excepciones
  - api/exception_handlers.py: las mapea a problem+json
  - crosscutting/logger.py
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import uuid4


@dataclass(frozen=True)
class ErrorResponse:
    """Estructura mínima para responder errores de forma consistente."""

    error_code: str
    message: str
    error_id: str

    def to_dict(self) -> dict:
        return {
            "error_code": self.error_code,
            "message": self.message,
            "error_id": self.error_id,
        }


class AuthzError(Exception):
    """
    ----------------------------------------------------------------------------
    CRC (Class Card)
    ----------------------------------------------------------------------------
    Clase:
      AuthzError

    Responsabilidades:
      - Base para errores internos del sistema
      - Proveer error_code + error_id + message + status_code

    Colaboradores:
      - api/exception_handlers.py
    ----------------------------------------------------------------------------
    """

    error_code: str = "AUTHZ_ERROR"
    status_code: int = 500
    title: str = "Internal Server Error"

    def __init__(
        self,
        message: str,
        error_id: str | None = None,
        original_error: Exception | None = None,
    ):
        self.message = message
        self.error_id = error_id or str(uuid4())
        self.original_error = original_error
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(
            error_code=self.error_code, message=self.message, error_id=self.error_id
        )


class DatabaseError(AuthzError):
    """Errores de DB (conexión, query, timeout, pool)."""

    error_code: str = "DATABASE_ERROR"
    status_code: int = 503
    title: str = "Service Unavailable"


class DatabasePoolError(DatabaseError):
    """Fallas del pool de conexiones (ciclo de vida o adquisición)."""

    error_code: str = "DATABASE_POOL_ERROR"


class PoolAlreadyInitializedError(DatabasePoolError):
    """init_pool() llamado dos veces en el mismo proceso (bug de wiring)."""

    error_code: str = "DATABASE_POOL_ALREADY_INITIALIZED"
    status_code: int = 500
    title: str = "Internal Server Error"


class PoolNotInitializedError(DatabasePoolError):
    """Backend postgres sin init_pool(): el lifespan no abrió el pool."""

    error_code: str = "DATABASE_POOL_NOT_INITIALIZED"


class DatabaseConnectionError(DatabasePoolError):
    """No se pudo adquirir o validar una conexión (DB caída, timeout del pool)."""

    error_code: str = "DATABASE_UNAVAILABLE"


class TreeIntegrityError(AuthzError):
    """Ciclo o profundidad excesiva en la cadena de padres."""

    error_code: str = "TREE_INTEGRITY_ERROR"
    status_code: int = 500


# =============================================================================
# Identidad / permisos
# =============================================================================


class NotAuthenticatedError(AuthzError):
    error_code: str = "NOT_AUTHENTICATED"
    status_code: int = 401
    title: str = "Unauthorized"


class NotAuthorizedError(AuthzError):
    error_code: str = "NOT_AUTHORIZED"
    status_code: int = 403
    title: str = "Forbidden"


class InvalidRequestError(AuthzError):
    """Input válido sintácticamente pero rechazado por reglas (ej: carpeta personal)."""

    error_code: str = "INVALID_REQUEST"
    status_code: int = 400
    title: str = "Bad Request"


# =============================================================================
# Nodos
# =============================================================================


class NodeNotFoundError(AuthzError):
    error_code: str = "NODE_NOT_FOUND"
    status_code: int = 404
    title: str = "Not Found"


class FolderNotFoundError(NodeNotFoundError):
    error_code: str = "FOLDER_NOT_FOUND"


class GrantNotFoundError(AuthzError):
    error_code: str = "GRANT_NOT_FOUND"
    status_code: int = 404
    title: str = "Not Found"


# =============================================================================
# Invitaciones
# =============================================================================


class InvitationNotFoundError(AuthzError):
    error_code: str = "INVITATION_NOT_FOUND"
    status_code: int = 404
    title: str = "Not Found"


class InvitationAlreadyAcceptedError(AuthzError):
    error_code: str = "INVITATION_ALREADY_ACCEPTED"
    status_code: int = 409
    title: str = "Conflict"


class InvitationAlreadyDeclinedError(AuthzError):
    error_code: str = "INVITATION_ALREADY_DECLINED"
    status_code: int = 409
    title: str = "Conflict"


class InvitationExpiredError(AuthzError):
    error_code: str = "INVITATION_EXPIRED"
    status_code: int = 410
    title: str = "Gone"


# =============================================================================
# Share links
# =============================================================================


class ShareLinkNotFoundError(AuthzError):
    error_code: str = "SHARE_LINK_NOT_FOUND"
    status_code: int = 404
    title: str = "Not Found"


class ShareLinkDisabledError(AuthzError):
    error_code: str = "SHARE_LINK_DISABLED"
    status_code: int = 410
    title: str = "Gone"


class ShareLinkExpiredError(AuthzError):
    error_code: str = "SHARE_LINK_EXPIRED"
    status_code: int = 410
    title: str = "Gone"


class ShareLinkExhaustedError(AuthzError):
    error_code: str = "SHARE_LINK_EXHAUSTED"
    status_code: int = 410
    title: str = "Gone"
