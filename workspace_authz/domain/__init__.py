"""
===============================================================================
TARJETA CRC — domain/__init__.py
===============================================================================

Módulo:
    Exportaciones de la Capa de Dominio (API pública del dominio)

Responsabilidades:
    - Centralizar exports para imports limpios en application/interfaces.
    - Mantener estable el "surface area" del dominio.

Colaboradores:
    - domain.entities: Node, Grant, Invitation, ShareLink
    - domain.roles: EffectiveRole, Action
    - domain.access_policy: AccessContext, AccessCheck, can_perform_action
    - domain.repositories: Puertos de persistencia

Reglas:
    - Solo re-exporta contratos/entidades del dominio.
    - No importar infraestructura aquí.
===============================================================================
"""

from .access_policy import NO_ACCESS, AccessCheck, AccessContext, can_perform_action
from .entities import (
    Grant,
    Invitation,
    InvitationStatus,
    Node,
    NodeType,
    ShareLink,
    normalize_email,
)
from .repositories import (
    GrantRepository,
    InvitationRepository,
    NodeRepository,
    ShareLinkRepository,
)
from .roles import (
    GRANTABLE_ROLES,
    SHARE_LINK_ROLES,
    Action,
    EffectiveRole,
    parse_role,
)

__all__ = [
    # Access
    "AccessCheck",
    "AccessContext",
    "NO_ACCESS",
    "can_perform_action",
    # Entities
    "Grant",
    "Invitation",
    "InvitationStatus",
    "Node",
    "NodeType",
    "ShareLink",
    "normalize_email",
    # Repositories
    "GrantRepository",
    "InvitationRepository",
    "NodeRepository",
    "ShareLinkRepository",
    # Roles
    "Action",
    "EffectiveRole",
    "GRANTABLE_ROLES",
    "SHARE_LINK_ROLES",
    "parse_role",
]
