"""
===============================================================================
TARJETA CRC — domain/access_policy.py
===============================================================================

Módulo:
    Política de Acciones sobre Nodos (resultado de acceso + gating)

Responsabilidades:
    - Definir AccessContext (quién pregunta) y AccessCheck (qué se resolvió).
    - Decidir si un AccessCheck habilita una acción (can_perform_action).
    - Ser 100% testeable: funciones puras, inputs explícitos.

Colaboradores:
    - domain.roles: EffectiveRole, Action, MIN_ROLE_FOR_ACTION.
    - application.access_resolver: produce AccessCheck.
    - application services: usan can_perform_action antes de mutar.

Reglas:
    - view: alcanza con has_access.
    - edit >= editor; invite/manage >= admin; delete >= org_admin.
    - Monótona: cualquier rol >= a uno que pasa, también pasa.
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from .roles import MIN_ROLE_FOR_ACTION, Action, EffectiveRole


@dataclass(frozen=True, slots=True)
class AccessContext:
    """Identidad provista por el proveedor externo (confiable)."""

    user_id: str | None
    org_id: str | None = None
    is_org_admin: bool = False
    # Solo para listar invitaciones recibidas; nunca participa en la resolución.
    email: str | None = None


@dataclass(frozen=True, slots=True)
class AccessCheck:
    """Decisión de acceso para un nodo."""

    has_access: bool
    role: EffectiveRole | None = None
    is_owner: bool = False
    is_org_admin: bool = False
    inherited_from: UUID | None = None

    def with_inherited_from(self, node_id: UUID | None) -> "AccessCheck":
        return AccessCheck(
            has_access=self.has_access,
            role=self.role,
            is_owner=self.is_owner,
            is_org_admin=self.is_org_admin,
            inherited_from=node_id,
        )


NO_ACCESS = AccessCheck(has_access=False)


def owner_access() -> AccessCheck:
    return AccessCheck(has_access=True, role=EffectiveRole.OWNER, is_owner=True)


def org_admin_access() -> AccessCheck:
    return AccessCheck(
        has_access=True, role=EffectiveRole.ORG_ADMIN, is_org_admin=True
    )


def role_access(role: EffectiveRole, *, inherited_from: UUID | None = None) -> AccessCheck:
    return AccessCheck(has_access=True, role=role, inherited_from=inherited_from)


def can_perform_action(access: AccessCheck, action: Action | str) -> bool:
    """Evalúa si el acceso resuelto alcanza para la acción."""
    if not access.has_access or access.role is None:
        return False

    action = Action(action)
    return access.role >= MIN_ROLE_FOR_ACTION[action]
