"""
===============================================================================
TARJETA CRC — domain/roles.py
===============================================================================

Módulo:
    Roles efectivos y acciones (orden total)

Responsabilidades:
    - Definir EffectiveRole como enum con orden total explícito
      (viewer < editor < admin < org_admin < owner).
    - Definir los subconjuntos válidos para grants e invitaciones (viewer/editor/admin)
      y para share links (viewer/editor).
    - Definir Action y el rol mínimo requerido por cada acción.
    - Parsear strings de rol de forma estricta (un rol mal escrito es un error,
      nunca "menor que todo").

Colaboradores:
    - domain.access_policy: can_perform_action usa MIN_ROLE_FOR_ACTION.
    - domain.entities: Grant / Invitation / ShareLink guardan un EffectiveRole.
    - infrastructure.repositories: serializan con .value y parsean con parse_role.
===============================================================================
"""

from __future__ import annotations

from enum import Enum
from typing import Final, FrozenSet


class EffectiveRole(str, Enum):
    """Rol resuelto y comparable."""

    VIEWER = "viewer"
    EDITOR = "editor"
    ADMIN = "admin"
    ORG_ADMIN = "org_admin"
    OWNER = "owner"

    @property
    def rank(self) -> int:
        return _RANKS[self]

    # str ya define los cuatro operadores; se redefinen todos para que el orden
    # sea el de rank y no el lexicográfico.
    def __lt__(self, other: object) -> bool:
        if not isinstance(other, EffectiveRole):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, EffectiveRole):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, EffectiveRole):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, EffectiveRole):
            return NotImplemented
        return self.rank >= other.rank


_RANKS: Final[dict[EffectiveRole, int]] = {
    EffectiveRole.VIEWER: 1,
    EffectiveRole.EDITOR: 2,
    EffectiveRole.ADMIN: 3,
    EffectiveRole.ORG_ADMIN: 4,
    EffectiveRole.OWNER: 5,
}

GRANTABLE_ROLES: Final[FrozenSet[EffectiveRole]] = frozenset(
    {EffectiveRole.VIEWER, EffectiveRole.EDITOR, EffectiveRole.ADMIN}
)

SHARE_LINK_ROLES: Final[FrozenSet[EffectiveRole]] = frozenset(
    {EffectiveRole.VIEWER, EffectiveRole.EDITOR}
)


class Action(str, Enum):
    """Acciones sobre un nodo."""

    VIEW = "view"
    EDIT = "edit"
    INVITE = "invite"
    MANAGE = "manage"
    DELETE = "delete"


MIN_ROLE_FOR_ACTION: Final[dict[Action, EffectiveRole]] = {
    Action.VIEW: EffectiveRole.VIEWER,
    Action.EDIT: EffectiveRole.EDITOR,
    Action.INVITE: EffectiveRole.ADMIN,
    Action.MANAGE: EffectiveRole.ADMIN,
    Action.DELETE: EffectiveRole.ORG_ADMIN,
}


def parse_role(
    value: str | EffectiveRole,
    *,
    allowed: FrozenSet[EffectiveRole] | None = None,
) -> EffectiveRole:
    """
    Convierte un string a EffectiveRole.

    Reglas:
      - strip + lower antes de comparar.
      - Un valor desconocido levanta ValueError.
      - Si se pasa `allowed`, el rol debe pertenecer al subconjunto.
    """
    if isinstance(value, EffectiveRole):
        role = value
    else:
        cleaned = (value or "").strip().lower()
        try:
            role = EffectiveRole(cleaned)
        except ValueError:
            raise ValueError(f"Unknown role: {value!r}") from None

    if allowed is not None and role not in allowed:
        allowed_names = ", ".join(sorted(r.value for r in allowed))
        raise ValueError(f"Role {role.value!r} not allowed here (expected {allowed_names})")

    return role
