"""
===============================================================================
TARJETA CRC — domain/entities.py
===============================================================================

Módulo:
    Entidades del Dominio (Node, Grant, Invitation, ShareLink)

Responsabilidades:
    - Definir las estructuras centrales del árbol de carpetas/documentos y de los
      permisos explícitos (sin infraestructura).
    - Brindar helpers mínimos (expiración, soft delete) para mantener invariantes
      simples en un único lugar.

Colaboradores:
    - domain.repositories: persisten/recuperan estas entidades.
    - application: AccessResolver, GrantStore, InvitationService, ShareLinkService.
    - interfaces/api: serializan DTOs a partir de estas entidades.

Principios:
    - Sin dependencias a DB/FastAPI.
    - user_id / org_id son strings opacos del proveedor de identidad.
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional
from uuid import UUID

from .roles import EffectiveRole


def _utcnow() -> datetime:
    """Fecha/hora UTC (helper interno)."""
    return datetime.now(timezone.utc)


def _is_past(expires_at: datetime | None, now: datetime) -> bool:
    return expires_at is not None and expires_at < now


# ---------------------------------------------------------------------------
# Node
# ---------------------------------------------------------------------------


class NodeType(str, Enum):
    """Tipo de nodo del árbol."""

    FOLDER = "folder"
    DOC = "doc"


@dataclass
class Node:
    """
    Carpeta o documento del workspace.

    Invariantes:
      - Exactamente uno de owner_id / org_id está seteado (personal vs org).
      - ancestor_ids es root-first y ancestor_ids[-1] == parent_id.
    """

    id: UUID
    type: NodeType
    title: str = ""
    parent_id: Optional[UUID] = None
    owner_id: Optional[str] = None
    org_id: Optional[str] = None
    is_restricted: bool = False
    is_deleted: bool = False
    ancestor_ids: List[UUID] = field(default_factory=list)
    created_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if (self.owner_id is None) == (self.org_id is None):
            raise ValueError("Node must have exactly one of owner_id / org_id")

    @property
    def is_folder(self) -> bool:
        return self.type == NodeType.FOLDER

    @property
    def is_personal(self) -> bool:
        return self.owner_id is not None

    def has_consistent_ancestors(self) -> bool:
        """True si el último ancestro coincide con parent_id."""
        if self.parent_id is None:
            return not self.ancestor_ids
        return bool(self.ancestor_ids) and self.ancestor_ids[-1] == self.parent_id

    def mark_deleted(self, *, at: datetime | None = None) -> None:
        """Soft delete."""
        self.is_deleted = True
        self.deleted_at = at or _utcnow()


# ---------------------------------------------------------------------------
# Grant
# ---------------------------------------------------------------------------


@dataclass
class Grant:
    """Permiso explícito de un usuario sobre una carpeta."""

    folder_id: UUID
    user_id: str
    role: EffectiveRole
    org_id: Optional[str] = None
    granted_by: Optional[str] = None
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    def is_expired(self, now: datetime | None = None) -> bool:
        return _is_past(self.expires_at, now or _utcnow())

    def is_active(self, now: datetime | None = None) -> bool:
        return not self.is_expired(now)


# ---------------------------------------------------------------------------
# Invitation
# ---------------------------------------------------------------------------


class InvitationStatus(str, Enum):
    """Estados de una invitación."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    EXPIRED = "expired"


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


@dataclass
class Invitation:
    """Invitación de un destinatario (email) a una carpeta."""

    id: UUID
    folder_id: UUID
    email: str
    role: EffectiveRole
    token: str
    expires_at: datetime
    status: InvitationStatus = InvitationStatus.PENDING
    org_id: Optional[str] = None
    invited_by: Optional[str] = None
    message: Optional[str] = None
    created_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None

    def is_past_expiry(self, now: datetime | None = None) -> bool:
        return _is_past(self.expires_at, now or _utcnow())

    def effective_status(self, now: datetime | None = None) -> InvitationStatus:
        """Estado visible: pending vencida se reporta como expired."""
        if self.status == InvitationStatus.PENDING and self.is_past_expiry(now):
            return InvitationStatus.EXPIRED
        return self.status


# ---------------------------------------------------------------------------
# ShareLink
# ---------------------------------------------------------------------------


@dataclass
class ShareLink:
    """Link reutilizable (bearer) que otorga un rol fijo a quien lo use."""

    id: UUID
    folder_id: UUID
    token: str
    role: EffectiveRole
    org_id: Optional[str] = None
    created_by: Optional[str] = None
    is_active: bool = True
    max_uses: Optional[int] = None
    use_count: int = 0
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    last_used_at: Optional[datetime] = None

    def is_expired(self, now: datetime | None = None) -> bool:
        return _is_past(self.expires_at, now or _utcnow())

    @property
    def is_maxed_out(self) -> bool:
        return self.max_uses is not None and self.use_count >= self.max_uses

    def is_usable(self, now: datetime | None = None) -> bool:
        return self.is_active and not self.is_expired(now) and not self.is_maxed_out
