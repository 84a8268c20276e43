"""
===============================================================================
TARJETA CRC — schemas/invitations.py
===============================================================================

Módulo:
    Schemas HTTP para invitaciones y canjes

Responsabilidades:
    - CreateInvitationReq: email + rol + mensaje + expiración opcional.
    - InvitationRes: incluye estado visible (pending vencida -> expired).
    - RedemptionRes: resultado de aceptar invitación / usar share link.

Notas:
    - El token SOLO se devuelve al emisor (respuesta de creación y listados
      de la carpeta); nunca se loguea.
===============================================================================
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from .....application.results import GrantRedemption, InvitationView
from .....domain.entities import Invitation


class CreateInvitationReq(BaseModel):
    email: str = Field(..., min_length=3, max_length=320)
    role: str = Field(..., max_length=20, description="viewer | editor | admin")
    message: str | None = Field(default=None, max_length=2000)
    expires_in_days: int | None = Field(default=None, ge=1, le=365)


class InvitationRes(BaseModel):
    id: UUID
    folder_id: UUID
    email: str
    role: str
    status: str
    is_expired: bool = False
    expires_at: datetime
    invited_by: str | None = None
    message: str | None = None
    created_at: datetime | None = None
    accepted_at: datetime | None = None
    token: str | None = None

    @classmethod
    def from_entity(
        cls,
        invitation: Invitation,
        *,
        status: str | None = None,
        is_expired: bool = False,
        include_token: bool = False,
    ) -> "InvitationRes":
        return cls(
            id=invitation.id,
            folder_id=invitation.folder_id,
            email=invitation.email,
            role=invitation.role.value,
            status=status or invitation.status.value,
            is_expired=is_expired,
            expires_at=invitation.expires_at,
            invited_by=invitation.invited_by,
            message=invitation.message,
            created_at=invitation.created_at,
            accepted_at=invitation.accepted_at,
            token=invitation.token if include_token else None,
        )

    @classmethod
    def from_view(cls, view: InvitationView, *, include_token: bool = False) -> "InvitationRes":
        return cls.from_entity(
            view.invitation,
            status=view.status.value,
            is_expired=view.is_expired,
            include_token=include_token,
        )


class InvitationCreatedRes(BaseModel):
    invitation: InvitationRes
    is_existing: bool


class InvitationsListRes(BaseModel):
    invitations: list[InvitationRes]


class RedemptionRes(BaseModel):
    folder_id: UUID
    role: str
    effective_role: str
    grant_changed: bool

    @classmethod
    def from_result(cls, result: GrantRedemption) -> "RedemptionRes":
        return cls(
            folder_id=result.folder_id,
            role=result.role.value,
            effective_role=result.effective_role.value,
            grant_changed=result.grant_changed,
        )
