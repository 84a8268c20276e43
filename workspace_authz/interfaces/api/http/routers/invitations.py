"""
===============================================================================
TARJETA CRC — interfaces/api/http/routers/invitations.py
===============================================================================

Class/Module:
    Invitations Router

Responsibilities:
    - Emitir invitaciones (por carpeta) y listarlas.
    - Aceptar / rechazar por token; revocar por id.
    - Listados del caller: enviadas y recibidas.

Collaborators:
    - container.Services (InvitationService)
    - schemas.invitations (DTOs)

Notes:
    - Las rutas fijas (/invitations/sent, /invitations/received) se declaran
      antes que /invitations/{token}.
===============================================================================
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response

from .....domain.access_policy import AccessContext
from .....domain.entities import InvitationStatus
from ..dependencies import Services, get_services, require_access_context
from ..schemas.invitations import (
    CreateInvitationReq,
    InvitationCreatedRes,
    InvitationRes,
    InvitationsListRes,
    RedemptionRes,
)

router = APIRouter()


@router.post(
    "/folders/{folder_id}/invitations",
    response_model=InvitationCreatedRes,
    status_code=201,
    tags=["invitations"],
)
def create_invitation(
    folder_id: UUID,
    req: CreateInvitationReq,
    ctx: AccessContext = Depends(require_access_context),
    services: Services = Depends(get_services),
):
    created = services.invitations.create(
        ctx,
        folder_id,
        req.email,
        req.role,
        message=req.message,
        expires_in_days=req.expires_in_days,
    )
    return InvitationCreatedRes(
        invitation=InvitationRes.from_entity(created.invitation, include_token=True),
        is_existing=created.is_existing,
    )


@router.get(
    "/folders/{folder_id}/invitations",
    response_model=InvitationsListRes,
    tags=["invitations"],
)
def list_folder_invitations(
    folder_id: UUID,
    ctx: AccessContext = Depends(require_access_context),
    services: Services = Depends(get_services),
):
    views = services.invitations.list_pending_by_folder(ctx, folder_id)
    return InvitationsListRes(
        invitations=[InvitationRes.from_view(v, include_token=True) for v in views]
    )


@router.get(
    "/invitations/sent", response_model=InvitationsListRes, tags=["invitations"]
)
def list_sent_invitations(
    status: InvitationStatus | None = Query(None),
    ctx: AccessContext = Depends(require_access_context),
    services: Services = Depends(get_services),
):
    invitations = services.invitations.list_sent_by_user(ctx, status)
    return InvitationsListRes(
        invitations=[InvitationRes.from_entity(inv) for inv in invitations]
    )


@router.get(
    "/invitations/received", response_model=InvitationsListRes, tags=["invitations"]
)
def list_received_invitations(
    ctx: AccessContext = Depends(require_access_context),
    services: Services = Depends(get_services),
):
    """Pendientes dirigidas al email del caller (header X-User-Email)."""
    views = services.invitations.list_received_by_email(ctx)
    return InvitationsListRes(
        invitations=[InvitationRes.from_view(v, include_token=True) for v in views]
    )


@router.get("/invitations/{token}", response_model=InvitationRes, tags=["invitations"])
def get_invitation(
    token: str,
    services: Services = Depends(get_services),
):
    return InvitationRes.from_view(services.invitations.get_by_token(token))


@router.post(
    "/invitations/{token}/accept", response_model=RedemptionRes, tags=["invitations"]
)
def accept_invitation(
    token: str,
    ctx: AccessContext = Depends(require_access_context),
    services: Services = Depends(get_services),
):
    return RedemptionRes.from_result(services.invitations.accept(ctx, token))


@router.post(
    "/invitations/{token}/decline", response_model=InvitationRes, tags=["invitations"]
)
def decline_invitation(
    token: str,
    ctx: AccessContext = Depends(require_access_context),
    services: Services = Depends(get_services),
):
    return InvitationRes.from_entity(services.invitations.decline(ctx, token))


@router.delete(
    "/invitations/by-id/{invitation_id}", status_code=204, tags=["invitations"]
)
def revoke_invitation(
    invitation_id: UUID,
    ctx: AccessContext = Depends(require_access_context),
    services: Services = Depends(get_services),
):
    services.invitations.revoke(ctx, invitation_id)
    return Response(status_code=204)
