"""
===============================================================================
TARJETA CRC — interfaces/api/http/routers/share_links.py
===============================================================================

Class/Module:
    Share Links Router

Responsibilities:
    - Crear y listar links de una carpeta.
    - Canjear por token; administrar por id (activar, desactivar, patch, borrar).

Collaborators:
    - container.Services (ShareLinkService)
    - schemas.share_links / schemas.invitations.RedemptionRes
===============================================================================
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Response

from .....domain.access_policy import AccessContext
from ..dependencies import Services, get_services, require_access_context
from ..schemas.invitations import RedemptionRes
from ..schemas.share_links import (
    CreateShareLinkReq,
    ShareLinkRes,
    ShareLinksListRes,
    UpdateShareLinkReq,
)

router = APIRouter()


@router.post(
    "/folders/{folder_id}/share-links",
    response_model=ShareLinkRes,
    status_code=201,
    tags=["share-links"],
)
def create_share_link(
    folder_id: UUID,
    req: CreateShareLinkReq,
    ctx: AccessContext = Depends(require_access_context),
    services: Services = Depends(get_services),
):
    link = services.share_links.create(
        ctx,
        folder_id,
        req.role,
        expires_in_days=req.expires_in_days,
        max_uses=req.max_uses,
    )
    return ShareLinkRes.from_entity(link, include_token=True)


@router.get(
    "/folders/{folder_id}/share-links",
    response_model=ShareLinksListRes,
    tags=["share-links"],
)
def list_share_links(
    folder_id: UUID,
    ctx: AccessContext = Depends(require_access_context),
    services: Services = Depends(get_services),
):
    views = services.share_links.list_by_folder(ctx, folder_id)
    return ShareLinksListRes(
        share_links=[ShareLinkRes.from_view(v, include_token=True) for v in views]
    )


@router.get("/share-links/{token}", response_model=ShareLinkRes, tags=["share-links"])
def get_share_link(
    token: str,
    services: Services = Depends(get_services),
):
    return ShareLinkRes.from_view(services.share_links.get_by_token(token))


@router.post(
    "/share-links/{token}/use", response_model=RedemptionRes, tags=["share-links"]
)
def use_share_link(
    token: str,
    ctx: AccessContext = Depends(require_access_context),
    services: Services = Depends(get_services),
):
    return RedemptionRes.from_result(services.share_links.use(ctx, token))


@router.post(
    "/share-links/by-id/{link_id}/deactivate",
    response_model=ShareLinkRes,
    tags=["share-links"],
)
def deactivate_share_link(
    link_id: UUID,
    ctx: AccessContext = Depends(require_access_context),
    services: Services = Depends(get_services),
):
    return ShareLinkRes.from_entity(services.share_links.deactivate(ctx, link_id))


@router.post(
    "/share-links/by-id/{link_id}/activate",
    response_model=ShareLinkRes,
    tags=["share-links"],
)
def activate_share_link(
    link_id: UUID,
    ctx: AccessContext = Depends(require_access_context),
    services: Services = Depends(get_services),
):
    return ShareLinkRes.from_entity(services.share_links.activate(ctx, link_id))


@router.patch(
    "/share-links/by-id/{link_id}", response_model=ShareLinkRes, tags=["share-links"]
)
def update_share_link(
    link_id: UUID,
    req: UpdateShareLinkReq,
    ctx: AccessContext = Depends(require_access_context),
    services: Services = Depends(get_services),
):
    link = services.share_links.update(
        ctx,
        link_id,
        role=req.role,
        max_uses=req.max_uses,
        expires_at=req.expires_at,
    )
    return ShareLinkRes.from_entity(link)


@router.delete("/share-links/by-id/{link_id}", status_code=204, tags=["share-links"])
def delete_share_link(
    link_id: UUID,
    ctx: AccessContext = Depends(require_access_context),
    services: Services = Depends(get_services),
):
    services.share_links.delete(ctx, link_id)
    return Response(status_code=204)
