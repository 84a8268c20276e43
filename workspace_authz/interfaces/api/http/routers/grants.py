"""
===============================================================================
TARJETA CRC — interfaces/api/http/routers/grants.py
===============================================================================

Class/Module:
    Grants Router

Responsibilities:
    - Asignar, cambiar, revocar y listar grants explícitos por carpeta.
    - Listar carpetas accesibles del caller (grants + descendientes).

Collaborators:
    - container.Services (FolderAccessService)
    - schemas.grants (DTOs)
===============================================================================
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Response

from .....crosscutting.exceptions import GrantNotFoundError
from .....domain.access_policy import AccessContext
from ..dependencies import Services, get_services, require_access_context
from ..schemas.grants import (
    AccessibleFoldersRes,
    GrantAccessReq,
    GrantRes,
    GrantsListRes,
    UpdateGrantRoleReq,
)

router = APIRouter()


@router.get(
    "/folders/accessible", response_model=AccessibleFoldersRes, tags=["grants"]
)
def list_accessible_folders(
    ctx: AccessContext = Depends(require_access_context),
    services: Services = Depends(get_services),
):
    folder_ids = services.folder_access.list_accessible_folder_ids(ctx)
    return AccessibleFoldersRes(folder_ids=sorted(folder_ids, key=str))


@router.get(
    "/folders/{folder_id}/grants", response_model=GrantsListRes, tags=["grants"]
)
def list_folder_grants(
    folder_id: UUID,
    ctx: AccessContext = Depends(require_access_context),
    services: Services = Depends(get_services),
):
    grants = services.folder_access.list_grants(ctx, folder_id)
    return GrantsListRes(grants=[GrantRes.from_entity(g) for g in grants])


@router.get(
    "/folders/{folder_id}/grants/{user_id}", response_model=GrantRes, tags=["grants"]
)
def get_user_grant(
    folder_id: UUID,
    user_id: str,
    ctx: AccessContext = Depends(require_access_context),
    services: Services = Depends(get_services),
):
    grant = services.folder_access.get_user_grant(ctx, folder_id, user_id)
    if grant is None:
        raise GrantNotFoundError(f"User '{user_id}' has no active grant on this folder")
    return GrantRes.from_entity(grant)


@router.put(
    "/folders/{folder_id}/grants/{user_id}", response_model=GrantRes, tags=["grants"]
)
def grant_access(
    folder_id: UUID,
    user_id: str,
    req: GrantAccessReq,
    ctx: AccessContext = Depends(require_access_context),
    services: Services = Depends(get_services),
):
    grant = services.folder_access.grant_access(
        ctx, folder_id, user_id, req.role, expires_at=req.expires_at
    )
    return GrantRes.from_entity(grant)


@router.patch(
    "/folders/{folder_id}/grants/{user_id}", response_model=GrantRes, tags=["grants"]
)
def update_grant_role(
    folder_id: UUID,
    user_id: str,
    req: UpdateGrantRoleReq,
    ctx: AccessContext = Depends(require_access_context),
    services: Services = Depends(get_services),
):
    grant = services.folder_access.update_role(ctx, folder_id, user_id, req.role)
    return GrantRes.from_entity(grant)


@router.delete(
    "/folders/{folder_id}/grants/{user_id}", status_code=204, tags=["grants"]
)
def revoke_access(
    folder_id: UUID,
    user_id: str,
    ctx: AccessContext = Depends(require_access_context),
    services: Services = Depends(get_services),
):
    # Idempotente: revocar algo inexistente también es 204.
    services.folder_access.revoke_access(ctx, folder_id, user_id)
    return Response(status_code=204)
