"""
===============================================================================
TARJETA CRC — interfaces/api/http/routers/nodes.py
===============================================================================

Class/Module:
    Nodes Router (árbol + resolución de acceso)

Responsibilities:
    - Alta, lectura, movimiento, restricción y borrado lógico de nodos.
    - Exponer resolve_access y la carpeta restringida raíz de un nodo.

Collaborators:
    - container.Services (NodeTreeService, AccessResolver)
    - identity.org_context (AccessContext desde headers)
    - schemas.nodes (DTOs)

Notes:
    - Errores tipados (AuthzError) los traduce api/exception_handlers.
    - Lecturas sin acceso responden 404 (no filtrar existencia).
===============================================================================
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends

from .....domain.access_policy import AccessContext
from ..dependencies import (
    Services,
    get_access_context,
    get_services,
    require_access_context,
)
from ..schemas.nodes import (
    AccessCheckRes,
    CreateNodeReq,
    DeleteNodeRes,
    MoveNodeReq,
    NodeRes,
    RootRestrictedRes,
    SetRestrictedReq,
)

router = APIRouter()


@router.post("/nodes", response_model=NodeRes, status_code=201, tags=["nodes"])
def create_node(
    req: CreateNodeReq,
    ctx: AccessContext = Depends(require_access_context),
    services: Services = Depends(get_services),
):
    node = services.tree.register_node(
        ctx,
        node_type=req.type,
        title=req.title,
        parent_id=req.parent_id,
        org_id=req.org_id,
        is_restricted=req.is_restricted,
    )
    return NodeRes.from_entity(node)


@router.get("/nodes/{node_id}", response_model=NodeRes, tags=["nodes"])
def get_node(
    node_id: UUID,
    ctx: AccessContext = Depends(require_access_context),
    services: Services = Depends(get_services),
):
    return NodeRes.from_entity(services.tree.get_visible_node(ctx, node_id))


@router.get("/nodes/{node_id}/access", response_model=AccessCheckRes, tags=["access"])
def resolve_access(
    node_id: UUID,
    ctx: AccessContext = Depends(get_access_context),
    services: Services = Depends(get_services),
):
    """
    Decisión de acceso del caller sobre el nodo.

    Inexistente y sin acceso devuelven lo mismo (has_access=false).
    """
    return AccessCheckRes.from_check(node_id, services.resolver.resolve_access(node_id, ctx))


@router.get(
    "/nodes/{node_id}/root-restricted",
    response_model=RootRestrictedRes,
    tags=["access"],
)
def get_root_restricted_folder(
    node_id: UUID,
    ctx: AccessContext = Depends(require_access_context),
    services: Services = Depends(get_services),
):
    services.tree.get_visible_node(ctx, node_id)
    return RootRestrictedRes(
        node_id=node_id,
        root_restricted_folder_id=services.resolver.get_root_restricted_folder(node_id),
    )


@router.post("/nodes/{node_id}/move", response_model=NodeRes, tags=["nodes"])
def move_node(
    node_id: UUID,
    req: MoveNodeReq,
    ctx: AccessContext = Depends(require_access_context),
    services: Services = Depends(get_services),
):
    return NodeRes.from_entity(services.tree.move_node(ctx, node_id, req.parent_id))


@router.put("/folders/{folder_id}/restricted", response_model=NodeRes, tags=["nodes"])
def set_restricted(
    folder_id: UUID,
    req: SetRestrictedReq,
    ctx: AccessContext = Depends(require_access_context),
    services: Services = Depends(get_services),
):
    return NodeRes.from_entity(
        services.tree.set_restricted(ctx, folder_id, req.is_restricted)
    )


@router.delete("/nodes/{node_id}", response_model=DeleteNodeRes, tags=["nodes"])
def delete_node(
    node_id: UUID,
    ctx: AccessContext = Depends(require_access_context),
    services: Services = Depends(get_services),
):
    deleted = services.tree.soft_delete_node(ctx, node_id)
    return DeleteNodeRes(node_id=node_id, deleted_count=deleted)
