"""
===============================================================================
TARJETA CRC — schemas/nodes.py
===============================================================================

Módulo:
    Schemas HTTP para el árbol (nodos) y la resolución de acceso

Responsabilidades:
    - DTOs de request/response para alta, movimiento, restricción y borrado.
    - AccessCheckRes: salida estable de resolve_access.

Colaboradores:
    - domain.entities.Node / NodeType
    - domain.access_policy.AccessCheck
===============================================================================
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from .....domain.access_policy import AccessCheck
from .....domain.entities import Node, NodeType


# -----------------------------------------------------------------------------
# Requests
# -----------------------------------------------------------------------------
class CreateNodeReq(BaseModel):
    type: NodeType
    title: str = Field(default="", max_length=500)
    parent_id: UUID | None = Field(
        default=None, description="Padre; si falta, el nodo queda en la raíz"
    )
    org_id: str | None = Field(
        default=None,
        description="Solo en la raíz: org del caller. Sin org_id el nodo es personal",
    )
    is_restricted: bool = False


class MoveNodeReq(BaseModel):
    parent_id: UUID | None = Field(default=None, description="None = mover a la raíz")


class SetRestrictedReq(BaseModel):
    is_restricted: bool


# -----------------------------------------------------------------------------
# Responses
# -----------------------------------------------------------------------------
class NodeRes(BaseModel):
    id: UUID
    type: NodeType
    title: str
    parent_id: UUID | None
    owner_id: str | None
    org_id: str | None
    is_restricted: bool
    ancestor_ids: list[UUID]
    created_at: datetime | None = None

    @classmethod
    def from_entity(cls, node: Node) -> "NodeRes":
        return cls(
            id=node.id,
            type=node.type,
            title=node.title,
            parent_id=node.parent_id,
            owner_id=node.owner_id,
            org_id=node.org_id,
            is_restricted=node.is_restricted,
            ancestor_ids=list(node.ancestor_ids),
            created_at=node.created_at,
        )


class DeleteNodeRes(BaseModel):
    node_id: UUID
    deleted_count: int


class AccessCheckRes(BaseModel):
    node_id: UUID
    has_access: bool
    role: str | None = None
    is_owner: bool = False
    is_org_admin: bool = False
    inherited_from: UUID | None = None

    @classmethod
    def from_check(cls, node_id: UUID, check: AccessCheck) -> "AccessCheckRes":
        return cls(
            node_id=node_id,
            has_access=check.has_access,
            role=check.role.value if check.role else None,
            is_owner=check.is_owner,
            is_org_admin=check.is_org_admin,
            inherited_from=check.inherited_from,
        )


class RootRestrictedRes(BaseModel):
    node_id: UUID
    root_restricted_folder_id: UUID | None
