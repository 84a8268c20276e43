"""
===============================================================================
TARJETA CRC — schemas/grants.py
===============================================================================

Módulo:
    Schemas HTTP para grants explícitos por carpeta

Responsabilidades:
    - Requests para asignar / cambiar rol (string validado en el servicio).
    - Responses de grant, listado y carpetas accesibles.
===============================================================================
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from .....domain.entities import Grant


class GrantAccessReq(BaseModel):
    role: str = Field(..., max_length=20, description="viewer | editor | admin")
    expires_at: datetime | None = Field(
        default=None, description="Sin valor = grant permanente"
    )


class UpdateGrantRoleReq(BaseModel):
    role: str = Field(..., max_length=20, description="viewer | editor | admin")


class GrantRes(BaseModel):
    folder_id: UUID
    user_id: str
    role: str
    org_id: str | None = None
    granted_by: str | None = None
    expires_at: datetime | None = None
    created_at: datetime | None = None

    @classmethod
    def from_entity(cls, grant: Grant) -> "GrantRes":
        return cls(
            folder_id=grant.folder_id,
            user_id=grant.user_id,
            role=grant.role.value,
            org_id=grant.org_id,
            granted_by=grant.granted_by,
            expires_at=grant.expires_at,
            created_at=grant.created_at,
        )


class GrantsListRes(BaseModel):
    grants: list[GrantRes]


class AccessibleFoldersRes(BaseModel):
    folder_ids: list[UUID]
