"""
===============================================================================
TARJETA CRC — schemas/share_links.py
===============================================================================

Módulo:
    Schemas HTTP para share links

Responsabilidades:
    - CreateShareLinkReq / UpdateShareLinkReq (patch parcial).
    - ShareLinkRes con estados derivados (expired / maxed out / usable).
===============================================================================
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from .....application.results import ShareLinkView
from .....domain.entities import ShareLink


class CreateShareLinkReq(BaseModel):
    role: str = Field(..., max_length=20, description="viewer | editor")
    expires_in_days: int | None = Field(default=None, ge=1, le=365)
    max_uses: int | None = Field(default=None, ge=1)


class UpdateShareLinkReq(BaseModel):
    role: str | None = Field(default=None, max_length=20)
    max_uses: int | None = Field(default=None, ge=1)
    expires_at: datetime | None = None


class ShareLinkRes(BaseModel):
    id: UUID
    folder_id: UUID
    role: str
    is_active: bool
    max_uses: int | None = None
    use_count: int
    expires_at: datetime | None = None
    created_by: str | None = None
    created_at: datetime | None = None
    last_used_at: datetime | None = None
    is_expired: bool | None = None
    is_maxed_out: bool | None = None
    is_usable: bool | None = None
    token: str | None = None

    @classmethod
    def from_entity(cls, link: ShareLink, *, include_token: bool = False) -> "ShareLinkRes":
        return cls(
            id=link.id,
            folder_id=link.folder_id,
            role=link.role.value,
            is_active=link.is_active,
            max_uses=link.max_uses,
            use_count=link.use_count,
            expires_at=link.expires_at,
            created_by=link.created_by,
            created_at=link.created_at,
            last_used_at=link.last_used_at,
            token=link.token if include_token else None,
        )

    @classmethod
    def from_view(cls, view: ShareLinkView, *, include_token: bool = False) -> "ShareLinkRes":
        res = cls.from_entity(view.link, include_token=include_token)
        res.is_expired = view.is_expired
        res.is_maxed_out = view.is_maxed_out
        res.is_usable = view.is_usable
        return res


class ShareLinksListRes(BaseModel):
    share_links: list[ShareLinkRes]
