"""
============================================================
TARJETA CRC — infrastructure/repositories/in_memory/share_links.py
============================================================
Class: InMemoryShareLinkRepository

Responsibilities:
  - Almacenar share links con índice por token.
  - consume_use: check-and-increment de use_count bajo lock, equivalente al
    UPDATE ... WHERE use_count < max_uses RETURNING de Postgres.

Collaborators:
  - domain.repositories.ShareLinkRepository (contrato)
  - domain.entities.ShareLink
============================================================
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from ....domain.entities import ShareLink
from ....domain.repositories import ShareLinkRepository
from ....domain.roles import EffectiveRole
from ._store import InMemoryStore


class InMemoryShareLinkRepository(InMemoryStore, ShareLinkRepository):
    _state_fields = ("_links", "_by_token")

    def __init__(self) -> None:
        super().__init__()
        self._links: Dict[UUID, ShareLink] = {}
        self._by_token: Dict[str, UUID] = {}

    def insert_link(self, link: ShareLink) -> ShareLink:
        stored = replace(link)
        with self._lock:
            if stored.token in self._by_token:
                raise ValueError("Share link token already exists")
            self._links[stored.id] = stored
            self._by_token[stored.token] = stored.id
        return replace(stored)

    def get_link(self, link_id: UUID) -> Optional[ShareLink]:
        with self._lock:
            link = self._links.get(link_id)
            return replace(link) if link else None

    def get_by_token(self, token: str) -> Optional[ShareLink]:
        with self._lock:
            link_id = self._by_token.get(token)
            return replace(self._links[link_id]) if link_id else None

    def consume_use(self, link_id: UUID, *, now: datetime) -> Optional[ShareLink]:
        with self._lock:
            link = self._links.get(link_id)
            if link is None or not link.is_usable(now):
                return None
            link.use_count += 1
            link.last_used_at = now
            return replace(link)

    def update_link(
        self,
        link_id: UUID,
        *,
        role: Optional[EffectiveRole] = None,
        max_uses: Optional[int] = None,
        expires_at: Optional[datetime] = None,
        is_active: Optional[bool] = None,
    ) -> Optional[ShareLink]:
        with self._lock:
            link = self._links.get(link_id)
            if link is None:
                return None
            if role is not None:
                link.role = role
            if max_uses is not None:
                link.max_uses = max_uses
            if expires_at is not None:
                link.expires_at = expires_at
            if is_active is not None:
                link.is_active = is_active
            return replace(link)

    def delete_link(self, link_id: UUID) -> bool:
        with self._lock:
            link = self._links.pop(link_id, None)
            if link is None:
                return False
            self._by_token.pop(link.token, None)
            return True

    def list_by_folder(self, folder_id: UUID) -> List[ShareLink]:
        with self._lock:
            found = [
                replace(link)
                for link in self._links.values()
                if link.folder_id == folder_id
            ]
        found.sort(
            key=lambda link: (link.created_at is not None, link.created_at or datetime.min),
            reverse=True,
        )
        return found
