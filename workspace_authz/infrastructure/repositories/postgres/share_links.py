"""
============================================================
TARJETA CRC — infrastructure/repositories/postgres/share_links.py
============================================================
Class: PostgresShareLinkRepository

Responsibilities:
- Persistir share links (tabla share_links, token único).
- consume_use: un único UPDATE condicional con RETURNING; con N canjes
  concurrentes y max_uses = k, exactamente min(N, k) devuelven fila.
- update_link: patch parcial (NULL = sin cambio vía COALESCE).

Collaborators:
- PostgresRepositoryBase (pool + errores)
============================================================
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from ....domain.entities import ShareLink
from ....domain.roles import EffectiveRole
from ._base import PostgresRepositoryBase

_COLUMNS = """
    id, folder_id, token, role, org_id, created_by, is_active, max_uses,
    use_count, expires_at, created_at, last_used_at
"""


class PostgresShareLinkRepository(PostgresRepositoryBase):
    # =========================================================
    # SQL Constantes (Privadas)
    # =========================================================
    _SQL_INSERT = f"""
        INSERT INTO share_links (
            id, folder_id, token, role, org_id, created_by, is_active, max_uses,
            use_count, expires_at, created_at
        )
        VALUES (
            %(id)s, %(folder_id)s, %(token)s, %(role)s, %(org_id)s, %(created_by)s,
            %(is_active)s, %(max_uses)s, %(use_count)s, %(expires_at)s,
            COALESCE(%(created_at)s::timestamptz, NOW())
        )
        RETURNING {_COLUMNS}
    """

    _SQL_GET = f"SELECT {_COLUMNS} FROM share_links WHERE id = %(id)s"

    _SQL_GET_BY_TOKEN = f"SELECT {_COLUMNS} FROM share_links WHERE token = %(token)s"

    _SQL_CONSUME = f"""
        UPDATE share_links
        SET use_count = use_count + 1, last_used_at = %(now)s
        WHERE id = %(id)s
          AND is_active = TRUE
          AND (expires_at IS NULL OR expires_at >= %(now)s)
          AND (max_uses IS NULL OR use_count < max_uses)
        RETURNING {_COLUMNS}
    """

    _SQL_UPDATE = f"""
        UPDATE share_links SET
            role = COALESCE(%(role)s::text, role),
            max_uses = COALESCE(%(max_uses)s::integer, max_uses),
            expires_at = COALESCE(%(expires_at)s::timestamptz, expires_at),
            is_active = COALESCE(%(is_active)s::boolean, is_active)
        WHERE id = %(id)s
        RETURNING {_COLUMNS}
    """

    _SQL_DELETE = "DELETE FROM share_links WHERE id = %(id)s"

    _SQL_LIST_BY_FOLDER = f"""
        SELECT {_COLUMNS} FROM share_links
        WHERE folder_id = %(folder_id)s
        ORDER BY created_at DESC, id ASC
    """

    # =========================================================
    # Mapping
    # =========================================================
    @staticmethod
    def _row_to_link(row: tuple) -> ShareLink:
        (
            link_id,
            folder_id,
            token,
            role,
            org_id,
            created_by,
            is_active,
            max_uses,
            use_count,
            expires_at,
            created_at,
            last_used_at,
        ) = row
        return ShareLink(
            id=link_id,
            folder_id=folder_id,
            token=token,
            role=EffectiveRole(role),
            org_id=org_id,
            created_by=created_by,
            is_active=is_active,
            max_uses=max_uses,
            use_count=use_count,
            expires_at=expires_at,
            created_at=created_at,
            last_used_at=last_used_at,
        )

    # =========================================================
    # Public API
    # =========================================================
    def insert_link(self, link: ShareLink) -> ShareLink:
        row = self._fetchone(
            query=self._SQL_INSERT,
            params={
                "id": link.id,
                "folder_id": link.folder_id,
                "token": link.token,
                "role": link.role.value,
                "org_id": link.org_id,
                "created_by": link.created_by,
                "is_active": link.is_active,
                "max_uses": link.max_uses,
                "use_count": link.use_count,
                "expires_at": link.expires_at,
                "created_at": link.created_at,
            },
            context_msg="PostgresShareLinkRepository: Failed to insert share link",
            extra={"folder_id": str(link.folder_id)},
        )
        return self._row_to_link(row)

    def get_link(self, link_id: UUID) -> Optional[ShareLink]:
        row = self._fetchone(
            query=self._SQL_GET,
            params={"id": link_id},
            context_msg="PostgresShareLinkRepository: Failed to get share link",
            extra={"link_id": str(link_id)},
        )
        return self._row_to_link(row) if row else None

    def get_by_token(self, token: str) -> Optional[ShareLink]:
        row = self._fetchone(
            query=self._SQL_GET_BY_TOKEN,
            params={"token": token},
            context_msg="PostgresShareLinkRepository: Failed to get share link by token",
            extra={},
        )
        return self._row_to_link(row) if row else None

    def consume_use(self, link_id: UUID, *, now: datetime) -> Optional[ShareLink]:
        row = self._fetchone(
            query=self._SQL_CONSUME,
            params={"id": link_id, "now": now},
            context_msg="PostgresShareLinkRepository: Failed to consume share link",
            extra={"link_id": str(link_id)},
        )
        return self._row_to_link(row) if row else None

    def update_link(
        self,
        link_id: UUID,
        *,
        role: Optional[EffectiveRole] = None,
        max_uses: Optional[int] = None,
        expires_at: Optional[datetime] = None,
        is_active: Optional[bool] = None,
    ) -> Optional[ShareLink]:
        row = self._fetchone(
            query=self._SQL_UPDATE,
            params={
                "id": link_id,
                "role": role.value if role is not None else None,
                "max_uses": max_uses,
                "expires_at": expires_at,
                "is_active": is_active,
            },
            context_msg="PostgresShareLinkRepository: Failed to update share link",
            extra={"link_id": str(link_id)},
        )
        return self._row_to_link(row) if row else None

    def delete_link(self, link_id: UUID) -> bool:
        deleted = self._execute(
            query=self._SQL_DELETE,
            params={"id": link_id},
            context_msg="PostgresShareLinkRepository: Failed to delete share link",
            extra={"link_id": str(link_id)},
        )
        return deleted > 0

    def list_by_folder(self, folder_id: UUID) -> List[ShareLink]:
        rows = self._fetchall(
            query=self._SQL_LIST_BY_FOLDER,
            params={"folder_id": folder_id},
            context_msg="PostgresShareLinkRepository: Failed to list share links",
            extra={"folder_id": str(folder_id)},
        )
        return [self._row_to_link(r) for r in rows]
