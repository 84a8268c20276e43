"""
============================================================
TARJETA CRC — infrastructure/repositories/postgres/grants.py
============================================================
Class: PostgresGrantRepository

Responsibilities:
- Persistir grants explícitos (tabla folder_grants, PK (folder_id, user_id)).
- upgrade_grant: "nunca bajar de rol" en un único INSERT ... ON CONFLICT
  DO UPDATE ... WHERE (atómico frente a canjes concurrentes).
- delete_expired: borrado acotado por lote.

Collaborators:
- PostgresRepositoryBase (pool + errores)
- Tabla: folder_grants(folder_id, user_id, role, org_id, granted_by,
                       expires_at, created_at)
============================================================
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Tuple
from uuid import UUID

from ....domain.entities import Grant
from ....domain.roles import EffectiveRole
from ._base import PostgresRepositoryBase

_COLUMNS = "folder_id, user_id, role, org_id, granted_by, expires_at, created_at"

# Rank SQL alineado con EffectiveRole (viewer < editor < admin).
_RANK = "array_position(ARRAY['viewer', 'editor', 'admin']::text[], {col})"
_EXPIRED = "(folder_grants.expires_at IS NOT NULL AND folder_grants.expires_at < %(now)s)"


class PostgresGrantRepository(PostgresRepositoryBase):
    # =========================================================
    # SQL Constantes (Privadas)
    # =========================================================
    _SQL_GET = f"""
        SELECT {_COLUMNS} FROM folder_grants
        WHERE folder_id = %(folder_id)s AND user_id = %(user_id)s
    """

    _SQL_UPSERT = f"""
        INSERT INTO folder_grants ({_COLUMNS})
        VALUES (
            %(folder_id)s, %(user_id)s, %(role)s, %(org_id)s, %(granted_by)s,
            %(expires_at)s, COALESCE(%(created_at)s::timestamptz, NOW())
        )
        ON CONFLICT (folder_id, user_id) DO UPDATE SET
            role = EXCLUDED.role,
            org_id = EXCLUDED.org_id,
            granted_by = EXCLUDED.granted_by,
            expires_at = EXCLUDED.expires_at
        RETURNING {_COLUMNS}
    """

    # Vencido: se reemplaza entero. Vigente: solo sube el rol.
    _SQL_UPGRADE = f"""
        INSERT INTO folder_grants ({_COLUMNS})
        VALUES (
            %(folder_id)s, %(user_id)s, %(role)s, %(org_id)s, %(granted_by)s,
            %(expires_at)s, COALESCE(%(created_at)s::timestamptz, NOW())
        )
        ON CONFLICT (folder_id, user_id) DO UPDATE SET
            role = EXCLUDED.role,
            org_id = CASE WHEN {_EXPIRED}
                THEN EXCLUDED.org_id ELSE folder_grants.org_id END,
            granted_by = CASE WHEN {_EXPIRED}
                THEN EXCLUDED.granted_by ELSE folder_grants.granted_by END,
            expires_at = CASE WHEN {_EXPIRED}
                THEN EXCLUDED.expires_at ELSE folder_grants.expires_at END,
            created_at = CASE WHEN {_EXPIRED}
                THEN EXCLUDED.created_at ELSE folder_grants.created_at END
        WHERE {_EXPIRED}
           OR {_RANK.format(col="folder_grants.role")} < {_RANK.format(col="EXCLUDED.role")}
        RETURNING {_COLUMNS}
    """

    _SQL_UPDATE_ROLE = f"""
        UPDATE folder_grants SET role = %(role)s
        WHERE folder_id = %(folder_id)s AND user_id = %(user_id)s
        RETURNING {_COLUMNS}
    """

    _SQL_DELETE = """
        DELETE FROM folder_grants
        WHERE folder_id = %(folder_id)s AND user_id = %(user_id)s
    """

    _SQL_LIST_FOR_FOLDER = f"""
        SELECT {_COLUMNS} FROM folder_grants
        WHERE folder_id = %(folder_id)s
        ORDER BY user_id ASC
    """

    _SQL_LIST_FOR_USER = f"""
        SELECT {_COLUMNS} FROM folder_grants
        WHERE user_id = %(user_id)s
          AND (%(org_id)s::text IS NULL OR org_id = %(org_id)s::text)
        ORDER BY folder_id ASC
    """

    _SQL_DELETE_EXPIRED = """
        DELETE FROM folder_grants
        WHERE (folder_id, user_id) IN (
            SELECT folder_id, user_id FROM folder_grants
            WHERE expires_at IS NOT NULL AND expires_at < %(now)s
            LIMIT %(limit)s
        )
    """

    # =========================================================
    # Mapping
    # =========================================================
    @staticmethod
    def _row_to_grant(row: tuple) -> Grant:
        folder_id, user_id, role, org_id, granted_by, expires_at, created_at = row
        return Grant(
            folder_id=folder_id,
            user_id=user_id,
            role=EffectiveRole(role),
            org_id=org_id,
            granted_by=granted_by,
            expires_at=expires_at,
            created_at=created_at,
        )

    @staticmethod
    def _grant_params(grant: Grant) -> dict:
        return {
            "folder_id": grant.folder_id,
            "user_id": grant.user_id,
            "role": grant.role.value,
            "org_id": grant.org_id,
            "granted_by": grant.granted_by,
            "expires_at": grant.expires_at,
            "created_at": grant.created_at,
        }

    @staticmethod
    def _extra(folder_id: UUID, user_id: str) -> dict:
        return {"folder_id": str(folder_id), "grantee_id": user_id}

    # =========================================================
    # Public API
    # =========================================================
    def get_grant(self, folder_id: UUID, user_id: str) -> Optional[Grant]:
        row = self._fetchone(
            query=self._SQL_GET,
            params={"folder_id": folder_id, "user_id": user_id},
            context_msg="PostgresGrantRepository: Failed to get grant",
            extra=self._extra(folder_id, user_id),
        )
        return self._row_to_grant(row) if row else None

    def upsert_grant(self, grant: Grant) -> Grant:
        row = self._fetchone(
            query=self._SQL_UPSERT,
            params=self._grant_params(grant),
            context_msg="PostgresGrantRepository: Failed to upsert grant",
            extra=self._extra(grant.folder_id, grant.user_id),
        )
        return self._row_to_grant(row)

    def upgrade_grant(self, grant: Grant, *, now: datetime) -> Tuple[Grant, bool]:
        row = self._fetchone(
            query=self._SQL_UPGRADE,
            params={**self._grant_params(grant), "now": now},
            context_msg="PostgresGrantRepository: Failed to upgrade grant",
            extra=self._extra(grant.folder_id, grant.user_id),
        )
        if row is not None:
            return self._row_to_grant(row), True

        # El WHERE del DO UPDATE filtró: el grant vigente ya era igual o mayor.
        current = self.get_grant(grant.folder_id, grant.user_id)
        if current is None:
            # Revocado entre ambos statements: se reintenta como alta nueva.
            return self.upgrade_grant(grant, now=now)
        return current, False

    def update_role(
        self, folder_id: UUID, user_id: str, role: EffectiveRole
    ) -> Optional[Grant]:
        row = self._fetchone(
            query=self._SQL_UPDATE_ROLE,
            params={"folder_id": folder_id, "user_id": user_id, "role": role.value},
            context_msg="PostgresGrantRepository: Failed to update role",
            extra=self._extra(folder_id, user_id),
        )
        return self._row_to_grant(row) if row else None

    def delete_grant(self, folder_id: UUID, user_id: str) -> bool:
        deleted = self._execute(
            query=self._SQL_DELETE,
            params={"folder_id": folder_id, "user_id": user_id},
            context_msg="PostgresGrantRepository: Failed to delete grant",
            extra=self._extra(folder_id, user_id),
        )
        return deleted > 0

    def list_grants_for_folder(self, folder_id: UUID) -> List[Grant]:
        rows = self._fetchall(
            query=self._SQL_LIST_FOR_FOLDER,
            params={"folder_id": folder_id},
            context_msg="PostgresGrantRepository: Failed to list folder grants",
            extra={"folder_id": str(folder_id)},
        )
        return [self._row_to_grant(r) for r in rows]

    def list_grants_for_user(
        self, user_id: str, *, org_id: Optional[str] = None
    ) -> List[Grant]:
        rows = self._fetchall(
            query=self._SQL_LIST_FOR_USER,
            params={"user_id": user_id, "org_id": org_id},
            context_msg="PostgresGrantRepository: Failed to list user grants",
            extra={"grantee_id": user_id},
        )
        return [self._row_to_grant(r) for r in rows]

    def delete_expired(self, *, now: datetime, limit: int) -> int:
        return self._execute(
            query=self._SQL_DELETE_EXPIRED,
            params={"now": now, "limit": limit},
            context_msg="PostgresGrantRepository: Failed to purge expired grants",
            extra={"limit": limit},
        )
