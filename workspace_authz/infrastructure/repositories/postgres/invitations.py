"""
============================================================
TARJETA CRC — infrastructure/repositories/postgres/invitations.py
============================================================
Class: PostgresInvitationRepository

Responsibilities:
- Persistir invitaciones (tabla folder_invitations).
- create_or_refresh_pending: upsert sobre el índice único parcial
  (folder_id, email) WHERE status = 'pending'; conserva id y token.
- transition_status: UPDATE ... WHERE status = from RETURNING (CAS).

Collaborators:
- PostgresRepositoryBase (pool + errores)
============================================================
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Tuple
from uuid import UUID

from ....domain.entities import Invitation, InvitationStatus
from ....domain.roles import EffectiveRole
from ._base import PostgresRepositoryBase

_COLUMNS = """
    id, folder_id, email, role, token, expires_at, status, org_id, invited_by,
    message, created_at, accepted_at
"""


class PostgresInvitationRepository(PostgresRepositoryBase):
    # =========================================================
    # SQL Constantes (Privadas)
    # =========================================================
    _SQL_GET = f"SELECT {_COLUMNS} FROM folder_invitations WHERE id = %(id)s"

    _SQL_GET_BY_TOKEN = f"SELECT {_COLUMNS} FROM folder_invitations WHERE token = %(token)s"

    _SQL_CREATE_OR_REFRESH = f"""
        INSERT INTO folder_invitations (
            id, folder_id, email, role, token, expires_at, status, org_id,
            invited_by, message, created_at
        )
        VALUES (
            %(id)s, %(folder_id)s, %(email)s, %(role)s, %(token)s, %(expires_at)s,
            'pending', %(org_id)s, %(invited_by)s, %(message)s,
            COALESCE(%(created_at)s::timestamptz, NOW())
        )
        ON CONFLICT (folder_id, email) WHERE status = 'pending'
        DO UPDATE SET
            role = EXCLUDED.role,
            message = EXCLUDED.message,
            expires_at = EXCLUDED.expires_at
        RETURNING {_COLUMNS}
    """

    _SQL_TRANSITION = f"""
        UPDATE folder_invitations
        SET status = %(to_status)s,
            accepted_at = COALESCE(%(accepted_at)s::timestamptz, accepted_at)
        WHERE id = %(id)s AND status = %(from_status)s
        RETURNING {_COLUMNS}
    """

    _SQL_DELETE = "DELETE FROM folder_invitations WHERE id = %(id)s"

    _SQL_LIST_TEMPLATE = """
        SELECT {columns} FROM folder_invitations
        WHERE {column} = %(value)s
          AND (%(status)s::text IS NULL OR status = %(status)s::text)
        ORDER BY created_at DESC, id ASC
    """

    # =========================================================
    # Mapping
    # =========================================================
    @staticmethod
    def _row_to_invitation(row: tuple) -> Invitation:
        (
            invitation_id,
            folder_id,
            email,
            role,
            token,
            expires_at,
            status,
            org_id,
            invited_by,
            message,
            created_at,
            accepted_at,
        ) = row
        return Invitation(
            id=invitation_id,
            folder_id=folder_id,
            email=email,
            role=EffectiveRole(role),
            token=token,
            expires_at=expires_at,
            status=InvitationStatus(status),
            org_id=org_id,
            invited_by=invited_by,
            message=message,
            created_at=created_at,
            accepted_at=accepted_at,
        )

    def _list_where(
        self, column: str, value: object, status: Optional[InvitationStatus]
    ) -> List[Invitation]:
        rows = self._fetchall(
            query=self._SQL_LIST_TEMPLATE.format(columns=_COLUMNS, column=column),
            params={"value": value, "status": status.value if status else None},
            context_msg="PostgresInvitationRepository: Failed to list invitations",
            extra={"by": column},
        )
        return [self._row_to_invitation(r) for r in rows]

    # =========================================================
    # Public API
    # =========================================================
    def get_invitation(self, invitation_id: UUID) -> Optional[Invitation]:
        row = self._fetchone(
            query=self._SQL_GET,
            params={"id": invitation_id},
            context_msg="PostgresInvitationRepository: Failed to get invitation",
            extra={"invitation_id": str(invitation_id)},
        )
        return self._row_to_invitation(row) if row else None

    def get_by_token(self, token: str) -> Optional[Invitation]:
        row = self._fetchone(
            query=self._SQL_GET_BY_TOKEN,
            params={"token": token},
            context_msg="PostgresInvitationRepository: Failed to get invitation by token",
            extra={},
        )
        return self._row_to_invitation(row) if row else None

    def create_or_refresh_pending(
        self, invitation: Invitation
    ) -> Tuple[Invitation, bool]:
        row = self._fetchone(
            query=self._SQL_CREATE_OR_REFRESH,
            params={
                "id": invitation.id,
                "folder_id": invitation.folder_id,
                "email": invitation.email,
                "role": invitation.role.value,
                "token": invitation.token,
                "expires_at": invitation.expires_at,
                "org_id": invitation.org_id,
                "invited_by": invitation.invited_by,
                "message": invitation.message,
                "created_at": invitation.created_at,
            },
            context_msg="PostgresInvitationRepository: Failed to create invitation",
            extra={"folder_id": str(invitation.folder_id)},
        )
        stored = self._row_to_invitation(row)
        # Si el id devuelto no es el propuesto, se actualizó una pendiente previa.
        return stored, stored.id != invitation.id

    def transition_status(
        self,
        invitation_id: UUID,
        *,
        from_status: InvitationStatus,
        to_status: InvitationStatus,
        at: datetime,
    ) -> Optional[Invitation]:
        row = self._fetchone(
            query=self._SQL_TRANSITION,
            params={
                "id": invitation_id,
                "from_status": from_status.value,
                "to_status": to_status.value,
                "accepted_at": at if to_status == InvitationStatus.ACCEPTED else None,
            },
            context_msg="PostgresInvitationRepository: Failed to update status",
            extra={"invitation_id": str(invitation_id), "to_status": to_status.value},
        )
        return self._row_to_invitation(row) if row else None

    def delete_invitation(self, invitation_id: UUID) -> bool:
        deleted = self._execute(
            query=self._SQL_DELETE,
            params={"id": invitation_id},
            context_msg="PostgresInvitationRepository: Failed to delete invitation",
            extra={"invitation_id": str(invitation_id)},
        )
        return deleted > 0

    def list_by_folder(
        self, folder_id: UUID, *, status: Optional[InvitationStatus] = None
    ) -> List[Invitation]:
        return self._list_where("folder_id", folder_id, status)

    def list_by_inviter(
        self, user_id: str, *, status: Optional[InvitationStatus] = None
    ) -> List[Invitation]:
        return self._list_where("invited_by", user_id, status)

    def list_by_email(
        self, email: str, *, status: Optional[InvitationStatus] = None
    ) -> List[Invitation]:
        return self._list_where("email", email, status)
