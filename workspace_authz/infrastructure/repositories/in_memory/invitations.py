"""
============================================================
TARJETA CRC — infrastructure/repositories/in_memory/invitations.py
============================================================
Class: InMemoryInvitationRepository

Responsibilities:
  - Almacenar invitaciones con índice por token.
  - create_or_refresh_pending: find-or-create atómico por (folder, email).
  - transition_status: compare-and-set de estado.

Collaborators:
  - domain.repositories.InvitationRepository (contrato)
  - domain.entities.Invitation, InvitationStatus

Constraints / Notes:
  - Replica el índice único parcial de Postgres:
      UNIQUE (folder_id, email) WHERE status = 'pending'
  - Listados ordenados por created_at DESC (como la query SQL).
============================================================
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple
from uuid import UUID

from ....domain.entities import Invitation, InvitationStatus
from ....domain.repositories import InvitationRepository
from ._store import InMemoryStore


class InMemoryInvitationRepository(InMemoryStore, InvitationRepository):
    _state_fields = ("_invitations", "_by_token")

    def __init__(self) -> None:
        super().__init__()
        self._invitations: Dict[UUID, Invitation] = {}
        self._by_token: Dict[str, UUID] = {}

    def _select(
        self,
        predicate: Callable[[Invitation], bool],
        status: Optional[InvitationStatus],
    ) -> List[Invitation]:
        with self._lock:
            found = [
                replace(inv)
                for inv in self._invitations.values()
                if predicate(inv) and (status is None or inv.status == status)
            ]
        found.sort(
            key=lambda inv: (inv.created_at is not None, inv.created_at or datetime.min),
            reverse=True,
        )
        return found

    def get_invitation(self, invitation_id: UUID) -> Optional[Invitation]:
        with self._lock:
            inv = self._invitations.get(invitation_id)
            return replace(inv) if inv else None

    def get_by_token(self, token: str) -> Optional[Invitation]:
        with self._lock:
            inv_id = self._by_token.get(token)
            return replace(self._invitations[inv_id]) if inv_id else None

    def create_or_refresh_pending(
        self, invitation: Invitation
    ) -> Tuple[Invitation, bool]:
        with self._lock:
            for existing in self._invitations.values():
                if (
                    existing.folder_id == invitation.folder_id
                    and existing.email == invitation.email
                    and existing.status == InvitationStatus.PENDING
                ):
                    existing.role = invitation.role
                    existing.message = invitation.message
                    existing.expires_at = invitation.expires_at
                    return replace(existing), True

            stored = replace(invitation)
            self._invitations[stored.id] = stored
            self._by_token[stored.token] = stored.id
            return replace(stored), False

    def transition_status(
        self,
        invitation_id: UUID,
        *,
        from_status: InvitationStatus,
        to_status: InvitationStatus,
        at: datetime,
    ) -> Optional[Invitation]:
        with self._lock:
            inv = self._invitations.get(invitation_id)
            if inv is None or inv.status != from_status:
                return None
            inv.status = to_status
            if to_status == InvitationStatus.ACCEPTED:
                inv.accepted_at = at
            return replace(inv)

    def delete_invitation(self, invitation_id: UUID) -> bool:
        with self._lock:
            inv = self._invitations.pop(invitation_id, None)
            if inv is None:
                return False
            self._by_token.pop(inv.token, None)
            return True

    def list_by_folder(
        self, folder_id: UUID, *, status: Optional[InvitationStatus] = None
    ) -> List[Invitation]:
        return self._select(lambda inv: inv.folder_id == folder_id, status)

    def list_by_inviter(
        self, user_id: str, *, status: Optional[InvitationStatus] = None
    ) -> List[Invitation]:
        return self._select(lambda inv: inv.invited_by == user_id, status)

    def list_by_email(
        self, email: str, *, status: Optional[InvitationStatus] = None
    ) -> List[Invitation]:
        return self._select(lambda inv: inv.email == email, status)
