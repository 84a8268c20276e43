"""
===============================================================================
INVITATION SERVICE (single-recipient, email-bound, expiring invitations)
===============================================================================

Name:
    InvitationService

Business Goal:
    Emitir, aceptar, rechazar y revocar invitaciones a carpetas. Al aceptarse,
    una invitación se materializa como Grant (sin bajar nunca un rol existente)
    y convierte la carpeta en restringida.

Why (Context / Intención):
    - Re-invitar a la misma persona no debe generar tokens nuevos ni spam: la
      invitación pendiente se actualiza in-place y conserva su token.
    - Los estados terminales (accepted / declined / expired) son distinguibles
      para que el cliente muestre "ya aceptada" distinto de "vencida".

-------------------------------------------------------------------------------
CRC CARD (Class-Responsibility-Collaborator)
-------------------------------------------------------------------------------
Class:
    InvitationService

Responsibilities:
    - create: requiere `invite`; find-or-refresh atómico por (folder, email).
    - accept: pending -> accepted (o -> expired si venció) + upgrade de grant +
      flip de restricción, los tres en un mismo UnitOfWork.
    - decline: pending -> declined; re-intentos fallan con error descriptivo.
    - revoke: requiere `manage`; borra el registro en cualquier estado.
    - get_by_token / listados: lecturas sin mutar storage.

Collaborators:
    - InvitationRepository (create_or_refresh_pending, transition_status)
    - NodeRepository (carpeta destino, restrict_if_open)
    - AccessResolver / GrantStore
    - UnitOfWork (accept todo o nada)
    - application.tokens.generate_token
    - crosscutting.metrics.record_invitation_transition
===============================================================================
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, List, NoReturn
from uuid import UUID, uuid4

from ..crosscutting.exceptions import (
    FolderNotFoundError,
    InvalidRequestError,
    InvitationAlreadyAcceptedError,
    InvitationAlreadyDeclinedError,
    InvitationExpiredError,
    InvitationNotFoundError,
)
from ..crosscutting.logger import get_logger
from ..crosscutting.metrics import record_invitation_transition
from ..domain.access_policy import AccessContext
from ..domain.entities import Invitation, InvitationStatus, normalize_email
from ..domain.repositories import InvitationRepository, NodeRepository, UnitOfWork
from ..domain.roles import Action, EffectiveRole
from .access_resolver import AccessResolver
from .folder_access import load_org_folder, require_action, require_user
from .grant_store import GrantStore, parse_grantable_role
from .results import GrantRedemption, InvitationCreated, InvitationView
from .tokens import generate_token

logger = get_logger("invitations")

DEFAULT_EXPIRY_DAYS = 7
DEFAULT_TOKEN_BYTES = 24


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InvitationService:
    def __init__(
        self,
        *,
        nodes: NodeRepository,
        invitations: InvitationRepository,
        resolver: AccessResolver,
        grants: GrantStore,
        unit_of_work: UnitOfWork,
        clock: Callable[[], datetime] = _utcnow,
        default_expiry_days: int = DEFAULT_EXPIRY_DAYS,
        token_bytes: int = DEFAULT_TOKEN_BYTES,
    ):
        self._nodes = nodes
        self._invitations = invitations
        self._resolver = resolver
        self._grants = grants
        self._uow = unit_of_work
        self._clock = clock
        self._default_expiry_days = default_expiry_days
        self._token_bytes = token_bytes

    # =========================================================================
    # Comandos
    # =========================================================================

    def create(
        self,
        ctx: AccessContext,
        folder_id: UUID,
        email: str,
        role: EffectiveRole | str,
        *,
        message: str | None = None,
        expires_in_days: int | None = None,
    ) -> InvitationCreated:
        folder = load_org_folder(self._nodes, folder_id, purpose="create invitations for")
        require_action(
            self._resolver,
            folder,
            ctx,
            Action.INVITE,
            "Not authorized to invite users to this folder",
        )

        normalized = normalize_email(email)
        if "@" not in normalized:
            raise InvalidRequestError(f"Invalid email: {email!r}")
        days = self._default_expiry_days if expires_in_days is None else expires_in_days
        if days <= 0:
            raise InvalidRequestError("expires_in_days must be greater than 0")

        now = self._clock()
        stored, is_existing = self._invitations.create_or_refresh_pending(
            Invitation(
                id=uuid4(),
                folder_id=folder.id,
                email=normalized,
                role=parse_grantable_role(role),
                token=generate_token(self._token_bytes),
                expires_at=now + timedelta(days=days),
                org_id=folder.org_id,
                invited_by=ctx.user_id,
                message=message,
                created_at=now,
            )
        )

        record_invitation_transition("refreshed" if is_existing else "created")
        logger.info(
            "Invitación emitida",
            extra={
                "invitation_id": str(stored.id),
                "folder_id": str(folder.id),
                "role": stored.role.value,
                "is_existing": is_existing,
            },
        )
        return InvitationCreated(invitation=stored, is_existing=is_existing)

    def accept(self, ctx: AccessContext, token: str) -> GrantRedemption:
        user_id = require_user(ctx)
        now = self._clock()
        invitation = self._load_pending(token, now)

        folder = self._nodes.get_node(invitation.folder_id)
        if folder is None or folder.is_deleted:
            raise FolderNotFoundError("The folder no longer exists")

        # Transición + grant + flip: todo o nada (un grant fallido deja la
        # invitación pendiente y reintentable).
        with self._uow.atomic():
            accepted = self._invitations.transition_status(
                invitation.id,
                from_status=InvitationStatus.PENDING,
                to_status=InvitationStatus.ACCEPTED,
                at=now,
            )
            if accepted is None:
                self._raise_for_current_status(invitation.id)

            grant, changed = self._grants.upgrade_grant(
                folder.id,
                user_id,
                invitation.role,
                org_id=invitation.org_id,
                granted_by=invitation.invited_by,
                source="invitation",
            )
            restricted_now = self._nodes.restrict_if_open(folder.id)

        record_invitation_transition(InvitationStatus.ACCEPTED.value)
        logger.info(
            "Invitación aceptada",
            extra={
                "invitation_id": str(invitation.id),
                "folder_id": str(folder.id),
                "role": invitation.role.value,
                "effective_role": grant.role.value,
                "folder_restricted_now": restricted_now,
            },
        )
        return GrantRedemption(
            folder_id=folder.id,
            role=invitation.role,
            effective_role=grant.role,
            grant_changed=changed,
            grant=grant,
        )

    def decline(self, ctx: AccessContext, token: str) -> Invitation:
        require_user(ctx)
        now = self._clock()
        invitation = self._load_pending(token, now)

        declined = self._invitations.transition_status(
            invitation.id,
            from_status=InvitationStatus.PENDING,
            to_status=InvitationStatus.DECLINED,
            at=now,
        )
        if declined is None:
            self._raise_for_current_status(invitation.id)

        record_invitation_transition(InvitationStatus.DECLINED.value)
        logger.info(
            "Invitación rechazada", extra={"invitation_id": str(invitation.id)}
        )
        return declined

    def revoke(self, ctx: AccessContext, invitation_id: UUID) -> None:
        require_user(ctx)
        invitation = self._invitations.get_invitation(invitation_id)
        if invitation is None:
            raise InvitationNotFoundError("Invitation not found")

        folder = self._nodes.get_node(invitation.folder_id)
        if folder is None:
            raise FolderNotFoundError("Folder not found")
        require_action(
            self._resolver,
            folder,
            ctx,
            Action.MANAGE,
            "Not authorized to revoke this invitation",
        )

        self._invitations.delete_invitation(invitation_id)
        record_invitation_transition("revoked")
        logger.info(
            "Invitación revocada",
            extra={
                "invitation_id": str(invitation_id),
                "previous_status": invitation.status.value,
            },
        )

    # =========================================================================
    # Consultas
    # =========================================================================

    def get_by_token(self, token: str) -> InvitationView:
        invitation = self._invitations.get_by_token(token)
        if invitation is None:
            raise InvitationNotFoundError("Invitation not found")
        return self._view(invitation, self._clock())

    def list_pending_by_folder(
        self, ctx: AccessContext, folder_id: UUID
    ) -> List[InvitationView]:
        folder = load_org_folder(self._nodes, folder_id, purpose="list invitations of")
        require_action(
            self._resolver,
            folder,
            ctx,
            Action.INVITE,
            "Not authorized to list invitations of this folder",
        )
        now = self._clock()
        return [
            self._view(inv, now)
            for inv in self._invitations.list_by_folder(
                folder.id, status=InvitationStatus.PENDING
            )
        ]

    def list_sent_by_user(
        self, ctx: AccessContext, status: InvitationStatus | str | None = None
    ) -> List[Invitation]:
        user_id = require_user(ctx)
        wanted = InvitationStatus(status) if status is not None else None
        return self._invitations.list_by_inviter(user_id, status=wanted)

    def list_received_by_email(
        self, ctx: AccessContext, email: str | None = None
    ) -> List[InvitationView]:
        """Invitaciones pendientes del email del caller (o del email indicado)."""
        require_user(ctx)
        normalized = normalize_email(email or ctx.email or "")
        if not normalized:
            return []
        now = self._clock()
        return [
            self._view(inv, now)
            for inv in self._invitations.list_by_email(
                normalized, status=InvitationStatus.PENDING
            )
        ]

    # =========================================================================
    # Helpers
    # =========================================================================

    def _load_pending(self, token: str, now: datetime) -> Invitation:
        """
        Invitación pendiente y vigente, o error.

        Una pendiente vencida se persiste como `expired` antes de fallar.
        """
        invitation = self._invitations.get_by_token(token)
        if invitation is None:
            raise InvitationNotFoundError("Invitation not found")
        if invitation.status != InvitationStatus.PENDING:
            _raise_for_status(invitation.status)

        if invitation.is_past_expiry(now):
            expired = self._invitations.transition_status(
                invitation.id,
                from_status=InvitationStatus.PENDING,
                to_status=InvitationStatus.EXPIRED,
                at=now,
            )
            if expired is not None:
                record_invitation_transition(InvitationStatus.EXPIRED.value)
                logger.info(
                    "Invitación vencida", extra={"invitation_id": str(invitation.id)}
                )
            raise InvitationExpiredError("This invitation has expired")

        return invitation

    def _raise_for_current_status(self, invitation_id: UUID) -> NoReturn:
        current = self._invitations.get_invitation(invitation_id)
        if current is None:
            raise InvitationNotFoundError("Invitation not found")
        _raise_for_status(current.status)

    @staticmethod
    def _view(invitation: Invitation, now: datetime) -> InvitationView:
        return InvitationView(
            invitation=invitation,
            status=invitation.effective_status(now),
            is_expired=invitation.is_past_expiry(now),
        )


def _raise_for_status(status: InvitationStatus) -> NoReturn:
    if status == InvitationStatus.ACCEPTED:
        raise InvitationAlreadyAcceptedError("This invitation has already been accepted")
    if status == InvitationStatus.DECLINED:
        raise InvitationAlreadyDeclinedError("This invitation has already been declined")
    if status == InvitationStatus.EXPIRED:
        raise InvitationExpiredError("This invitation has expired")
    raise InvalidRequestError("Invitation changed concurrently, retry")
