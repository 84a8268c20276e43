"""
===============================================================================
SHARE LINK SERVICE (reusable bearer links)
===============================================================================

Name:
    ShareLinkService

Business Goal:
    Emitir links reutilizables (viewer/editor, nunca admin) que cualquier
    portador puede canjear por un Grant, con tope de usos, expiración opcional
    y un interruptor de activación independiente.

-------------------------------------------------------------------------------
CRC CARD (Class-Responsibility-Collaborator)
-------------------------------------------------------------------------------
Class:
    ShareLinkService

Responsibilities:
    - create: requiere `invite`; rol restringido a {viewer, editor}.
    - use: activo -> vigente -> check-and-increment atómico de use_count ->
      upgrade de grant (nunca baja) -> flip de restricción.
    - deactivate / activate / update / delete: requieren `manage`.
    - get_by_token / list_by_folder: vistas con estados derivados.

Collaborators:
    - ShareLinkRepository.consume_use (atomicidad bajo concurrencia)
    - NodeRepository, AccessResolver, GrantStore
    - UnitOfWork (consumo + grant + flip en un solo paso)
    - crosscutting.metrics.record_share_link_redemption
===============================================================================
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, List
from uuid import UUID, uuid4

from ..crosscutting.exceptions import (
    FolderNotFoundError,
    InvalidRequestError,
    ShareLinkDisabledError,
    ShareLinkExhaustedError,
    ShareLinkExpiredError,
    ShareLinkNotFoundError,
)
from ..crosscutting.logger import get_logger
from ..crosscutting.metrics import record_share_link_redemption
from ..domain.access_policy import AccessContext
from ..domain.entities import Node, ShareLink
from ..domain.repositories import NodeRepository, ShareLinkRepository, UnitOfWork
from ..domain.roles import SHARE_LINK_ROLES, Action, EffectiveRole, parse_role
from .access_resolver import AccessResolver
from .folder_access import load_org_folder, require_action, require_user
from .grant_store import GrantStore
from .results import GrantRedemption, ShareLinkView
from .tokens import generate_token

logger = get_logger("share_links")

DEFAULT_TOKEN_BYTES = 18


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ShareLinkService:
    def __init__(
        self,
        *,
        nodes: NodeRepository,
        links: ShareLinkRepository,
        resolver: AccessResolver,
        grants: GrantStore,
        unit_of_work: UnitOfWork,
        clock: Callable[[], datetime] = _utcnow,
        token_bytes: int = DEFAULT_TOKEN_BYTES,
    ):
        self._nodes = nodes
        self._links = links
        self._resolver = resolver
        self._grants = grants
        self._uow = unit_of_work
        self._clock = clock
        self._token_bytes = token_bytes

    # =========================================================================
    # Comandos
    # =========================================================================

    def create(
        self,
        ctx: AccessContext,
        folder_id: UUID,
        role: EffectiveRole | str,
        *,
        expires_in_days: int | None = None,
        max_uses: int | None = None,
    ) -> ShareLink:
        folder = load_org_folder(self._nodes, folder_id, purpose="create share links for")
        require_action(
            self._resolver,
            folder,
            ctx,
            Action.INVITE,
            "Not authorized to create share links for this folder",
        )
        link_role = self._parse_role(role)
        if expires_in_days is not None and expires_in_days <= 0:
            raise InvalidRequestError("expires_in_days must be greater than 0")
        if max_uses is not None and max_uses <= 0:
            raise InvalidRequestError("max_uses must be greater than 0")

        now = self._clock()
        link = self._links.insert_link(
            ShareLink(
                id=uuid4(),
                folder_id=folder.id,
                token=generate_token(self._token_bytes),
                role=link_role,
                org_id=folder.org_id,
                created_by=ctx.user_id,
                max_uses=max_uses,
                expires_at=(
                    now + timedelta(days=expires_in_days)
                    if expires_in_days is not None
                    else None
                ),
                created_at=now,
            )
        )
        logger.info(
            "Share link creado",
            extra={
                "link_id": str(link.id),
                "folder_id": str(folder.id),
                "role": link.role.value,
                "max_uses": max_uses,
            },
        )
        return link

    def use(self, ctx: AccessContext, token: str) -> GrantRedemption:
        user_id = require_user(ctx)
        now = self._clock()

        link = self._links.get_by_token(token)
        if link is None:
            record_share_link_redemption("not_found")
            raise ShareLinkNotFoundError("Share link not found")
        self._ensure_usable(link, now)

        folder = self._nodes.get_node(link.folder_id)
        if folder is None or folder.is_deleted:
            record_share_link_redemption("folder_missing")
            raise FolderNotFoundError("The folder no longer exists")

        # Un grant fallido devuelve el uso consumido.
        with self._uow.atomic():
            consumed = self._links.consume_use(link.id, now=now)
            if consumed is None:
                # Otro canje ganó la carrera (o el link cambió): re-clasificar.
                current = self._links.get_link(link.id)
                if current is None:
                    record_share_link_redemption("not_found")
                    raise ShareLinkNotFoundError("Share link not found")
                self._ensure_usable(current, now)
                record_share_link_redemption("exhausted")
                raise ShareLinkExhaustedError(
                    "This share link has reached its maximum uses"
                )

            grant, changed = self._grants.upgrade_grant(
                folder.id,
                user_id,
                consumed.role,
                org_id=consumed.org_id,
                granted_by=consumed.created_by,
                source="share_link",
            )
            restricted_now = self._nodes.restrict_if_open(folder.id)

        record_share_link_redemption("redeemed")
        logger.info(
            "Share link usado",
            extra={
                "link_id": str(consumed.id),
                "folder_id": str(folder.id),
                "use_count": consumed.use_count,
                "effective_role": grant.role.value,
                "folder_restricted_now": restricted_now,
            },
        )
        return GrantRedemption(
            folder_id=folder.id,
            role=consumed.role,
            effective_role=grant.role,
            grant_changed=changed,
            grant=grant,
        )

    def deactivate(self, ctx: AccessContext, link_id: UUID) -> ShareLink:
        self._load_for_manage(ctx, link_id, "disable")
        return self._patch(link_id, is_active=False)

    def activate(self, ctx: AccessContext, link_id: UUID) -> ShareLink:
        self._load_for_manage(ctx, link_id, "enable")
        return self._patch(link_id, is_active=True)

    def update(
        self,
        ctx: AccessContext,
        link_id: UUID,
        *,
        role: EffectiveRole | str | None = None,
        max_uses: int | None = None,
        expires_at: datetime | None = None,
    ) -> ShareLink:
        """Patch parcial (None = sin cambio)."""
        link = self._load_for_manage(ctx, link_id, "update")
        if max_uses is not None and max_uses < max(1, link.use_count):
            raise InvalidRequestError(
                f"max_uses must be >= 1 and >= current use_count ({link.use_count})"
            )
        return self._patch(
            link_id,
            role=self._parse_role(role) if role is not None else None,
            max_uses=max_uses,
            expires_at=expires_at,
        )

    def delete(self, ctx: AccessContext, link_id: UUID) -> None:
        self._load_for_manage(ctx, link_id, "delete")
        self._links.delete_link(link_id)
        logger.info("Share link eliminado", extra={"link_id": str(link_id)})

    # =========================================================================
    # Consultas
    # =========================================================================

    def get_by_token(self, token: str) -> ShareLinkView:
        link = self._links.get_by_token(token)
        if link is None:
            raise ShareLinkNotFoundError("Share link not found")
        return self._view(link, self._clock())

    def list_by_folder(self, ctx: AccessContext, folder_id: UUID) -> List[ShareLinkView]:
        folder = load_org_folder(self._nodes, folder_id, purpose="list share links of")
        require_action(
            self._resolver,
            folder,
            ctx,
            Action.INVITE,
            "Not authorized to list share links of this folder",
        )
        now = self._clock()
        return [self._view(link, now) for link in self._links.list_by_folder(folder.id)]

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _parse_role(role: EffectiveRole | str) -> EffectiveRole:
        try:
            return parse_role(role, allowed=SHARE_LINK_ROLES)
        except ValueError as exc:
            raise InvalidRequestError(str(exc)) from exc

    @staticmethod
    def _ensure_usable(link: ShareLink, now: datetime) -> None:
        # Orden: kill switch, luego expiración, luego tope de usos.
        if not link.is_active:
            record_share_link_redemption("disabled")
            raise ShareLinkDisabledError("This share link has been disabled")
        if link.is_expired(now):
            record_share_link_redemption("expired")
            raise ShareLinkExpiredError("This share link has expired")
        if link.is_maxed_out:
            record_share_link_redemption("exhausted")
            raise ShareLinkExhaustedError("This share link has reached its maximum uses")

    def _load_for_manage(self, ctx: AccessContext, link_id: UUID, verb: str) -> ShareLink:
        require_user(ctx)
        link = self._links.get_link(link_id)
        if link is None:
            raise ShareLinkNotFoundError("Share link not found")
        folder: Node | None = self._nodes.get_node(link.folder_id)
        if folder is None:
            raise FolderNotFoundError("Folder not found")
        require_action(
            self._resolver,
            folder,
            ctx,
            Action.MANAGE,
            f"Not authorized to {verb} this share link",
        )
        return link

    def _patch(self, link_id: UUID, **changes) -> ShareLink:
        updated = self._links.update_link(link_id, **changes)
        if updated is None:
            raise ShareLinkNotFoundError("Share link not found")
        logger.info(
            "Share link modificado",
            extra={
                "link_id": str(link_id),
                "changes": sorted(k for k, v in changes.items() if v is not None),
            },
        )
        return updated

    @staticmethod
    def _view(link: ShareLink, now: datetime) -> ShareLinkView:
        return ShareLinkView(
            link=link,
            is_expired=link.is_expired(now),
            is_maxed_out=link.is_maxed_out,
            is_usable=link.is_usable(now),
        )
