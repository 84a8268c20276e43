"""
===============================================================================
FOLDER ACCESS COMMANDS (direct grant / revoke / role changes)
===============================================================================

Name:
    FolderAccessService + permission helpers

Business Goal:
    Exponer los comandos directos sobre grants (grantAccess / revokeAccess /
    updateRole) aplicando el permiso requerido sobre la carpeta destino.

-------------------------------------------------------------------------------
CRC CARD (Class-Responsibility-Collaborator)
-------------------------------------------------------------------------------
Component:
    load_org_folder / require_action (helpers) + FolderAccessService

Responsibilities:
    - Validar que el destino es una carpeta de organización viva.
    - Exigir `invite` para otorgar y `manage` para cambiar/revocar.
    - Exigir `view` para listar grants de una carpeta.
    - Traducir "sin permiso" a NotAuthorizedError (el resolver nunca levanta).

Collaborators:
    - AccessResolver.check_folder_access
    - GrantStore
    - NodeRepository.get_node
===============================================================================
"""

from __future__ import annotations

from datetime import datetime
from typing import List
from uuid import UUID

from ..crosscutting.exceptions import (
    FolderNotFoundError,
    InvalidRequestError,
    NotAuthenticatedError,
    NotAuthorizedError,
)
from ..domain.access_policy import AccessCheck, AccessContext, can_perform_action
from ..domain.entities import Grant, Node
from ..domain.repositories import NodeRepository
from ..domain.roles import Action, EffectiveRole
from .access_resolver import AccessResolver
from .grant_store import GrantStore


def require_user(ctx: AccessContext) -> str:
    if not ctx.user_id:
        raise NotAuthenticatedError("Not authenticated")
    return ctx.user_id


def load_org_folder(
    nodes: NodeRepository, folder_id: UUID, *, purpose: str = "share"
) -> Node:
    """Carpeta de org viva o error (documentos y carpetas personales se rechazan)."""
    folder = nodes.get_node(folder_id)
    if folder is None or folder.is_deleted or not folder.is_folder:
        raise FolderNotFoundError(f"Folder '{folder_id}' not found")
    if folder.org_id is None:
        raise InvalidRequestError(f"Cannot {purpose} personal folders")
    return folder


def require_action(
    resolver: AccessResolver,
    folder: Node,
    ctx: AccessContext,
    action: Action,
    message: str,
) -> AccessCheck:
    require_user(ctx)
    access = resolver.check_folder_access(folder, ctx)
    if not can_perform_action(access, action):
        raise NotAuthorizedError(message)
    return access


class FolderAccessService:
    def __init__(
        self,
        *,
        nodes: NodeRepository,
        resolver: AccessResolver,
        grants: GrantStore,
    ):
        self._nodes = nodes
        self._resolver = resolver
        self._grants = grants

    def grant_access(
        self,
        ctx: AccessContext,
        folder_id: UUID,
        user_id: str,
        role: EffectiveRole | str,
        *,
        expires_at: datetime | None = None,
    ) -> Grant:
        folder = load_org_folder(self._nodes, folder_id, purpose="set permissions on")
        require_action(
            self._resolver,
            folder,
            ctx,
            Action.INVITE,
            "Not authorized to grant access to this folder",
        )
        return self._grants.upsert_grant(
            folder.id,
            user_id,
            role,
            org_id=folder.org_id,
            granted_by=ctx.user_id,
            expires_at=expires_at,
        )

    def update_role(
        self, ctx: AccessContext, folder_id: UUID, user_id: str, role: EffectiveRole | str
    ) -> Grant:
        folder = load_org_folder(self._nodes, folder_id, purpose="set permissions on")
        require_action(
            self._resolver,
            folder,
            ctx,
            Action.MANAGE,
            "Not authorized to manage access for this folder",
        )
        return self._grants.update_role(folder.id, user_id, role)

    def revoke_access(self, ctx: AccessContext, folder_id: UUID, user_id: str) -> bool:
        folder = load_org_folder(self._nodes, folder_id, purpose="set permissions on")
        require_action(
            self._resolver,
            folder,
            ctx,
            Action.MANAGE,
            "Not authorized to revoke access for this folder",
        )
        return self._grants.revoke_grant(folder.id, user_id)

    def list_grants(self, ctx: AccessContext, folder_id: UUID) -> List[Grant]:
        folder = load_org_folder(self._nodes, folder_id, purpose="list permissions of")
        require_action(
            self._resolver,
            folder,
            ctx,
            Action.VIEW,
            "Not authorized to view access for this folder",
        )
        return self._grants.list_folder_grants(folder.id)

    def get_user_grant(
        self, ctx: AccessContext, folder_id: UUID, user_id: str | None = None
    ) -> Grant | None:
        """Grant vigente de `user_id` (por defecto, el propio caller)."""
        caller = require_user(ctx)
        target = user_id or caller
        if target != caller:
            folder = load_org_folder(
                self._nodes, folder_id, purpose="list permissions of"
            )
            require_action(
                self._resolver,
                folder,
                ctx,
                Action.VIEW,
                "Not authorized to view access for this folder",
            )
        return self._grants.get_active_grant(folder_id, target)

    def list_accessible_folder_ids(self, ctx: AccessContext) -> set[UUID]:
        return self._grants.list_accessible_folder_ids(require_user(ctx), ctx.org_id)
