"""
===============================================================================
GRANT STORE (explicit per-folder grants)
===============================================================================

Name:
    GrantStore

Business Goal:
    Administrar grants explícitos (viewer/editor/admin) por (carpeta, usuario),
    con expiración opcional, y calcular el cierre transitivo de carpetas
    accesibles para un usuario.

-------------------------------------------------------------------------------
CRC CARD (Class-Responsibility-Collaborator)
-------------------------------------------------------------------------------
Class:
    GrantStore

Responsibilities:
    - upsert_grant: find-or-replace sobre (folder_id, user_id).
    - upgrade_grant: variante "nunca bajar de rol" (invitaciones / share links).
    - revoke_grant, update_role, get_active_grant, list_folder_grants.
    - list_accessible_folder_ids: grants vigentes ∪ todos sus descendientes.
    - purge_expired: limpieza perezosa en lotes idempotentes.

Collaborators:
    - GrantRepository (atomicidad por registro)
    - AncestorPathMaintainer (enumeración de descendientes)
    - crosscutting.metrics.record_grant_write

Policy:
    - Sin chequeos de permisos: eso vive en FolderAccessService / servicios
      de invitaciones y share links.
    - Un grant vencido es lógicamente inexistente aunque siga en storage.
===============================================================================
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, List, Set
from uuid import UUID

from ..crosscutting.exceptions import GrantNotFoundError, InvalidRequestError
from ..crosscutting.logger import get_logger
from ..crosscutting.metrics import record_grant_write
from ..domain.entities import Grant
from ..domain.repositories import GrantRepository
from ..domain.roles import GRANTABLE_ROLES, EffectiveRole, parse_role
from .ancestor_paths import AncestorPathMaintainer

logger = get_logger("grants")


def parse_grantable_role(role: EffectiveRole | str) -> EffectiveRole:
    try:
        return parse_role(role, allowed=GRANTABLE_ROLES)
    except ValueError as exc:
        raise InvalidRequestError(str(exc)) from exc


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GrantStore:
    def __init__(
        self,
        *,
        grants: GrantRepository,
        paths: AncestorPathMaintainer,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._grants = grants
        self._paths = paths
        self._clock = clock

    # =========================================================================
    # Comandos
    # =========================================================================

    def upsert_grant(
        self,
        folder_id: UUID,
        user_id: str,
        role: EffectiveRole | str,
        *,
        org_id: str | None,
        granted_by: str | None,
        expires_at: datetime | None = None,
    ) -> Grant:
        """Crea o reemplaza el grant (rol y expiración pasan a ser los nuevos)."""
        grant = Grant(
            folder_id=folder_id,
            user_id=user_id,
            role=parse_grantable_role(role),
            org_id=org_id,
            granted_by=granted_by,
            expires_at=expires_at,
            created_at=self._clock(),
        )
        stored = self._grants.upsert_grant(grant)
        record_grant_write("direct", changed=True)
        logger.info(
            "Grant guardado",
            extra={
                "folder_id": str(folder_id),
                "grantee_id": user_id,
                "role": stored.role.value,
                "expires_at": expires_at,
            },
        )
        return stored

    def upgrade_grant(
        self,
        folder_id: UUID,
        user_id: str,
        role: EffectiveRole | str,
        *,
        org_id: str | None,
        granted_by: str | None,
        source: str = "direct",
    ) -> tuple[Grant, bool]:
        """
        Nunca baja de rol.

        - Sin grant (o grant vencido): se crea uno nuevo sin expiración.
        - Grant vigente con rol menor: se sube solo el rol.
        - Grant vigente con rol igual o mayor: queda igual.
        """
        now = self._clock()
        candidate = Grant(
            folder_id=folder_id,
            user_id=user_id,
            role=parse_grantable_role(role),
            org_id=org_id,
            granted_by=granted_by,
            created_at=now,
        )
        stored, changed = self._grants.upgrade_grant(candidate, now=now)
        record_grant_write(source, changed=changed)
        logger.info(
            "Grant actualizado (sin downgrade)",
            extra={
                "folder_id": str(folder_id),
                "grantee_id": user_id,
                "requested_role": candidate.role.value,
                "role": stored.role.value,
                "changed": changed,
                "source": source,
            },
        )
        return stored, changed

    def revoke_grant(self, folder_id: UUID, user_id: str) -> bool:
        removed = self._grants.delete_grant(folder_id, user_id)
        if removed:
            logger.info(
                "Grant revocado",
                extra={"folder_id": str(folder_id), "grantee_id": user_id},
            )
        return removed

    def update_role(
        self, folder_id: UUID, user_id: str, role: EffectiveRole | str
    ) -> Grant:
        updated = self._grants.update_role(
            folder_id, user_id, parse_grantable_role(role)
        )
        if updated is None:
            raise GrantNotFoundError(
                f"User '{user_id}' has no grant on folder '{folder_id}'"
            )
        logger.info(
            "Rol de grant modificado",
            extra={
                "folder_id": str(folder_id),
                "grantee_id": user_id,
                "role": updated.role.value,
            },
        )
        return updated

    def purge_expired(
        self,
        *,
        batch_size: int,
        should_cancel: Callable[[], bool] | None = None,
    ) -> int:
        """Borra físicamente grants vencidos, lote por lote. Devuelve el total."""
        if batch_size <= 0:
            raise ValueError("batch_size must be > 0")
        total = 0
        while should_cancel is None or not should_cancel():
            removed = self._grants.delete_expired(now=self._clock(), limit=batch_size)
            total += removed
            if removed < batch_size:
                break
        if total:
            logger.info("Grants vencidos eliminados", extra={"count": total})
        return total

    # =========================================================================
    # Consultas
    # =========================================================================

    def get_active_grant(self, folder_id: UUID, user_id: str) -> Grant | None:
        grant = self._grants.get_grant(folder_id, user_id)
        if grant is None or grant.is_expired(self._clock()):
            return None
        return grant

    def list_folder_grants(self, folder_id: UUID) -> List[Grant]:
        return self._grants.list_grants_for_folder(folder_id)

    def get_descendant_ids(self, parent_id: UUID) -> List[UUID]:
        return self._paths.get_descendant_ids(parent_id)

    def list_accessible_folder_ids(
        self, user_id: str, org_id: str | None = None
    ) -> Set[UUID]:
        """
        Grants vigentes del usuario ∪ todos los descendientes no eliminados de
        cada carpeta otorgada (sin importar su restricción).
        """
        now = self._clock()
        accessible: Set[UUID] = set()
        for grant in self._grants.list_grants_for_user(user_id, org_id=org_id):
            if grant.is_expired(now) or grant.folder_id in accessible:
                continue
            accessible.add(grant.folder_id)
            accessible.update(self._paths.get_descendant_ids(grant.folder_id))
        return accessible
