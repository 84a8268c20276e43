"""
===============================================================================
ACCESS RESOLVER (Node / Folder Access Resolution)
===============================================================================

Name:
    AccessResolver

Business Goal:
    Responder con precisión "¿el usuario U tiene acceso al nodo N y con qué rol?"
    combinando ownership, override de org admin, carpetas abiertas/restringidas,
    grants explícitos (con expiración) y herencia por carpetas ancestro.

-------------------------------------------------------------------------------
CRC CARD (Class-Responsibility-Collaborator)
-------------------------------------------------------------------------------
Class:
    AccessResolver

Responsibilities:
    - check_folder_access: resolución de carpetas (primer match gana).
    - check_node_access: extensión a documentos (carpeta contenedora más cercana).
    - resolve_access: carga por id + métricas de decisión.
    - get_root_restricted_folder: carpeta restringida más alta del path.
    - Recorridos iterativos con límite de profundidad y set de visitados.

Collaborators:
    - NodeRepository.get_node
    - GrantRepository.get_grant
    - domain.access_policy: AccessContext, AccessCheck, factories
    - crosscutting.metrics: record_access_check, record_tree_integrity_error

Policy:
    - Nunca levanta excepciones por "sin acceso": NO_ACCESS es un valor.
    - Un árbol malformado (ciclo / profundidad) se loguea en ERROR, se cuenta
      y se resuelve como NO_ACCESS.
    - Carpetas: un ancestro restringido sin grant NO corta la subida.
    - Documentos: la primera carpeta contenedora restringida sin acceso SÍ corta.
===============================================================================
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Iterator
from uuid import UUID

from ..crosscutting.logger import get_logger
from ..crosscutting.metrics import record_access_check, record_tree_integrity_error
from ..domain.access_policy import (
    NO_ACCESS,
    AccessCheck,
    AccessContext,
    org_admin_access,
    owner_access,
    role_access,
)
from ..domain.entities import Node
from ..domain.repositories import GrantRepository, NodeRepository
from ..domain.roles import EffectiveRole

logger = get_logger("access")

DEFAULT_MAX_DEPTH = 100


class _BrokenTree(Exception):
    """Señal interna: ciclo o profundidad excedida durante una subida."""

    def __init__(self, reason: str, node_id: UUID):
        super().__init__(reason)
        self.reason = reason
        self.node_id = node_id


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AccessResolver:
    """Superficie de consulta de autorización (solo lectura)."""

    def __init__(
        self,
        *,
        nodes: NodeRepository,
        grants: GrantRepository,
        max_depth: int = DEFAULT_MAX_DEPTH,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._nodes = nodes
        self._grants = grants
        self._max_depth = max_depth
        self._clock = clock

    # =========================================================================
    # API pública
    # =========================================================================

    def resolve_access(self, node_id: UUID, ctx: AccessContext) -> AccessCheck:
        """Carga el nodo y resuelve su acceso (registra la decisión en métricas)."""
        access = self.check_node_access(self._nodes.get_node(node_id), ctx)
        record_access_check(
            access.role.value if access.role else None, granted=access.has_access
        )
        return access

    def check_folder_access(self, folder: Node | None, ctx: AccessContext) -> AccessCheck:
        try:
            return self._check_folder(folder, ctx)
        except _BrokenTree as exc:
            self._report_broken_tree(exc)
            return NO_ACCESS

    def check_node_access(self, node: Node | None, ctx: AccessContext) -> AccessCheck:
        try:
            return self._check_node(node, ctx)
        except _BrokenTree as exc:
            self._report_broken_tree(exc)
            return NO_ACCESS

    def get_root_restricted_folder(self, node_id: UUID) -> UUID | None:
        """
        Carpeta restringida más alta en el path del nodo (incluido él mismo).

        None si el nodo vive en una zona abierta.
        """
        node = self._nodes.get_node(node_id)
        if node is None:
            return None

        root_restricted: UUID | None = None
        try:
            for current in self._path_to_root(node):
                if current.is_folder and current.is_restricted:
                    root_restricted = current.id
        except _BrokenTree as exc:
            self._report_broken_tree(exc)
            return None
        return root_restricted

    # =========================================================================
    # Resolución de carpetas
    # =========================================================================

    def _check_folder(self, folder: Node | None, ctx: AccessContext) -> AccessCheck:
        # 1) Inexistente o eliminada.
        if folder is None or folder.is_deleted or not ctx.user_id:
            return NO_ACCESS

        # 2) Ownership personal.
        if folder.owner_id == ctx.user_id:
            return owner_access()

        # 3) Carpeta personal ajena: nunca se comparte por org.
        if folder.org_id is None:
            return NO_ACCESS

        # 4) Override de org admin (misma org).
        if ctx.is_org_admin and folder.org_id == ctx.org_id:
            return org_admin_access()

        # 5) Carpeta abierta: editor implícito para miembros de su org.
        if not folder.is_restricted and folder.org_id == ctx.org_id:
            return role_access(EffectiveRole.EDITOR)

        # 6) Grant directo vigente.
        role = self._active_grant_role(folder.id, ctx.user_id)
        if role is not None:
            return role_access(role)

        # 7) Herencia: grant vigente o carpeta abierta de la org del caller.
        for ancestor in self._ancestors(folder):
            role = self._active_grant_role(ancestor.id, ctx.user_id)
            if role is not None:
                return role_access(role, inherited_from=ancestor.id)
            if not ancestor.is_restricted and ancestor.org_id == ctx.org_id:
                return role_access(EffectiveRole.EDITOR, inherited_from=ancestor.id)
            # Restringido sin grant: no resuelve, pero la subida sigue.

        return NO_ACCESS

    # =========================================================================
    # Resolución de nodos (documentos)
    # =========================================================================

    def _check_node(self, node: Node | None, ctx: AccessContext) -> AccessCheck:
        if node is None or node.is_deleted or not ctx.user_id:
            return NO_ACCESS

        if node.is_personal:
            return owner_access() if node.owner_id == ctx.user_id else NO_ACCESS

        if ctx.is_org_admin and node.org_id == ctx.org_id:
            return org_admin_access()

        if node.is_folder:
            return self._check_folder(node, ctx)

        for ancestor in self._ancestors(node):
            if not ancestor.is_folder:
                continue

            access = self._check_folder(ancestor, ctx)
            if access.has_access:
                return access.with_inherited_from(access.inherited_from or ancestor.id)

            # Primera carpeta restringida sin acceso: corte duro.
            if ancestor.is_restricted:
                return NO_ACCESS

        # Sin carpeta contenedora que resuelva: acceso de miembro de la org.
        if node.org_id == ctx.org_id:
            return role_access(EffectiveRole.EDITOR)
        return NO_ACCESS

    # =========================================================================
    # Helpers
    # =========================================================================

    def _active_grant_role(self, folder_id: UUID, user_id: str) -> EffectiveRole | None:
        grant = self._grants.get_grant(folder_id, user_id)
        if grant is None or grant.is_expired(self._clock()):
            return None
        return grant.role

    def _ancestors(self, node: Node) -> Iterator[Node]:
        """
        Ancestros vivos del nodo, del padre hacia la raíz.

        Se detiene en un padre inexistente o eliminado.
        """
        visited = {node.id}
        parent_id = node.parent_id
        depth = 0
        while parent_id is not None:
            depth += 1
            if depth > self._max_depth:
                raise _BrokenTree("max_depth_exceeded", node.id)
            if parent_id in visited:
                raise _BrokenTree("cycle", parent_id)
            visited.add(parent_id)

            parent = self._nodes.get_node(parent_id)
            if parent is None or parent.is_deleted:
                return
            yield parent
            parent_id = parent.parent_id

    def _path_to_root(self, node: Node) -> Iterator[Node]:
        yield node
        yield from self._ancestors(node)

    def _report_broken_tree(self, exc: _BrokenTree) -> None:
        record_tree_integrity_error()
        logger.error(
            "Árbol malformado durante la resolución de acceso",
            extra={
                "reason": exc.reason,
                "node_id": str(exc.node_id),
                "max_depth": self._max_depth,
            },
        )
