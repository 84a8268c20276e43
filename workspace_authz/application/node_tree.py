"""
===============================================================================
NODE TREE COMMANDS (register / move / restrict / soft delete)
===============================================================================

Name:
    NodeTreeService

Business Goal:
    Mantener el read model del árbol (carpetas/documentos) que alimenta al
    AccessResolver: alta de nodos, movimientos, restricción y borrado lógico.

-------------------------------------------------------------------------------
CRC CARD (Class-Responsibility-Collaborator)
-------------------------------------------------------------------------------
Class:
    NodeTreeService

Responsibilities:
    - register_node: alta con ancestor_ids ya materializados (un hijo los deriva
      del padre almacenado en el mismo paso atómico) y hereda su scope.
    - move_node: exige `edit` sobre el nodo y sobre el destino; delega la
      reescritura de cadenas en AncestorPathMaintainer.reparent.
    - set_restricted: exige `manage` sobre la carpeta.
    - soft_delete_node: exige `delete`; marca el subárbol completo.

Collaborators:
    - NodeRepository
    - AncestorPathMaintainer
    - AccessResolver.check_node_access / domain.access_policy.can_perform_action

Notes:
    - Sin hard delete: los nodos eliminados quedan para auditoría.
===============================================================================
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable
from uuid import UUID, uuid4

from ..crosscutting.exceptions import (
    FolderNotFoundError,
    InvalidRequestError,
    NodeNotFoundError,
    NotAuthorizedError,
)
from ..crosscutting.logger import get_logger
from ..domain.access_policy import AccessContext, can_perform_action
from ..domain.entities import Node, NodeType
from ..domain.repositories import NodeRepository
from ..domain.roles import Action
from .access_resolver import AccessResolver
from .ancestor_paths import AncestorPathMaintainer
from .folder_access import require_user

logger = get_logger("tree")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NodeTreeService:
    def __init__(
        self,
        *,
        nodes: NodeRepository,
        paths: AncestorPathMaintainer,
        resolver: AccessResolver,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._nodes = nodes
        self._paths = paths
        self._resolver = resolver
        self._clock = clock

    def get_node(self, node_id: UUID) -> Node:
        node = self._nodes.get_node(node_id)
        if node is None or node.is_deleted:
            raise NodeNotFoundError(f"Node '{node_id}' not found")
        return node

    def get_visible_node(self, ctx: AccessContext, node_id: UUID) -> Node:
        """Nodo visible para el caller; sin `view` se responde como inexistente."""
        node = self.get_node(node_id)
        access = self._resolver.check_node_access(node, ctx)
        if not can_perform_action(access, Action.VIEW):
            raise NodeNotFoundError(f"Node '{node_id}' not found")
        return node

    def register_node(
        self,
        ctx: AccessContext,
        *,
        node_type: NodeType | str,
        title: str = "",
        parent_id: UUID | None = None,
        org_id: str | None = None,
        is_restricted: bool = False,
    ) -> Node:
        """
        Alta de un nodo.

        - Con padre: exige `edit` sobre el padre y copia su scope.
        - En la raíz: org_id explícito (debe ser la org del caller) o personal.
        """
        user_id = require_user(ctx)
        node_type = NodeType(node_type)

        owner_id: str | None
        if parent_id is not None:
            parent = self.get_node(parent_id)
            self._require(ctx, parent, Action.EDIT, "Not authorized to add nodes here")
            owner_id, org_id = parent.owner_id, parent.org_id
        else:
            if org_id is not None and org_id != ctx.org_id:
                raise NotAuthorizedError("Not a member of the target organization")
            owner_id = None if org_id is not None else user_id

        node = Node(
            id=uuid4(),
            type=node_type,
            title=title,
            parent_id=parent_id,
            owner_id=owner_id,
            org_id=org_id,
            is_restricted=is_restricted and node_type == NodeType.FOLDER,
            created_at=self._clock(),
        )
        if parent_id is None:
            node = self._nodes.insert_node(node)
        else:
            # La cadena se deriva del padre almacenado, atómico frente a moves.
            stored = self._nodes.insert_child(node)
            if stored is None:
                raise NodeNotFoundError(f"Node '{parent_id}' not found")
            node = stored

        logger.info(
            "Nodo registrado",
            extra={
                "node_id": str(node.id),
                "node_type": node.type.value,
                "parent_id": str(parent_id) if parent_id else None,
            },
        )
        return node

    def move_node(
        self, ctx: AccessContext, node_id: UUID, new_parent_id: UUID | None
    ) -> Node:
        node = self.get_node(node_id)
        self._require(ctx, node, Action.EDIT, "Not authorized to move this node")

        if new_parent_id is not None:
            parent = self.get_node(new_parent_id)
            if (parent.owner_id, parent.org_id) != (node.owner_id, node.org_id):
                raise InvalidRequestError(
                    "Nodes can only be moved within the same workspace scope"
                )
            self._require(ctx, parent, Action.EDIT, "Not authorized to move nodes here")

        if new_parent_id == node.parent_id:
            return node
        return self._paths.reparent(node_id, new_parent_id)

    def set_restricted(
        self, ctx: AccessContext, folder_id: UUID, is_restricted: bool
    ) -> Node:
        node = self._nodes.get_node(folder_id)
        if node is None or node.is_deleted or not node.is_folder:
            raise FolderNotFoundError(f"Folder '{folder_id}' not found")
        if node.is_personal:
            raise InvalidRequestError("Cannot restrict personal folders")
        self._require(
            ctx, node, Action.MANAGE, "Not authorized to manage this folder"
        )

        updated = self._nodes.set_restricted(folder_id, is_restricted)
        if updated is None:
            raise FolderNotFoundError(f"Folder '{folder_id}' not found")
        logger.info(
            "Restricción de carpeta modificada",
            extra={"folder_id": str(folder_id), "is_restricted": is_restricted},
        )
        return updated

    def soft_delete_node(self, ctx: AccessContext, node_id: UUID) -> int:
        """Borrado lógico del nodo y de todo su subárbol. Devuelve nodos marcados."""
        node = self.get_node(node_id)
        self._require(ctx, node, Action.DELETE, "Not authorized to delete this node")

        subtree = [node_id, *self._paths.get_descendant_ids(node_id)]
        changed = self._nodes.soft_delete_nodes(subtree, self._clock())
        logger.info(
            "Nodo eliminado (soft)",
            extra={"node_id": str(node_id), "deleted_count": changed},
        )
        return changed

    def _require(
        self, ctx: AccessContext, node: Node, action: Action, message: str
    ) -> None:
        access = self._resolver.check_node_access(node, ctx)
        if not can_perform_action(access, action):
            raise NotAuthorizedError(message)
