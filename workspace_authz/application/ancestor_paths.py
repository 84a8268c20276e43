"""
===============================================================================
ANCESTOR PATH MAINTAINER (ancestor_ids bookkeeping)
===============================================================================

Name:
    AncestorPathMaintainer

Business Goal:
    Mantener `ancestor_ids` (root-first) de cada nodo consistente con `parent_id`,
    para que "¿X es descendiente de Y?" sea una consulta O(1) sobre el nodo y no
    un recorrido recursivo.

-------------------------------------------------------------------------------
CRC CARD (Class-Responsibility-Collaborator)
-------------------------------------------------------------------------------
Class:
    AncestorPathMaintainer

Responsibilities:
    - compute_ancestor_ids: subir por parent_id con límite y set de visitados.
    - iter_descendants / get_descendant_ids: bajar por hijos (BFS acotado).
    - reparent: delegar en UNA llamada atómica al repositorio el chequeo de
      ciclos y la reescritura de la cadena del nodo y de todo su subárbol.
    - backfill: recorrido por lotes, idempotente, reanudable y cancelable.

Collaborators:
    - NodeRepository: get_node, list_children, list_nodes_page,
      apply_parent_change, update_ancestor_paths
    - crosscutting.exceptions: TreeIntegrityError, NodeNotFoundError,
      InvalidRequestError

Policy:
    - Un ciclo o una profundidad excesiva levanta TreeIntegrityError: nunca se
      trunca la cadena en silencio.
    - El backfill cuenta y loguea los nodos rotos y sigue con el resto.
===============================================================================
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, Optional
from uuid import UUID

from ..crosscutting.exceptions import (
    InvalidRequestError,
    NodeNotFoundError,
    TreeIntegrityError,
)
from ..crosscutting.logger import get_logger
from ..crosscutting.metrics import record_tree_integrity_error
from ..domain.entities import Node
from ..domain.repositories import MoveOutcome, NodeRepository

logger = get_logger("tree")

DEFAULT_MAX_DEPTH = 100


@dataclass
class BackfillProgress:
    """Estado acumulado de un backfill (sirve para reanudar con `cursor`)."""

    processed: int = 0
    migrated: int = 0
    skipped: int = 0
    errors: int = 0
    batches: int = 0
    cursor: Optional[UUID] = None
    done: bool = False
    cancelled: bool = False


class AncestorPathMaintainer:
    def __init__(self, *, nodes: NodeRepository, max_depth: int = DEFAULT_MAX_DEPTH):
        self._nodes = nodes
        self._max_depth = max_depth

    # =========================================================================
    # Lectura
    # =========================================================================

    def compute_ancestor_ids(self, node_id: UUID) -> List[UUID]:
        """
        Cadena root-first de ancestros siguiendo parent_id.

        Un padre inexistente cierra la cadena (queda como raíz).
        """
        node = self._nodes.get_node(node_id)
        if node is None:
            raise NodeNotFoundError(f"Node '{node_id}' not found")

        chain: List[UUID] = []
        visited = {node.id}
        parent_id = node.parent_id
        while parent_id is not None:
            if parent_id in visited:
                raise TreeIntegrityError(
                    f"Cycle detected above node '{node_id}' (at '{parent_id}')"
                )
            if len(chain) >= self._max_depth:
                raise TreeIntegrityError(
                    f"Node '{node_id}' exceeds max tree depth ({self._max_depth})"
                )
            visited.add(parent_id)
            chain.append(parent_id)

            parent = self._nodes.get_node(parent_id)
            parent_id = parent.parent_id if parent is not None else None

        chain.reverse()
        return chain

    def iter_descendants(
        self, node_id: UUID, *, include_deleted: bool = False
    ) -> Iterator[Node]:
        """Descendientes en orden BFS (padres antes que hijos)."""
        visited = {node_id}
        frontier = deque([(node_id, 0)])
        while frontier:
            parent_id, depth = frontier.popleft()
            if depth >= self._max_depth:
                raise TreeIntegrityError(
                    f"Subtree of '{node_id}' exceeds max tree depth ({self._max_depth})"
                )
            for child in self._nodes.list_children(
                parent_id, include_deleted=include_deleted
            ):
                if child.id in visited:
                    raise TreeIntegrityError(
                        f"Cycle detected below node '{node_id}' (at '{child.id}')"
                    )
                visited.add(child.id)
                yield child
                frontier.append((child.id, depth + 1))

    def get_descendant_ids(self, node_id: UUID) -> List[UUID]:
        """Ids de descendientes no eliminados (un hijo eliminado poda su rama)."""
        return [node.id for node in self.iter_descendants(node_id)]

    def is_descendant(self, node: Node, ancestor_id: UUID) -> bool:
        """O(1) sobre el nodo: usa ancestor_ids ya materializados."""
        return ancestor_id in node.ancestor_ids

    # =========================================================================
    # Escritura
    # =========================================================================

    def refresh(self, node_id: UUID) -> List[UUID]:
        """Recalcula y persiste la cadena de un nodo (no-op si ya es correcta)."""
        node = self._nodes.get_node(node_id)
        if node is None:
            raise NodeNotFoundError(f"Node '{node_id}' not found")

        chain = self.compute_ancestor_ids(node_id)
        if chain != node.ancestor_ids:
            self._nodes.update_ancestor_paths({node_id: chain})
        return chain

    def reparent(self, node_id: UUID, new_parent_id: UUID | None) -> Node:
        """
        Mueve un nodo y reescribe las cadenas del nodo y de su subárbol.

        El chequeo "no debajo de sí mismo ni de un descendiente" corre dentro
        del mismo paso atómico que la escritura.
        """
        node = self._nodes.get_node(node_id)
        if node is None or node.is_deleted:
            raise NodeNotFoundError(f"Node '{node_id}' not found")

        change = self._nodes.apply_parent_change(
            node_id, new_parent_id, max_depth=self._max_depth
        )
        if change.outcome == MoveOutcome.NODE_NOT_FOUND:
            raise NodeNotFoundError(f"Node '{node_id}' not found")
        if change.outcome == MoveOutcome.PARENT_NOT_FOUND:
            raise NodeNotFoundError(f"Node '{new_parent_id}' not found")
        if change.outcome == MoveOutcome.CYCLE:
            raise InvalidRequestError(
                "A node cannot be moved under itself or one of its own descendants"
            )
        if change.outcome == MoveOutcome.TOO_DEEP:
            raise TreeIntegrityError(
                f"Moving '{node_id}' would exceed max tree depth ({self._max_depth})"
            )
        if change.outcome == MoveOutcome.BROKEN_CHAIN:
            record_tree_integrity_error()
            raise TreeIntegrityError(
                f"Cannot move '{node_id}': cycle or overflow in the parent chain"
            )

        logger.info(
            "Nodo movido",
            extra={
                "node_id": str(node_id),
                "old_parent_id": str(node.parent_id) if node.parent_id else None,
                "new_parent_id": str(new_parent_id) if new_parent_id else None,
                "rewritten_paths": change.rewritten,
            },
        )
        return self._nodes.get_node(node_id) or node

    def backfill(
        self,
        *,
        batch_size: int,
        cursor: UUID | None = None,
        should_cancel: Callable[[], bool] | None = None,
        max_batches: int | None = None,
    ) -> BackfillProgress:
        """
        Materializa ancestor_ids en lotes ordenados por id.

        - Idempotente: nodos con cadena ya consistente se saltean.
        - Reanudable: `progress.cursor` es el último id confirmado.
        - Cancelable entre lotes: los lotes ya escritos quedan intactos.
        """
        if batch_size <= 0:
            raise ValueError("batch_size must be > 0")

        progress = BackfillProgress(cursor=cursor)
        while True:
            if should_cancel is not None and should_cancel():
                progress.cancelled = True
                logger.info(
                    "Backfill cancelado",
                    extra={"cursor": str(progress.cursor) if progress.cursor else None},
                )
                return progress
            if max_batches is not None and progress.batches >= max_batches:
                return progress

            page = self._nodes.list_nodes_page(after_id=progress.cursor, limit=batch_size)
            if not page:
                progress.done = True
                break

            self._backfill_batch(page, progress)
            progress.cursor = page[-1].id
            progress.batches += 1

            if len(page) < batch_size:
                progress.done = True
                break

        logger.info(
            "Backfill completo",
            extra={
                "processed": progress.processed,
                "migrated": progress.migrated,
                "skipped": progress.skipped,
                "errors": progress.errors,
            },
        )
        return progress

    def _backfill_batch(self, page: List[Node], progress: BackfillProgress) -> None:
        updates: Dict[UUID, List[UUID]] = {}
        for node in page:
            progress.processed += 1
            try:
                chain = self.compute_ancestor_ids(node.id)
            except TreeIntegrityError:
                progress.errors += 1
                record_tree_integrity_error()
                logger.error(
                    "No se pudo calcular ancestor_ids",
                    exc_info=True,
                    extra={"node_id": str(node.id)},
                )
                continue

            if chain == node.ancestor_ids:
                progress.skipped += 1
            else:
                updates[node.id] = chain

        if updates:
            self._nodes.update_ancestor_paths(updates)
            progress.migrated += len(updates)

        logger.info(
            "Lote de backfill aplicado",
            extra={
                "batch": progress.batches + 1,
                "batch_size": len(page),
                "migrated": len(updates),
            },
        )
