"""
============================================================
TARJETA CRC — infrastructure/repositories/in_memory/nodes.py
============================================================
Class: InMemoryNodeRepository

Responsibilities:
  - Almacenar el árbol de carpetas/documentos en memoria (tests / local dev).
  - Mantener un índice by_parent para listar hijos sin recorrer todo.
  - Aplicar cambios de padre + reescritura de ancestor_ids bajo un único lock.
  - restrict_if_open: flip atómico false -> true.

Collaborators:
  - domain.repositories.NodeRepository (contrato)
  - domain.entities.Node

Constraints / Notes:
  - Thread-safe: un RLock protege la tabla y el índice; moves e inserts de
    hijos chequean y escriben bajo el mismo lock.
  - Copias defensivas: el caller nunca recibe la instancia almacenada.
  - Orden determinístico: hijos por (created_at, id); páginas por str(id),
    igual que ORDER BY id en Postgres.
============================================================
"""

from __future__ import annotations

from collections import deque
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Mapping, Optional, Sequence, Set
from uuid import UUID

from ....domain.entities import Node
from ....domain.repositories import MoveOutcome, NodeRepository, ParentChange
from ._store import InMemoryStore


def _snapshot(node: Node) -> Node:
    return replace(node, ancestor_ids=list(node.ancestor_ids))


class InMemoryNodeRepository(InMemoryStore, NodeRepository):
    _state_fields = ("_nodes", "_by_parent")

    def __init__(self) -> None:
        super().__init__()
        self._nodes: Dict[UUID, Node] = {}
        self._by_parent: Dict[Optional[UUID], Set[UUID]] = {}

    # =========================================================
    # Helpers internos
    # =========================================================
    def _index(self, node: Node) -> None:
        self._by_parent.setdefault(node.parent_id, set()).add(node.id)

    def _unindex(self, node: Node) -> None:
        siblings = self._by_parent.get(node.parent_id)
        if siblings is not None:
            siblings.discard(node.id)

    @staticmethod
    def _sort_key(node: Node):
        return (node.created_at is None, node.created_at or datetime.min, str(node.id))

    # =========================================================
    # Lecturas
    # =========================================================
    def ping(self) -> bool:
        return True

    def get_node(self, node_id: UUID) -> Optional[Node]:
        with self._lock:
            node = self._nodes.get(node_id)
            return _snapshot(node) if node else None

    def list_children(
        self, parent_id: UUID, *, include_deleted: bool = False
    ) -> List[Node]:
        with self._lock:
            children = [
                self._nodes[child_id]
                for child_id in self._by_parent.get(parent_id, ())
                if include_deleted or not self._nodes[child_id].is_deleted
            ]
            children.sort(key=self._sort_key)
            return [_snapshot(n) for n in children]

    def list_nodes_page(
        self, *, after_id: Optional[UUID], limit: int
    ) -> List[Node]:
        with self._lock:
            candidates = sorted(
                (n for n in self._nodes.values() if not n.is_deleted),
                key=lambda n: str(n.id),
            )
            if after_id is not None:
                cursor = str(after_id)
                candidates = [n for n in candidates if str(n.id) > cursor]
            return [_snapshot(n) for n in candidates[:limit]]

    # =========================================================
    # Escrituras
    # =========================================================
    def insert_node(self, node: Node) -> Node:
        stored = _snapshot(node)
        with self._lock:
            if stored.id in self._nodes:
                raise ValueError(f"Node {stored.id} already exists")
            self._nodes[stored.id] = stored
            self._index(stored)
        return _snapshot(stored)

    def set_restricted(self, node_id: UUID, is_restricted: bool) -> Optional[Node]:
        with self._lock:
            node = self._nodes.get(node_id)
            if node is None:
                return None
            node.is_restricted = is_restricted
            return _snapshot(node)

    def restrict_if_open(self, node_id: UUID) -> bool:
        with self._lock:
            node = self._nodes.get(node_id)
            if node is None or node.is_restricted:
                return False
            node.is_restricted = True
            return True

    def soft_delete_nodes(self, node_ids: Sequence[UUID], at: datetime) -> int:
        changed = 0
        with self._lock:
            for node_id in node_ids:
                node = self._nodes.get(node_id)
                if node is None or node.is_deleted:
                    continue
                node.mark_deleted(at=at)
                changed += 1
        return changed

    def insert_child(self, node: Node) -> Optional[Node]:
        if node.parent_id is None:
            raise ValueError("insert_child requires a parent_id")
        with self._lock:
            parent = self._nodes.get(node.parent_id)
            if parent is None or parent.is_deleted:
                return None
            stored = replace(node, ancestor_ids=[*parent.ancestor_ids, parent.id])
            if stored.id in self._nodes:
                raise ValueError(f"Node {stored.id} already exists")
            self._nodes[stored.id] = stored
            self._index(stored)
            return _snapshot(stored)

    def _chain_above(self, node_id: UUID, max_depth: int) -> Optional[List[UUID]]:
        """Cadena root-first siguiendo parent_id; None si hay ciclo o desborde."""
        chain: List[UUID] = []
        visited = {node_id}
        parent_id = self._nodes[node_id].parent_id
        while parent_id is not None:
            if parent_id in visited or len(chain) >= max_depth:
                return None
            visited.add(parent_id)
            chain.append(parent_id)
            parent = self._nodes.get(parent_id)
            parent_id = parent.parent_id if parent is not None else None
        chain.reverse()
        return chain

    def apply_parent_change(
        self, node_id: UUID, new_parent_id: Optional[UUID], *, max_depth: int
    ) -> ParentChange:
        with self._lock:
            node = self._nodes.get(node_id)
            if node is None or node.is_deleted:
                return ParentChange(MoveOutcome.NODE_NOT_FOUND)

            new_chain: List[UUID] = []
            if new_parent_id is not None:
                if new_parent_id == node_id:
                    return ParentChange(MoveOutcome.CYCLE)
                parent = self._nodes.get(new_parent_id)
                if parent is None or parent.is_deleted:
                    return ParentChange(MoveOutcome.PARENT_NOT_FOUND)
                above = self._chain_above(new_parent_id, max_depth)
                if above is None:
                    return ParentChange(MoveOutcome.BROKEN_CHAIN)
                if node_id in above:
                    return ParentChange(MoveOutcome.CYCLE)
                new_chain = above + [new_parent_id]

            paths: Dict[UUID, List[UUID]] = {node_id: new_chain}
            frontier = deque([node_id])
            while frontier:
                current = frontier.popleft()
                for child_id in self._by_parent.get(current, ()):
                    if child_id in paths:
                        return ParentChange(MoveOutcome.BROKEN_CHAIN)
                    paths[child_id] = paths[current] + [current]
                    frontier.append(child_id)
            if any(len(path) > max_depth for path in paths.values()):
                return ParentChange(MoveOutcome.TOO_DEEP)

            self._unindex(node)
            node.parent_id = new_parent_id
            self._index(node)
            for target_id, path in paths.items():
                self._nodes[target_id].ancestor_ids = list(path)
            return ParentChange(MoveOutcome.MOVED, rewritten=len(paths))

    def update_ancestor_paths(self, ancestor_paths: Mapping[UUID, List[UUID]]) -> int:
        changed = 0
        with self._lock:
            for node_id, path in ancestor_paths.items():
                node = self._nodes.get(node_id)
                if node is None or node.ancestor_ids == list(path):
                    continue
                node.ancestor_ids = list(path)
                changed += 1
        return changed
