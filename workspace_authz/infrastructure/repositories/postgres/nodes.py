"""
============================================================
TARJETA CRC — infrastructure/repositories/postgres/nodes.py
============================================================
Class: PostgresNodeRepository

Responsibilities:
- Persistir el árbol de carpetas/documentos (tabla nodes) con SQL crudo.
- Cambio de padre + reescritura de ancestor_ids del subárbol en UNA transacción,
  con el chequeo de ciclos adentro (advisory lock por árbol + FOR UPDATE).
- insert_child deriva ancestor_ids del padre bajo el mismo lock.
- restrict_if_open como UPDATE condicional (solo una llamada gana el flip).

Collaborators:
- PostgresRepositoryBase (pool + errores)
- Tabla: nodes(id, type, title, parent_id, owner_id, org_id, is_restricted,
              is_deleted, ancestor_ids uuid[], created_at, deleted_at)

Constraints / Notes:
- Repo puro: NO aplica reglas de permisos.
- Queries parametrizadas; orden determinístico.
============================================================
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Mapping, Optional, Sequence
from uuid import UUID

from ....domain.entities import Node, NodeType
from ....domain.repositories import MoveOutcome, ParentChange
from ._base import PostgresRepositoryBase

_COLUMNS = """
    id, type, title, parent_id, owner_id, org_id, is_restricted, is_deleted,
    ancestor_ids, created_at, deleted_at
"""


def _tree_scope(node: Node) -> str:
    """Clave del advisory lock: un árbol por org o por dueño personal."""
    if node.org_id is not None:
        return f"nodes:org:{node.org_id}"
    return f"nodes:user:{node.owner_id}"


class PostgresNodeRepository(PostgresRepositoryBase):
    # =========================================================
    # SQL Constantes (Privadas)
    # =========================================================
    _SQL_GET = f"SELECT {_COLUMNS} FROM nodes WHERE id = %(id)s"

    _SQL_INSERT = f"""
        INSERT INTO nodes (
            id, type, title, parent_id, owner_id, org_id, is_restricted,
            is_deleted, ancestor_ids, created_at
        )
        VALUES (
            %(id)s, %(type)s, %(title)s, %(parent_id)s, %(owner_id)s, %(org_id)s,
            %(is_restricted)s, %(is_deleted)s, %(ancestor_ids)s,
            COALESCE(%(created_at)s::timestamptz, NOW())
        )
        RETURNING {_COLUMNS}
    """

    _SQL_LIST_CHILDREN = f"""
        SELECT {_COLUMNS}
        FROM nodes
        WHERE parent_id = %(parent_id)s
          AND (%(include_deleted)s OR is_deleted = FALSE)
        ORDER BY created_at ASC, id ASC
    """

    _SQL_LIST_PAGE = f"""
        SELECT {_COLUMNS}
        FROM nodes
        WHERE is_deleted = FALSE
          AND (%(after_id)s::uuid IS NULL OR id > %(after_id)s::uuid)
        ORDER BY id ASC
        LIMIT %(limit)s
    """

    _SQL_SET_RESTRICTED = f"""
        UPDATE nodes SET is_restricted = %(is_restricted)s
        WHERE id = %(id)s
        RETURNING {_COLUMNS}
    """

    _SQL_RESTRICT_IF_OPEN = """
        UPDATE nodes SET is_restricted = TRUE
        WHERE id = %(id)s AND is_restricted = FALSE
    """

    _SQL_SOFT_DELETE = """
        UPDATE nodes SET is_deleted = TRUE, deleted_at = %(at)s
        WHERE id = ANY(%(ids)s::uuid[]) AND is_deleted = FALSE
    """

    _SQL_GET_FOR_UPDATE = f"SELECT {_COLUMNS} FROM nodes WHERE id = %(id)s FOR UPDATE"

    # Serializa moves e inserts de hijos dentro de un mismo árbol (org o personal).
    _SQL_LOCK_TREE = "SELECT pg_advisory_xact_lock(hashtext(%(scope)s::text))"

    _SQL_SUBTREE = """
        WITH RECURSIVE subtree(id, parent_id, depth) AS (
            SELECT id, parent_id, 1 FROM nodes WHERE parent_id = %(id)s
            UNION ALL
            SELECT n.id, n.parent_id, s.depth + 1
            FROM nodes n
            JOIN subtree s ON n.parent_id = s.id
            WHERE s.depth <= %(max_depth)s
        )
        SELECT id, parent_id, depth FROM subtree ORDER BY depth ASC
    """

    _SQL_INSERT_CHILD = f"""
        INSERT INTO nodes (
            id, type, title, parent_id, owner_id, org_id, is_restricted,
            is_deleted, ancestor_ids, created_at
        )
        SELECT
            %(id)s, %(type)s, %(title)s, p.id, p.owner_id, p.org_id,
            %(is_restricted)s, FALSE, array_append(p.ancestor_ids, p.id),
            COALESCE(%(created_at)s::timestamptz, NOW())
        FROM nodes p
        WHERE p.id = %(parent_id)s AND p.is_deleted = FALSE
        RETURNING {_COLUMNS}
    """

    _SQL_SET_PARENT = "UPDATE nodes SET parent_id = %(parent_id)s WHERE id = %(id)s"

    _SQL_SET_PATH = """
        UPDATE nodes SET ancestor_ids = %(path)s::uuid[]
        WHERE id = %(id)s AND ancestor_ids IS DISTINCT FROM %(path)s::uuid[]
    """

    # =========================================================
    # Mapping
    # =========================================================
    @staticmethod
    def _row_to_node(row: tuple) -> Node:
        (
            node_id,
            node_type,
            title,
            parent_id,
            owner_id,
            org_id,
            is_restricted,
            is_deleted,
            ancestor_ids,
            created_at,
            deleted_at,
        ) = row
        return Node(
            id=node_id,
            type=NodeType(node_type),
            title=title or "",
            parent_id=parent_id,
            owner_id=owner_id,
            org_id=org_id,
            is_restricted=is_restricted,
            is_deleted=is_deleted,
            ancestor_ids=list(ancestor_ids or []),
            created_at=created_at,
            deleted_at=deleted_at,
        )

    # =========================================================
    # Public API
    # =========================================================
    def ping(self) -> bool:
        row = self._fetchone(
            query="SELECT 1",
            params={},
            context_msg="PostgresNodeRepository: ping failed",
            extra={},
        )
        return row is not None

    def get_node(self, node_id: UUID) -> Optional[Node]:
        row = self._fetchone(
            query=self._SQL_GET,
            params={"id": node_id},
            context_msg="PostgresNodeRepository: Failed to get node",
            extra={"node_id": str(node_id)},
        )
        return self._row_to_node(row) if row else None

    def insert_node(self, node: Node) -> Node:
        row = self._fetchone(
            query=self._SQL_INSERT,
            params={
                "id": node.id,
                "type": node.type.value,
                "title": node.title,
                "parent_id": node.parent_id,
                "owner_id": node.owner_id,
                "org_id": node.org_id,
                "is_restricted": node.is_restricted,
                "is_deleted": node.is_deleted,
                "ancestor_ids": list(node.ancestor_ids),
                "created_at": node.created_at,
            },
            context_msg="PostgresNodeRepository: Failed to insert node",
            extra={"node_id": str(node.id)},
        )
        return self._row_to_node(row)

    def list_children(
        self, parent_id: UUID, *, include_deleted: bool = False
    ) -> List[Node]:
        rows = self._fetchall(
            query=self._SQL_LIST_CHILDREN,
            params={"parent_id": parent_id, "include_deleted": include_deleted},
            context_msg="PostgresNodeRepository: Failed to list children",
            extra={"parent_id": str(parent_id)},
        )
        return [self._row_to_node(r) for r in rows]

    def list_nodes_page(
        self, *, after_id: Optional[UUID], limit: int
    ) -> List[Node]:
        rows = self._fetchall(
            query=self._SQL_LIST_PAGE,
            params={"after_id": after_id, "limit": limit},
            context_msg="PostgresNodeRepository: Failed to list nodes page",
            extra={"after_id": str(after_id) if after_id else None},
        )
        return [self._row_to_node(r) for r in rows]

    def set_restricted(self, node_id: UUID, is_restricted: bool) -> Optional[Node]:
        row = self._fetchone(
            query=self._SQL_SET_RESTRICTED,
            params={"id": node_id, "is_restricted": is_restricted},
            context_msg="PostgresNodeRepository: Failed to set restriction",
            extra={"node_id": str(node_id)},
        )
        return self._row_to_node(row) if row else None

    def restrict_if_open(self, node_id: UUID) -> bool:
        changed = self._execute(
            query=self._SQL_RESTRICT_IF_OPEN,
            params={"id": node_id},
            context_msg="PostgresNodeRepository: Failed to restrict folder",
            extra={"node_id": str(node_id)},
        )
        return changed == 1

    def soft_delete_nodes(self, node_ids: Sequence[UUID], at: datetime) -> int:
        if not node_ids:
            return 0
        return self._execute(
            query=self._SQL_SOFT_DELETE,
            params={"ids": list(node_ids), "at": at},
            context_msg="PostgresNodeRepository: Failed to soft delete nodes",
            extra={"count": len(node_ids)},
        )

    def insert_child(self, node: Node) -> Optional[Node]:
        if node.parent_id is None:
            raise ValueError("insert_child requires a parent_id")
        context_msg = "PostgresNodeRepository: Failed to insert child node"
        extra = {"node_id": str(node.id), "parent_id": str(node.parent_id)}
        with self._connection(context_msg, extra) as conn:
            with conn.transaction():
                parent_row = conn.execute(self._SQL_GET, {"id": node.parent_id}).fetchone()
                if parent_row is None:
                    return None
                parent = self._row_to_node(parent_row)
                conn.execute(self._SQL_LOCK_TREE, {"scope": _tree_scope(parent)})
                row = conn.execute(
                    self._SQL_INSERT_CHILD,
                    {
                        "id": node.id,
                        "type": node.type.value,
                        "title": node.title,
                        "parent_id": node.parent_id,
                        "is_restricted": node.is_restricted,
                        "created_at": node.created_at,
                    },
                ).fetchone()
        return self._row_to_node(row) if row else None

    def apply_parent_change(
        self, node_id: UUID, new_parent_id: Optional[UUID], *, max_depth: int
    ) -> ParentChange:
        context_msg = "PostgresNodeRepository: Failed to move node"
        extra = {"node_id": str(node_id), "new_parent_id": str(new_parent_id)}
        with self._connection(context_msg, extra) as conn:
            # Todo o nada: chequeo + padre nuevo + paths del subárbol.
            with conn.transaction():
                row = conn.execute(self._SQL_GET, {"id": node_id}).fetchone()
                if row is None:
                    return ParentChange(MoveOutcome.NODE_NOT_FOUND)
                conn.execute(
                    self._SQL_LOCK_TREE, {"scope": _tree_scope(self._row_to_node(row))}
                )

                row = conn.execute(self._SQL_GET_FOR_UPDATE, {"id": node_id}).fetchone()
                node = self._row_to_node(row)
                if node.is_deleted:
                    return ParentChange(MoveOutcome.NODE_NOT_FOUND)

                new_chain: List[UUID] = []
                if new_parent_id is not None:
                    if new_parent_id == node_id:
                        return ParentChange(MoveOutcome.CYCLE)
                    parent_row = conn.execute(
                        self._SQL_GET_FOR_UPDATE, {"id": new_parent_id}
                    ).fetchone()
                    if parent_row is None:
                        return ParentChange(MoveOutcome.PARENT_NOT_FOUND)
                    parent = self._row_to_node(parent_row)
                    if parent.is_deleted:
                        return ParentChange(MoveOutcome.PARENT_NOT_FOUND)
                    if node_id in parent.ancestor_ids:
                        return ParentChange(MoveOutcome.CYCLE)
                    new_chain = parent.ancestor_ids + [new_parent_id]

                paths: Dict[UUID, List[UUID]] = {node_id: new_chain}
                subtree = conn.execute(
                    self._SQL_SUBTREE, {"id": node_id, "max_depth": max_depth}
                ).fetchall()
                for child_id, parent_id, _depth in subtree:
                    if child_id == new_parent_id:
                        return ParentChange(MoveOutcome.CYCLE)
                    if child_id in paths or parent_id not in paths:
                        return ParentChange(MoveOutcome.BROKEN_CHAIN)
                    paths[child_id] = paths[parent_id] + [parent_id]
                if any(len(path) > max_depth for path in paths.values()):
                    return ParentChange(MoveOutcome.TOO_DEEP)

                conn.execute(
                    self._SQL_SET_PARENT, {"id": node_id, "parent_id": new_parent_id}
                )
                for target_id, path in paths.items():
                    conn.execute(self._SQL_SET_PATH, {"id": target_id, "path": path})
        return ParentChange(MoveOutcome.MOVED, rewritten=len(paths))

    def update_ancestor_paths(self, ancestor_paths: Mapping[UUID, List[UUID]]) -> int:
        if not ancestor_paths:
            return 0
        changed = 0
        context_msg = "PostgresNodeRepository: Failed to update ancestor paths"
        with self._connection(context_msg, {"count": len(ancestor_paths)}) as conn:
            with conn.transaction():
                for node_id, path in ancestor_paths.items():
                    changed += conn.execute(
                        self._SQL_SET_PATH, {"id": node_id, "path": list(path)}
                    ).rowcount
        return changed
