"""
============================================================
TARJETA CRC — infrastructure/repositories/in_memory/grants.py
============================================================
Class: InMemoryGrantRepository

Responsibilities:
  - Almacenar grants por clave compuesta (folder_id, user_id).
  - upgrade_grant: "nunca bajar de rol" como un único paso bajo lock.
  - delete_expired: limpieza acotada por lote.

Collaborators:
  - domain.repositories.GrantRepository (contrato)
  - domain.entities.Grant

Constraints / Notes:
  - La clave compuesta replica el PK (folder_id, user_id) de Postgres.
  - Repo puro: no decide permisos.
============================================================
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from ....domain.entities import Grant
from ....domain.repositories import GrantRepository
from ....domain.roles import EffectiveRole
from ._store import InMemoryStore

_Key = Tuple[UUID, str]


class InMemoryGrantRepository(InMemoryStore, GrantRepository):
    _state_fields = ("_grants",)

    def __init__(self) -> None:
        super().__init__()
        self._grants: Dict[_Key, Grant] = {}

    def get_grant(self, folder_id: UUID, user_id: str) -> Optional[Grant]:
        with self._lock:
            grant = self._grants.get((folder_id, user_id))
            return replace(grant) if grant else None

    def upsert_grant(self, grant: Grant) -> Grant:
        with self._lock:
            self._grants[(grant.folder_id, grant.user_id)] = replace(grant)
        return replace(grant)

    def upgrade_grant(self, grant: Grant, *, now: datetime) -> Tuple[Grant, bool]:
        key = (grant.folder_id, grant.user_id)
        with self._lock:
            current = self._grants.get(key)
            if current is None or current.is_expired(now):
                self._grants[key] = replace(grant)
                return replace(grant), True
            if current.role < grant.role:
                current.role = grant.role
                return replace(current), True
            return replace(current), False

    def update_role(
        self, folder_id: UUID, user_id: str, role: EffectiveRole
    ) -> Optional[Grant]:
        with self._lock:
            current = self._grants.get((folder_id, user_id))
            if current is None:
                return None
            current.role = role
            return replace(current)

    def delete_grant(self, folder_id: UUID, user_id: str) -> bool:
        with self._lock:
            return self._grants.pop((folder_id, user_id), None) is not None

    def list_grants_for_folder(self, folder_id: UUID) -> List[Grant]:
        with self._lock:
            found = [replace(g) for g in self._grants.values() if g.folder_id == folder_id]
        found.sort(key=lambda g: g.user_id)
        return found

    def list_grants_for_user(
        self, user_id: str, *, org_id: Optional[str] = None
    ) -> List[Grant]:
        with self._lock:
            found = [
                replace(g)
                for g in self._grants.values()
                if g.user_id == user_id and (org_id is None or g.org_id == org_id)
            ]
        found.sort(key=lambda g: str(g.folder_id))
        return found

    def delete_expired(self, *, now: datetime, limit: int) -> int:
        with self._lock:
            expired = [key for key, g in self._grants.items() if g.is_expired(now)]
            for key in expired[:limit]:
                del self._grants[key]
            return min(len(expired), limit)
