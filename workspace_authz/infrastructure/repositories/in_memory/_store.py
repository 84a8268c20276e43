"""
============================================================
TARJETA CRC — infrastructure/repositories/in_memory/_store.py
============================================================
Class: InMemoryStore, InMemoryUnitOfWork

Responsibilities:
  - InMemoryStore: lock reentrante + checkpoint/restore del estado interno
    (los campos listados en `_state_fields`).
  - InMemoryUnitOfWork: toma los locks de todos los stores (orden fijo),
    guarda un checkpoint y lo restaura si el bloque levanta.

Collaborators:
  - InMemory*Repository (heredan de InMemoryStore)
  - domain.repositories.UnitOfWork (contrato)

Constraints / Notes:
  - RLock: los métodos del repo vuelven a tomar su lock dentro del bloque.
  - Mientras dura atomic() ningún otro hilo lee ni escribe esos stores.
  - Los repos nunca toman el lock de otro repo: el orden fijo evita deadlocks.
============================================================
"""

from __future__ import annotations

import copy
from contextlib import ExitStack, contextmanager
from threading import RLock
from typing import Any, Iterator, Tuple

from ....domain.repositories import UnitOfWork


class InMemoryStore:
    _state_fields: Tuple[str, ...] = ()

    def __init__(self) -> None:
        self._lock = RLock()

    @property
    def lock(self) -> RLock:
        return self._lock

    def checkpoint(self) -> Tuple[Any, ...]:
        with self._lock:
            return tuple(copy.deepcopy(getattr(self, f)) for f in self._state_fields)

    def restore(self, state: Tuple[Any, ...]) -> None:
        with self._lock:
            for field_name, value in zip(self._state_fields, state):
                setattr(self, field_name, value)


class InMemoryUnitOfWork(UnitOfWork):
    def __init__(self, *stores: InMemoryStore):
        self._stores = stores

    @contextmanager
    def atomic(self) -> Iterator[None]:
        with ExitStack() as stack:
            for store in self._stores:
                stack.enter_context(store.lock)
            saved = [store.checkpoint() for store in self._stores]
            try:
                yield
            except BaseException:
                for store, state in zip(self._stores, saved):
                    store.restore(state)
                raise
