"""
Name: Pytest Configuration and Shared Fixtures

Responsibilities:
  - Aislar Settings del .env local
  - Proveer reloj fijo, repositorios in-memory y el grafo de servicios
  - Factories de nodos y contextos de acceso para armar árboles de prueba

Notes:
  - Cada test recibe repositorios nuevos (sin estado compartido)
  - Los árboles se insertan directo en el repositorio con ancestor_ids correctos
"""

from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from workspace_authz.crosscutting import config as app_config

app_config.Settings.model_config["env_file"] = None
os.environ.setdefault("APP_ENV", "test")

from workspace_authz.container import (  # noqa: E402
    build_in_memory_repositories,
    build_services,
    reset_container,
)
from workspace_authz.crosscutting.config import Settings, get_settings  # noqa: E402
from workspace_authz.domain.entities import Node, NodeType  # noqa: E402

ORG_A = "org-a"
ORG_B = "org-b"
FROZEN_NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


def pytest_configure(config) -> None:
    config.addinivalue_line(
        "markers", "unit: Unit tests (fast, no external dependencies)"
    )
    config.addinivalue_line(
        "markers", "integration: Tests against a real PostgreSQL (RUN_INTEGRATION=1)"
    )


class FrozenClock:
    """Reloj controlable: services(clock=...) lo llaman como función."""

    def __init__(self, now: datetime = FROZEN_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now


class NodeFactory:
    """Inserta carpetas/documentos con scope y ancestor_ids ya consistentes."""

    def __init__(self, repo, clock: FrozenClock):
        self._repo = repo
        self._clock = clock

    def _insert(
        self,
        node_type: NodeType,
        *,
        parent: Node | None,
        org_id: str | None,
        owner_id: str | None,
        restricted: bool,
        title: str,
    ) -> Node:
        if parent is not None:
            owner_id, org_id = parent.owner_id, parent.org_id
            ancestor_ids = [*parent.ancestor_ids, parent.id]
        else:
            if owner_id is not None:
                org_id = None
            ancestor_ids = []
        return self._repo.insert_node(
            Node(
                id=uuid4(),
                type=node_type,
                title=title,
                parent_id=parent.id if parent else None,
                owner_id=owner_id,
                org_id=org_id,
                is_restricted=restricted,
                ancestor_ids=ancestor_ids,
                created_at=self._clock(),
            )
        )

    def folder(
        self,
        *,
        parent: Node | None = None,
        org_id: str | None = ORG_A,
        owner_id: str | None = None,
        restricted: bool = False,
        title: str = "folder",
    ) -> Node:
        return self._insert(
            NodeType.FOLDER,
            parent=parent,
            org_id=org_id,
            owner_id=owner_id,
            restricted=restricted,
            title=title,
        )

    def doc(
        self,
        *,
        parent: Node | None = None,
        org_id: str | None = ORG_A,
        owner_id: str | None = None,
        title: str = "doc",
    ) -> Node:
        return self._insert(
            NodeType.DOC,
            parent=parent,
            org_id=org_id,
            owner_id=owner_id,
            restricted=False,
            title=title,
        )


@pytest.fixture(autouse=True)
def _clean_singletons():
    get_settings.cache_clear()
    reset_container()
    yield
    get_settings.cache_clear()
    reset_container()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def settings() -> Settings:
    return Settings(repository_backend="memory", log_json=False)


@pytest.fixture
def repositories():
    return build_in_memory_repositories()


@pytest.fixture
def services(repositories, settings, clock):
    return build_services(repositories, settings, clock=clock)


@pytest.fixture
def nodes(repositories, clock) -> NodeFactory:
    return NodeFactory(repositories.nodes, clock)
