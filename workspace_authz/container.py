"""
===============================================================================
TARJETA CRC — workspace_authz/container.py (Composition Root / DI manual)
===============================================================================

Responsabilidades:
  - Componer repositorios y servicios del motor de autorización (DIP).
  - Elegir backend de persistencia (memory | postgres) según Settings.
  - Exponer factories cacheadas (lru_cache) para FastAPI (Depends) y scripts.

Colaboradores:
  - crosscutting.config.get_settings
  - domain.repositories.* (puertos)
  - infrastructure.repositories.* (implementaciones)
  - application.* (servicios)

Notas:
  - Este archivo NO contiene lógica de negocio.
  - Este archivo NO depende de FastAPI.
  - Tests: build_services() con repos in-memory y reloj fijo.
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from functools import lru_cache
from typing import Callable

from .application import (
    AccessResolver,
    AncestorPathMaintainer,
    FolderAccessService,
    GrantStore,
    InvitationService,
    NodeTreeService,
    ShareLinkService,
)
from .crosscutting.config import Settings, get_settings
from .domain.repositories import (
    GrantRepository,
    InvitationRepository,
    NodeRepository,
    ShareLinkRepository,
    UnitOfWork,
)
from .infrastructure.repositories import (
    InMemoryGrantRepository,
    InMemoryInvitationRepository,
    InMemoryNodeRepository,
    InMemoryShareLinkRepository,
    InMemoryUnitOfWork,
    PostgresGrantRepository,
    PostgresInvitationRepository,
    PostgresNodeRepository,
    PostgresShareLinkRepository,
    PostgresUnitOfWork,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Repositories:
    nodes: NodeRepository
    grants: GrantRepository
    invitations: InvitationRepository
    share_links: ShareLinkRepository
    unit_of_work: UnitOfWork


@dataclass(frozen=True)
class Services:
    """Grafo completo de servicios, listo para inyectar en routers."""

    repositories: Repositories
    resolver: AccessResolver
    paths: AncestorPathMaintainer
    grant_store: GrantStore
    folder_access: FolderAccessService
    tree: NodeTreeService
    invitations: InvitationService
    share_links: ShareLinkService


def build_in_memory_repositories() -> Repositories:
    nodes = InMemoryNodeRepository()
    grants = InMemoryGrantRepository()
    invitations = InMemoryInvitationRepository()
    share_links = InMemoryShareLinkRepository()
    return Repositories(
        nodes=nodes,
        grants=grants,
        invitations=invitations,
        share_links=share_links,
        unit_of_work=InMemoryUnitOfWork(nodes, grants, invitations, share_links),
    )


def build_postgres_repositories() -> Repositories:
    # Pool global: lo inicializa el lifespan de la app (o el script).
    return Repositories(
        nodes=PostgresNodeRepository(),
        grants=PostgresGrantRepository(),
        invitations=PostgresInvitationRepository(),
        share_links=PostgresShareLinkRepository(),
        unit_of_work=PostgresUnitOfWork(),
    )


def build_services(
    repositories: Repositories,
    settings: Settings,
    *,
    clock: Callable[[], datetime] = _utcnow,
) -> Services:
    resolver = AccessResolver(
        nodes=repositories.nodes,
        grants=repositories.grants,
        max_depth=settings.max_tree_depth,
        clock=clock,
    )
    paths = AncestorPathMaintainer(
        nodes=repositories.nodes, max_depth=settings.max_tree_depth
    )
    grant_store = GrantStore(grants=repositories.grants, paths=paths, clock=clock)
    return Services(
        repositories=repositories,
        resolver=resolver,
        paths=paths,
        grant_store=grant_store,
        folder_access=FolderAccessService(
            nodes=repositories.nodes, resolver=resolver, grants=grant_store
        ),
        tree=NodeTreeService(
            nodes=repositories.nodes, paths=paths, resolver=resolver, clock=clock
        ),
        invitations=InvitationService(
            nodes=repositories.nodes,
            invitations=repositories.invitations,
            resolver=resolver,
            grants=grant_store,
            unit_of_work=repositories.unit_of_work,
            clock=clock,
            default_expiry_days=settings.invitation_expiry_days,
            token_bytes=settings.invitation_token_bytes,
        ),
        share_links=ShareLinkService(
            nodes=repositories.nodes,
            links=repositories.share_links,
            resolver=resolver,
            grants=grant_store,
            unit_of_work=repositories.unit_of_work,
            clock=clock,
            token_bytes=settings.share_link_token_bytes,
        ),
    )


# =============================================================================
# Singletons
# =============================================================================


@lru_cache(maxsize=1)
def get_repositories() -> Repositories:
    if get_settings().repository_backend == "postgres":
        return build_postgres_repositories()
    return build_in_memory_repositories()


@lru_cache(maxsize=1)
def get_services() -> Services:
    return build_services(get_repositories(), get_settings())


def reset_container() -> None:
    """Limpia los singletons (tests / recarga de settings)."""
    get_services.cache_clear()
    get_repositories.cache_clear()
