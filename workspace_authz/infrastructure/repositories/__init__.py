"""
============================================================
TARJETA CRC
============================================================
Class: workspace_authz.infrastructure.repositories (Package exports)

Responsibilities:
- Exponer implementaciones concretas de repositorios (Postgres e InMemory)
  en un único punto de importación.

Collaborators:
- Repositorios Postgres (SQL crudo)
- Repositorios InMemory (testing / local dev)
============================================================
"""

from .in_memory import (
    InMemoryGrantRepository,
    InMemoryInvitationRepository,
    InMemoryNodeRepository,
    InMemoryShareLinkRepository,
    InMemoryUnitOfWork,
)
from .postgres import (
    PostgresGrantRepository,
    PostgresInvitationRepository,
    PostgresNodeRepository,
    PostgresShareLinkRepository,
    PostgresUnitOfWork,
)

__all__ = [
    # Postgres
    "PostgresNodeRepository",
    "PostgresGrantRepository",
    "PostgresInvitationRepository",
    "PostgresShareLinkRepository",
    "PostgresUnitOfWork",
    # In-memory
    "InMemoryNodeRepository",
    "InMemoryGrantRepository",
    "InMemoryInvitationRepository",
    "InMemoryShareLinkRepository",
    "InMemoryUnitOfWork",
]
