"""
PostgreSQL Repository Implementations (psycopg 3 + psycopg-pool, SQL crudo).
"""

from .grants import PostgresGrantRepository
from .invitations import PostgresInvitationRepository
from .nodes import PostgresNodeRepository
from .share_links import PostgresShareLinkRepository
from .unit_of_work import PostgresUnitOfWork

__all__ = [
    "PostgresNodeRepository",
    "PostgresGrantRepository",
    "PostgresInvitationRepository",
    "PostgresShareLinkRepository",
    "PostgresUnitOfWork",
]
