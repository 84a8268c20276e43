"""
In-Memory Repository Implementations.

For testing and local development. NOT FOR PRODUCTION.
Data is lost on process restart.
"""

from ._store import InMemoryUnitOfWork
from .grants import InMemoryGrantRepository
from .invitations import InMemoryInvitationRepository
from .nodes import InMemoryNodeRepository
from .share_links import InMemoryShareLinkRepository

__all__ = [
    "InMemoryNodeRepository",
    "InMemoryGrantRepository",
    "InMemoryInvitationRepository",
    "InMemoryShareLinkRepository",
    "InMemoryUnitOfWork",
]
