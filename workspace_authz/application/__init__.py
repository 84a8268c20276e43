"""
===============================================================================
APPLICATION LAYER (Public API / Exports)
===============================================================================

Expone los servicios del motor de autorización:
  - AccessResolver: resolución de acceso (solo lectura)
  - AncestorPathMaintainer: bookkeeping de ancestor_ids
  - GrantStore / FolderAccessService: grants explícitos
  - NodeTreeService: comandos sobre el árbol
  - InvitationService / ShareLinkService: emisión de grants
===============================================================================
"""

from .access_resolver import AccessResolver
from .ancestor_paths import AncestorPathMaintainer, BackfillProgress
from .folder_access import FolderAccessService
from .grant_store import GrantStore
from .invitation_service import InvitationService
from .node_tree import NodeTreeService
from .results import GrantRedemption, InvitationCreated, InvitationView, ShareLinkView
from .share_link_service import ShareLinkService

__all__ = [
    "AccessResolver",
    "AncestorPathMaintainer",
    "BackfillProgress",
    "FolderAccessService",
    "GrantRedemption",
    "GrantStore",
    "InvitationCreated",
    "InvitationService",
    "InvitationView",
    "NodeTreeService",
    "ShareLinkService",
    "ShareLinkView",
]
