"""
CRC — domain/repositories.py

Name
- Domain Repository Interfaces (Protocols)

Responsibilities
- Define persistence contracts for nodes, grants, invitations and share links.
- Keep application/domain independent from infrastructure (PostgreSQL, in-memory).
- Push every read-check-write that must be atomic down to a single repository call.

Collaborators
- domain.entities: Node, Grant, Invitation, InvitationStatus, ShareLink
- infrastructure.repositories: postgres/*, in_memory/* implementations

Constraints
- Pure interfaces only: no side effects, no infrastructure imports, no SQL.
- Implementations MUST match method signatures exactly.
- Methods documented as atomic must not lose updates under concurrent callers.

Notes
- We use typing.Protocol for structural subtyping ("duck typing").
- Outputs are concrete lists for predictable iteration/serialization.
- Returned entities are snapshots: mutating them never mutates storage.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import ContextManager, List, Mapping, Optional, Protocol, Sequence, Tuple
from uuid import UUID

from .entities import Grant, Invitation, InvitationStatus, Node, ShareLink
from .roles import EffectiveRole


class MoveOutcome(str, Enum):
    """Result of an atomic parent change (see NodeRepository.apply_parent_change)."""

    MOVED = "moved"
    NODE_NOT_FOUND = "node_not_found"
    PARENT_NOT_FOUND = "parent_not_found"
    CYCLE = "cycle"
    TOO_DEEP = "too_deep"
    BROKEN_CHAIN = "broken_chain"


@dataclass(frozen=True)
class ParentChange:
    outcome: MoveOutcome
    rewritten: int = 0


class NodeRepository(Protocol):
    """
    R: Interface for the folder/document tree (read model + tree writes).

    Implementations must provide:
      - Lookup by id and by parent (index by_parent)
      - Keyset pagination by id (for chunked cascades)
      - Atomic parent change + ancestor path rewrite
    """

    def get_node(self, node_id: UUID) -> Optional[Node]:
        """R: Fetch a node (deleted nodes included)."""
        ...

    def insert_node(self, node: Node) -> Node:
        """R: Persist a new node as given (ancestor_ids included)."""
        ...

    def insert_child(self, node: Node) -> Optional[Node]:
        """
        R: Persist a node under `node.parent_id`, deriving ancestor_ids from
        the stored parent in the same atomic step (parent chain + parent id).

        Returns None if the parent is missing or deleted. Serialized against
        apply_parent_change so a concurrent move never leaves a stale chain.
        """
        ...

    def list_children(
        self, parent_id: UUID, *, include_deleted: bool = False
    ) -> List[Node]:
        """R: Direct children of a node."""
        ...

    def list_nodes_page(
        self, *, after_id: Optional[UUID], limit: int
    ) -> List[Node]:
        """
        R: Non-deleted nodes ordered by id, strictly after `after_id`.

        Used as a resumable cursor for workspace-wide batches.
        """
        ...

    def set_restricted(self, node_id: UUID, is_restricted: bool) -> Optional[Node]:
        """R: Patch the restriction flag. Returns None if the node is missing."""
        ...

    def restrict_if_open(self, node_id: UUID) -> bool:
        """
        R: Atomically flip is_restricted false -> true.

        Returns True only for the call that performed the flip.
        """
        ...

    def soft_delete_nodes(self, node_ids: Sequence[UUID], at: datetime) -> int:
        """R: Soft delete a set of nodes. Returns how many changed."""
        ...

    def apply_parent_change(
        self, node_id: UUID, new_parent_id: Optional[UUID], *, max_depth: int
    ) -> ParentChange:
        """
        R: Atomically move `node_id` under `new_parent_id`.

        Inside one atomic step the implementation must:
          - re-read the node and the new parent (a deleted parent is missing)
          - reject the move if the new parent is the node or one of its
            descendants (CYCLE), or if any rewritten chain would exceed
            `max_depth` (TOO_DEEP)
          - set parent_id and rewrite ancestor_ids of the node and of every
            descendant present at that moment (deleted ones included)

        Nothing is written unless the outcome is MOVED. Concurrent moves and
        child inserts in the same tree are serialized against each other.
        """
        ...

    def update_ancestor_paths(self, ancestor_paths: Mapping[UUID, List[UUID]]) -> int:
        """R: Batch rewrite of ancestor_ids (backfill). Returns rows changed."""
        ...

    def ping(self) -> bool:
        """R: Cheap storage liveness check (healthz)."""
        ...


class GrantRepository(Protocol):
    """
    R: Interface for explicit folder grants.

    Invariant: at most one row per (folder_id, user_id).
    """

    def get_grant(self, folder_id: UUID, user_id: str) -> Optional[Grant]:
        """R: Physical lookup (may return an expired grant)."""
        ...

    def upsert_grant(self, grant: Grant) -> Grant:
        """R: Insert or replace the grant for (folder_id, user_id)."""
        ...

    def upgrade_grant(self, grant: Grant, *, now: datetime) -> Tuple[Grant, bool]:
        """
        R: Atomic never-downgrade write.

        - No row, or an expired row -> store `grant`.
        - Active row with a lower role -> raise role only.
        - Otherwise -> unchanged.

        Returns (stored_grant, changed).
        """
        ...

    def update_role(
        self, folder_id: UUID, user_id: str, role: EffectiveRole
    ) -> Optional[Grant]:
        """R: Patch the role of an existing grant. None if it does not exist."""
        ...

    def delete_grant(self, folder_id: UUID, user_id: str) -> bool:
        """R: Remove a grant. Returns True if it existed."""
        ...

    def list_grants_for_folder(self, folder_id: UUID) -> List[Grant]:
        """R: All grants on a folder (expired included)."""
        ...

    def list_grants_for_user(
        self, user_id: str, *, org_id: Optional[str] = None
    ) -> List[Grant]:
        """R: All grants of a user, optionally scoped to an org."""
        ...

    def delete_expired(self, *, now: datetime, limit: int) -> int:
        """R: Physically remove up to `limit` expired grants."""
        ...


class InvitationRepository(Protocol):
    """R: Interface for folder invitations."""

    def get_invitation(self, invitation_id: UUID) -> Optional[Invitation]:
        ...

    def get_by_token(self, token: str) -> Optional[Invitation]:
        ...

    def create_or_refresh_pending(
        self, invitation: Invitation
    ) -> Tuple[Invitation, bool]:
        """
        R: Atomic find-or-create on (folder_id, email, status=pending).

        If a pending invitation exists, its role/message/expires_at are
        overwritten in place (token kept). Returns (stored, is_existing).
        """
        ...

    def transition_status(
        self,
        invitation_id: UUID,
        *,
        from_status: InvitationStatus,
        to_status: InvitationStatus,
        at: datetime,
    ) -> Optional[Invitation]:
        """
        R: Compare-and-set on status. Returns the updated invitation, or None
        when the stored status was not `from_status`.
        """
        ...

    def delete_invitation(self, invitation_id: UUID) -> bool:
        ...

    def list_by_folder(
        self, folder_id: UUID, *, status: Optional[InvitationStatus] = None
    ) -> List[Invitation]:
        ...

    def list_by_inviter(
        self, user_id: str, *, status: Optional[InvitationStatus] = None
    ) -> List[Invitation]:
        ...

    def list_by_email(
        self, email: str, *, status: Optional[InvitationStatus] = None
    ) -> List[Invitation]:
        ...


class ShareLinkRepository(Protocol):
    """R: Interface for reusable share links."""

    def insert_link(self, link: ShareLink) -> ShareLink:
        ...

    def get_link(self, link_id: UUID) -> Optional[ShareLink]:
        ...

    def get_by_token(self, token: str) -> Optional[ShareLink]:
        ...

    def consume_use(self, link_id: UUID, *, now: datetime) -> Optional[ShareLink]:
        """
        R: Atomic check-and-increment.

        Increments use_count (and sets last_used_at) only if the link is active,
        not expired and under max_uses. Returns the updated link or None.
        """
        ...

    def update_link(
        self,
        link_id: UUID,
        *,
        role: Optional[EffectiveRole] = None,
        max_uses: Optional[int] = None,
        expires_at: Optional[datetime] = None,
        is_active: Optional[bool] = None,
    ) -> Optional[ShareLink]:
        """R: Patch (None = unchanged). Returns None if the link is missing."""
        ...

    def delete_link(self, link_id: UUID) -> bool:
        ...

    def list_by_folder(self, folder_id: UUID) -> List[ShareLink]:
        ...


class UnitOfWork(Protocol):
    """
    R: Groups several repository writes into one all-or-nothing step.

    Usage:
        with uow.atomic():
            invitations.transition_status(...)
            grants.upgrade_grant(...)

    If the block raises, every write made inside it is undone and the
    exception propagates. Blocks may nest; the outermost one commits.
    """

    def atomic(self) -> ContextManager[None]:
        ...
