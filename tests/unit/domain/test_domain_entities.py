"""
Name: Domain Entities Tests

Responsibilities:
  - Invariante de scope de Node (personal xor org)
  - Expiración de grants / invitaciones / share links
  - Estado visible de invitaciones pendientes vencidas
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from workspace_authz.domain.entities import (
    Grant,
    Invitation,
    InvitationStatus,
    Node,
    NodeType,
    ShareLink,
    normalize_email,
)
from workspace_authz.domain.roles import EffectiveRole

pytestmark = pytest.mark.unit

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "owner_id,org_id",
    [(None, None), ("u1", "org-a")],
)
def test_node_requires_exactly_one_scope(owner_id, org_id):
    with pytest.raises(ValueError):
        Node(id=uuid4(), type=NodeType.FOLDER, owner_id=owner_id, org_id=org_id)


def test_node_ancestor_consistency():
    parent = uuid4()
    node = Node(
        id=uuid4(),
        type=NodeType.DOC,
        org_id="org-a",
        parent_id=parent,
        ancestor_ids=[uuid4(), parent],
    )
    assert node.has_consistent_ancestors()
    node.ancestor_ids = []
    assert not node.has_consistent_ancestors()


def test_mark_deleted_sets_timestamp():
    node = Node(id=uuid4(), type=NodeType.FOLDER, owner_id="u1")
    node.mark_deleted(at=NOW)
    assert node.is_deleted and node.deleted_at == NOW


def test_grant_expiry_is_strict():
    grant = Grant(
        folder_id=uuid4(), user_id="u1", role=EffectiveRole.VIEWER, expires_at=NOW
    )
    assert grant.is_active(NOW)
    assert grant.is_expired(NOW + timedelta(seconds=1))
    assert Grant(folder_id=uuid4(), user_id="u1", role=EffectiveRole.VIEWER).is_active(NOW)


def test_pending_invitation_past_expiry_reads_as_expired():
    invitation = Invitation(
        id=uuid4(),
        folder_id=uuid4(),
        email="a@b.c",
        role=EffectiveRole.EDITOR,
        token="t",
        expires_at=NOW - timedelta(minutes=1),
    )
    assert invitation.status == InvitationStatus.PENDING
    assert invitation.effective_status(NOW) == InvitationStatus.EXPIRED

    invitation.status = InvitationStatus.ACCEPTED
    assert invitation.effective_status(NOW) == InvitationStatus.ACCEPTED


def test_share_link_usability():
    link = ShareLink(
        id=uuid4(), folder_id=uuid4(), token="t", role=EffectiveRole.VIEWER, max_uses=2
    )
    assert link.is_usable(NOW)
    link.use_count = 2
    assert link.is_maxed_out and not link.is_usable(NOW)

    link.use_count = 0
    link.is_active = False
    assert not link.is_usable(NOW)

    link.is_active = True
    link.expires_at = NOW - timedelta(days=1)
    assert not link.is_usable(NOW)


def test_normalize_email():
    assert normalize_email("  Ana@Example.COM ") == "ana@example.com"
    assert normalize_email("") == ""
