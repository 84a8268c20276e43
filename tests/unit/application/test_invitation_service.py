"""
Name: Invitation Service Tests

Responsibilities:
  - create: refresh in place de la pendiente por (carpeta, email)
  - accept / decline: máquina de estados con errores distinguibles
  - accept: upgrade sin downgrade + flip de restricción
  - accept: si el grant falla, la invitación sigue pendiente y reintentable
  - revoke y lecturas (vista expired sin mutar storage)
"""

from __future__ import annotations

from datetime import timedelta
from uuid import uuid4

import pytest

from workspace_authz.crosscutting.exceptions import (
    DatabaseError,
    FolderNotFoundError,
    InvalidRequestError,
    InvitationAlreadyAcceptedError,
    InvitationAlreadyDeclinedError,
    InvitationExpiredError,
    InvitationNotFoundError,
    NotAuthorizedError,
)
from workspace_authz.domain.access_policy import AccessContext
from workspace_authz.domain.entities import InvitationStatus
from workspace_authz.domain.roles import EffectiveRole

pytestmark = pytest.mark.unit

ORG_A = "org-a"
BOSS = AccessContext(user_id="boss", org_id=ORG_A, is_org_admin=True)
GUEST = AccessContext(user_id="guest", org_id=None, email="guest@example.com")


def _invite(services, folder, email="Guest@Example.com ", role="editor", **kwargs):
    return services.invitations.create(BOSS, folder.id, email, role, **kwargs)


def test_create_normalizes_email_and_sets_expiry(services, nodes, clock):
    folder = nodes.folder()
    created = _invite(services, folder, message="hola")

    invitation = created.invitation
    assert created.is_existing is False
    assert invitation.email == "guest@example.com"
    assert invitation.status is InvitationStatus.PENDING
    assert invitation.expires_at == clock() + timedelta(days=7)
    assert invitation.invited_by == "boss" and invitation.org_id == ORG_A
    assert len(invitation.token) >= 32


def test_second_create_refreshes_pending_in_place(services, nodes, clock):
    folder = nodes.folder()
    first = _invite(services, folder, role="viewer", expires_in_days=3)
    clock.advance(hours=1)
    second = _invite(services, folder, email="guest@example.com", role="admin")

    assert second.is_existing is True
    assert second.invitation.id == first.invitation.id
    assert second.invitation.token == first.invitation.token
    assert second.invitation.role is EffectiveRole.ADMIN
    assert second.invitation.expires_at == clock() + timedelta(days=7)

    pending = services.invitations.list_pending_by_folder(BOSS, folder.id)
    assert len(pending) == 1


def test_create_validations(services, nodes):
    folder = nodes.folder()
    with pytest.raises(InvalidRequestError):
        _invite(services, folder, email="not-an-email")
    with pytest.raises(InvalidRequestError):
        _invite(services, folder, role="owner")
    with pytest.raises(InvalidRequestError):
        _invite(services, folder, expires_in_days=0)
    with pytest.raises(InvalidRequestError):
        _invite(services, nodes.folder(owner_id="boss"))


def test_create_requires_invite_permission(services, nodes):
    folder = nodes.folder()
    member = AccessContext(user_id="u1", org_id=ORG_A)
    with pytest.raises(NotAuthorizedError):
        services.invitations.create(member, folder.id, "x@y.z", "viewer")


def test_accept_grants_role_and_restricts_folder(services, nodes, repositories):
    folder = nodes.folder()
    token = _invite(services, folder).invitation.token

    result = services.invitations.accept(GUEST, token)
    assert result.folder_id == folder.id
    assert result.role is EffectiveRole.EDITOR
    assert result.effective_role is EffectiveRole.EDITOR
    assert result.grant_changed is True

    assert repositories.nodes.get_node(folder.id).is_restricted is True
    access = services.resolver.resolve_access(folder.id, GUEST)
    assert access.role is EffectiveRole.EDITOR

    view = services.invitations.get_by_token(token)
    assert view.status is InvitationStatus.ACCEPTED
    assert view.invitation.accepted_at is not None


def test_accept_never_downgrades(services, nodes):
    folder = nodes.folder(restricted=True)
    services.folder_access.grant_access(BOSS, folder.id, "guest", "admin")
    token = _invite(services, folder, role="viewer").invitation.token

    result = services.invitations.accept(GUEST, token)
    assert result.role is EffectiveRole.VIEWER
    assert result.effective_role is EffectiveRole.ADMIN
    assert result.grant_changed is False


def test_failed_grant_write_leaves_invitation_pending(
    services, nodes, repositories, monkeypatch
):
    folder = nodes.folder()
    token = _invite(services, folder).invitation.token

    def unavailable(grant, *, now):
        raise DatabaseError("grant write failed")

    monkeypatch.setattr(repositories.grants, "upgrade_grant", unavailable)
    with pytest.raises(DatabaseError):
        services.invitations.accept(GUEST, token)

    assert services.invitations.get_by_token(token).status is InvitationStatus.PENDING
    assert repositories.grants.get_grant(folder.id, "guest") is None
    assert repositories.nodes.get_node(folder.id).is_restricted is False

    monkeypatch.undo()
    result = services.invitations.accept(GUEST, token)

    assert result.effective_role is EffectiveRole.EDITOR
    assert services.invitations.get_by_token(token).status is InvitationStatus.ACCEPTED
    assert repositories.nodes.get_node(folder.id).is_restricted is True


def test_accept_twice_reports_already_accepted(services, nodes):
    folder = nodes.folder()
    token = _invite(services, folder).invitation.token
    services.invitations.accept(GUEST, token)

    with pytest.raises(InvitationAlreadyAcceptedError):
        services.invitations.accept(GUEST, token)
    with pytest.raises(InvitationAlreadyAcceptedError):
        services.invitations.decline(GUEST, token)


def test_accept_expired_transitions_to_expired(services, nodes, repositories, clock):
    folder = nodes.folder()
    invitation = _invite(services, folder, expires_in_days=1).invitation
    clock.advance(days=2)

    # Lectura: expired sin mutar storage.
    assert services.invitations.get_by_token(invitation.token).status is InvitationStatus.EXPIRED
    stored = repositories.invitations.get_invitation(invitation.id)
    assert stored.status is InvitationStatus.PENDING

    with pytest.raises(InvitationExpiredError):
        services.invitations.accept(GUEST, invitation.token)
    stored = repositories.invitations.get_invitation(invitation.id)
    assert stored.status is InvitationStatus.EXPIRED
    assert services.grant_store.get_active_grant(folder.id, "guest") is None

    with pytest.raises(InvitationExpiredError):
        services.invitations.decline(GUEST, invitation.token)


def test_decline_then_accept_fails_descriptively(services, nodes):
    folder = nodes.folder()
    token = _invite(services, folder).invitation.token

    declined = services.invitations.decline(GUEST, token)
    assert declined.status is InvitationStatus.DECLINED

    with pytest.raises(InvitationAlreadyDeclinedError):
        services.invitations.decline(GUEST, token)
    with pytest.raises(InvitationAlreadyDeclinedError):
        services.invitations.accept(GUEST, token)


def test_new_invitation_after_decline_gets_new_token(services, nodes):
    folder = nodes.folder()
    first = _invite(services, folder).invitation
    services.invitations.decline(GUEST, first.token)

    again = _invite(services, folder)
    assert again.is_existing is False
    assert again.invitation.token != first.token


def test_unknown_token(services):
    with pytest.raises(InvitationNotFoundError):
        services.invitations.accept(GUEST, "missing")
    with pytest.raises(InvitationNotFoundError):
        services.invitations.get_by_token("missing")


def test_accept_on_deleted_folder(services, nodes, repositories, clock):
    folder = nodes.folder()
    token = _invite(services, folder).invitation.token
    repositories.nodes.soft_delete_nodes([folder.id], clock())

    with pytest.raises(FolderNotFoundError):
        services.invitations.accept(GUEST, token)


def test_revoke_requires_manage_and_deletes_any_status(services, nodes, repositories):
    folder = nodes.folder()
    invitation = _invite(services, folder).invitation
    services.invitations.accept(GUEST, invitation.token)

    with pytest.raises(NotAuthorizedError):
        services.invitations.revoke(AccessContext(user_id="u1", org_id=ORG_A), invitation.id)

    services.invitations.revoke(BOSS, invitation.id)
    assert repositories.invitations.get_invitation(invitation.id) is None
    # El grant ya emitido no se deshace.
    assert services.grant_store.get_active_grant(folder.id, "guest") is not None

    with pytest.raises(InvitationNotFoundError):
        services.invitations.revoke(BOSS, uuid4())


def test_listings(services, nodes, clock):
    folder = nodes.folder()
    other = nodes.folder()
    _invite(services, folder)
    _invite(services, other, email="someone@example.com")
    declined = _invite(services, other, email="guest@example.com").invitation
    services.invitations.decline(GUEST, declined.token)

    received = services.invitations.list_received_by_email(GUEST)
    assert [v.invitation.folder_id for v in received] == [folder.id]

    sent = services.invitations.list_sent_by_user(BOSS)
    assert len(sent) == 3
    assert len(services.invitations.list_sent_by_user(BOSS, "declined")) == 1

    nobody = AccessContext(user_id="x", org_id=None)
    assert services.invitations.list_received_by_email(nobody) == []
