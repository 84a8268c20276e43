"""
Name: Access Resolver Tests

Responsibilities:
  - Orden de resolución de carpetas (owner, org admin, abierta, grant, herencia)
  - Extensión a documentos (corte en la primera carpeta restringida)
  - Árboles malformados: NO_ACCESS + métrica, nunca excepción
  - get_root_restricted_folder
"""

from __future__ import annotations

from datetime import timedelta
from uuid import uuid4

import pytest

from workspace_authz.application.access_resolver import AccessResolver
from workspace_authz.domain.access_policy import NO_ACCESS, AccessContext
from workspace_authz.domain.entities import Node, NodeType
from workspace_authz.domain.roles import EffectiveRole

pytestmark = pytest.mark.unit

ORG_A = "org-a"
ORG_B = "org-b"


def member(user_id: str = "u2", org_id: str | None = ORG_A) -> AccessContext:
    return AccessContext(user_id=user_id, org_id=org_id)


def grant(services, folder, user_id, role, **kwargs):
    return services.grant_store.upsert_grant(
        folder.id, user_id, role, org_id=folder.org_id, granted_by="admin", **kwargs
    )


# =============================================================================
# Carpetas
# =============================================================================


def test_personal_folder_only_resolves_for_owner(services, nodes):
    folder = nodes.folder(owner_id="u1")

    owner = services.resolver.check_folder_access(folder, member("u1"))
    assert owner.has_access and owner.role is EffectiveRole.OWNER and owner.is_owner

    # Ni otro usuario ni un org admin ven carpetas personales ajenas.
    assert services.resolver.check_folder_access(folder, member("u2")) == NO_ACCESS
    admin_ctx = AccessContext(user_id="u9", org_id=ORG_A, is_org_admin=True)
    assert services.resolver.check_folder_access(folder, admin_ctx) == NO_ACCESS


def test_missing_deleted_or_anonymous_is_no_access(services, nodes, repositories, clock):
    folder = nodes.folder()
    assert services.resolver.check_folder_access(None, member()) == NO_ACCESS
    assert services.resolver.check_folder_access(folder, member(user_id=None)) == NO_ACCESS

    repositories.nodes.soft_delete_nodes([folder.id], clock())
    deleted = repositories.nodes.get_node(folder.id)
    assert services.resolver.check_folder_access(deleted, member()) == NO_ACCESS
    assert services.resolver.resolve_access(uuid4(), member()) == NO_ACCESS


def test_org_admin_override_requires_same_org(services, nodes):
    folder = nodes.folder(restricted=True)

    same = AccessContext(user_id="boss", org_id=ORG_A, is_org_admin=True)
    access = services.resolver.check_folder_access(folder, same)
    assert access.role is EffectiveRole.ORG_ADMIN and access.is_org_admin

    other = AccessContext(user_id="boss", org_id=ORG_B, is_org_admin=True)
    assert services.resolver.check_folder_access(folder, other) == NO_ACCESS


def test_open_folder_is_editor_for_members_only(services, nodes):
    folder = nodes.folder()
    access = services.resolver.check_folder_access(folder, member())
    assert access.role is EffectiveRole.EDITOR and access.inherited_from is None

    assert services.resolver.check_folder_access(folder, member(org_id=ORG_B)) == NO_ACCESS
    assert services.resolver.check_folder_access(folder, member(org_id=None)) == NO_ACCESS


def test_restricting_folder_removes_implicit_access_but_keeps_grants(
    services, nodes, repositories
):
    f1 = nodes.folder()
    ctx = member("u2")

    open_access = services.resolver.check_folder_access(f1, ctx)
    assert (open_access.has_access, open_access.role) == (True, EffectiveRole.EDITOR)

    restricted = repositories.nodes.set_restricted(f1.id, True)
    assert services.resolver.check_folder_access(restricted, ctx) == NO_ACCESS

    grant(services, f1, "u2", EffectiveRole.VIEWER)
    granted = services.resolver.check_folder_access(restricted, ctx)
    assert granted.has_access
    assert granted.role is EffectiveRole.VIEWER
    assert granted.inherited_from is None


def test_existing_grant_survives_restriction(services, nodes, repositories):
    folder = nodes.folder()
    grant(services, folder, "u3", EffectiveRole.ADMIN)

    restricted = repositories.nodes.set_restricted(folder.id, True)
    assert services.resolver.check_folder_access(restricted, member("u3")).role is (
        EffectiveRole.ADMIN
    )


def test_expired_grant_is_ignored(services, nodes, clock):
    folder = nodes.folder(restricted=True)
    grant(services, folder, "u2", EffectiveRole.EDITOR, expires_at=clock() + timedelta(hours=1))
    assert services.resolver.check_folder_access(folder, member()).has_access

    clock.advance(hours=2)
    assert services.resolver.check_folder_access(folder, member()) == NO_ACCESS


def test_grant_on_ancestor_is_inherited_past_open_and_restricted_levels(services, nodes):
    a = nodes.folder(restricted=True, title="A")
    b = nodes.folder(parent=a, title="B")
    c = nodes.folder(parent=b, restricted=True, title="C")
    grant(services, a, "u", EffectiveRole.ADMIN)

    # Usuario sin org activa: B abierta no resuelve, el grant en A sí.
    access = services.resolver.check_node_access(c, member("u", org_id=None))
    assert access.role is EffectiveRole.ADMIN
    assert access.inherited_from == a.id


def test_restricted_ancestor_without_grant_does_not_stop_folder_climb(services, nodes):
    top = nodes.folder(title="open top")
    middle = nodes.folder(parent=top, restricted=True)
    leaf = nodes.folder(parent=middle, restricted=True)

    access = services.resolver.check_folder_access(leaf, member())
    assert access.role is EffectiveRole.EDITOR
    assert access.inherited_from == top.id


def test_nearest_resolving_ancestor_wins(services, nodes):
    top = nodes.folder(restricted=True)
    middle = nodes.folder(parent=top, restricted=True)
    leaf = nodes.folder(parent=middle, restricted=True)
    grant(services, top, "u2", EffectiveRole.ADMIN)
    grant(services, middle, "u2", EffectiveRole.VIEWER)

    access = services.resolver.check_folder_access(leaf, member())
    assert access.role is EffectiveRole.VIEWER
    assert access.inherited_from == middle.id


def test_fully_restricted_chain_without_grants_denies(services, nodes):
    top = nodes.folder(restricted=True)
    leaf = nodes.folder(parent=top, restricted=True)
    assert services.resolver.check_folder_access(leaf, member()) == NO_ACCESS


# =============================================================================
# Documentos
# =============================================================================


def test_personal_doc_owner_only(services, nodes):
    doc = nodes.doc(owner_id="u1")
    assert services.resolver.check_node_access(doc, member("u1")).is_owner
    assert services.resolver.check_node_access(doc, member("u2")) == NO_ACCESS


def test_doc_inherits_from_containing_folder(services, nodes):
    folder = nodes.folder()
    doc = nodes.doc(parent=folder)

    access = services.resolver.check_node_access(doc, member())
    assert access.role is EffectiveRole.EDITOR
    assert access.inherited_from == folder.id


def test_doc_reports_folder_that_granted(services, nodes):
    top = nodes.folder(restricted=True)
    inner = nodes.folder(parent=top, restricted=True)
    doc = nodes.doc(parent=inner)
    grant(services, top, "u2", EffectiveRole.EDITOR)

    access = services.resolver.check_node_access(doc, member())
    assert access.role is EffectiveRole.EDITOR
    assert access.inherited_from == top.id


def test_doc_in_restricted_folder_without_access_is_denied(services, nodes):
    folder = nodes.folder(restricted=True)
    doc = nodes.doc(parent=folder)

    # Sin el corte, el doc caería al acceso por membresía de org.
    assert services.resolver.check_node_access(doc, member()) == NO_ACCESS


def test_doc_nested_under_doc_climbs_to_folder(services, nodes):
    folder = nodes.folder(restricted=True)
    parent_doc = nodes.doc(parent=folder)
    child_doc = nodes.doc(parent=parent_doc)
    grant(services, folder, "u2", EffectiveRole.VIEWER)

    access = services.resolver.check_node_access(child_doc, member())
    assert access.role is EffectiveRole.VIEWER
    assert access.inherited_from == folder.id


def test_root_doc_defaults_to_org_membership(services, nodes):
    doc = nodes.doc()
    access = services.resolver.check_node_access(doc, member())
    assert access.role is EffectiveRole.EDITOR and access.inherited_from is None
    assert services.resolver.check_node_access(doc, member(org_id=ORG_B)) == NO_ACCESS


def test_org_admin_override_on_documents(services, nodes):
    folder = nodes.folder(restricted=True)
    doc = nodes.doc(parent=folder)
    ctx = AccessContext(user_id="boss", org_id=ORG_A, is_org_admin=True)
    assert services.resolver.check_node_access(doc, ctx).role is EffectiveRole.ORG_ADMIN


# =============================================================================
# Árboles malformados
# =============================================================================


def _insert_raw(
    repo, *, parent_id=None, restricted=True, node_id=None, ancestor_ids=()
) -> Node:
    return repo.insert_node(
        Node(
            id=node_id or uuid4(),
            type=NodeType.FOLDER,
            ancestor_ids=list(ancestor_ids),
            org_id=ORG_A,
            parent_id=parent_id,
            is_restricted=restricted,
        )
    )


def test_cycle_resolves_to_no_access(services, repositories):
    repo = repositories.nodes
    # Ciclo x -> y -> x insertado directo (ningún move lo permitiría).
    x_id = uuid4()
    y = _insert_raw(repo, parent_id=x_id)
    x = _insert_raw(repo, parent_id=y.id, node_id=x_id, ancestor_ids=[y.id])

    assert services.resolver.check_folder_access(repo.get_node(x.id), member()) == NO_ACCESS
    assert services.resolver.get_root_restricted_folder(x.id) is None


def test_depth_bound_resolves_to_no_access(repositories, clock):
    resolver = AccessResolver(
        nodes=repositories.nodes, grants=repositories.grants, max_depth=3, clock=clock
    )
    current = _insert_raw(repositories.nodes, restricted=False)
    for _ in range(5):
        current = _insert_raw(repositories.nodes, parent_id=current.id)

    assert resolver.check_folder_access(current, member()) == NO_ACCESS


# =============================================================================
# Root restricted folder
# =============================================================================


def test_root_restricted_folder_is_topmost(services, nodes):
    a = nodes.folder(restricted=True)
    b = nodes.folder(parent=a)
    c = nodes.folder(parent=b, restricted=True)
    doc = nodes.doc(parent=c)

    assert services.resolver.get_root_restricted_folder(doc.id) == a.id
    assert services.resolver.get_root_restricted_folder(c.id) == a.id


def test_root_restricted_folder_none_in_open_area(services, nodes):
    open_folder = nodes.folder()
    doc = nodes.doc(parent=open_folder)
    assert services.resolver.get_root_restricted_folder(doc.id) is None
    assert services.resolver.get_root_restricted_folder(uuid4()) is None
