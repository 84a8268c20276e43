"""
Name: Roles & Access Policy Tests

Responsibilities:
  - Orden total de EffectiveRole (rank, no lexicográfico)
  - parse_role estricto (desconocidos y subconjuntos)
  - can_perform_action: tabla de acciones y monotonía
"""

from __future__ import annotations

import itertools

import pytest

from workspace_authz.domain.access_policy import (
    NO_ACCESS,
    AccessCheck,
    can_perform_action,
    org_admin_access,
    owner_access,
    role_access,
)
from workspace_authz.domain.roles import (
    GRANTABLE_ROLES,
    SHARE_LINK_ROLES,
    Action,
    EffectiveRole,
    parse_role,
)

pytestmark = pytest.mark.unit

ORDERED = [
    EffectiveRole.VIEWER,
    EffectiveRole.EDITOR,
    EffectiveRole.ADMIN,
    EffectiveRole.ORG_ADMIN,
    EffectiveRole.OWNER,
]


def test_roles_follow_rank_order_not_alphabetical():
    assert sorted(reversed(ORDERED)) == ORDERED
    # "admin" < "editor" alfabéticamente, pero no en rank.
    assert EffectiveRole.EDITOR < EffectiveRole.ADMIN
    assert EffectiveRole.OWNER > EffectiveRole.ORG_ADMIN
    assert max(EffectiveRole.VIEWER, EffectiveRole.OWNER) is EffectiveRole.OWNER


def test_role_comparison_with_plain_string_is_rejected():
    with pytest.raises(TypeError):
        _ = EffectiveRole.ADMIN < 3


@pytest.mark.parametrize("raw", ["viewer", " Editor ", "ADMIN"])
def test_parse_role_normalizes(raw):
    assert parse_role(raw).value == raw.strip().lower()


@pytest.mark.parametrize("raw", ["", "superuser", "edtor"])
def test_parse_role_rejects_unknown(raw):
    with pytest.raises(ValueError, match="Unknown role"):
        parse_role(raw)


def test_parse_role_enforces_subset():
    assert parse_role("admin", allowed=GRANTABLE_ROLES) is EffectiveRole.ADMIN
    with pytest.raises(ValueError, match="not allowed"):
        parse_role("admin", allowed=SHARE_LINK_ROLES)
    with pytest.raises(ValueError, match="not allowed"):
        parse_role(EffectiveRole.OWNER, allowed=GRANTABLE_ROLES)


@pytest.mark.parametrize(
    "role,allowed_actions",
    [
        (EffectiveRole.VIEWER, {Action.VIEW}),
        (EffectiveRole.EDITOR, {Action.VIEW, Action.EDIT}),
        (
            EffectiveRole.ADMIN,
            {Action.VIEW, Action.EDIT, Action.INVITE, Action.MANAGE},
        ),
        (EffectiveRole.ORG_ADMIN, set(Action)),
        (EffectiveRole.OWNER, set(Action)),
    ],
)
def test_action_table(role, allowed_actions):
    access = role_access(role)
    for action in Action:
        assert can_perform_action(access, action) is (action in allowed_actions)


def test_can_perform_action_is_monotonic():
    for low, high in itertools.combinations(ORDERED, 2):
        for action in Action:
            if can_perform_action(role_access(low), action):
                assert can_perform_action(role_access(high), action)


def test_no_access_denies_everything():
    for action in Action:
        assert can_perform_action(NO_ACCESS, action) is False
    # has_access sin rol tampoco alcanza
    assert can_perform_action(AccessCheck(has_access=True), Action.VIEW) is False


def test_action_accepts_string_values():
    assert can_perform_action(role_access(EffectiveRole.EDITOR), "edit")
    with pytest.raises(ValueError):
        can_perform_action(role_access(EffectiveRole.EDITOR), "publish")


def test_factories_set_flags():
    assert owner_access().is_owner and owner_access().role is EffectiveRole.OWNER
    assert org_admin_access().is_org_admin
    check = role_access(EffectiveRole.VIEWER).with_inherited_from(None)
    assert check.inherited_from is None and check.has_access
