"""Tests for the authorization gate."""

import itertools

import pytest

from agora.core.exceptions import (
    InsufficientPermission,
    InsufficientRole,
    Unauthenticated,
)
from agora.models.user import Permission, Role
from agora.modules.auth import DenyReason, Identity, authorize, enforce

MEMBER = Identity(
    user_id=1,
    role=Role.COMMUNITY_MEMBER,
    permissions=frozenset({Permission.CAN_POST, Permission.CAN_COMMENT}),
)


@pytest.mark.parametrize(
    "authenticated, role_required, role_matches, perms_required, perms_held",
    list(itertools.product([True, False], repeat=5)),
)
def test_truth_table(authenticated, role_required, role_matches, perms_required, perms_held):
    identity = MEMBER if authenticated else None
    roles = []
    if role_required:
        roles = [Role.COMMUNITY_MEMBER] if role_matches else [Role.ADMIN]
    permissions = []
    if perms_required:
        permissions = (
            [Permission.CAN_POST, Permission.CAN_COMMENT]
            if perms_held
            else [Permission.CAN_POST, Permission.CAN_MODERATE]
        )

    decision = authorize(identity, roles, permissions)

    expected = (
        authenticated
        and (not role_required or role_matches)
        and (not perms_required or perms_held)
    )
    assert decision.allowed is expected


def test_no_identity_is_unauthenticated():
    decision = authorize(None)

    assert decision.reason == DenyReason.UNAUTHENTICATED
    with pytest.raises(Unauthenticated):
        decision.raise_for_denial()


def test_empty_requirements_admit_any_authenticated_caller():
    guest = Identity(user_id=9, role=Role.GUEST)

    assert authorize(guest).allowed
    assert authorize(guest, roles=[], permissions=[]).allowed


def test_role_checked_before_permissions():
    decision = authorize(MEMBER, roles=[Role.ADMIN], permissions=[Permission.CAN_MODERATE])

    assert decision.reason == DenyReason.INSUFFICIENT_ROLE


def test_any_listed_role_suffices():
    assert authorize(MEMBER, roles=[Role.ADMIN, Role.COMMUNITY_MEMBER]).allowed


def test_permissions_require_all_flags():
    decision = authorize(MEMBER, permissions=[Permission.CAN_COMMENT, Permission.CAN_MODERATE])

    assert decision.reason == DenyReason.INSUFFICIENT_PERMISSION


def test_enforce_raises_matching_error():
    with pytest.raises(InsufficientRole):
        enforce(MEMBER, roles=[Role.MODERATOR])
    with pytest.raises(InsufficientPermission):
        enforce(MEMBER, permissions=[Permission.CAN_MANAGE_USERS])

    assert enforce(MEMBER, permissions=[Permission.CAN_POST]) is MEMBER


def test_enforce_without_identity_raises_even_with_no_requirements():
    with pytest.raises(Unauthenticated):
        enforce(None)

    assert enforce(MEMBER) is MEMBER


def test_admin_role_does_not_imply_permissions():
    bare_admin = Identity(user_id=2, role=Role.ADMIN)

    assert not authorize(bare_admin, permissions=[Permission.CAN_MODERATE]).allowed
