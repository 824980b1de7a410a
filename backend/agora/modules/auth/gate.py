"""
Authorization gate.

A pure decision over the identity resolved from the bearer token. Role and
permission requirements are independent: either, both or neither may be
given, and an empty requirement admits any authenticated caller.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import cast

from agora.core.exceptions import (
    ForumError,
    InsufficientPermission,
    InsufficientRole,
    Unauthenticated,
)
from agora.models.user import Permission, Role


@dataclass(frozen=True)
class Identity:
    """
    Caller identity as embedded in the session token.

    This is a snapshot taken at login. Role or permission changes made after
    the token was issued are not visible until the user logs in again.
    """

    user_id: int
    role: Role
    permissions: frozenset[Permission] = field(default_factory=frozenset)

    def has(self, permission: Permission) -> bool:
        return permission in self.permissions


class DenyReason(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    INSUFFICIENT_ROLE = "insufficient_role"
    INSUFFICIENT_PERMISSION = "insufficient_permission"


_DENIAL_ERRORS: dict[DenyReason, type[ForumError]] = {
    DenyReason.UNAUTHENTICATED: Unauthenticated,
    DenyReason.INSUFFICIENT_ROLE: InsufficientRole,
    DenyReason.INSUFFICIENT_PERMISSION: InsufficientPermission,
}


@dataclass(frozen=True)
class Decision:
    """Outcome of a gate check."""

    reason: DenyReason | None = None

    @property
    def allowed(self) -> bool:
        return self.reason is None

    def raise_for_denial(self) -> None:
        """Raise the error matching the denial, if any."""
        if self.reason is not None:
            raise _DENIAL_ERRORS[self.reason]()


ALLOW = Decision()


def authorize(
    identity: Identity | None,
    roles: Iterable[Role] = (),
    permissions: Iterable[Permission] = (),
) -> Decision:
    """
    Evaluate an identity against required roles and permissions.

    Args:
        identity: Resolved caller, or None when no valid token was presented
        roles: Accepted roles (any one suffices)
        permissions: Required permissions (all must be held)

    Returns:
        ALLOW or a Decision carrying the deny reason
    """
    if identity is None:
        return Decision(DenyReason.UNAUTHENTICATED)

    roles = set(roles)
    if roles and identity.role not in roles:
        return Decision(DenyReason.INSUFFICIENT_ROLE)

    if not all(identity.has(perm) for perm in permissions):
        return Decision(DenyReason.INSUFFICIENT_PERMISSION)

    return ALLOW


def enforce(
    identity: Identity | None,
    roles: Iterable[Role] = (),
    permissions: Iterable[Permission] = (),
) -> Identity:
    """Like ``authorize`` but raise on denial and return the identity."""
    authorize(identity, roles, permissions).raise_for_denial()
    return cast(Identity, identity)
