"""
User model for authentication and authorization.

Role and permission flags are stored independently. Flags are seeded from
the role when the account is created and are never recomputed afterwards;
admins may change either one without affecting the other.
"""

from datetime import datetime
from enum import Enum as PyEnum
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, CheckConstraint, DateTime, Enum, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from agora.core.database import Base

if TYPE_CHECKING:
    from agora.models.forum import Comment, Thread


class Role(str, PyEnum):
    """Coarse access level."""

    COMMUNITY_MEMBER = "community_member"
    MODERATOR = "moderator"
    ADMIN = "admin"
    GUEST = "guest"


class Permission(str, PyEnum):
    """Fine-grained capability flags. Values match ``User`` column names."""

    CAN_POST = "can_post"
    CAN_COMMENT = "can_comment"
    CAN_MODERATE = "can_moderate"
    CAN_MANAGE_USERS = "can_manage_users"


_CONTRIBUTORS = {Role.COMMUNITY_MEMBER, Role.MODERATOR, Role.ADMIN}

ROLE_DEFAULT_PERMISSIONS: dict[Role, frozenset[Permission]] = {
    role: frozenset(
        perm
        for perm, granted in (
            (Permission.CAN_POST, role in _CONTRIBUTORS),
            (Permission.CAN_COMMENT, role in _CONTRIBUTORS),
            (Permission.CAN_MODERATE, role in {Role.MODERATOR, Role.ADMIN}),
            (Permission.CAN_MANAGE_USERS, role == Role.ADMIN),
        )
        if granted
    )
    for role in Role
}


def default_permissions(role: Role) -> dict[str, bool]:
    """Column values for the flags a new account with ``role`` starts with."""
    granted = ROLE_DEFAULT_PERMISSIONS[role]
    return {perm.value: perm in granted for perm in Permission}


class User(Base):
    """User account model."""

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint(
            "hashed_password IS NOT NULL OR role = 'guest'",
            name="ck_users_password_required",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    username: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    hashed_password: Mapped[str | None] = mapped_column(String(255))

    role: Mapped[Role] = mapped_column(
        Enum(
            Role,
            native_enum=False,
            length=20,
            values_callable=lambda roles: [r.value for r in roles],
        ),
        default=Role.GUEST,
    )

    # Permission snapshot
    can_post: Mapped[bool] = mapped_column(Boolean, default=False)
    can_comment: Mapped[bool] = mapped_column(Boolean, default=False)
    can_moderate: Mapped[bool] = mapped_column(Boolean, default=False)
    can_manage_users: Mapped[bool] = mapped_column(Boolean, default=False)

    # Password reset (only the SHA-256 of the emailed token is kept)
    password_reset_token: Mapped[str | None] = mapped_column(String(64), index=True)
    password_reset_expires: Mapped[datetime | None] = mapped_column(DateTime)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    last_active: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # Relationships
    threads: Mapped[list["Thread"]] = relationship(back_populates="author")
    comments: Mapped[list["Comment"]] = relationship(back_populates="author")

    @property
    def permissions(self) -> frozenset[Permission]:
        """Currently held permission flags."""
        return frozenset(perm for perm in Permission if getattr(self, perm.value))

    def __repr__(self) -> str:
        return f"<User {self.username} ({self.role.value})>"
