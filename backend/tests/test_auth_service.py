"""Tests for accounts, login and password reset."""

from datetime import datetime, timedelta

import pytest
from sqlalchemy import select

from agora.core.exceptions import (
    DuplicateUser,
    InvalidCredentials,
    InvalidRequest,
    InvalidResetToken,
    MailDeliveryError,
    UserNotFound,
)
from agora.models.user import Permission, Role, User
from agora.modules.auth import AuthService

from tests.conftest import FakeMailer


@pytest.fixture
def auth(db, verifier) -> AuthService:
    return AuthService(db, verifier)


@pytest.mark.parametrize(
    "role, expected",
    [
        (Role.GUEST, set()),
        (Role.COMMUNITY_MEMBER, {Permission.CAN_POST, Permission.CAN_COMMENT}),
        (
            Role.MODERATOR,
            {Permission.CAN_POST, Permission.CAN_COMMENT, Permission.CAN_MODERATE},
        ),
        (Role.ADMIN, set(Permission)),
    ],
)
async def test_permissions_seeded_from_role(auth, role, expected):
    user = await auth.create_user("someone", "someone@example.com", "password123", role)

    assert user.role == role
    assert user.permissions == expected


async def test_signup_creates_community_member(auth, verifier):
    user = await auth.signup("alice", "alice@example.com", "password123")

    assert user.role == Role.COMMUNITY_MEMBER
    assert user.hashed_password != "password123"
    assert verifier.verify_password("password123", user.hashed_password)


async def test_duplicate_username_or_email_conflicts(auth, make_user):
    await make_user("alice")

    with pytest.raises(DuplicateUser):
        await auth.signup("alice", "other@example.com", "password123")
    with pytest.raises(DuplicateUser):
        await auth.signup("alicia", "alice@example.com", "password123")


async def test_guest_may_have_no_password(auth):
    guest = await auth.create_user("visitor", "visitor@example.com", None, Role.GUEST)

    assert guest.hashed_password is None


async def test_non_guest_requires_password(auth):
    with pytest.raises(InvalidRequest):
        await auth.create_user("bob", "bob@example.com", None, Role.COMMUNITY_MEMBER)


async def test_login_issues_token_and_touches_last_active(auth, make_user, verifier):
    user = await make_user("alice")
    before = user.last_active

    token, logged_in = await auth.login("alice@example.com", "password123")

    identity = verifier.resolve_token(token)
    assert identity.user_id == user.id
    assert identity.role == Role.COMMUNITY_MEMBER
    assert identity.permissions == user.permissions
    assert logged_in.last_active >= before


@pytest.mark.parametrize(
    "email, password",
    [("alice@example.com", "wrong-password"), ("nobody@example.com", "password123")],
)
async def test_login_rejects_bad_credentials(auth, make_user, email, password):
    await make_user("alice")

    with pytest.raises(InvalidCredentials):
        await auth.login(email, password)


async def test_guest_cannot_log_in(auth, make_user):
    await make_user("visitor", role=Role.GUEST, password=None)

    with pytest.raises(InvalidCredentials):
        await auth.login("visitor@example.com", "")


async def test_role_change_keeps_permission_snapshot(auth, make_user):
    user = await make_user("alice")

    updated = await auth.set_role(user.id, Role.MODERATOR)

    assert updated.role == Role.MODERATOR
    assert not updated.can_moderate
    assert updated.permissions == {Permission.CAN_POST, Permission.CAN_COMMENT}


async def test_permissions_change_independently_of_role(auth, make_user):
    user = await make_user("alice")

    updated = await auth.set_permissions(
        user.id, {Permission.CAN_MODERATE: True, Permission.CAN_POST: False}
    )

    assert updated.role == Role.COMMUNITY_MEMBER
    assert updated.permissions == {Permission.CAN_COMMENT, Permission.CAN_MODERATE}


async def test_admin_tools_report_unknown_user(auth):
    with pytest.raises(UserNotFound):
        await auth.set_role(404, Role.ADMIN)


# ==================== Password reset ====================


def _token_from_mail(mailer: FakeMailer) -> str:
    _, _, html = mailer.sent[-1]
    marker = "http://test/reset-password/"
    start = html.index(marker) + len(marker)
    return html[start:start + 64]


async def _request_reset(auth, mailer, now=None):
    await auth.request_password_reset(
        "alice@example.com",
        mailer=mailer,
        reset_url_base="http://test/reset-password",
        now=now,
    )
    return _token_from_mail(mailer)


async def test_reset_for_unknown_email_is_not_found(auth, mailer):
    with pytest.raises(UserNotFound):
        await auth.request_password_reset(
            "ghost@example.com", mailer=mailer, reset_url_base="http://test/reset-password"
        )
    assert mailer.sent == []


async def test_reset_stores_only_token_hash(auth, make_user, mailer, db, verifier):
    await make_user("alice")

    token = await _request_reset(auth, mailer)

    user = await db.scalar(select(User).where(User.email == "alice@example.com"))
    assert user.password_reset_token == verifier.hash_reset_token(token)
    assert user.password_reset_token != token
    assert user.password_reset_expires > datetime.utcnow()
    assert mailer.sent[0][0] == "alice@example.com"


async def test_reset_with_valid_token(auth, make_user, mailer):
    await make_user("alice")
    token = await _request_reset(auth, mailer)

    user = await auth.reset_password(token, "new-password")

    assert user.password_reset_token is None
    assert user.password_reset_expires is None
    await auth.login("alice@example.com", "new-password")
    with pytest.raises(InvalidCredentials):
        await auth.login("alice@example.com", "password123")


async def test_reset_token_is_single_use(auth, make_user, mailer):
    await make_user("alice")
    token = await _request_reset(auth, mailer)
    await auth.reset_password(token, "new-password")

    with pytest.raises(InvalidResetToken):
        await auth.reset_password(token, "another-password")


async def test_reset_with_mismatched_token(auth, make_user, mailer):
    await make_user("alice")
    await _request_reset(auth, mailer)

    with pytest.raises(InvalidResetToken):
        await auth.reset_password("0" * 64, "new-password")


async def test_reset_with_expired_token(auth, make_user, mailer):
    await make_user("alice")
    token = await _request_reset(auth, mailer, now=datetime.utcnow() - timedelta(hours=2))

    with pytest.raises(InvalidResetToken):
        await auth.reset_password(token, "new-password")


async def test_reset_expiry_is_checked_against_given_clock(auth, make_user, mailer):
    await make_user("alice")
    token = await _request_reset(auth, mailer)

    with pytest.raises(InvalidResetToken):
        await auth.reset_password(
            token, "new-password", now=datetime.utcnow() + timedelta(minutes=61)
        )


async def test_mail_failure_is_reported(auth, make_user):
    await make_user("alice")

    with pytest.raises(MailDeliveryError):
        await auth.request_password_reset(
            "alice@example.com",
            mailer=FakeMailer(succeed=False),
            reset_url_base="http://test/reset-password",
        )
