"""
Auth Service - accounts, login and password reset.
"""

from datetime import datetime, timedelta

from loguru import logger
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from agora.core.exceptions import (
    DuplicateUser,
    InvalidCredentials,
    InvalidRequest,
    InvalidResetToken,
    MailDeliveryError,
    UserNotFound,
)
from agora.models.user import Permission, Role, User, default_permissions
from agora.modules.auth.mailer import Mailer
from agora.modules.auth.security import CredentialVerifier

RESET_EMAIL_TEMPLATE = """
<p>You are receiving this because you (or someone else) have requested the reset of the password for your account.</p>
<p>Please click on the following link, or paste this into your browser to complete the process:</p>
<p><a href="{url}">{url}</a></p>
<p>If you did not request this, please ignore this email and your password will remain unchanged.</p>
""".strip()


class AuthService:
    """
    Service for user accounts and credentials.

    Usage:
        auth = AuthService(db_session, verifier)
        user = await auth.signup("alice", "alice@example.com", "secret")
        token, user = await auth.login("alice@example.com", "secret")
    """

    def __init__(
        self,
        db: AsyncSession,
        verifier: CredentialVerifier,
        reset_expire_minutes: int = 60,
    ) -> None:
        """Initialize auth service with database session and verifier."""
        self.db = db
        self.verifier = verifier
        self.reset_lifetime = timedelta(minutes=reset_expire_minutes)

    # ==================== Lookup ====================

    async def get_user(self, user_id: int) -> User:
        user = await self.db.get(User, user_id)
        if user is None:
            raise UserNotFound()
        return user

    async def get_user_by_email(self, email: str) -> User | None:
        result = await self.db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def list_users(self) -> list[User]:
        result = await self.db.execute(select(User).order_by(User.id))
        return list(result.scalars().all())

    # ==================== Registration ====================

    async def create_user(
        self,
        username: str,
        email: str,
        password: str | None,
        role: Role = Role.COMMUNITY_MEMBER,
    ) -> User:
        """
        Create account with permissions seeded from ``role``.

        Raises:
            InvalidRequest: Non-guest account without password
            DuplicateUser: Username or email already taken
        """
        if password is None and role != Role.GUEST:
            raise InvalidRequest("Password is required")

        existing = await self.db.execute(
            select(User.id).where(or_(User.username == username, User.email == email))
        )
        if existing.first() is not None:
            raise DuplicateUser()

        user = User(
            username=username,
            email=email,
            hashed_password=(
                self.verifier.hash_password(password) if password is not None else None
            ),
            role=role,
            **default_permissions(role),
        )
        self.db.add(user)
        try:
            # Unique constraints still catch a concurrent signup
            await self.db.flush()
        except IntegrityError:
            await self.db.rollback()
            raise DuplicateUser()

        logger.info(f"Registered user {username} as {role.value}")
        return user

    async def signup(self, username: str, email: str, password: str) -> User:
        """Register a community member."""
        return await self.create_user(username, email, password, Role.COMMUNITY_MEMBER)

    # ==================== Login ====================

    async def login(self, email: str, password: str) -> tuple[str, User]:
        """
        Check credentials and issue a session token.

        Raises:
            InvalidCredentials: Unknown email or wrong password
        """
        user = await self.get_user_by_email(email)
        if user is None or not self.verifier.verify_password(
            password, user.hashed_password
        ):
            logger.warning(f"Failed login for {email}")
            raise InvalidCredentials()

        user.last_active = datetime.utcnow()
        await self.db.flush()

        token = self.verifier.issue_token(user.id, user.role, user.permissions)
        return token, user

    # ==================== Password reset ====================

    async def request_password_reset(
        self,
        email: str,
        mailer: Mailer,
        reset_url_base: str,
        now: datetime | None = None,
    ) -> None:
        """
        Store a reset token hash and email the cleartext link.

        Raises:
            UserNotFound: No account with that email
            MailDeliveryError: Mail sender reported failure
        """
        user = await self.get_user_by_email(email)
        if user is None:
            raise UserNotFound("User with that email does not exist")

        token, token_hash = self.verifier.new_reset_token()
        user.password_reset_token = token_hash
        user.password_reset_expires = (now or datetime.utcnow()) + self.reset_lifetime
        await self.db.flush()

        reset_url = f"{reset_url_base.rstrip('/')}/{token}"
        sent = await mailer.send(
            user.email,
            "Password Reset Request",
            RESET_EMAIL_TEMPLATE.format(url=reset_url),
        )
        if not sent:
            logger.warning(f"Password reset email to {user.email} failed")
            raise MailDeliveryError()

        logger.info(f"Password reset requested for user {user.id}")

    async def reset_password(
        self,
        token: str,
        new_password: str,
        now: datetime | None = None,
    ) -> User:
        """
        Set a new password using an emailed reset token.

        Raises:
            InvalidResetToken: Token unknown or expired
        """
        query = select(User).where(
            User.password_reset_token == self.verifier.hash_reset_token(token),
            User.password_reset_expires > (now or datetime.utcnow()),
        )
        result = await self.db.execute(query)
        user = result.scalar_one_or_none()

        if user is None:
            raise InvalidResetToken()

        user.hashed_password = self.verifier.hash_password(new_password)
        user.password_reset_token = None
        user.password_reset_expires = None
        await self.db.flush()

        logger.info(f"Password reset completed for user {user.id}")
        return user

    # ==================== Administration ====================

    async def set_role(self, user_id: int, role: Role) -> User:
        """Change role. Permission flags are left as they are."""
        user = await self.get_user(user_id)
        if role != Role.GUEST and user.hashed_password is None:
            raise InvalidRequest("Account has no password; cannot leave guest role")
        user.role = role
        await self.db.flush()
        logger.info(f"User {user_id} role set to {role.value}")
        return user

    async def set_permissions(self, user_id: int, flags: dict[Permission, bool]) -> User:
        """Set individual permission flags; unspecified flags are unchanged."""
        user = await self.get_user(user_id)
        for perm, value in flags.items():
            setattr(user, perm.value, value)
        await self.db.flush()
        logger.info(f"User {user_id} permissions updated: {dict(flags)}")
        return user
