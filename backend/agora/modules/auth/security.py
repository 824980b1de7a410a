"""
Credential Verifier - password hashing and session tokens.

Passwords are hashed with bcrypt through passlib. Session tokens are
HS256 JWTs carrying the user id, role and permission snapshot; resolving a
token never touches the database.
"""

import calendar
import hashlib
import secrets
from datetime import datetime, timedelta

from jose import ExpiredSignatureError, JWTError, jwt
from loguru import logger
from passlib.context import CryptContext

from agora.core.config import Settings
from agora.core.exceptions import ConfigurationError, Unauthenticated
from agora.models.user import Permission, Role
from agora.modules.auth.gate import Identity


class CredentialVerifier:
    """
    Hashes passwords and issues/validates signed session tokens.

    Usage:
        verifier = CredentialVerifier.from_settings(settings)
        token = verifier.issue_token(user.id, user.role, user.permissions)
        identity = verifier.resolve_token(token)
    """

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        token_expire_minutes: int = 60,
        hash_rounds: int = 10,
    ) -> None:
        """
        Initialize verifier.

        Args:
            secret_key: Token signing secret (required)
            algorithm: JWT signing algorithm
            token_expire_minutes: Session token lifetime
            hash_rounds: bcrypt cost factor (log2 rounds)

        Raises:
            ConfigurationError: If the signing secret is empty
        """
        if not secret_key:
            raise ConfigurationError("JWT_SECRET_KEY is not configured")

        self._secret_key = secret_key
        self.algorithm = algorithm
        self.token_lifetime = timedelta(minutes=token_expire_minutes)
        self._pwd_context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=hash_rounds,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "CredentialVerifier":
        return cls(
            secret_key=settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm,
            token_expire_minutes=settings.jwt_access_token_expire_minutes,
            hash_rounds=settings.password_hash_rounds,
        )

    # ==================== Passwords ====================

    def hash_password(self, password: str) -> str:
        """Hash a password for storing in database."""
        return self._pwd_context.hash(password)

    def verify_password(self, password: str, hashed_password: str | None) -> bool:
        """Verify a password against its hash. Accounts without one never match."""
        if not hashed_password:
            return False
        return self._pwd_context.verify(password, hashed_password)

    # ==================== Session tokens ====================

    def issue_token(
        self,
        user_id: int,
        role: Role,
        permissions: frozenset[Permission] = frozenset(),
        now: datetime | None = None,
    ) -> str:
        """
        Create signed session token.

        Args:
            user_id: Subject user ID
            role: Role at issue time
            permissions: Permission snapshot at issue time
            now: Issue time (UTC, defaults to current time)

        Returns:
            Encoded JWT
        """
        issued_at = now or datetime.utcnow()
        claims = {
            "sub": str(user_id),
            "role": role.value,
            "permissions": sorted(perm.value for perm in permissions),
            "iat": issued_at,
            "exp": issued_at + self.token_lifetime,
        }
        return jwt.encode(claims, self._secret_key, algorithm=self.algorithm)

    def resolve_token(self, token: str, now: datetime | None = None) -> Identity:
        """
        Verify signature and expiry and return the embedded identity.

        Args:
            token: Encoded JWT
            now: Check expiry against this time (UTC) instead of the clock

        Raises:
            Unauthenticated: Token is malformed, tampered with or expired
        """
        try:
            claims = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self.algorithm],
                options={"verify_exp": now is None},
            )
        except ExpiredSignatureError:
            raise Unauthenticated("Authentication failed: token expired")
        except JWTError as e:
            logger.debug(f"Rejected session token: {e}")
            raise Unauthenticated("Authentication failed: invalid token")

        if now is not None:
            expires_at = claims.get("exp")
            if not isinstance(expires_at, int) or expires_at <= calendar.timegm(
                now.utctimetuple()
            ):
                raise Unauthenticated("Authentication failed: token expired")

        try:
            return Identity(
                user_id=int(claims["sub"]),
                role=Role(claims["role"]),
                permissions=frozenset(
                    Permission(value) for value in claims.get("permissions", [])
                ),
            )
        except (KeyError, ValueError):
            raise Unauthenticated("Authentication failed: malformed token claims")

    # ==================== Password reset tokens ====================

    @staticmethod
    def new_reset_token() -> tuple[str, str]:
        """
        Generate a password reset token.

        Returns:
            (cleartext token to email, SHA-256 hex digest to persist)
        """
        token = secrets.token_hex(32)
        return token, CredentialVerifier.hash_reset_token(token)

    @staticmethod
    def hash_reset_token(token: str) -> str:
        return hashlib.sha256(token.encode()).hexdigest()
