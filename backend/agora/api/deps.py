"""
Shared API dependencies.

Collaborators are built once at startup and kept on ``app.state``; these
dependencies hand them to endpoints.
"""

from collections.abc import Callable, Coroutine, Iterable
from typing import Any

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from agora.core.config import Settings
from agora.core.database import get_db
from agora.models.user import Permission, Role
from agora.modules.auth import AuthService, CredentialVerifier, Identity, Mailer, enforce
from agora.modules.forum import ForumService, ModerationService

bearer_scheme = HTTPBearer(auto_error=False)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_verifier(request: Request) -> CredentialVerifier:
    return request.app.state.verifier


def get_mailer(request: Request) -> Mailer:
    return request.app.state.mailer


async def get_identity(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    verifier: CredentialVerifier = Depends(get_verifier),
) -> Identity | None:
    """
    Resolve the bearer token, if any.

    No header yields None; a present but invalid token is rejected with 401.
    """
    if credentials is None:
        return None
    return verifier.resolve_token(credentials.credentials)


def require(
    roles: Iterable[Role] = (),
    permissions: Iterable[Permission] = (),
) -> Callable[..., Coroutine[Any, Any, Identity]]:
    """
    Build a dependency that runs the authorization gate.

    Usage:
        @router.post("/threads")
        async def create(identity: Identity = Depends(require(permissions=[Permission.CAN_POST]))):
            ...
    """
    roles = tuple(roles)
    permissions = tuple(permissions)

    async def dependency(identity: Identity | None = Depends(get_identity)) -> Identity:
        return enforce(identity, roles, permissions)

    return dependency


require_user = require()


def get_auth_service(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> AuthService:
    return AuthService(
        db,
        request.app.state.verifier,
        reset_expire_minutes=request.app.state.settings.password_reset_expire_minutes,
    )


def get_forum_service(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> ForumService:
    return ForumService(db, like_strategy=settings.comment_like_strategy)


def get_moderation_service(db: AsyncSession = Depends(get_db)) -> ModerationService:
    return ModerationService(db)
