"""
Auth API Endpoints.

Registration, login and password reset.
"""

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr, Field, field_validator

from agora.api.deps import get_app_settings, get_auth_service, get_mailer, require_user
from agora.api.envelope import envelope
from agora.core.config import Settings
from agora.models.user import User
from agora.modules.auth import AuthService, Identity, Mailer

router = APIRouter()


# ==================== Schemas ====================


class SignupRequest(BaseModel):
    """Register new account."""

    username: str = Field(min_length=3, max_length=100)
    email: EmailStr
    password: str = Field(min_length=6)

    @field_validator("username")
    @classmethod
    def username_must_be_valid(cls, v: str) -> str:
        if not v.replace("_", "").isalnum():
            raise ValueError("Username can only contain letters, numbers, and underscores")
        return v


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    password: str = Field(min_length=6)


def user_data(user: User) -> dict[str, Any]:
    """Public account fields (never the password or reset token)."""
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "role": user.role.value,
        "permissions": {
            "can_post": user.can_post,
            "can_comment": user.can_comment,
            "can_moderate": user.can_moderate,
            "can_manage_users": user.can_manage_users,
        },
        "created_at": user.created_at.isoformat(),
        "last_active": user.last_active.isoformat(),
    }


# ==================== Endpoints ====================


@router.post("/signup", status_code=201)
async def signup(
    request: SignupRequest,
    auth: AuthService = Depends(get_auth_service),
) -> dict[str, Any]:
    """Register a community member."""
    user = await auth.signup(request.username, request.email, request.password)
    return envelope("User registered successfully", user_data(user))


@router.post("/login")
async def login(
    request: LoginRequest,
    auth: AuthService = Depends(get_auth_service),
) -> dict[str, Any]:
    """Login with email and password."""
    token, user = await auth.login(request.email, request.password)
    return envelope(
        "Logged in successfully",
        {"token": token, "token_type": "bearer", "user": user_data(user)},
    )


@router.get("/me")
async def me(identity: Identity = Depends(require_user)) -> dict[str, Any]:
    """Identity carried by the current token."""
    return envelope(
        "Authenticated",
        {
            "user_id": identity.user_id,
            "role": identity.role.value,
            "permissions": sorted(p.value for p in identity.permissions),
        },
    )


@router.post("/forgot-password")
async def forgot_password(
    request: ForgotPasswordRequest,
    auth: AuthService = Depends(get_auth_service),
    mailer: Mailer = Depends(get_mailer),
    settings: Settings = Depends(get_app_settings),
) -> dict[str, Any]:
    """Email a password reset link."""
    await auth.request_password_reset(
        request.email,
        mailer=mailer,
        reset_url_base=settings.password_reset_url_base,
    )
    return envelope("Password reset email sent successfully")


@router.put("/reset-password/{token}")
async def reset_password(
    token: str,
    request: ResetPasswordRequest,
    auth: AuthService = Depends(get_auth_service),
) -> dict[str, Any]:
    """Set a new password with an emailed reset token."""
    await auth.reset_password(token, request.password)
    return envelope("Password has been reset successfully")
