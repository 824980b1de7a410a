"""
Admin API Endpoints.

User management and maintenance tools.
"""

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from agora.api.deps import get_auth_service, get_forum_service, require
from agora.api.envelope import envelope
from agora.api.v1.endpoints.auth import user_data
from agora.models.user import Permission, Role
from agora.modules.auth import AuthService, Identity
from agora.modules.forum import ForumService

router = APIRouter()

manage_users = require(permissions=[Permission.CAN_MANAGE_USERS])


class UpdateRoleRequest(BaseModel):
    role: Role


class UpdatePermissionsRequest(BaseModel):
    """Flags to change; omitted flags keep their value."""

    can_post: bool | None = None
    can_comment: bool | None = None
    can_moderate: bool | None = None
    can_manage_users: bool | None = None


@router.get("/dashboard")
async def dashboard(
    identity: Identity = Depends(require(roles=[Role.ADMIN])),
) -> dict[str, Any]:
    """Admin-only landing endpoint."""
    return envelope(
        "Welcome to the Admin Dashboard!",
        {"user_id": identity.user_id, "role": identity.role.value},
    )


@router.get("/users")
async def list_users(
    identity: Identity = Depends(manage_users),
    auth: AuthService = Depends(get_auth_service),
) -> dict[str, Any]:
    """List all accounts."""
    users = await auth.list_users()
    return envelope("Users fetched successfully", [user_data(u) for u in users])


@router.put("/users/{user_id}/role")
async def update_role(
    user_id: int,
    request: UpdateRoleRequest,
    identity: Identity = Depends(manage_users),
    auth: AuthService = Depends(get_auth_service),
) -> dict[str, Any]:
    """Change a user's role. Permission flags are not recomputed."""
    user = await auth.set_role(user_id, request.role)
    return envelope("Role updated successfully", user_data(user))


@router.put("/users/{user_id}/permissions")
async def update_permissions(
    user_id: int,
    request: UpdatePermissionsRequest,
    identity: Identity = Depends(manage_users),
    auth: AuthService = Depends(get_auth_service),
) -> dict[str, Any]:
    """Set individual permission flags."""
    flags = {
        Permission(name): value
        for name, value in request.model_dump(exclude_none=True).items()
    }
    user = await auth.set_permissions(user_id, flags)
    return envelope("Permissions updated successfully", user_data(user))


@router.post("/threads/{thread_id}/recount")
async def recount_comments(
    thread_id: int,
    identity: Identity = Depends(manage_users),
    forum: ForumService = Depends(get_forum_service),
) -> dict[str, Any]:
    """Recompute a thread's comment counter."""
    count = await forum.recount_comments(thread_id)
    return envelope("Comment count reconciled", {"comment_count": count})
