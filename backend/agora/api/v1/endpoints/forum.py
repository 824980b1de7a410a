"""
Forum API Endpoints.

Threads, comments, likes and moderation.
"""

from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from agora.api.deps import (
    get_forum_service,
    get_identity,
    get_moderation_service,
    require,
    require_user,
)
from agora.api.envelope import envelope
from agora.models.forum import Comment, Thread
from agora.models.user import Permission
from agora.modules.auth import Identity
from agora.modules.forum import ForumService, ModerationService

router = APIRouter()


# ==================== Schemas ====================


class CreateThreadRequest(BaseModel):
    """Create new thread."""

    title: str = Field(min_length=1, max_length=255)
    content: str = Field(min_length=1)
    tags: list[str] = []
    is_public: bool = True


class ModerateThreadRequest(BaseModel):
    """Moderator patch; only provided fields are applied."""

    title: str | None = Field(default=None, min_length=1, max_length=255)
    content: str | None = None
    is_public: bool | None = None
    is_locked: bool | None = None
    tags: list[str] | None = None


class CreateCommentRequest(BaseModel):
    """Create new comment/reply."""

    content: str = Field(min_length=1)
    parent_id: int | None = None


class UpdateCommentRequest(BaseModel):
    """Update comment content."""

    content: str = Field(min_length=1)


class HideCommentRequest(BaseModel):
    hidden: bool = True


# ==================== Serialization ====================


def _thread_data(thread: Thread) -> dict[str, Any]:
    return {
        "id": thread.id,
        "title": thread.title,
        "slug": thread.slug,
        "content": thread.content,
        "author": {
            "id": thread.author.id,
            "username": thread.author.username,
        } if thread.author else None,
        "tags": thread.tags,
        "is_public": thread.is_public,
        "is_locked": thread.is_locked,
        "views": thread.views,
        "like_count": thread.like_count,
        "comment_count": thread.comment_count,
        "created_at": thread.created_at.isoformat(),
        "updated_at": thread.updated_at.isoformat(),
    }


def _comment_data(comment: Comment, reply_count: int | None = None) -> dict[str, Any]:
    data = {
        "id": comment.id,
        "thread_id": comment.thread_id,
        "author_id": comment.author_id,
        "parent_id": comment.parent_id,
        "content": comment.content,
        "is_edited": comment.is_edited,
        "is_hidden": comment.is_hidden,
        "like_count": comment.like_count,
        "created_at": comment.created_at.isoformat(),
        "updated_at": comment.updated_at.isoformat(),
    }
    if reply_count is not None:
        data["reply_count"] = reply_count
    return data


# ==================== Threads ====================


@router.get("/public/threads")
async def list_public_threads(
    forum: ForumService = Depends(get_forum_service),
) -> dict[str, Any]:
    """Public threads, no authentication required."""
    threads = await forum.list_public_threads()
    return envelope("Threads fetched successfully", [_thread_data(t) for t in threads])


@router.post("/threads", status_code=201)
async def create_thread(
    request: CreateThreadRequest,
    identity: Identity = Depends(require(permissions=[Permission.CAN_POST])),
    forum: ForumService = Depends(get_forum_service),
) -> dict[str, Any]:
    """Create new thread."""
    thread = await forum.create_thread(
        identity,
        title=request.title,
        content=request.content,
        tags=request.tags,
        is_public=request.is_public,
    )
    thread = await forum.load_thread(thread.id)
    return envelope("Thread created successfully", _thread_data(thread))


@router.get("/threads/{thread_id}")
async def get_thread(
    thread_id: int,
    identity: Identity | None = Depends(get_identity),
    forum: ForumService = Depends(get_forum_service),
) -> dict[str, Any]:
    """Get thread details."""
    thread = await forum.get_thread(thread_id, viewer=identity)
    return envelope("Thread fetched successfully", _thread_data(thread))


@router.post("/threads/{thread_id}/like")
async def like_thread(
    thread_id: int,
    identity: Identity = Depends(require_user),
    forum: ForumService = Depends(get_forum_service),
) -> dict[str, Any]:
    """Toggle like on a thread."""
    likes, liked = await forum.like_thread(thread_id, identity)
    return envelope("Like updated", {"likes": likes, "liked": liked})


@router.put("/threads/{thread_id}/moderate")
async def moderate_thread(
    thread_id: int,
    request: ModerateThreadRequest,
    identity: Identity = Depends(require(permissions=[Permission.CAN_MODERATE])),
    moderation: ModerationService = Depends(get_moderation_service),
) -> dict[str, Any]:
    """Lock/unlock, change visibility or edit a thread."""
    thread = await moderation.moderate_thread(
        thread_id, request.model_dump(exclude_unset=True), identity
    )
    return envelope("Thread updated successfully", _thread_data(thread))


# ==================== Comments ====================


@router.get("/threads/{thread_id}/comments")
async def list_comments(
    thread_id: int,
    parent_id: int | None = Query(None, description="Parent comment ID for replies"),
    identity: Identity | None = Depends(get_identity),
    forum: ForumService = Depends(get_forum_service),
) -> dict[str, Any]:
    """Top-level comments of a thread, or direct replies of one comment."""
    include_hidden = identity is not None and identity.has(Permission.CAN_MODERATE)
    comments = await forum.list_comments(
        thread_id, parent_id=parent_id, include_hidden=include_hidden, viewer=identity
    )
    return envelope(
        "Comments fetched successfully",
        [_comment_data(c, reply_count) for c, reply_count in comments],
    )


@router.post("/threads/{thread_id}/comments", status_code=201)
async def create_comment(
    thread_id: int,
    request: CreateCommentRequest,
    identity: Identity = Depends(require(permissions=[Permission.CAN_COMMENT])),
    forum: ForumService = Depends(get_forum_service),
) -> dict[str, Any]:
    """Create new comment/reply in a thread."""
    comment = await forum.create_comment(
        identity,
        thread_id,
        content=request.content,
        parent_id=request.parent_id,
    )
    return envelope("Comment created successfully", _comment_data(comment))


@router.put("/comments/{comment_id}")
async def update_comment(
    comment_id: int,
    request: UpdateCommentRequest,
    identity: Identity = Depends(require_user),
    moderation: ModerationService = Depends(get_moderation_service),
) -> dict[str, Any]:
    """Edit own comment (admins may edit any)."""
    comment = await moderation.update_comment(comment_id, request.content, identity)
    return envelope("Comment updated successfully", _comment_data(comment))


@router.delete("/comments/{comment_id}")
async def delete_comment(
    comment_id: int,
    identity: Identity = Depends(require_user),
    moderation: ModerationService = Depends(get_moderation_service),
) -> dict[str, Any]:
    """Delete own comment and its replies (admins may delete any)."""
    removed = await moderation.delete_comment(comment_id, identity)
    return envelope("Comment deleted successfully", {"removed": removed})


@router.post("/comments/{comment_id}/like")
async def like_comment(
    comment_id: int,
    identity: Identity = Depends(require_user),
    forum: ForumService = Depends(get_forum_service),
) -> dict[str, Any]:
    """Like a comment."""
    likes, liked = await forum.like_comment(comment_id, identity)
    return envelope("Like updated", {"likes": likes, "liked": liked})


# ==================== Moderation ====================


@router.delete("/moderation/comments/{comment_id}")
async def moderator_delete_comment(
    comment_id: int,
    identity: Identity = Depends(require(permissions=[Permission.CAN_MODERATE])),
    moderation: ModerationService = Depends(get_moderation_service),
) -> dict[str, Any]:
    """Delete any comment and its replies."""
    removed = await moderation.delete_comment_as_moderator(comment_id, identity)
    return envelope("Comment deleted successfully", {"removed": removed})


@router.put("/moderation/comments/{comment_id}/visibility")
async def hide_comment(
    comment_id: int,
    request: HideCommentRequest,
    identity: Identity = Depends(require(permissions=[Permission.CAN_MODERATE])),
    moderation: ModerationService = Depends(get_moderation_service),
) -> dict[str, Any]:
    """Hide or unhide a comment."""
    comment = await moderation.hide_comment(comment_id, request.hidden, identity)
    return envelope("Comment visibility updated", _comment_data(comment))
