"""
Moderation Service - edit/delete rules and cascading comment deletes.

Two delete policies coexist over one cascade:
- ``delete_comment``: the comment's author or an admin
- ``delete_comment_as_moderator``: anyone holding can_moderate
"""

from typing import Any

from loguru import logger
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from agora.core.exceptions import InvalidRequest, NotAuthorized
from agora.models.forum import Comment, Thread
from agora.models.user import Permission, Role
from agora.modules.auth.gate import Identity, enforce
from agora.modules.forum.service import ForumService

MODERATABLE_THREAD_FIELDS = frozenset({"title", "content", "is_public", "is_locked", "tags"})


class ModerationService:
    """
    Service enforcing ownership and moderation rules.

    Usage:
        moderation = ModerationService(db_session)
        removed = await moderation.delete_comment(comment_id, identity)
    """

    def __init__(self, db: AsyncSession) -> None:
        """Initialize moderation service with database session."""
        self.db = db
        self.forum = ForumService(db)

    @staticmethod
    def _check_owner_or_admin(comment: Comment, requester: Identity) -> None:
        if comment.author_id != requester.user_id and requester.role != Role.ADMIN:
            logger.warning(
                f"User {requester.user_id} denied access to comment {comment.id}"
            )
            raise NotAuthorized()

    # ==================== Comments ====================

    async def update_comment(
        self,
        comment_id: int,
        content: str,
        requester: Identity | None,
    ) -> Comment:
        """Replace comment content (author or admin) and mark it edited."""
        requester = enforce(requester)
        comment = await self.forum.get_comment(comment_id)
        self._check_owner_or_admin(comment, requester)

        comment.content = content
        comment.is_edited = True
        await self.db.flush()
        return comment

    async def delete_comment(self, comment_id: int, requester: Identity | None) -> int:
        """
        Delete comment and all replies beneath it (author or admin).

        Returns:
            Number of comments removed
        """
        requester = enforce(requester)
        comment = await self.forum.get_comment(comment_id)
        self._check_owner_or_admin(comment, requester)
        return await self._delete_subtree(comment, requester)

    async def delete_comment_as_moderator(
        self,
        comment_id: int,
        requester: Identity | None,
    ) -> int:
        """Delete any comment and its replies (requires can_moderate)."""
        requester = enforce(requester, permissions=[Permission.CAN_MODERATE])
        comment = await self.forum.get_comment(comment_id)
        return await self._delete_subtree(comment, requester)

    async def _delete_subtree(self, comment: Comment, requester: Identity) -> int:
        """
        Remove a comment with every descendant and fix the thread counter.

        Descendants are deleted deepest level first, then the comment itself,
        all by id set, so re-running after a partial failure only removes
        what is left.
        """
        comment_id, thread_id = comment.id, comment.thread_id
        levels: list[list[int]] = [[comment_id]]
        while levels[-1]:
            result = await self.db.execute(
                select(Comment.id).where(Comment.parent_id.in_(levels[-1]))
            )
            levels.append(list(result.scalars().all()))

        removed_ids = [cid for level in levels for cid in level]
        await self.forum.purge_comment_reactions(removed_ids)

        for level in reversed(levels):
            if level:
                await self.db.execute(
                    delete(Comment)
                    .where(Comment.id.in_(level))
                    .execution_options(synchronize_session="fetch")
                )

        await self.db.execute(
            update(Thread)
            .where(Thread.id == thread_id)
            .values(comment_count=Thread.comment_count - len(removed_ids))
            .execution_options(synchronize_session=False)
        )

        logger.info(
            f"User {requester.user_id} deleted comment {comment_id} "
            f"({len(removed_ids)} comments removed from thread {thread_id})"
        )
        return len(removed_ids)

    async def hide_comment(
        self,
        comment_id: int,
        hidden: bool,
        requester: Identity | None,
    ) -> Comment:
        """Hide or unhide a comment (requires can_moderate)."""
        requester = enforce(requester, permissions=[Permission.CAN_MODERATE])
        comment = await self.forum.get_comment(comment_id)
        comment.is_hidden = hidden
        await self.db.flush()
        logger.info(f"User {requester.user_id} set comment {comment_id} hidden={hidden}")
        return comment

    # ==================== Threads ====================

    async def moderate_thread(
        self,
        thread_id: int,
        patch: dict[str, Any],
        requester: Identity | None,
    ) -> Thread:
        """
        Apply a field patch to a thread (requires can_moderate).

        Only title, content, is_public, is_locked and tags may be patched,
        and none of them may be set to null.
        """
        requester = enforce(requester, permissions=[Permission.CAN_MODERATE])

        unknown = set(patch) - MODERATABLE_THREAD_FIELDS
        if unknown:
            raise InvalidRequest(f"Cannot moderate fields: {', '.join(sorted(unknown))}")
        cleared = sorted(field for field, value in patch.items() if value is None)
        if cleared:
            raise InvalidRequest(f"Fields cannot be null: {', '.join(cleared)}")

        thread = await self.forum.load_thread(thread_id)
        for field, value in patch.items():
            setattr(thread, field, value)
        await self.db.flush()

        logger.info(f"User {requester.user_id} moderated thread {thread_id}: {sorted(patch)}")
        return thread
