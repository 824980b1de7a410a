"""
Forum Service - thread and comment management.
"""

from collections.abc import Iterable
from typing import Literal

from loguru import logger
from slugify import slugify
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from agora.core.exceptions import (
    CommentNotFound,
    ParentCommentNotFound,
    ThreadLocked,
    ThreadNotFound,
)
from agora.models.forum import Comment, Reaction, Thread
from agora.models.user import Permission
from agora.modules.auth.gate import Identity, enforce

LikeStrategy = Literal["toggle", "counter"]


class ForumService:
    """
    Service for managing threads, comments and likes.

    Every comment counter change is an SQL-side increment executed in the
    same transaction as the row change it accounts for, so concurrent
    requests never lose updates.

    Usage:
        forum = ForumService(db_session)
        comment = await forum.create_comment(identity, thread_id, "Hello")
    """

    def __init__(
        self,
        db: AsyncSession,
        like_strategy: LikeStrategy = "toggle",
    ) -> None:
        """
        Initialize forum service.

        Args:
            db: Database session
            like_strategy: ``toggle`` keeps one like per user per comment,
                ``counter`` increments unconditionally
        """
        self.db = db
        self.like_strategy = like_strategy

    # ==================== Threads ====================

    async def _unique_slug(self, title: str) -> str:
        base_slug = slugify(title)[:200] or "thread"
        slug = base_slug

        counter = 1
        while True:
            existing = await self.db.execute(
                select(Thread.id).where(Thread.slug == slug)
            )
            if existing.first() is None:
                return slug
            slug = f"{base_slug}-{counter}"
            counter += 1

    async def create_thread(
        self,
        author: Identity | None,
        title: str,
        content: str,
        tags: Iterable[str] = (),
        is_public: bool = True,
    ) -> Thread:
        """
        Create new thread.

        Args:
            author: Caller identity, must hold can_post
            title: Thread title
            content: Opening post content
            tags: Tag strings (whitespace trimmed, blanks dropped)
            is_public: Visible to guests

        Returns:
            Created thread
        """
        author = enforce(author, permissions=[Permission.CAN_POST])

        thread = Thread(
            author_id=author.user_id,
            title=title.strip(),
            slug=await self._unique_slug(title),
            content=content,
            tags=[tag.strip() for tag in tags if tag.strip()],
            is_public=is_public,
            is_locked=False,
            views=0,
            like_count=0,
            comment_count=0,
        )
        self.db.add(thread)
        await self.db.flush()

        logger.info(f"User {author.user_id} created thread {thread.id}")
        return thread

    async def load_thread(self, thread_id: int) -> Thread:
        query = (
            select(Thread)
            .options(selectinload(Thread.author))
            .where(Thread.id == thread_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(query)
        thread = result.scalar_one_or_none()
        if thread is None:
            raise ThreadNotFound()
        return thread

    async def _visible_thread(self, thread_id: int, viewer: Identity | None) -> Thread:
        """
        Load a thread the viewer is allowed to see.

        Private threads are reported as missing to everyone except their
        author and moderators.
        """
        thread = await self.load_thread(thread_id)
        if not thread.is_public and not (
            viewer is not None
            and (viewer.user_id == thread.author_id or viewer.has(Permission.CAN_MODERATE))
        ):
            raise ThreadNotFound()
        return thread

    async def get_thread(
        self,
        thread_id: int,
        viewer: Identity | None = None,
    ) -> Thread:
        """Get thread and count the view."""
        thread = await self._visible_thread(thread_id, viewer)

        await self.db.execute(
            update(Thread)
            .where(Thread.id == thread_id)
            .values(views=Thread.views + 1)
            .execution_options(synchronize_session=False)
        )
        await self.db.refresh(thread, ["views"])
        return thread

    async def list_public_threads(self) -> list[Thread]:
        """Get public threads, newest first."""
        query = (
            select(Thread)
            .options(selectinload(Thread.author))
            .where(Thread.is_public == True)
            .order_by(Thread.created_at.desc(), Thread.id.desc())
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def like_thread(self, thread_id: int, user: Identity | None) -> tuple[int, bool]:
        """
        Toggle the caller's like on a thread.

        Returns:
            (like count, whether the caller now likes the thread)
        """
        user = enforce(user)
        await self._visible_thread(thread_id, user)

        liked = await self._toggle_reaction(
            user.user_id, Thread, thread_id, Reaction.thread_id
        )
        count = await self.db.scalar(
            select(Thread.like_count).where(Thread.id == thread_id)
        )
        return count, liked

    async def recount_comments(self, thread_id: int) -> int:
        """Recompute a thread's comment counter from stored rows."""
        await self.load_thread(thread_id)

        actual = await self.db.scalar(
            select(func.count()).select_from(Comment).where(Comment.thread_id == thread_id)
        )
        await self.db.execute(
            update(Thread)
            .where(Thread.id == thread_id)
            .values(comment_count=actual)
            .execution_options(synchronize_session=False)
        )
        logger.info(f"Thread {thread_id} comment count reconciled to {actual}")
        return actual

    # ==================== Comments ====================

    async def get_comment(self, comment_id: int) -> Comment:
        comment = await self.db.get(Comment, comment_id)
        if comment is None:
            raise CommentNotFound()
        return comment

    async def create_comment(
        self,
        author: Identity | None,
        thread_id: int,
        content: str,
        parent_id: int | None = None,
    ) -> Comment:
        """
        Create comment or reply and bump the thread's comment counter.

        Args:
            author: Caller identity, must hold can_comment
            thread_id: Thread ID
            content: Comment text
            parent_id: Parent comment ID for replies

        Returns:
            Created comment

        Raises:
            ThreadNotFound: Thread does not exist or is private to the caller
            ThreadLocked: Thread is locked
            ParentCommentNotFound: Parent missing or in another thread
        """
        author = enforce(author, permissions=[Permission.CAN_COMMENT])

        thread = await self._visible_thread(thread_id, author)
        if thread.is_locked:
            raise ThreadLocked()

        if parent_id is not None:
            parent = await self.db.get(Comment, parent_id)
            if parent is None or parent.thread_id != thread_id:
                raise ParentCommentNotFound()

        comment = Comment(
            thread_id=thread_id,
            author_id=author.user_id,
            parent_id=parent_id,
            content=content,
            is_edited=False,
            is_hidden=False,
            like_count=0,
        )
        self.db.add(comment)
        await self.db.flush()

        await self.db.execute(
            update(Thread)
            .where(Thread.id == thread_id)
            .values(comment_count=Thread.comment_count + 1)
            .execution_options(synchronize_session=False)
        )

        logger.debug(f"User {author.user_id} commented {comment.id} on thread {thread_id}")
        return comment

    async def list_comments(
        self,
        thread_id: int,
        parent_id: int | None = None,
        include_hidden: bool = False,
        viewer: Identity | None = None,
    ) -> list[tuple[Comment, int]]:
        """
        Get top-level comments or direct replies of one comment.

        Args:
            thread_id: Thread ID
            parent_id: Parent comment ID (None for top-level comments)
            include_hidden: Include comments hidden by moderators
            viewer: Caller identity, checked against private threads

        Returns:
            (comment, direct reply count) pairs, oldest first
        """
        await self._visible_thread(thread_id, viewer)

        query = (
            select(Comment)
            .options(selectinload(Comment.author))
            .where(Comment.thread_id == thread_id)
        )
        if parent_id is None:
            query = query.where(Comment.parent_id.is_(None))
        else:
            query = query.where(Comment.parent_id == parent_id)
        if not include_hidden:
            query = query.where(Comment.is_hidden == False)

        query = query.order_by(Comment.created_at, Comment.id)
        result = await self.db.execute(query)
        comments = list(result.scalars().all())

        if not comments:
            return []

        # One grouped query for all reply counts
        counts_query = (
            select(Comment.parent_id, func.count())
            .where(Comment.parent_id.in_([c.id for c in comments]))
            .group_by(Comment.parent_id)
        )
        if not include_hidden:
            counts_query = counts_query.where(Comment.is_hidden == False)
        counts_result = await self.db.execute(counts_query)
        reply_counts = dict(counts_result.tuples().all())

        return [(c, reply_counts.get(c.id, 0)) for c in comments]

    async def like_comment(
        self,
        comment_id: int,
        user: Identity | None,
    ) -> tuple[int, bool]:
        """
        Like a comment according to the configured strategy.

        With ``toggle`` a repeated like by the same user removes it; with
        ``counter`` every call adds one.

        Returns:
            (like count, whether the call left the comment liked by the caller)
        """
        user = enforce(user)
        comment = await self.get_comment(comment_id)
        await self._visible_thread(comment.thread_id, user)

        if self.like_strategy == "counter":
            await self.db.execute(
                update(Comment)
                .where(Comment.id == comment_id)
                .values(like_count=Comment.like_count + 1)
                .execution_options(synchronize_session=False)
            )
            liked = True
        else:
            liked = await self._toggle_reaction(
                user.user_id, Comment, comment_id, Reaction.comment_id
            )

        count = await self.db.scalar(
            select(Comment.like_count).where(Comment.id == comment_id)
        )
        return count, liked

    # ==================== Reactions ====================

    async def _toggle_reaction(
        self,
        user_id: int,
        model: type[Thread] | type[Comment],
        target_id: int,
        target_column,
    ) -> bool:
        """Add the user's like if absent, remove it if present. Returns liked state."""
        result = await self.db.execute(
            select(Reaction).where(
                Reaction.user_id == user_id,
                target_column == target_id,
            )
        )
        reaction = result.scalar_one_or_none()

        if reaction is None:
            reaction = Reaction(user_id=user_id, reaction_type="like")
            setattr(reaction, target_column.key, target_id)
            try:
                async with self.db.begin_nested():
                    self.db.add(reaction)
                    await self.db.flush()
            except IntegrityError:
                # A concurrent request stored the same like first
                logger.debug(
                    f"User {user_id} already likes {model.__tablename__} {target_id}"
                )
                return True
            delta = 1
        else:
            await self.db.delete(reaction)
            delta = -1

        await self.db.execute(
            update(model)
            .where(model.id == target_id)
            .values(like_count=model.like_count + delta)
            .execution_options(synchronize_session=False)
        )
        await self.db.flush()
        return delta > 0

    async def purge_comment_reactions(self, comment_ids: list[int]) -> None:
        """Drop likes attached to comments about to be deleted."""
        await self.db.execute(
            delete(Reaction)
            .where(Reaction.comment_id.in_(comment_ids))
            .execution_options(synchronize_session=False)
        )
