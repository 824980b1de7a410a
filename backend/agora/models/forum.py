"""
Forum models for community discussions.

Includes:
- Threads
- Comments (reply trees through ``parent_id``)
- Reactions (per-user likes)
"""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from agora.core.database import Base

if TYPE_CHECKING:
    from agora.models.user import User


class Thread(Base):
    """Discussion thread."""

    __tablename__ = "threads"
    __table_args__ = (Index("ix_threads_author_created", "author_id", "created_at"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    author_id: Mapped[int] = mapped_column(ForeignKey("users.id"))

    title: Mapped[str] = mapped_column(String(255))
    slug: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    content: Mapped[str] = mapped_column(Text)
    tags: Mapped[list[str]] = mapped_column(JSON, default=list)

    # Status
    is_public: Mapped[bool] = mapped_column(Boolean, default=True)
    is_locked: Mapped[bool] = mapped_column(Boolean, default=False)

    # Stats (denormalized, only changed through SQL-side increments)
    views: Mapped[int] = mapped_column(Integer, default=0)
    like_count: Mapped[int] = mapped_column(Integer, default=0)
    comment_count: Mapped[int] = mapped_column(Integer, default=0)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    author: Mapped["User"] = relationship(back_populates="threads")
    comments: Mapped[list["Comment"]] = relationship(back_populates="thread")

    def __repr__(self) -> str:
        return f"<Thread {self.title[:30]}>"


class Comment(Base):
    """Comment or reply inside a thread."""

    __tablename__ = "comments"
    __table_args__ = (
        Index("ix_comments_thread_created", "thread_id", "created_at"),
        Index("ix_comments_author_created", "author_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    thread_id: Mapped[int] = mapped_column(ForeignKey("threads.id"))
    author_id: Mapped[int] = mapped_column(ForeignKey("users.id"))
    parent_id: Mapped[int | None] = mapped_column(
        ForeignKey("comments.id"), index=True
    )

    content: Mapped[str] = mapped_column(Text)

    # Status
    is_edited: Mapped[bool] = mapped_column(Boolean, default=False)
    is_hidden: Mapped[bool] = mapped_column(Boolean, default=False)

    # Stats
    like_count: Mapped[int] = mapped_column(Integer, default=0)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    thread: Mapped["Thread"] = relationship(back_populates="comments")
    author: Mapped["User"] = relationship(back_populates="comments")
    parent: Mapped["Comment | None"] = relationship(
        "Comment", remote_side=[id], back_populates="replies"
    )
    replies: Mapped[list["Comment"]] = relationship(
        "Comment", back_populates="parent"
    )

    def __repr__(self) -> str:
        return f"<Comment {self.id} in thread {self.thread_id}>"


class Reaction(Base):
    """Like on a thread or a comment (exactly one target is set)."""

    __tablename__ = "reactions"
    __table_args__ = (
        UniqueConstraint("user_id", "thread_id", name="uq_reaction_user_thread"),
        UniqueConstraint("user_id", "comment_id", name="uq_reaction_user_comment"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"))

    thread_id: Mapped[int | None] = mapped_column(ForeignKey("threads.id"))
    comment_id: Mapped[int | None] = mapped_column(ForeignKey("comments.id"))

    reaction_type: Mapped[str] = mapped_column(String(20), default="like")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
