"""
Database models.
"""

from agora.models.forum import Comment, Reaction, Thread
from agora.models.user import Permission, Role, User, default_permissions

__all__ = [
    "Comment",
    "Permission",
    "Reaction",
    "Role",
    "Thread",
    "User",
    "default_permissions",
]
