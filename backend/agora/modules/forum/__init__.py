"""
Forum Module - Community discussions.

Features:
- Threads with tags, visibility and locking
- Threaded comments with reply counts
- Likes on threads and comments
- Moderation tools and cascading deletes
"""

from agora.modules.forum.moderation import ModerationService
from agora.modules.forum.service import ForumService

__all__ = ["ForumService", "ModerationService"]
