"""
Forum error taxonomy.

Every failure a service can report is a ``ForumError`` subclass. The HTTP
layer only looks at ``status_code`` and ``category``, so any transport can
keep the same classification.
"""


class ConfigurationError(RuntimeError):
    """Required configuration is missing. Fatal at startup."""


class ForumError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = 500
    category: str = "server_error"
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


# ==================== 401 ====================


class Unauthenticated(ForumError):
    status_code = 401
    category = "unauthenticated"
    default_message = "Authentication required"


class InvalidCredentials(Unauthenticated):
    default_message = "Invalid credentials"


# ==================== 403 ====================


class Forbidden(ForumError):
    status_code = 403
    category = "forbidden"
    default_message = "Forbidden"


class InsufficientRole(Forbidden):
    default_message = "Forbidden: insufficient role privileges"


class InsufficientPermission(Forbidden):
    default_message = "Forbidden: insufficient permissions"


class NotAuthorized(Forbidden):
    """Requester neither owns the resource nor holds an overriding role."""

    default_message = "Not authorized to modify this comment"


class ThreadLocked(Forbidden):
    default_message = "Thread is locked"


# ==================== 404 ====================


class NotFound(ForumError):
    status_code = 404
    category = "not_found"
    default_message = "Not found"


class ThreadNotFound(NotFound):
    default_message = "Thread not found"


class CommentNotFound(NotFound):
    default_message = "Comment not found"


class ParentCommentNotFound(NotFound):
    default_message = "Parent comment not found"


class UserNotFound(NotFound):
    default_message = "User not found"


class InvalidResetToken(NotFound):
    default_message = "Password reset token is invalid or has expired"


# ==================== Other ====================


class Conflict(ForumError):
    status_code = 409
    category = "conflict"
    default_message = "Conflict"


class DuplicateUser(Conflict):
    default_message = "Username or email already registered"


class InvalidRequest(ForumError):
    status_code = 400
    category = "invalid_request"
    default_message = "Invalid request"


class ServerError(ForumError):
    pass


class MailDeliveryError(ServerError):
    default_message = "Could not send password reset email"
