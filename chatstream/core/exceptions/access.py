"""
Access Exceptions

Ownership checks on conversation access. Raised before context assembly.
"""

from chatstream.core.config.constants import ErrorKind
from chatstream.core.exceptions.base import ChatStreamError


class AccessError(ChatStreamError):
    """Base exception for conversation access errors."""
    pass


class ConversationNotFoundError(AccessError):
    """Raised when the conversation does not exist."""

    kind = ErrorKind.NOT_FOUND
    status_code = 404


class ForbiddenError(AccessError):
    """Raised when the conversation belongs to another user."""

    kind = ErrorKind.FORBIDDEN
    status_code = 403
