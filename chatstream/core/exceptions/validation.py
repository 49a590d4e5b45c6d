"""
Validation Exceptions

All exceptions raised when a chat or retry request is rejected before any
provider call.
"""

from chatstream.core.config.constants import ErrorKind
from chatstream.core.exceptions.base import ChatStreamError


class ValidationError(ChatStreamError):
    """
    Raised when request validation fails.

    This is the base class for all validation-related errors.
    """

    kind = ErrorKind.VALIDATION
    status_code = 422


class InvalidInputError(ValidationError):
    """
    Raised when input validation fails.

    Common causes:
    - Message with neither text nor images
    - Too many images attached
    - Unsupported image type
    """
    pass


class RetryRejectedError(ValidationError):
    """
    Raised when a retry is requested for a conversation that does not end
    on a user turn (empty, or already answered).
    """

    status_code = 400
