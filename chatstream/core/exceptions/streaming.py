"""
Streaming Exceptions

All exceptions related to the lifecycle of in-flight streams.
"""

from chatstream.core.config.constants import ErrorKind
from chatstream.core.exceptions.base import ChatStreamError


class StreamingError(ChatStreamError):
    """Base exception for streaming errors."""
    pass


class ServiceShuttingDownError(StreamingError):
    """
    Raised when a stream is opened after graceful shutdown has begun.

    The stream registry stops accepting registrations once it starts
    draining.
    """

    kind = ErrorKind.UNAVAILABLE
    status_code = 503
