"""
Persistence Exceptions

Raised by message stores when the backing store is unavailable. Fatal to the
request: no placeholder can be safely created or finalized.
"""

from chatstream.core.config.constants import ErrorKind
from chatstream.core.exceptions.base import ChatStreamError


class PersistenceError(ChatStreamError):
    """Raised when the message store cannot complete an operation."""

    kind = ErrorKind.PERSISTENCE
    status_code = 503
