"""
Retrieval Exceptions

Raised by the embedding providers and the chunk repository. The orchestrator
always recovers from these locally and continues without document context;
only document indexing surfaces them to the caller.
"""

from chatstream.core.config.constants import ErrorKind
from chatstream.core.exceptions.base import ChatStreamError


class RetrievalError(ChatStreamError):
    """Base exception for retrieval errors."""

    kind = ErrorKind.UNAVAILABLE
    status_code = 503


class EmbeddingError(RetrievalError):
    """Raised when the embedding backend fails or returns no vector."""
    pass
