"""
Exception Module

Structured exception hierarchy for the chat streaming service.

Module Structure:
-----------------
- **base.py**: ChatStreamError base class + ConfigurationError
- **validation.py**: Request validation and retry precondition
- **access.py**: Conversation ownership
- **provider.py**: LLM provider exceptions
- **retrieval.py**: Embedding and chunk-store exceptions
- **persistence.py**: Message store exceptions
- **streaming.py**: Stream lifecycle exceptions

Usage:
------
```python
from chatstream.core.exceptions import ProviderRateLimitedError, PersistenceError
```
"""

from chatstream.core.exceptions.access import (
    AccessError,
    ConversationNotFoundError,
    ForbiddenError,
)
from chatstream.core.exceptions.base import ChatStreamError, ConfigurationError
from chatstream.core.exceptions.persistence import PersistenceError
from chatstream.core.exceptions.provider import (
    ProviderAPIError,
    ProviderAuthenticationError,
    ProviderError,
    ProviderNotAvailableError,
    ProviderRateLimitedError,
)
from chatstream.core.exceptions.retrieval import EmbeddingError, RetrievalError
from chatstream.core.exceptions.streaming import ServiceShuttingDownError, StreamingError
from chatstream.core.exceptions.validation import (
    InvalidInputError,
    RetryRejectedError,
    ValidationError,
)

__all__ = [
    # Base
    "ChatStreamError",
    "ConfigurationError",
    # Validation
    "ValidationError",
    "InvalidInputError",
    "RetryRejectedError",
    # Access
    "AccessError",
    "ConversationNotFoundError",
    "ForbiddenError",
    # Provider
    "ProviderError",
    "ProviderRateLimitedError",
    "ProviderAuthenticationError",
    "ProviderNotAvailableError",
    "ProviderAPIError",
    # Retrieval
    "RetrievalError",
    "EmbeddingError",
    # Persistence
    "PersistenceError",
    # Streaming
    "StreamingError",
    "ServiceShuttingDownError",
]
