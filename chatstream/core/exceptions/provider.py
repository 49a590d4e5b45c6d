"""
LLM Provider Exceptions

All exceptions related to language-model provider operations (Gemini,
OpenRouter). Providers raise these from inside their streaming loop; the
provider base class converts them into a single ``error`` event.
"""

from chatstream.core.config.constants import ErrorKind
from chatstream.core.exceptions.base import ChatStreamError


class ProviderError(ChatStreamError):
    """Base exception for LLM provider errors."""

    kind = ErrorKind.PROVIDER_ERROR
    status_code = 502


class ProviderRateLimitedError(ProviderError):
    """
    Raised when a provider reports HTTP 429 / resource exhaustion.

    This is the only provider failure that triggers failover to the
    fallback provider.
    """

    kind = ErrorKind.RATE_LIMITED
    status_code = 429


class ProviderAuthenticationError(ProviderError):
    """
    Raised when LLM provider authentication fails.

    Common causes:
    - Invalid API key
    - Expired API key
    """
    pass


class ProviderNotAvailableError(ProviderError):
    """
    Raised when LLM provider is not reachable.

    Common causes:
    - Provider API is down
    - Network connectivity issues
    """

    kind = ErrorKind.UNAVAILABLE
    status_code = 503


class ProviderAPIError(ProviderError):
    """
    Raised when LLM provider API returns an error.

    Common causes:
    - Invalid request format
    - Unsupported model
    - Content policy violation
    """
    pass
