"""
Unit Tests for the Exception Hierarchy

Tests kinds, HTTP status codes, serialization and wrapping of third-party
exceptions.
"""

import pytest

from chatstream.core.config.constants import ErrorKind
from chatstream.core.exceptions import (
    ChatStreamError,
    ConfigurationError,
    ConversationNotFoundError,
    EmbeddingError,
    ForbiddenError,
    InvalidInputError,
    PersistenceError,
    ProviderAPIError,
    ProviderError,
    ProviderNotAvailableError,
    ProviderRateLimitedError,
    RetrievalError,
    RetryRejectedError,
    ServiceShuttingDownError,
    ValidationError,
)


@pytest.mark.unit
class TestChatStreamError:

    def test_to_dict(self):
        error = ChatStreamError("Something broke", request_id="req-1", details={"a": 1})

        assert error.to_dict() == {
            "error_type": "ChatStreamError",
            "kind": "internal",
            "message": "Something broke",
            "request_id": "req-1",
            "details": {"a": 1},
        }

    def test_details_are_copied(self):
        details = {"provider": "gemini"}
        error = ProviderError("boom", details=details)

        error.with_context(model="flash")

        assert details == {"provider": "gemini"}
        assert error.details == {"provider": "gemini", "model": "flash"}

    def test_from_exception_wraps_original(self):
        original = ConnectionError("Connection refused")

        error = PersistenceError.from_exception(
            original, message="Message store unavailable", operation="insert"
        )

        assert isinstance(error, PersistenceError)
        assert error.message == "Message store unavailable"
        assert error.details == {
            "original_error": "ConnectionError",
            "original_message": "Connection refused",
            "operation": "insert",
        }

    def test_repr_includes_context(self):
        error = ForbiddenError("Nope", request_id="req-2", details={"conversation_id": "c1"})

        assert repr(error) == (
            "ForbiddenError(message='Nope', request_id='req-2', "
            "details={'conversation_id': 'c1'})"
        )


@pytest.mark.unit
class TestKindsAndStatusCodes:

    @pytest.mark.parametrize(
        "exc_class,kind,status_code",
        [
            (ConfigurationError, ErrorKind.INTERNAL, 500),
            (ValidationError, ErrorKind.VALIDATION, 422),
            (InvalidInputError, ErrorKind.VALIDATION, 422),
            (RetryRejectedError, ErrorKind.VALIDATION, 400),
            (ConversationNotFoundError, ErrorKind.NOT_FOUND, 404),
            (ForbiddenError, ErrorKind.FORBIDDEN, 403),
            (ProviderError, ErrorKind.PROVIDER_ERROR, 502),
            (ProviderAPIError, ErrorKind.PROVIDER_ERROR, 502),
            (ProviderRateLimitedError, ErrorKind.RATE_LIMITED, 429),
            (ProviderNotAvailableError, ErrorKind.UNAVAILABLE, 503),
            (PersistenceError, ErrorKind.PERSISTENCE, 503),
            (ServiceShuttingDownError, ErrorKind.UNAVAILABLE, 503),
            (RetrievalError, ErrorKind.UNAVAILABLE, 503),
            (EmbeddingError, ErrorKind.UNAVAILABLE, 503),
        ],
    )
    def test_mapping(self, exc_class, kind, status_code):
        error = exc_class("message")

        assert error.kind == kind
        assert error.status_code == status_code

    def test_hierarchy(self):
        assert issubclass(ProviderRateLimitedError, ProviderError)
        assert issubclass(EmbeddingError, RetrievalError)
        assert issubclass(RetryRejectedError, ValidationError)
        assert issubclass(PersistenceError, ChatStreamError)
