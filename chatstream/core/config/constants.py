"""
System Constants and Enumerations

This module defines system-wide constants and enumerations used across
the chat streaming service: stage identifiers for structured logging,
the stream event vocabulary, error kinds, and default limits.

Constants that mirror configurable settings are the defaults used when no
Settings instance is at hand (unit tests, library use).
"""

from enum import Enum

# ============================================================================
# Stage Identifiers (for structured logging)
# ============================================================================


class Stage(str, Enum):
    """
    Orchestration stages for structured logging.

    Format: {SEQUENCE}_{DESCRIPTIVE_NAME}

    Each stage corresponds to one state transition of a chat stream:
    Idle -> ContextBuilt -> Streaming(primary) -> [Streaming(fallback)]
    -> Finalizing -> Closed.
    """

    REQUEST_VALIDATION = "1.0_REQUEST_VALIDATION"
    CONTEXT_BUILD = "1.1_CONTEXT_BUILD"
    RETRIEVAL = "1.2_RETRIEVAL"
    PLACEHOLDER = "2.0_PLACEHOLDER_INSERT"
    PRIMARY_STREAM = "3.0_PRIMARY_STREAM"
    FAILOVER = "3.1_FAILOVER"
    FINALIZE = "4.0_FINALIZE"
    TITLE = "5.0_TITLE_GENERATION"
    CLEANUP = "6.0_CLEANUP"

    # Cross-cutting
    REGISTRY = "R_STREAM_REGISTRY"
    PROVIDER = "P_PROVIDER"
    EMBEDDING = "E_EMBEDDING"
    STORE = "S_STORE"


# ============================================================================
# Stream Event Vocabulary
# ============================================================================


class EventType(str, Enum):
    """Names of the events a chat stream can emit."""

    TOKEN = "token"
    CITATION = "citation"
    INFO = "info"
    TITLE = "title"
    DONE = "done"
    ERROR = "error"


class ErrorKind(str, Enum):
    """
    Structured classification carried by every ``error`` event.

    RATE_LIMITED is the only kind that triggers provider failover.
    """

    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    RATE_LIMITED = "rate_limited"
    PROVIDER_ERROR = "provider_error"
    PERSISTENCE = "persistence"
    UNAVAILABLE = "unavailable"
    INTERNAL = "internal"


class MessageRole(str, Enum):
    """Author of a conversation turn."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class MessageStatus(str, Enum):
    """Lifecycle status of a persisted message."""

    STREAMING = "streaming"
    DONE = "done"


class DocumentStatus(str, Enum):
    """Indexing status of an uploaded document; only INDEXED is searchable."""

    PROCESSING = "processing"
    INDEXED = "indexed"
    FAILED = "failed"


class ProviderRole(str, Enum):
    """Role a provider plays inside the gateway."""

    PRIMARY = "primary"
    FALLBACK = "fallback"


# ============================================================================
# Context Budget
# ============================================================================

# ~1 token per 4 characters of English text
CHARS_PER_TOKEN = 4

DEFAULT_MAX_CONTEXT_TOKENS = 128_000
DEFAULT_RESPONSE_RESERVE_TOKENS = 8_192


# ============================================================================
# Generation Defaults and Request Limits
# ============================================================================

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 4096

MESSAGE_MAX_LENGTH = 32_000
MAX_OUTPUT_TOKENS_LIMIT = 32_000
MAX_IMAGES_PER_MESSAGE = 5
ALLOWED_IMAGE_MIME_TYPES = ("image/png", "image/jpeg", "image/gif", "image/webp")


# ============================================================================
# Retrieval
# ============================================================================

DEFAULT_RAG_TOP_K = 5
RELEVANCE_DECIMALS = 2
DEFAULT_EMBEDDING_BATCH_CONCURRENCY = 5

RAG_SYSTEM_PROMPT = (
    "You are a helpful assistant with access to the user's documents.\n"
    "When answering questions, cite your sources using [Source: filename, page X] format.\n"
    "If the retrieved documents don't contain relevant information, say so honestly."
)
RAG_PASSAGE_SEPARATOR = "\n\n---\n\n"


# ============================================================================
# Provider Failover
# ============================================================================

# Substrings that mark an untyped provider error as rate limiting
RATE_LIMIT_MARKERS = ("429", "RESOURCE_EXHAUSTED", "rate limit")

FAILOVER_INFO_MESSAGE = "Rate limit reached. Switching to backup model..."
RATE_LIMITED_NO_FALLBACK_MESSAGE = "Rate limit reached. Please wait a moment and try again."
BOTH_PROVIDERS_FAILED_MESSAGE = "Both primary and backup models failed. Please try again later."
FALLBACK_PROVIDER_LABEL = "fallback"
STREAM_INTERRUPTED_MESSAGE = "The service interrupted this response. Please try again."


# ============================================================================
# Title Generation
# ============================================================================

TITLE_PROMPT = (
    "Generate a short title (max 6 words) for this conversation.\n"
    "Return ONLY the title, no quotes, no explanation."
)
TITLE_FALLBACK = "New conversation"
TITLE_MAX_LENGTH = 100
TITLE_TEMPERATURE = 0.3
TITLE_MAX_OUTPUT_TOKENS = 30


# ============================================================================
# HTTP Headers
# ============================================================================

HEADER_REQUEST_ID = "X-Request-ID"
HEADER_USER_ID = "X-User-ID"
