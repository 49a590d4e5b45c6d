"""Pydantic models for conversations, requests and stream events."""

from chatstream.llm_stream.models.chat_request import ChatRequest, RetryRequest
from chatstream.llm_stream.models.conversation import (
    ConversationTurn,
    GenerationOptions,
    ImageAttachment,
)
from chatstream.llm_stream.models.events import (
    CitationEvent,
    DoneEvent,
    ErrorEvent,
    InfoEvent,
    StreamEvent,
    TitleEvent,
    TokenEvent,
    TokenUsage,
)

__all__ = [
    "ChatRequest",
    "RetryRequest",
    "ConversationTurn",
    "GenerationOptions",
    "ImageAttachment",
    "StreamEvent",
    "TokenEvent",
    "CitationEvent",
    "InfoEvent",
    "TitleEvent",
    "DoneEvent",
    "ErrorEvent",
    "TokenUsage",
]
