"""
Stream Event Vocabulary

The wire contract between the orchestrator and its caller, and between each
provider and the orchestrator. A logical stream is closed by exactly one
``done`` or ``error`` event; ``citation`` events precede the first ``token``.

Every event can render itself as one Server-Sent Events frame:

    event: token
    data: {"text": "Hello"}

"""

from typing import Annotated, Any, Literal, Union

import orjson
from pydantic import BaseModel, Field

from chatstream.core.config.constants import ErrorKind, EventType
from chatstream.core.exceptions import ChatStreamError


class _StreamEventBase(BaseModel):
    model_config = {"frozen": True}

    event: EventType

    @property
    def is_terminal(self) -> bool:
        return self.event in (EventType.DONE, EventType.ERROR)

    def payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude={"event"}, exclude_none=True)

    def format(self) -> str:
        """Format as SSE protocol string."""
        data = orjson.dumps(self.payload()).decode()
        return f"event: {self.event.value}\ndata: {data}\n\n"


class TokenEvent(_StreamEventBase):
    event: Literal[EventType.TOKEN] = EventType.TOKEN
    text: str


class CitationEvent(_StreamEventBase):
    event: Literal[EventType.CITATION] = EventType.CITATION
    source: str
    page: int
    relevance: float


class InfoEvent(_StreamEventBase):
    event: Literal[EventType.INFO] = EventType.INFO
    message: str


class TitleEvent(_StreamEventBase):
    event: Literal[EventType.TITLE] = EventType.TITLE
    title: str


class TokenUsage(BaseModel):
    model_config = {"frozen": True}

    prompt_tokens: int | None = None
    completion_tokens: int | None = None


class DoneEvent(_StreamEventBase):
    event: Literal[EventType.DONE] = EventType.DONE
    finish_reason: str = "stop"
    usage: TokenUsage | None = None
    provider_label: str | None = None


class ErrorEvent(_StreamEventBase):
    event: Literal[EventType.ERROR] = EventType.ERROR
    message: str
    kind: ErrorKind = ErrorKind.INTERNAL
    request_id: str | None = None

    @classmethod
    def from_exception(cls, exc: Exception, request_id: str | None = None) -> "ErrorEvent":
        """Build an error event from a raised exception, keeping its kind when typed."""
        if isinstance(exc, ChatStreamError):
            return cls(message=exc.message, kind=exc.kind, request_id=request_id or exc.request_id)
        return cls(message=str(exc) or type(exc).__name__, kind=ErrorKind.INTERNAL, request_id=request_id)


StreamEvent = Annotated[
    Union[TokenEvent, CitationEvent, InfoEvent, TitleEvent, DoneEvent, ErrorEvent],
    Field(discriminator="event"),
]
