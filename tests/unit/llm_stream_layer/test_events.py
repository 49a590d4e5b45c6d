"""Unit tests for the stream event vocabulary and its SSE rendering."""

import orjson
import pytest
from pydantic import TypeAdapter, ValidationError

from chatstream.core.config.constants import ErrorKind, EventType
from chatstream.core.exceptions import PersistenceError
from chatstream.llm_stream.models import (
    CitationEvent,
    DoneEvent,
    ErrorEvent,
    InfoEvent,
    StreamEvent,
    TitleEvent,
    TokenEvent,
    TokenUsage,
)


def parse_frame(frame: str) -> tuple[str, dict]:
    event_line, data_line = frame.rstrip("\n").split("\n")
    return event_line.removeprefix("event: "), orjson.loads(data_line.removeprefix("data: "))


@pytest.mark.unit
class TestEventFormat:

    def test_token_frame(self):
        frame = TokenEvent(text="Hello").format()

        assert frame == 'event: token\ndata: {"text":"Hello"}\n\n'

    def test_citation_frame(self):
        name, data = parse_frame(
            CitationEvent(source="notes.pdf", page=4, relevance=0.87).format()
        )

        assert name == "citation"
        assert data == {"source": "notes.pdf", "page": 4, "relevance": 0.87}

    def test_done_frame_omits_missing_fields(self):
        name, data = parse_frame(DoneEvent().format())

        assert name == "done"
        assert data == {"finish_reason": "stop"}

    def test_done_frame_with_usage_and_label(self):
        event = DoneEvent(
            usage=TokenUsage(prompt_tokens=12, completion_tokens=3), provider_label="fallback"
        )

        _, data = parse_frame(event.format())

        assert data["usage"] == {"prompt_tokens": 12, "completion_tokens": 3}
        assert data["provider_label"] == "fallback"

    def test_text_with_newlines_stays_on_one_data_line(self):
        frame = TokenEvent(text="line one\nline two").format()

        assert frame.count("\n") == 3
        assert parse_frame(frame)[1]["text"] == "line one\nline two"

    def test_error_frame(self):
        event = ErrorEvent(message="Rate limit", kind=ErrorKind.RATE_LIMITED, request_id="req-1")

        name, data = parse_frame(event.format())

        assert name == "error"
        assert data == {"message": "Rate limit", "kind": "rate_limited", "request_id": "req-1"}


@pytest.mark.unit
class TestEventSemantics:

    @pytest.mark.parametrize(
        "event,terminal",
        [
            (TokenEvent(text="x"), False),
            (CitationEvent(source="a", page=1, relevance=0.5), False),
            (InfoEvent(message="switching"), False),
            (TitleEvent(title="Trip"), False),
            (DoneEvent(), True),
            (ErrorEvent(message="boom"), True),
        ],
    )
    def test_is_terminal(self, event, terminal):
        assert event.is_terminal is terminal

    def test_error_from_typed_exception_keeps_kind(self):
        event = ErrorEvent.from_exception(PersistenceError("store down"), request_id="req-9")

        assert event.kind == ErrorKind.PERSISTENCE
        assert event.message == "store down"
        assert event.request_id == "req-9"

    def test_error_from_untyped_exception_is_internal(self):
        event = ErrorEvent.from_exception(RuntimeError())

        assert event.kind == ErrorKind.INTERNAL
        assert event.message == "RuntimeError"

    def test_discriminated_union_parses_by_event_name(self):
        adapter = TypeAdapter(StreamEvent)

        event = adapter.validate_python({"event": "title", "title": "Trip plans"})

        assert isinstance(event, TitleEvent)
        assert event.event == EventType.TITLE

    def test_events_are_immutable(self):
        event = TokenEvent(text="x")

        with pytest.raises(ValidationError):
            event.text = "y"
