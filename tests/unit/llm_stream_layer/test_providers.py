"""
Unit Tests for Chat Providers

Tests the BaseProvider streaming template and the Gemini, OpenRouter and fake
providers with their SDKs mocked out.
"""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from google.api_core import exceptions as google_exceptions
from openai import APIConnectionError, RateLimitError

from chatstream.core.config.constants import ErrorKind, EventType, MessageRole
from chatstream.core.exceptions import ProviderError
from chatstream.llm_stream.models import (
    ConversationTurn,
    DoneEvent,
    GenerationOptions,
    ImageAttachment,
    TokenEvent,
)
from chatstream.llm_stream.providers import (
    FakeProvider,
    GeminiProvider,
    OpenRouterProvider,
    ProviderConfig,
)
from chatstream.llm_stream.providers.gemini_provider import build_gemini_request
from tests.test_fixtures import ProviderTestFactory, ScriptedProvider, collect

PNG = ImageAttachment(data=b"\x89PNG", mime_type="image/png")
OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"


def conversation_turns() -> list[ConversationTurn]:
    return [
        ConversationTurn(role=MessageRole.SYSTEM, text="Be concise."),
        ConversationTurn(role=MessageRole.USER, text="Hi"),
        ConversationTurn(role=MessageRole.ASSISTANT, text="Hello!"),
        ConversationTurn(role=MessageRole.USER, text="What is in this picture?", images=(PNG,)),
    ]


class AsyncStream:
    """Async-iterable stand-in for SDK streaming responses."""

    def __init__(self, chunks, usage_metadata=None):
        self.chunks = chunks
        self.usage_metadata = usage_metadata
        self.closed = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        self.closed = True
        return False

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for chunk in self.chunks:
            yield chunk


class TextlessChunk:
    candidates = []

    @property
    def text(self):
        raise ValueError("No text part")


# ============================================================================
# BaseProvider template
# ============================================================================


@pytest.mark.unit
class TestBaseProviderStreamChat:

    @pytest.mark.asyncio
    async def test_exception_becomes_single_error_event(self):
        provider = ProviderTestFactory.failing_provider(tokens=("par", "tial"))

        events = await collect(provider.stream_chat([], GenerationOptions()))

        assert [e.event for e in events] == [EventType.TOKEN, EventType.TOKEN, EventType.ERROR]
        assert events[-1].kind == ErrorKind.PROVIDER_ERROR
        assert events[-1].message == "Provider failure"

    @pytest.mark.asyncio
    async def test_nothing_after_terminal_event(self):
        provider = ScriptedProvider(
            events=[TokenEvent(text="a"), DoneEvent(), TokenEvent(text="late")]
        )

        events = await collect(provider.stream_chat([], GenerationOptions()))

        assert [e.event for e in events] == [EventType.TOKEN, EventType.DONE]
        assert provider.closed is True

    @pytest.mark.asyncio
    async def test_missing_terminal_event_is_added(self):
        provider = ScriptedProvider(events=[TokenEvent(text="a")])

        events = await collect(provider.stream_chat([], GenerationOptions()))

        assert isinstance(events[-1], DoneEvent)

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self):
        provider = ScriptedProvider(error=asyncio.CancelledError())

        with pytest.raises(asyncio.CancelledError):
            await collect(provider.stream_chat([], GenerationOptions()))

    @pytest.mark.asyncio
    async def test_media_stripped_for_text_only_backend(self):
        provider = ScriptedProvider(events=[DoneEvent()], supports_media=False)

        await collect(provider.stream_chat(conversation_turns(), GenerationOptions()))

        sent = provider.calls[0][0]
        assert not any(turn.has_media for turn in sent)
        assert sent[-1].text == "What is in this picture?"

    @pytest.mark.asyncio
    async def test_text_turns_pass_through_unchanged(self):
        provider = ScriptedProvider(events=[DoneEvent()], supports_media=False)
        turns = conversation_turns()[:3]

        await collect(provider.stream_chat(turns, GenerationOptions()))

        sent = provider.calls[0][0]
        assert all(a is b for a, b in zip(sent, turns))

    @pytest.mark.asyncio
    async def test_model_resolution(self):
        provider = ScriptedProvider(events=[DoneEvent()], default_model="default-model")

        await collect(provider.stream_chat([], GenerationOptions()))
        await collect(provider.stream_chat([], GenerationOptions(model="override")))

        assert [call[2] for call in provider.calls] == ["default-model", "override"]

    @pytest.mark.asyncio
    async def test_generate_text_joins_tokens(self):
        provider = ProviderTestFactory.success_provider(tokens=("Hello", ", ", "world"))

        assert await provider.generate_text([], GenerationOptions()) == "Hello, world"

    @pytest.mark.asyncio
    async def test_generate_text_raises_on_error_event(self):
        provider = ProviderTestFactory.failing_provider()

        with pytest.raises(ProviderError, match="Provider failure"):
            await provider.generate_text([], GenerationOptions())


# ============================================================================
# Gemini
# ============================================================================


@pytest.fixture
def genai_mock():
    with patch("chatstream.llm_stream.providers.gemini_provider.genai") as genai:
        yield genai


@pytest.fixture
def gemini(genai_mock):
    return GeminiProvider(
        ProviderConfig(name="gemini", api_key="test-key", default_model="gemini-2.5-flash")
    )


@pytest.mark.unit
class TestBuildGeminiRequest:

    def test_system_turns_become_instruction(self):
        system_instruction, contents = build_gemini_request(conversation_turns())

        assert system_instruction == "Be concise."
        assert [c["role"] for c in contents] == ["user", "model", "user"]

    def test_images_become_inline_parts(self):
        _, contents = build_gemini_request(conversation_turns())

        assert contents[-1]["parts"] == [
            "What is in this picture?",
            {"mime_type": "image/png", "data": b"\x89PNG"},
        ]

    def test_no_system_turns(self):
        system_instruction, contents = build_gemini_request(conversation_turns()[1:2])

        assert system_instruction is None
        assert contents == [{"role": "user", "parts": ["Hi"]}]


@pytest.mark.unit
class TestGeminiProvider:

    @pytest.mark.asyncio
    async def test_streams_tokens_with_usage(self, gemini, genai_mock):
        # Arrange
        finished = SimpleNamespace(
            text="lo",
            candidates=[SimpleNamespace(finish_reason=SimpleNamespace(name="STOP"))],
        )
        response = AsyncStream(
            [SimpleNamespace(text="Hel", candidates=[]), TextlessChunk(), finished],
            usage_metadata=SimpleNamespace(prompt_token_count=7, candidates_token_count=2),
        )
        model = genai_mock.GenerativeModel.return_value
        model.generate_content_async = AsyncMock(return_value=response)

        # Act
        events = await collect(gemini.stream_chat(conversation_turns(), GenerationOptions()))

        # Assert
        assert [e.text for e in events[:-1]] == ["Hel", "lo"]
        done = events[-1]
        assert done.finish_reason == "stop"
        assert (done.usage.prompt_tokens, done.usage.completion_tokens) == (7, 2)

        args, kwargs = genai_mock.GenerativeModel.call_args
        assert args == ("gemini-2.5-flash",)
        assert kwargs["system_instruction"] == "Be concise."
        assert model.generate_content_async.call_args.kwargs["stream"] is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error,kind",
        [
            (google_exceptions.ResourceExhausted("Quota exceeded"), ErrorKind.RATE_LIMITED),
            (google_exceptions.ServiceUnavailable("Overloaded"), ErrorKind.UNAVAILABLE),
            (google_exceptions.Unauthenticated("Bad key"), ErrorKind.PROVIDER_ERROR),
            (google_exceptions.InvalidArgument("Bad request"), ErrorKind.PROVIDER_ERROR),
        ],
    )
    async def test_sdk_errors_are_classified(self, gemini, genai_mock, error, kind):
        model = genai_mock.GenerativeModel.return_value
        model.generate_content_async = AsyncMock(side_effect=error)

        events = await collect(gemini.stream_chat(conversation_turns(), GenerationOptions()))

        assert len(events) == 1
        assert events[0].kind == kind

    @pytest.mark.asyncio
    async def test_generate_text_single_call(self, gemini, genai_mock):
        model = genai_mock.GenerativeModel.return_value
        model.generate_content_async = AsyncMock(return_value=SimpleNamespace(text="Trip plans"))

        title = await gemini.generate_text(conversation_turns()[:2], GenerationOptions())

        assert title == "Trip plans"
        assert "stream" not in model.generate_content_async.call_args.kwargs

    @pytest.mark.asyncio
    async def test_health_check(self, gemini, genai_mock):
        assert await gemini.health_check() is True
        genai_mock.get_model.assert_called_once_with("models/gemini-2.5-flash")

        genai_mock.get_model.side_effect = google_exceptions.PermissionDenied("Bad key")
        assert await gemini.health_check() is False


# ============================================================================
# OpenRouter
# ============================================================================


def openai_chunk(content=None, finish_reason=None, usage=None):
    choices = []
    if content is not None or finish_reason is not None:
        choices = [SimpleNamespace(delta=SimpleNamespace(content=content),
                                   finish_reason=finish_reason)]
    return SimpleNamespace(choices=choices, usage=usage)


@pytest.fixture
def openai_client():
    client = MagicMock()
    client.chat.completions.create = AsyncMock()
    client.models.list = AsyncMock()
    return client


@pytest.fixture
def openrouter(openai_client):
    config = ProviderConfig(
        name="openrouter",
        api_key="test-key",
        default_model="meta-llama/llama-3.1-8b-instruct:free",
        base_url="https://openrouter.ai/api/v1",
        supports_media=False,
    )
    return OpenRouterProvider(config, client=openai_client)


@pytest.mark.unit
class TestOpenRouterProvider:

    @pytest.mark.asyncio
    async def test_streams_tokens(self, openrouter, openai_client):
        openai_client.chat.completions.create.return_value = AsyncStream([
            openai_chunk("Hi"),
            openai_chunk(" there", finish_reason="stop"),
            openai_chunk(usage=SimpleNamespace(prompt_tokens=5, completion_tokens=2)),
        ])

        events = await collect(openrouter.stream_chat(conversation_turns(), GenerationOptions()))

        assert [e.text for e in events[:-1]] == ["Hi", " there"]
        assert events[-1].finish_reason == "stop"
        assert events[-1].usage.completion_tokens == 2

    @pytest.mark.asyncio
    async def test_request_is_text_only_openai_format(self, openrouter, openai_client):
        openai_client.chat.completions.create.return_value = AsyncStream([])

        await collect(openrouter.stream_chat(
            conversation_turns(), GenerationOptions(temperature=0.2, max_tokens=64)
        ))

        kwargs = openai_client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "meta-llama/llama-3.1-8b-instruct:free"
        assert kwargs["stream"] is True
        assert kwargs["temperature"] == 0.2
        assert kwargs["max_tokens"] == 64
        assert kwargs["messages"] == [
            {"role": "system", "content": "Be concise."},
            {"role": "user", "content": "Hi"},
            {"role": "assistant", "content": "Hello!"},
            {"role": "user", "content": "What is in this picture?"},
        ]

    @pytest.mark.asyncio
    async def test_stream_closed_when_consumer_stops_early(self, openrouter, openai_client):
        stream_response = AsyncStream([openai_chunk("Hi"), openai_chunk(" there")])
        openai_client.chat.completions.create.return_value = stream_response

        events = openrouter.stream_chat(conversation_turns(), GenerationOptions())
        first = await events.__anext__()
        await events.aclose()

        assert first.text == "Hi"
        assert stream_response.closed is True

    @pytest.mark.asyncio
    async def test_rate_limit_error(self, openrouter, openai_client):
        request = httpx.Request("POST", OPENROUTER_URL)
        openai_client.chat.completions.create.side_effect = RateLimitError(
            "Too many requests", response=httpx.Response(429, request=request), body=None
        )

        events = await collect(openrouter.stream_chat(conversation_turns(), GenerationOptions()))

        assert events[0].kind == ErrorKind.RATE_LIMITED
        assert "429" in events[0].message

    @pytest.mark.asyncio
    async def test_connection_error(self, openrouter, openai_client):
        openai_client.chat.completions.create.side_effect = APIConnectionError(
            request=httpx.Request("POST", OPENROUTER_URL)
        )

        events = await collect(openrouter.stream_chat(conversation_turns(), GenerationOptions()))

        assert events[0].kind == ErrorKind.UNAVAILABLE

    @pytest.mark.asyncio
    async def test_health_check(self, openrouter, openai_client):
        assert await openrouter.health_check() is True

        openai_client.models.list.side_effect = APIConnectionError(
            request=httpx.Request("GET", "https://openrouter.ai/api/v1/models")
        )
        assert await openrouter.health_check() is False


# ============================================================================
# Fake
# ============================================================================


@pytest.mark.unit
class TestFakeProvider:

    @staticmethod
    def provider(**kwargs) -> FakeProvider:
        return FakeProvider(
            ProviderConfig(name="fake", default_model="fake-model"),
            min_latency=0, max_latency=0, **kwargs,
        )

    @pytest.mark.asyncio
    async def test_echoes_latest_user_turn(self):
        events = await collect(self.provider().stream_chat(
            conversation_turns()[:2], GenerationOptions()
        ))

        text = "".join(e.text for e in events if e.event == EventType.TOKEN)
        assert text.startswith("You said: Hi. Lorem ipsum")
        assert events[-1].usage.completion_tokens == len(events) - 1

    @pytest.mark.asyncio
    async def test_simulated_failure(self):
        events = await collect(self.provider(failure_rate=1.0).stream_chat(
            conversation_turns(), GenerationOptions()
        ))

        assert [e.event for e in events] == [EventType.ERROR]

    @pytest.mark.asyncio
    async def test_health_check(self):
        assert await self.provider().health_check() is True
