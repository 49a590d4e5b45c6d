import asyncio
import random
from collections.abc import AsyncGenerator, Sequence

from chatstream.core.config.constants import CHARS_PER_TOKEN, MessageRole
from chatstream.core.exceptions import ProviderAPIError
from chatstream.llm_stream.models import (
    ConversationTurn,
    DoneEvent,
    GenerationOptions,
    StreamEvent,
    TokenEvent,
    TokenUsage,
)
from chatstream.llm_stream.providers.base_provider import BaseProvider, ProviderConfig

_LOREM = (
    "Lorem ipsum dolor sit amet, consectetur adipiscing elit. "
    "Sed do eiusmod tempor incididunt ut labore et dolore magna aliqua. "
    "Ut enim ad minim veniam, quis nostrud exercitation ullamco laboris."
)


class FakeProvider(BaseProvider):
    """
    A fake chat provider for local development and demos.

    Echoes the latest user turn followed by filler text, chunked into
    token-sized pieces with configurable latency.
    """

    def __init__(
        self,
        config: ProviderConfig,
        min_latency: float = 0.02,
        max_latency: float = 0.08,
        failure_rate: float = 0.0,
    ):
        super().__init__(config)
        self.min_latency = min_latency
        self.max_latency = max_latency
        self.failure_rate = failure_rate

    async def _stream_internal(
        self,
        messages: Sequence[ConversationTurn],
        model: str,
        options: GenerationOptions,
    ) -> AsyncGenerator[StreamEvent, None]:
        response_text = self._generate_response_content(messages)
        chunks = self._chunk_text(response_text)

        for chunk_text in chunks:
            if self.max_latency > 0:
                await asyncio.sleep(random.uniform(self.min_latency, self.max_latency))
            if self.failure_rate > 0 and random.random() < self.failure_rate:
                raise ProviderAPIError("Simulated provider failure", details={"provider": self.name})
            yield TokenEvent(text=chunk_text)

        prompt_chars = sum(len(turn.text) for turn in messages)
        yield DoneEvent(
            usage=TokenUsage(
                prompt_tokens=-(-prompt_chars // CHARS_PER_TOKEN),
                completion_tokens=len(chunks),
            )
        )

    async def health_check(self) -> bool:
        return True

    def _generate_response_content(self, messages: Sequence[ConversationTurn]) -> str:
        latest = next(
            (turn.text for turn in reversed(messages) if turn.role == MessageRole.USER), ""
        )
        if not latest:
            return _LOREM
        return f"You said: {latest[:200]}. {_LOREM}"

    def _chunk_text(self, text: str) -> list[str]:
        return [text[i:i + CHARS_PER_TOKEN] for i in range(0, len(text), CHARS_PER_TOKEN)]
