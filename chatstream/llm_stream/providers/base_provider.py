"""
Base Provider Abstract Class

This module defines the abstract base class for all chat providers.
Concrete implementations (Gemini, OpenRouter, fake) inherit from this class.

Architectural Decision: template method around a lazy event sequence
- ``stream_chat()`` is the only public streaming entry point
- Subclasses implement ``_stream_internal()`` and may simply raise
- Whatever happens inside, the caller sees exactly one terminal event
  (``done`` or ``error``) and nothing after it
"""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import AsyncGenerator, Sequence
from contextlib import aclosing
from dataclasses import dataclass

from chatstream.core.config.constants import EventType, Stage
from chatstream.core.exceptions import ProviderError
from chatstream.core.logging import get_logger, log_stage
from chatstream.llm_stream.models import (
    ConversationTurn,
    DoneEvent,
    ErrorEvent,
    GenerationOptions,
    StreamEvent,
)

logger = get_logger(__name__)


@dataclass
class ProviderConfig:
    """
    Configuration for a chat provider.

    Attributes:
        name: Provider name (gemini, openrouter, fake)
        api_key: API key for authentication
        default_model: Model used when options do not name one
        base_url: Base URL for OpenAI-compatible APIs
        timeout: Request timeout in seconds
        supports_media: False for text-only backends; images are stripped
    """
    name: str
    api_key: str | None = None
    default_model: str = ""
    base_url: str | None = None
    timeout: int = 60
    supports_media: bool = True


class BaseProvider(ABC):
    """
    Abstract base class for chat providers.

    Subclasses must implement:
    - _stream_internal(): provider-specific streaming, yielding token events
      and optionally a final ``done`` with usage; errors are raised
    - health_check(): cheap reachability probe returning a bool

    Usage:
        async for event in provider.stream_chat(turns, GenerationOptions()):
            if event.event == EventType.TOKEN:
                ...
    """

    def __init__(self, config: ProviderConfig):
        self.config = config
        self.name = config.name

        logger.info(
            "Provider initialized",
            stage=Stage.PROVIDER.value,
            provider=config.name,
            default_model=config.default_model,
        )

    def resolve_model(self, options: GenerationOptions) -> str:
        return options.model or self.config.default_model

    async def stream_chat(
        self,
        messages: Sequence[ConversationTurn],
        options: GenerationOptions,
    ) -> AsyncGenerator[StreamEvent, None]:
        """
        Stream a response as a lazy sequence of events.

        The sequence always ends with exactly one ``done`` or ``error`` event.
        Exceptions raised by the backend are converted into that single
        ``error`` event; cancellation propagates untouched.

        Args:
            messages: Assembled context, chronological
            options: Model, temperature and max tokens

        Yields:
            StreamEvent: token events followed by one terminal event
        """
        model = self.resolve_model(options)
        if not self.config.supports_media and any(turn.has_media for turn in messages):
            log_stage(logger, Stage.PROVIDER, "Dropping images for text-only provider",
                      level="debug", provider=self.name)
            messages = [turn.text_only() for turn in messages]

        log_stage(
            logger,
            Stage.PROVIDER,
            "Starting stream",
            provider=self.name,
            model=model,
            message_count=len(messages),
        )

        token_count = 0
        try:
            async with aclosing(self._stream_internal(messages, model, options)) as events:
                async for event in events:
                    if event.event == EventType.TOKEN:
                        token_count += 1
                    yield event
                    if event.is_terminal:
                        return
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log_stage(
                logger,
                Stage.PROVIDER,
                "Stream failed",
                level="error",
                provider=self.name,
                model=model,
                error_type=type(e).__name__,
                error=str(e),
            )
            yield ErrorEvent.from_exception(e)
            return

        log_stage(
            logger, Stage.PROVIDER, "Stream completed", provider=self.name, token_count=token_count
        )
        yield DoneEvent()

    async def generate_text(
        self,
        messages: Sequence[ConversationTurn],
        options: GenerationOptions,
    ) -> str:
        """
        Non-streaming completion built on ``stream_chat``.

        Raises:
            ProviderError: If the stream ends with an error event
        """
        parts: list[str] = []
        async with aclosing(self.stream_chat(messages, options)) as events:
            async for event in events:
                if event.event == EventType.TOKEN:
                    parts.append(event.text)
                elif event.event == EventType.ERROR:
                    raise ProviderError(event.message, details={"provider": self.name})
        return "".join(parts)

    @abstractmethod
    def _stream_internal(
        self,
        messages: Sequence[ConversationTurn],
        model: str,
        options: GenerationOptions,
    ) -> AsyncGenerator[StreamEvent, None]:
        """
        Internal streaming implementation.

        Subclasses implement this as an async generator with
        provider-specific logic, raising ``ProviderError`` subclasses on
        failure.
        """

    @abstractmethod
    async def health_check(self) -> bool:
        """Return True if the backend is reachable with the configured credentials."""
