"""
Provider Gateway

Holds the primary provider and the optional fallback provider, and builds
both from settings. The gateway does not decide when to fail over; the
orchestrator does, using ``is_rate_limited()`` on the primary's error event.
"""

import asyncio
from collections.abc import AsyncGenerator, Sequence

from chatstream.core.config.constants import (
    RATE_LIMIT_MARKERS,
    ErrorKind,
    ProviderRole,
    Stage,
)
from chatstream.core.config.settings import Settings
from chatstream.core.exceptions import ConfigurationError
from chatstream.core.logging import get_logger, log_stage
from chatstream.llm_stream.models import (
    ConversationTurn,
    ErrorEvent,
    GenerationOptions,
    StreamEvent,
)
from chatstream.llm_stream.providers.base_provider import BaseProvider, ProviderConfig
from chatstream.llm_stream.providers.fake_provider import FakeProvider
from chatstream.llm_stream.providers.gemini_provider import GeminiProvider
from chatstream.llm_stream.providers.openrouter_provider import OpenRouterProvider

logger = get_logger(__name__)

PROVIDER_CLASSES: dict[str, type[BaseProvider]] = {
    "gemini": GeminiProvider,
    "openrouter": OpenRouterProvider,
    "fake": FakeProvider,
}


def is_rate_limited(event: ErrorEvent) -> bool:
    """
    Classify an error event as rate limiting.

    The structured ``kind`` wins; the message markers only cover backends
    that surface 429s as untyped errors.
    """
    if event.kind == ErrorKind.RATE_LIMITED:
        return True
    message = event.message.lower()
    return any(marker.lower() in message for marker in RATE_LIMIT_MARKERS)


class ProviderGateway:
    """
    Uniform streaming access to the primary and fallback providers.

    Usage:
        gateway = build_gateway(get_settings())
        async for event in gateway.stream_primary(turns, options):
            ...
    """

    def __init__(self, primary: BaseProvider, fallback: BaseProvider | None = None):
        self.primary = primary
        self.fallback = fallback

    @property
    def has_fallback(self) -> bool:
        """A fallback only counts when it is configured and distinct from the primary."""
        return self.fallback is not None and self.fallback is not self.primary \
            and self.fallback.name != self.primary.name

    @property
    def fallback_model(self) -> str | None:
        return self.fallback.config.default_model if self.has_fallback else None

    def stream_primary(
        self, messages: Sequence[ConversationTurn], options: GenerationOptions
    ) -> AsyncGenerator[StreamEvent, None]:
        return self.primary.stream_chat(messages, options)

    def stream_fallback(
        self, messages: Sequence[ConversationTurn], options: GenerationOptions
    ) -> AsyncGenerator[StreamEvent, None]:
        """
        Re-issue a context to the fallback.

        Images are stripped and the fallback's own default model is used,
        since the primary's model name means nothing to another backend.
        """
        if not self.has_fallback:
            raise ConfigurationError("No fallback provider configured")
        text_only = [turn.text_only() for turn in messages]
        fallback_options = options.model_copy(update={"model": None})
        return self.fallback.stream_chat(text_only, fallback_options)

    async def health_check(self) -> dict[str, bool]:
        """Probe every configured provider concurrently, keyed by role."""
        roles = [(ProviderRole.PRIMARY, self.primary)]
        if self.has_fallback:
            roles.append((ProviderRole.FALLBACK, self.fallback))
        results = await asyncio.gather(*(provider.health_check() for _, provider in roles))
        return {role.value: healthy for (role, _), healthy in zip(roles, results)}


def _primary_config(settings: Settings) -> ProviderConfig:
    name = settings.LLM_PROVIDER
    if name == "gemini":
        if not settings.GEMINI_API_KEY:
            raise ConfigurationError("GEMINI_API_KEY is required when LLM_PROVIDER=gemini")
        return ProviderConfig(
            name="gemini",
            api_key=settings.GEMINI_API_KEY,
            default_model=settings.GEMINI_MODEL,
            timeout=settings.PROVIDER_TIMEOUT,
        )
    if name == "openrouter":
        if not settings.OPENROUTER_API_KEY:
            raise ConfigurationError("OPENROUTER_API_KEY is required when LLM_PROVIDER=openrouter")
        return _openrouter_config(settings)
    if name == "fake":
        return ProviderConfig(name="fake", default_model="fake-model")
    raise ConfigurationError(f"Unknown LLM_PROVIDER '{name}'", details={"provider": name})


def _openrouter_config(settings: Settings) -> ProviderConfig:
    return ProviderConfig(
        name="openrouter",
        api_key=settings.OPENROUTER_API_KEY,
        default_model=settings.OPENROUTER_MODEL,
        base_url=settings.OPENROUTER_BASE_URL,
        timeout=settings.PROVIDER_TIMEOUT,
        supports_media=False,
    )


def build_gateway(settings: Settings) -> ProviderGateway:
    """
    Build the gateway from settings.

    The OpenRouter fallback is enabled only when OPENROUTER_API_KEY is set
    and OpenRouter is not already the primary.

    Raises:
        ConfigurationError: Unknown provider or missing credentials
    """
    primary_config = _primary_config(settings)
    primary = PROVIDER_CLASSES[primary_config.name](primary_config)

    fallback = None
    if settings.OPENROUTER_API_KEY and primary_config.name != "openrouter":
        fallback = OpenRouterProvider(_openrouter_config(settings))

    log_stage(
        logger,
        Stage.PROVIDER,
        "Provider gateway ready",
        primary=primary.name,
        fallback=fallback.name if fallback else None,
    )
    return ProviderGateway(primary, fallback)
