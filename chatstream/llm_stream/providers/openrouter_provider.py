"""
OpenRouter Chat Provider

Fallback chat backend. OpenRouter speaks the OpenAI chat-completions protocol,
so the official AsyncOpenAI client is pointed at the OpenRouter base URL. The
fallback is text-only: image attachments never reach it.
"""

from collections.abc import AsyncGenerator, Sequence

from openai import (
    APIConnectionError,
    APIError,
    APITimeoutError,
    AsyncOpenAI,
    AuthenticationError,
    RateLimitError,
)

from chatstream.core.config.constants import Stage
from chatstream.core.exceptions import (
    ProviderAPIError,
    ProviderAuthenticationError,
    ProviderNotAvailableError,
    ProviderRateLimitedError,
)
from chatstream.core.logging import get_logger, log_stage
from chatstream.llm_stream.models import (
    ConversationTurn,
    DoneEvent,
    GenerationOptions,
    StreamEvent,
    TokenEvent,
    TokenUsage,
)
from chatstream.llm_stream.providers.base_provider import BaseProvider, ProviderConfig

logger = get_logger(__name__)


class OpenRouterProvider(BaseProvider):
    """
    OpenAI-compatible provider targeting OpenRouter.

    This class manages the AsyncOpenAI client lifecycle and translates
    OpenAI SDK exceptions into the internal exception hierarchy.
    """

    def __init__(self, config: ProviderConfig, client: AsyncOpenAI | None = None):
        super().__init__(config)
        self.client = client or AsyncOpenAI(
            api_key=config.api_key,
            base_url=config.base_url,
            timeout=config.timeout,
            max_retries=0,  # failover is the retry policy
        )

    async def _stream_internal(
        self,
        messages: Sequence[ConversationTurn],
        model: str,
        options: GenerationOptions,
    ) -> AsyncGenerator[StreamEvent, None]:
        payload = [{"role": turn.role.value, "content": turn.text} for turn in messages]

        try:
            stream_response = await self.client.chat.completions.create(
                model=model,
                messages=payload,
                temperature=options.temperature,
                max_tokens=options.max_tokens,
                stream=True,
            )

            finish_reason = None
            usage = None
            # Releases the HTTP connection on early exit
            async with stream_response:
                async for chunk in stream_response:
                    if chunk.choices:
                        choice = chunk.choices[0]
                        if choice.delta and choice.delta.content:
                            yield TokenEvent(text=choice.delta.content)
                        if choice.finish_reason:
                            finish_reason = choice.finish_reason
                    if getattr(chunk, "usage", None):
                        usage = TokenUsage(
                            prompt_tokens=chunk.usage.prompt_tokens,
                            completion_tokens=chunk.usage.completion_tokens,
                        )

            yield DoneEvent(finish_reason=finish_reason or "stop", usage=usage)

        except AuthenticationError as auth_error:
            raise ProviderAuthenticationError(
                "Invalid OpenRouter API key", details={"provider": self.name}
            ) from auth_error

        except RateLimitError as rate_error:
            log_stage(logger, Stage.PROVIDER, "OpenRouter rate limit exceeded", level="warning",
                      error=str(rate_error))
            raise ProviderRateLimitedError(
                f"OpenRouter rate limit exceeded (429): {rate_error}",
                details={"provider": self.name},
            ) from rate_error

        except (APIConnectionError, APITimeoutError) as conn_error:
            raise ProviderNotAvailableError(
                f"OpenRouter not reachable: {conn_error}", details={"provider": self.name}
            ) from conn_error

        except APIError as api_error:
            raise ProviderAPIError(
                f"OpenRouter API error: {api_error}", details={"provider": self.name}
            ) from api_error

    async def health_check(self) -> bool:
        try:
            await self.client.models.list()
        except APIError as e:
            log_stage(logger, Stage.PROVIDER, "OpenRouter health check failed", level="warning",
                      error=str(e))
            return False
        return True
