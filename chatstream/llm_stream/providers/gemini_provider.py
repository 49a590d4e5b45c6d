"""
Google Gemini Chat Provider

Primary chat backend built on the google-generativeai SDK. System turns are
folded into the model's ``system_instruction``; user and assistant turns map
to ``user`` / ``model`` contents, with image attachments sent as inline parts.
"""

import asyncio
from collections.abc import AsyncGenerator, Sequence

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions

from chatstream.core.config.constants import MessageRole, Stage
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


def build_gemini_request(
    messages: Sequence[ConversationTurn],
) -> tuple[str | None, list[dict]]:
    """
    Split turns into a system instruction and Gemini ``contents``.

    Returns:
        (system_instruction or None, contents)
    """
    system_parts = [turn.text for turn in messages if turn.role == MessageRole.SYSTEM]
    contents = []
    for turn in messages:
        if turn.role == MessageRole.SYSTEM:
            continue
        parts: list = [turn.text] if turn.text else []
        parts.extend({"mime_type": image.mime_type, "data": image.data} for image in turn.images)
        contents.append({
            "role": "model" if turn.role == MessageRole.ASSISTANT else "user",
            "parts": parts,
        })
    system_instruction = "\n\n".join(system_parts) if system_parts else None
    return system_instruction, contents


def _chunk_text(chunk) -> str:
    # .text raises when a chunk carries no text part (e.g. a bare finish chunk)
    try:
        return chunk.text
    except ValueError:
        return ""


def _finish_reason(chunk) -> str | None:
    candidates = getattr(chunk, "candidates", None)
    if not candidates:
        return None
    reason = candidates[0].finish_reason
    name = getattr(reason, "name", None)
    if not name or name == "FINISH_REASON_UNSPECIFIED":
        return None
    return name.lower()


class GeminiProvider(BaseProvider):
    """
    Concrete implementation of the Google Gemini chat provider.

    STAGE-P: Gemini provider operations
    """

    def __init__(self, config: ProviderConfig):
        super().__init__(config)
        # The SDK is configured globally; one key per service instance.
        genai.configure(api_key=config.api_key)

    def _model(self, model: str, options: GenerationOptions, system_instruction: str | None):
        return genai.GenerativeModel(
            model,
            system_instruction=system_instruction,
            generation_config=genai.GenerationConfig(
                temperature=options.temperature,
                max_output_tokens=options.max_tokens,
            ),
        )

    async def _stream_internal(
        self,
        messages: Sequence[ConversationTurn],
        model: str,
        options: GenerationOptions,
    ) -> AsyncGenerator[StreamEvent, None]:
        system_instruction, contents = build_gemini_request(messages)
        generative_model = self._model(model, options, system_instruction)

        try:
            response = await generative_model.generate_content_async(
                contents,
                stream=True,
                request_options={"timeout": self.config.timeout},
            )

            finish_reason = None
            async for chunk in response:
                text = _chunk_text(chunk)
                if text:
                    yield TokenEvent(text=text)
                finish_reason = _finish_reason(chunk) or finish_reason

            usage = None
            metadata = getattr(response, "usage_metadata", None)
            if metadata is not None:
                usage = TokenUsage(
                    prompt_tokens=metadata.prompt_token_count,
                    completion_tokens=metadata.candidates_token_count,
                )
            yield DoneEvent(finish_reason=finish_reason or "stop", usage=usage)

        except google_exceptions.Unauthenticated as auth_error:
            raise ProviderAuthenticationError(
                "Invalid Gemini API key", details={"provider": self.name}
            ) from auth_error

        except google_exceptions.ResourceExhausted as rate_error:
            log_stage(logger, Stage.PROVIDER, "Gemini rate limit exceeded", level="warning",
                      error=str(rate_error))
            raise ProviderRateLimitedError(
                f"Gemini rate limit exceeded: {rate_error}", details={"provider": self.name}
            ) from rate_error

        except (google_exceptions.ServiceUnavailable, google_exceptions.DeadlineExceeded) as conn_error:
            raise ProviderNotAvailableError(
                f"Gemini service unavailable: {conn_error}", details={"provider": self.name}
            ) from conn_error

        except google_exceptions.GoogleAPIError as api_error:
            raise ProviderAPIError(
                f"Gemini API error: {api_error}", details={"provider": self.name}
            ) from api_error

    async def generate_text(
        self,
        messages: Sequence[ConversationTurn],
        options: GenerationOptions,
    ) -> str:
        """Single non-streaming call, used for short side requests such as titles."""
        system_instruction, contents = build_gemini_request(messages)
        generative_model = self._model(self.resolve_model(options), options, system_instruction)
        try:
            response = await generative_model.generate_content_async(
                contents, request_options={"timeout": self.config.timeout}
            )
        except google_exceptions.ResourceExhausted as rate_error:
            raise ProviderRateLimitedError(
                f"Gemini rate limit exceeded: {rate_error}", details={"provider": self.name}
            ) from rate_error
        except google_exceptions.GoogleAPIError as api_error:
            raise ProviderAPIError(
                f"Gemini API error: {api_error}", details={"provider": self.name}
            ) from api_error
        return _chunk_text(response)

    async def health_check(self) -> bool:
        try:
            await asyncio.to_thread(genai.get_model, _qualified(self.config.default_model))
        except Exception as e:
            log_stage(logger, Stage.PROVIDER, "Gemini health check failed", level="warning",
                      error=str(e))
            return False
        return True


def _qualified(model: str) -> str:
    return model if model.startswith("models/") else f"models/{model}"
