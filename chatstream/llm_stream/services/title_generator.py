"""Best-effort conversation titles from the first user message."""

import asyncio

from chatstream.core.config.constants import (
    TITLE_FALLBACK,
    TITLE_MAX_LENGTH,
    TITLE_MAX_OUTPUT_TOKENS,
    TITLE_PROMPT,
    TITLE_TEMPERATURE,
    MessageRole,
    Stage,
)
from chatstream.core.logging import get_logger, log_stage
from chatstream.llm_stream.models import ConversationTurn, GenerationOptions
from chatstream.llm_stream.providers import BaseProvider

logger = get_logger(__name__)


class TitleGenerator:
    """
    Generates a short title with a single non-streaming provider call.

    Never raises (except on cancellation): any failure yields the fallback
    title.
    """

    def __init__(self, provider: BaseProvider, model: str | None = None):
        self.provider = provider
        self.model = model

    async def generate(self, first_user_message: str) -> str:
        turns = [
            ConversationTurn(role=MessageRole.SYSTEM, text=TITLE_PROMPT),
            ConversationTurn(role=MessageRole.USER, text=first_user_message),
        ]
        options = GenerationOptions(
            model=self.model,
            temperature=TITLE_TEMPERATURE,
            max_tokens=TITLE_MAX_OUTPUT_TOKENS,
        )
        try:
            text = await self.provider.generate_text(turns, options)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log_stage(logger, Stage.TITLE, "Title generation failed, using fallback",
                      level="warning", error=str(e))
            return TITLE_FALLBACK

        title = text.strip()[:TITLE_MAX_LENGTH]
        log_stage(logger, Stage.TITLE, "Auto-title generated", level="debug", title=title)
        return title or TITLE_FALLBACK
