import uuid

from pydantic import BaseModel, Field

from chatstream.core.config.constants import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    MAX_IMAGES_PER_MESSAGE,
    MAX_OUTPUT_TOKENS_LIMIT,
    MESSAGE_MAX_LENGTH,
)
from chatstream.llm_stream.models.conversation import GenerationOptions, ImageAttachment


class ChatRequest(BaseModel):
    """
    A new user message to be answered by a streamed assistant turn.

    ``content`` may be empty only when images are attached.
    """

    model_config = {"frozen": True}

    conversation_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    content: str = Field(default="", max_length=MESSAGE_MAX_LENGTH)
    model: str | None = Field(default=None, description="Overrides the conversation model")
    temperature: float = Field(default=DEFAULT_TEMPERATURE, ge=0.0, le=2.0)
    max_tokens: int = Field(default=DEFAULT_MAX_TOKENS, ge=1, le=MAX_OUTPUT_TOKENS_LIMIT)
    use_documents: bool = Field(default=False, description="Augment with retrieved passages")
    images: tuple[ImageAttachment, ...] = Field(default=(), max_length=MAX_IMAGES_PER_MESSAGE)
    request_id: str = Field(default_factory=lambda: str(uuid.uuid4()))

    def generation_options(self, conversation_model: str | None) -> GenerationOptions:
        return GenerationOptions(
            model=self.model or conversation_model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )


class RetryRequest(BaseModel):
    """Re-stream the answer to the trailing user message of a conversation."""

    model_config = {"frozen": True}

    conversation_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    temperature: float = Field(default=DEFAULT_TEMPERATURE, ge=0.0, le=2.0)
    max_tokens: int = Field(default=DEFAULT_MAX_TOKENS, ge=1, le=MAX_OUTPUT_TOKENS_LIMIT)
    use_documents: bool = Field(default=False)
    request_id: str = Field(default_factory=lambda: str(uuid.uuid4()))

    def generation_options(self, conversation_model: str | None) -> GenerationOptions:
        return GenerationOptions(
            model=conversation_model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
