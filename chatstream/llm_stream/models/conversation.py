"""
Conversation models shared by the context assembler, the providers and the
orchestrator.

A ConversationTurn is immutable once constructed; a sequence of turns is in
chronological order.
"""

from pydantic import BaseModel, Field, field_validator

from chatstream.core.config.constants import (
    ALLOWED_IMAGE_MIME_TYPES,
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    MAX_OUTPUT_TOKENS_LIMIT,
    MessageRole,
)


class ImageAttachment(BaseModel):
    """Binary image attached to the live user turn."""

    model_config = {"frozen": True}

    data: bytes = Field(..., min_length=1)
    mime_type: str

    @field_validator("mime_type")
    @classmethod
    def validate_mime_type(cls, v: str) -> str:
        if v not in ALLOWED_IMAGE_MIME_TYPES:
            raise ValueError(f"Unsupported image type '{v}'")
        return v


class ConversationTurn(BaseModel):
    """One message of a conversation as sent to a provider."""

    model_config = {"frozen": True}

    role: MessageRole
    text: str
    images: tuple[ImageAttachment, ...] = ()

    @property
    def has_media(self) -> bool:
        return bool(self.images)

    def text_only(self) -> "ConversationTurn":
        """Return this turn with any binary media stripped."""
        if not self.has_media:
            return self
        return ConversationTurn(role=self.role, text=self.text)


class GenerationOptions(BaseModel):
    """
    Per-request generation options.

    ``model`` of None means "the provider's default model".
    """

    model_config = {"frozen": True}

    model: str | None = None
    temperature: float = Field(default=DEFAULT_TEMPERATURE, ge=0.0, le=2.0)
    max_tokens: int = Field(default=DEFAULT_MAX_TOKENS, ge=1, le=MAX_OUTPUT_TOKENS_LIMIT)
