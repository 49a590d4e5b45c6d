"""HTTP request bodies; converted into orchestrator requests by the routes."""

from pydantic import Base64Bytes, BaseModel, Field

from chatstream.core.config.constants import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    MAX_IMAGES_PER_MESSAGE,
    MAX_OUTPUT_TOKENS_LIMIT,
    MESSAGE_MAX_LENGTH,
)
from chatstream.llm_stream.models import ChatRequest, ImageAttachment, RetryRequest
from chatstream.retrieval import DocumentChunk


class ImageBody(BaseModel):
    data: Base64Bytes = Field(..., description="Base64-encoded image bytes")
    mime_type: str


class SendMessageBody(BaseModel):
    """
    Body of ``POST /conversations/{id}/messages``.

    Example:
        {"content": "Summarize my notes", "use_documents": true}
    """

    content: str = Field(default="", max_length=MESSAGE_MAX_LENGTH)
    model: str | None = None
    temperature: float = Field(default=DEFAULT_TEMPERATURE, ge=0.0, le=2.0)
    max_tokens: int = Field(default=DEFAULT_MAX_TOKENS, ge=1, le=MAX_OUTPUT_TOKENS_LIMIT)
    use_documents: bool = False
    images: list[ImageBody] = Field(default_factory=list, max_length=MAX_IMAGES_PER_MESSAGE)

    def to_request(self, conversation_id: str, user_id: str, request_id: str) -> ChatRequest:
        return ChatRequest(
            conversation_id=conversation_id,
            user_id=user_id,
            content=self.content,
            model=self.model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            use_documents=self.use_documents,
            images=tuple(
                ImageAttachment(data=image.data, mime_type=image.mime_type)
                for image in self.images
            ),
            request_id=request_id,
        )


class RetryBody(BaseModel):
    temperature: float = Field(default=DEFAULT_TEMPERATURE, ge=0.0, le=2.0)
    max_tokens: int = Field(default=DEFAULT_MAX_TOKENS, ge=1, le=MAX_OUTPUT_TOKENS_LIMIT)
    use_documents: bool = False

    def to_request(self, conversation_id: str, user_id: str, request_id: str) -> RetryRequest:
        return RetryRequest(
            conversation_id=conversation_id,
            user_id=user_id,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            use_documents=self.use_documents,
            request_id=request_id,
        )


class CreateConversationBody(BaseModel):
    title: str | None = Field(default=None, max_length=200)
    model: str | None = None
    system_prompt: str | None = Field(default=None, max_length=MESSAGE_MAX_LENGTH)


class ChunkBody(BaseModel):
    text: str = Field(..., min_length=1)
    page_number: int = Field(default=1, ge=1)


class IndexDocumentBody(BaseModel):
    """
    Body of ``POST /documents``: a document already split into chunks.

    Example:
        {"filename": "policy.pdf", "chunks": [{"text": "Refunds within 30 days.", "page_number": 2}]}
    """

    filename: str = Field(..., min_length=1, max_length=255)
    chunks: list[ChunkBody] = Field(..., min_length=1)

    def to_chunks(self) -> list[DocumentChunk]:
        return [DocumentChunk(chunk.text, chunk.page_number) for chunk in self.chunks]
