"""Persisted conversation and message records."""

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, Field

from chatstream.core.config.constants import MessageRole, MessageStatus
from chatstream.llm_stream.models import ConversationTurn


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class Conversation(BaseModel):
    id: str = Field(default_factory=new_id)
    user_id: str
    title: str | None = None
    model: str | None = None
    system_prompt: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)


class PersistedMessage(BaseModel):
    """
    One stored message.

    Assistant messages are created with ``status=streaming`` and empty
    content before any provider output is requested, then either updated to
    ``done`` or deleted.
    """

    id: str = Field(default_factory=new_id)
    conversation_id: str
    role: MessageRole
    content: str = ""
    status: MessageStatus = MessageStatus.DONE
    model: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)

    @property
    def is_streaming(self) -> bool:
        return self.status == MessageStatus.STREAMING

    def to_turn(self) -> ConversationTurn:
        return ConversationTurn(role=self.role, text=self.content)
