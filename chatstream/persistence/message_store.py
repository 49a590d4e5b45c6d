"""
Message Store

The persistence contract the orchestrator depends on, and the default
in-process implementation. Every call is atomic on its own; callers never
hold a lock across calls.
"""

from abc import ABC, abstractmethod
from typing import Any

from chatstream.core.config.constants import Stage
from chatstream.core.exceptions import PersistenceError
from chatstream.core.logging import get_logger, log_stage
from chatstream.persistence.models import Conversation, PersistedMessage

logger = get_logger(__name__)

UPDATABLE_FIELDS = frozenset({"content", "status", "model"})


class MessageStore(ABC):
    """
    Abstract conversation and message store.

    Implementations raise ``PersistenceError`` when the backend is
    unavailable.
    """

    @abstractmethod
    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        ...

    @abstractmethod
    async def create_conversation(
        self,
        user_id: str,
        title: str | None = None,
        model: str | None = None,
        system_prompt: str | None = None,
    ) -> Conversation:
        ...

    @abstractmethod
    async def set_conversation_title(self, conversation_id: str, title: str) -> None:
        ...

    @abstractmethod
    async def insert(self, message: PersistedMessage) -> str:
        """Store a message and return its id."""

    @abstractmethod
    async def update(self, message_id: str, **fields: Any) -> None:
        """
        Update ``content``, ``status`` and/or ``model`` of a message.

        Raises:
            PersistenceError: Unknown message or unsupported field
        """

    @abstractmethod
    async def delete(self, message_id: str) -> bool:
        """Delete a message; returns False if it did not exist."""

    @abstractmethod
    async def list_by_conversation(self, conversation_id: str) -> list[PersistedMessage]:
        """All messages of a conversation in insertion order."""

    async def ping(self) -> bool:
        """True when the backend is reachable."""
        return True

    async def close(self) -> None:
        """Release backend resources."""


def check_update_fields(fields: dict[str, Any]) -> None:
    unknown = set(fields) - UPDATABLE_FIELDS
    if unknown:
        raise PersistenceError(
            f"Cannot update fields: {sorted(unknown)}", details={"fields": sorted(unknown)}
        )


class InMemoryMessageStore(MessageStore):
    """Dict-backed store; the default backend and the one used in tests."""

    def __init__(self):
        self._conversations: dict[str, Conversation] = {}
        self._messages: dict[str, PersistedMessage] = {}

    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        return self._conversations.get(conversation_id)

    async def create_conversation(
        self,
        user_id: str,
        title: str | None = None,
        model: str | None = None,
        system_prompt: str | None = None,
    ) -> Conversation:
        conversation = Conversation(
            user_id=user_id, title=title, model=model, system_prompt=system_prompt
        )
        self._conversations[conversation.id] = conversation
        return conversation

    async def set_conversation_title(self, conversation_id: str, title: str) -> None:
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            raise PersistenceError(
                "Conversation not found", details={"conversation_id": conversation_id}
            )
        self._conversations[conversation_id] = conversation.model_copy(update={"title": title})

    async def insert(self, message: PersistedMessage) -> str:
        self._messages[message.id] = message.model_copy()
        log_stage(logger, Stage.STORE, "Message inserted", level="debug",
                  message_id=message.id, status=message.status.value)
        return message.id

    async def update(self, message_id: str, **fields: Any) -> None:
        check_update_fields(fields)
        message = self._messages.get(message_id)
        if message is None:
            raise PersistenceError("Message not found", details={"message_id": message_id})
        self._messages[message_id] = message.model_copy(update=fields)

    async def delete(self, message_id: str) -> bool:
        return self._messages.pop(message_id, None) is not None

    async def list_by_conversation(self, conversation_id: str) -> list[PersistedMessage]:
        # dicts keep insertion order
        return [
            message.model_copy()
            for message in self._messages.values()
            if message.conversation_id == conversation_id
        ]
