"""Conversation and message persistence."""

from chatstream.persistence.message_store import InMemoryMessageStore, MessageStore
from chatstream.persistence.models import Conversation, PersistedMessage
from chatstream.persistence.redis_store import RedisMessageStore

__all__ = [
    "Conversation",
    "PersistedMessage",
    "MessageStore",
    "InMemoryMessageStore",
    "RedisMessageStore",
]
