"""
Redis Message Store

Stores conversations and messages in Redis using redis-py's asyncio client.

Key layout:
    conversation:{id}            hash  (id, user_id, title, model, system_prompt, created_at)
    message:{id}                 hash  (id, conversation_id, role, content, status, model, created_at)
    conversation:{id}:messages   zset  message ids scored by a global sequence
    message:seq                  string counter for the sequence

Multi-key writes (insert, delete) run in a MULTI/EXEC pipeline so a message
hash never exists without its index entry. Updates WATCH the message hash,
so an update racing a delete fails instead of recreating a partial hash.
"""

from datetime import datetime
from typing import Any

import redis.asyncio as redis
from redis.exceptions import RedisError

from chatstream.core.config.constants import MessageRole, MessageStatus, Stage
from chatstream.core.exceptions import PersistenceError
from chatstream.core.logging import get_logger, log_stage
from chatstream.persistence.message_store import MessageStore, check_update_fields
from chatstream.persistence.models import Conversation, PersistedMessage

logger = get_logger(__name__)

SEQUENCE_KEY = "message:seq"


def conversation_key(conversation_id: str) -> str:
    return f"conversation:{conversation_id}"


def conversation_index_key(conversation_id: str) -> str:
    return f"conversation:{conversation_id}:messages"


def message_key(message_id: str) -> str:
    return f"message:{message_id}"


def _encode(values: dict[str, Any]) -> dict[str, str]:
    # Redis hashes cannot hold None; absent fields decode back to None.
    encoded = {}
    for key, value in values.items():
        if value is None:
            continue
        if isinstance(value, datetime):
            value = value.isoformat()
        elif hasattr(value, "value"):
            value = value.value
        encoded[key] = str(value)
    return encoded


def _decode_message(data: dict[str, str]) -> PersistedMessage:
    return PersistedMessage(
        id=data["id"],
        conversation_id=data["conversation_id"],
        role=MessageRole(data["role"]),
        content=data.get("content", ""),
        status=MessageStatus(data["status"]),
        model=data.get("model"),
        created_at=datetime.fromisoformat(data["created_at"]),
    )


def _decode_conversation(data: dict[str, str]) -> Conversation:
    return Conversation(
        id=data["id"],
        user_id=data["user_id"],
        title=data.get("title"),
        model=data.get("model"),
        system_prompt=data.get("system_prompt"),
        created_at=datetime.fromisoformat(data["created_at"]),
    )


class RedisMessageStore(MessageStore):
    """
    Message store backed by Redis.

    STAGE-S: Redis persistence

    Every RedisError is re-raised as PersistenceError so the orchestrator
    only has to know one failure type.
    """

    def __init__(self, client: redis.Redis):
        self._client = client

    @classmethod
    def from_settings(cls, settings) -> "RedisMessageStore":
        client = redis.Redis(
            host=settings.redis.REDIS_HOST,
            port=settings.redis.REDIS_PORT,
            db=settings.redis.REDIS_DB,
            password=settings.redis.REDIS_PASSWORD,
            socket_timeout=settings.redis.REDIS_SOCKET_TIMEOUT,
            decode_responses=True,
        )
        log_stage(
            logger,
            Stage.STORE,
            "Redis message store configured",
            host=settings.redis.REDIS_HOST,
            port=settings.redis.REDIS_PORT,
        )
        return cls(client)

    def _failure(self, operation: str, error: RedisError, **details) -> PersistenceError:
        log_stage(logger, Stage.STORE, "Redis operation failed", level="error",
                  operation=operation, error=str(error))
        return PersistenceError.from_exception(
            error, message=f"Message store unavailable during {operation}",
            operation=operation, **details,
        )

    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        try:
            data = await self._client.hgetall(conversation_key(conversation_id))
        except RedisError as e:
            raise self._failure("get_conversation", e) from e
        return _decode_conversation(data) if data else None

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
        try:
            await self._client.hset(
                conversation_key(conversation.id), mapping=_encode(conversation.model_dump())
            )
        except RedisError as e:
            raise self._failure("create_conversation", e) from e
        return conversation

    async def set_conversation_title(self, conversation_id: str, title: str) -> None:
        key = conversation_key(conversation_id)
        try:
            if not await self._client.exists(key):
                raise PersistenceError(
                    "Conversation not found", details={"conversation_id": conversation_id}
                )
            await self._client.hset(key, mapping={"title": title})
        except RedisError as e:
            raise self._failure("set_conversation_title", e) from e

    async def insert(self, message: PersistedMessage) -> str:
        try:
            sequence = await self._client.incr(SEQUENCE_KEY)
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.hset(message_key(message.id), mapping=_encode(message.model_dump()))
                pipe.zadd(conversation_index_key(message.conversation_id), {message.id: sequence})
                await pipe.execute()
        except RedisError as e:
            raise self._failure("insert", e, message_id=message.id) from e
        return message.id

    async def update(self, message_id: str, **fields: Any) -> None:
        check_update_fields(fields)
        key = message_key(message_id)
        mapping = _encode(fields)
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                # WATCH makes EXEC fail if the message is deleted after the check
                await pipe.watch(key)
                if not await pipe.exists(key):
                    raise PersistenceError("Message not found", details={"message_id": message_id})
                if mapping:
                    pipe.multi()
                    pipe.hset(key, mapping=mapping)
                    await pipe.execute()
        except RedisError as e:
            raise self._failure("update", e, message_id=message_id) from e

    async def delete(self, message_id: str) -> bool:
        key = message_key(message_id)
        try:
            conversation_id = await self._client.hget(key, "conversation_id")
            if conversation_id is None:
                return False
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.delete(key)
                pipe.zrem(conversation_index_key(conversation_id), message_id)
                await pipe.execute()
        except RedisError as e:
            raise self._failure("delete", e, message_id=message_id) from e
        return True

    async def list_by_conversation(self, conversation_id: str) -> list[PersistedMessage]:
        try:
            message_ids = await self._client.zrange(conversation_index_key(conversation_id), 0, -1)
            if not message_ids:
                return []
            async with self._client.pipeline(transaction=False) as pipe:
                for message_id in message_ids:
                    pipe.hgetall(message_key(message_id))
                rows = await pipe.execute()
        except RedisError as e:
            raise self._failure("list_by_conversation", e, conversation_id=conversation_id) from e
        # An id can outlive its hash only if a delete raced this read.
        return [_decode_message(row) for row in rows if row]

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except RedisError as e:
            log_stage(logger, Stage.STORE, "Redis ping failed", level="warning", error=str(e))
            return False

    async def close(self) -> None:
        await self._client.aclose()
