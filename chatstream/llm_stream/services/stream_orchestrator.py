"""
Stream Orchestrator Service
===========================

The StreamOrchestrator turns one chat request into a streamed assistant turn.
It coordinates the context assembler, the retrieval engine, the provider
gateway, the message store and the stream registry, and it owns the
persisted state of the assistant message for the whole lifecycle.

THE REQUEST LIFECYCLE
---------------------
Preparation (``prepare_message`` / ``prepare_retry``) raises before any
stream is opened; streaming (``stream``) never raises, it ends with exactly
one ``done`` or ``error`` event.

┌─────────────────────────────────────────────────────────────────┐
│ STAGE 1: CONTEXT BUILD                                          │
│ - Ownership check (not found / forbidden)                       │
│ - Delete stale ``streaming`` rows (crash recovery)              │
│ - Persist the user turn, assemble the token-budgeted context    │
│ - Optional retrieval; failures degrade to "no documents"        │
└─────────────────────────────────────────────────────────────────┘
                            ↓
┌─────────────────────────────────────────────────────────────────┐
│ STAGE 2: PLACEHOLDER                                            │
│ - Insert the assistant row (status=streaming, content="")       │
│   before any provider bytes are requested                       │
└─────────────────────────────────────────────────────────────────┘
                            ↓
┌─────────────────────────────────────────────────────────────────┐
│ STAGE 3: STREAMING                                              │
│ - Citations first, then tokens in provider order                │
│ - On a rate-limit error: info event, re-issue the same context  │
│   (text only) to the fallback, keep accumulating tokens         │
└─────────────────────────────────────────────────────────────────┘
                            ↓
┌─────────────────────────────────────────────────────────────────┐
│ STAGE 4-5: FINALIZE AND TITLE                                   │
│ - Non-empty: update the row to done with the effective model    │
│ - Empty: delete the row                                         │
│ - First exchange: best-effort title, ``title`` before ``done``  │
└─────────────────────────────────────────────────────────────────┘
                            ↓
┌─────────────────────────────────────────────────────────────────┐
│ STAGE 6: CLEANUP (always)                                       │
│ - Error, cancellation or disconnect: delete the placeholder     │
│ - Deregister from the registry and mark the handle closed       │
└─────────────────────────────────────────────────────────────────┘

A conversation's stored history therefore always ends either in a completed
assistant turn or in a user turn with no reply; the latter is what retry
operates on.
"""

import asyncio
import time
import uuid
from collections.abc import AsyncGenerator, Sequence
from contextlib import aclosing
from dataclasses import dataclass

from chatstream.core.config.constants import (
    BOTH_PROVIDERS_FAILED_MESSAGE,
    DEFAULT_RAG_TOP_K,
    FAILOVER_INFO_MESSAGE,
    FALLBACK_PROVIDER_LABEL,
    RATE_LIMITED_NO_FALLBACK_MESSAGE,
    ErrorKind,
    EventType,
    MessageRole,
    MessageStatus,
    Stage,
)
from chatstream.core.exceptions import (
    ConversationNotFoundError,
    ForbiddenError,
    InvalidInputError,
    PersistenceError,
    RetryRejectedError,
    ServiceShuttingDownError,
)
from chatstream.core.logging import get_logger, log_stage, set_request_id
from chatstream.core.observability import MetricsCollector
from chatstream.llm_stream.models import (
    ChatRequest,
    CitationEvent,
    ConversationTurn,
    DoneEvent,
    ErrorEvent,
    GenerationOptions,
    InfoEvent,
    RetryRequest,
    StreamEvent,
    TitleEvent,
)
from chatstream.llm_stream.providers import ProviderGateway, is_rate_limited
from chatstream.llm_stream.services.context_assembler import ContextAssembler
from chatstream.llm_stream.services.stream_registry import StreamRegistry
from chatstream.llm_stream.services.title_generator import TitleGenerator
from chatstream.persistence import Conversation, MessageStore, PersistedMessage
from chatstream.retrieval import RetrievalEngine, render_context

logger = get_logger(__name__)

IMAGE_ONLY_PLACEHOLDER = "[Image]"
IMAGE_ONLY_TITLE_PROMPT = "Describe this image"


@dataclass(frozen=True)
class StreamPlan:
    """Everything ``stream()`` needs, produced by a successful preparation."""

    stream_id: str
    request_id: str
    user_id: str
    conversation: Conversation
    context: tuple[ConversationTurn, ...]
    citations: tuple[CitationEvent, ...]
    options: GenerationOptions
    history_length: int
    live_content: str


@dataclass
class _ProviderPass:
    """Result of draining one provider stream."""

    terminal: DoneEvent | ErrorEvent | None = None


class StreamOrchestrator:
    """
    Coordinates context assembly, retrieval, provider streaming with failover,
    and message persistence for each chat request.

    Dependencies are injected so tests can pass scripted providers and
    in-memory stores.

    Usage:
        plan = await orchestrator.prepare_message(request)
        async for event in orchestrator.stream(plan):
            send(event.format())
    """

    def __init__(
        self,
        gateway: ProviderGateway,
        store: MessageStore,
        registry: StreamRegistry,
        assembler: ContextAssembler | None = None,
        retrieval: RetrievalEngine | None = None,
        title_generator: TitleGenerator | None = None,
        metrics: MetricsCollector | None = None,
        rag_top_k: int = DEFAULT_RAG_TOP_K,
    ):
        self.gateway = gateway
        self.store = store
        self.registry = registry
        self.assembler = assembler or ContextAssembler()
        self.retrieval = retrieval
        self.title_generator = title_generator
        self.metrics = metrics
        self.rag_top_k = rag_top_k

    # ========================================================================
    # STAGE 1: PREPARATION
    # ========================================================================

    async def prepare_message(self, request: ChatRequest) -> StreamPlan:
        """
        Persist a new user message and build the context to answer it.

        Raises:
            InvalidInputError: No text and no images
            ConversationNotFoundError / ForbiddenError: Ownership check failed
            PersistenceError: Store unavailable
        """
        set_request_id(request.request_id)
        if not request.content.strip() and not request.images:
            raise InvalidInputError(
                "Message must contain text or at least one image",
                request_id=request.request_id,
            )

        conversation = await self._load_conversation(request.conversation_id, request.user_id)
        messages = await self.store.list_by_conversation(conversation.id)
        history = await self._delete_stale(messages)

        user_message = PersistedMessage(
            conversation_id=conversation.id,
            role=MessageRole.USER,
            content=request.content or IMAGE_ONLY_PLACEHOLDER,
        )
        await self.store.insert(user_message)
        history.append(user_message)

        turns = [message.to_turn() for message in history]
        if request.images:
            turns[-1] = ConversationTurn(
                role=MessageRole.USER, text=user_message.content, images=request.images
            )

        log_stage(
            logger,
            Stage.CONTEXT_BUILD,
            "User message persisted",
            conversation_id=conversation.id,
            image_count=len(request.images),
            history_length=len(history),
        )

        return await self._plan(
            conversation=conversation,
            user_id=request.user_id,
            request_id=request.request_id,
            turns=turns,
            query=request.content if request.use_documents else "",
            options=request.generation_options(conversation.model),
            history_length=len(history),
            live_content=request.content or IMAGE_ONLY_TITLE_PROMPT,
        )

    async def prepare_retry(self, request: RetryRequest) -> StreamPlan:
        """
        Re-run the state machine for the trailing user message.

        The precondition is checked before anything is deleted, so a rejected
        retry has no side effects.

        Raises:
            RetryRejectedError: Conversation is empty or ends in an assistant turn
            ConversationNotFoundError / ForbiddenError: Ownership check failed
            PersistenceError: Store unavailable
        """
        set_request_id(request.request_id)
        conversation = await self._load_conversation(request.conversation_id, request.user_id)
        messages = await self.store.list_by_conversation(conversation.id)

        completed = [message for message in messages if not message.is_streaming]
        if not completed:
            raise RetryRejectedError("No messages to retry", request_id=request.request_id)
        if completed[-1].role != MessageRole.USER:
            raise RetryRejectedError(
                "Last message is not from user",
                request_id=request.request_id,
                details={"last_role": completed[-1].role.value},
            )

        history = await self._delete_stale(messages)
        log_stage(
            logger,
            Stage.CONTEXT_BUILD,
            "Retrying trailing user message",
            conversation_id=conversation.id,
            history_length=len(history),
        )

        return await self._plan(
            conversation=conversation,
            user_id=request.user_id,
            request_id=request.request_id,
            turns=[message.to_turn() for message in history],
            query=history[-1].content if request.use_documents else "",
            options=request.generation_options(conversation.model),
            history_length=len(history),
            live_content=history[-1].content,
        )

    async def _load_conversation(self, conversation_id: str, user_id: str) -> Conversation:
        conversation = await self.store.get_conversation(conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(
                "Conversation not found", details={"conversation_id": conversation_id}
            )
        if conversation.user_id != user_id:
            raise ForbiddenError(
                "Conversation belongs to another user",
                details={"conversation_id": conversation_id},
            )
        return conversation

    async def _delete_stale(self, messages: Sequence[PersistedMessage]) -> list[PersistedMessage]:
        """Delete leftover ``streaming`` rows and return the completed messages."""
        completed = []
        for message in messages:
            if message.is_streaming:
                await self.store.delete(message.id)
                log_stage(logger, Stage.CONTEXT_BUILD, "Deleted stale streaming placeholder",
                          conversation_id=message.conversation_id, message_id=message.id)
            else:
                completed.append(message)
        return completed

    async def _plan(
        self,
        conversation: Conversation,
        user_id: str,
        request_id: str,
        turns: list[ConversationTurn],
        query: str,
        options: GenerationOptions,
        history_length: int,
        live_content: str,
    ) -> StreamPlan:
        context = self.assembler.assemble(turns, conversation.system_prompt)
        citations: list[CitationEvent] = []

        if query.strip():
            rag_prompt, citations = await self._retrieve(query, user_id, conversation.id)
            if rag_prompt:
                context.insert(0, ConversationTurn(role=MessageRole.SYSTEM, text=rag_prompt))

        return StreamPlan(
            stream_id=str(uuid.uuid4()),
            request_id=request_id,
            user_id=user_id,
            conversation=conversation,
            context=tuple(context),
            citations=tuple(citations),
            options=options,
            history_length=history_length,
            live_content=live_content,
        )

    async def _retrieve(
        self, query: str, user_id: str, conversation_id: str
    ) -> tuple[str | None, list[CitationEvent]]:
        """
        Run retrieval for a query.

        Any failure is logged and counted, and degrades to no document
        context; it never fails the request.
        """
        if self.retrieval is None:
            return None, []
        try:
            passages = await self.retrieval.query(query, user_id, self.rag_top_k)
        except Exception as e:
            log_stage(
                logger,
                Stage.RETRIEVAL,
                "RAG retrieval failed, proceeding without document context",
                level="warning",
                conversation_id=conversation_id,
                error_type=type(e).__name__,
                error=str(e),
            )
            if self.metrics is not None:
                self.metrics.record_retrieval_failure(type(e).__name__)
            return None, []

        if not passages:
            return None, []
        citations = [
            CitationEvent(
                source=passage.source_name,
                page=passage.page_number,
                relevance=passage.similarity_score,
            )
            for passage in passages
        ]
        return render_context(passages), citations

    # ========================================================================
    # STAGES 2-6: STREAMING
    # ========================================================================

    async def stream(self, plan: StreamPlan) -> AsyncGenerator[StreamEvent, None]:
        """
        Stream the assistant turn described by ``plan``.

        Yields citation events, token events (across a failover if one
        happens), an optional info event, an optional title event, and
        exactly one terminal ``done`` or ``error`` event. Cancellation of the
        running task or closing the generator deletes the placeholder.
        """
        set_request_id(plan.request_id)
        started = time.monotonic()

        try:
            handle = self.registry.register(plan.stream_id, plan.conversation.id)
        except ServiceShuttingDownError as e:
            yield ErrorEvent.from_exception(e, request_id=plan.request_id)
            return
        handle.bind(asyncio.current_task())

        placeholder_id: str | None = None
        outcome = "cancelled"
        try:
            # STAGE 2: durability anchor, before any provider bytes
            primary_model = plan.options.model or self.gateway.primary.config.default_model
            placeholder_id = await self.store.insert(
                PersistedMessage(
                    conversation_id=plan.conversation.id,
                    role=MessageRole.ASSISTANT,
                    content="",
                    status=MessageStatus.STREAMING,
                    model=primary_model,
                )
            )
            log_stage(logger, Stage.PLACEHOLDER, "Placeholder inserted",
                      conversation_id=plan.conversation.id, message_id=placeholder_id)
            if self.metrics is not None:
                self.metrics.record_stream_started(self.gateway.primary.name)

            for citation in plan.citations:
                yield citation

            # STAGE 3: primary stream
            parts: list[str] = []
            primary = _ProviderPass()
            log_stage(logger, Stage.PRIMARY_STREAM, "Streaming from primary",
                      provider=self.gateway.primary.name, model=primary_model)
            async with aclosing(self._drain(
                self.gateway.stream_primary(plan.context, plan.options), parts, primary
            )) as events:
                async for event in events:
                    yield event

            terminal = primary.terminal
            used_fallback = False

            # STAGE 3.1: failover
            if isinstance(terminal, ErrorEvent) and is_rate_limited(terminal):
                if self.gateway.has_fallback:
                    log_stage(
                        logger,
                        Stage.FAILOVER,
                        "Primary LLM rate-limited, switching to fallback",
                        level="warning",
                        primary=self.gateway.primary.name,
                        fallback=self.gateway.fallback.name,
                        tokens_so_far=len(parts),
                    )
                    if self.metrics is not None:
                        self.metrics.record_failover(
                            self.gateway.primary.name, self.gateway.fallback.name
                        )
                    yield InfoEvent(message=FAILOVER_INFO_MESSAGE)
                    used_fallback = True

                    fallback = _ProviderPass()
                    async with aclosing(self._drain(
                        self.gateway.stream_fallback(plan.context, plan.options), parts, fallback
                    )) as events:
                        async for event in events:
                            yield event
                    terminal = fallback.terminal
                    if isinstance(terminal, ErrorEvent):
                        log_stage(logger, Stage.FAILOVER, "Fallback provider failed",
                                  level="error", error=terminal.message)
                        terminal = ErrorEvent(
                            message=BOTH_PROVIDERS_FAILED_MESSAGE,
                            kind=ErrorKind.PROVIDER_ERROR,
                        )
                else:
                    terminal = ErrorEvent(
                        message=RATE_LIMITED_NO_FALLBACK_MESSAGE,
                        kind=ErrorKind.RATE_LIMITED,
                    )

            if isinstance(terminal, ErrorEvent):
                log_stage(logger, Stage.PRIMARY_STREAM, "Stream ended with error", level="error",
                          kind=terminal.kind.value, error=terminal.message)
                outcome = "error"
                yield terminal.model_copy(update={"request_id": plan.request_id})
                return

            done = terminal or DoneEvent()
            provider_label = FALLBACK_PROVIDER_LABEL if used_fallback else None
            content = "".join(parts)

            # STAGE 4: finalize
            if not content:
                await self.store.delete(placeholder_id)
                placeholder_id = None
                outcome = "empty"
                log_stage(logger, Stage.FINALIZE, "Empty response, placeholder deleted",
                          conversation_id=plan.conversation.id)
                yield DoneEvent(finish_reason=done.finish_reason, usage=done.usage,
                                provider_label=provider_label)
                return

            effective_model = self.gateway.fallback_model if used_fallback else primary_model
            await self.store.update(
                placeholder_id,
                content=content,
                status=MessageStatus.DONE,
                model=effective_model,
            )
            finalized_id, placeholder_id = placeholder_id, None
            outcome = "completed"
            log_stage(logger, Stage.FINALIZE, "Assistant message finalized",
                      message_id=finalized_id, model=effective_model,
                      content_length=len(content), used_fallback=used_fallback)

            # STAGE 5: title on the first exchange
            if plan.history_length <= 1 and not plan.conversation.title:
                title = await self._generate_title(plan)
                if title:
                    yield TitleEvent(title=title)

            yield DoneEvent(finish_reason=done.finish_reason, usage=done.usage,
                            provider_label=provider_label)

        except PersistenceError as e:
            outcome = "error"
            log_stage(logger, Stage.FINALIZE, "Persistence failed during stream", level="error",
                      error=e.message)
            yield ErrorEvent.from_exception(e, request_id=plan.request_id)

        except Exception as e:
            outcome = "error"
            logger.error("Unexpected error during stream", stage=Stage.PRIMARY_STREAM.value,
                         error_type=type(e).__name__, error=str(e), exc_info=True)
            yield ErrorEvent(
                message="An unexpected error occurred",
                kind=ErrorKind.INTERNAL,
                request_id=plan.request_id,
            )

        finally:
            # STAGE 6: cleanup; runs on return, error, cancellation and aclose()
            if placeholder_id is not None:
                await self._discard_placeholder(placeholder_id, outcome)
            self.registry.deregister(plan.stream_id)
            handle.mark_closed()
            if self.metrics is not None:
                self.metrics.record_stream_finished(outcome, time.monotonic() - started)
            log_stage(logger, Stage.CLEANUP, "Stream closed", stream_id=plan.stream_id,
                      outcome=outcome)

    async def _drain(
        self,
        events: AsyncGenerator[StreamEvent, None],
        parts: list[str],
        result: _ProviderPass,
    ) -> AsyncGenerator[StreamEvent, None]:
        """
        Forward non-terminal events from one provider stream, accumulating
        token text into ``parts`` and recording the terminal event in
        ``result`` instead of forwarding it.
        """
        async with aclosing(events):
            async for event in events:
                if event.is_terminal:
                    result.terminal = event
                    return
                if event.event == EventType.TOKEN:
                    parts.append(event.text)
                yield event

    async def _discard_placeholder(self, message_id: str, outcome: str) -> None:
        try:
            await self.store.delete(message_id)
        except PersistenceError as e:
            # Left behind as a stale row; the next request on this
            # conversation deletes it.
            log_stage(logger, Stage.CLEANUP, "Failed to delete placeholder", level="error",
                      message_id=message_id, error=e.message)
            return
        log_stage(logger, Stage.CLEANUP, "Incomplete placeholder deleted",
                  message_id=message_id, outcome=outcome)

    async def _generate_title(self, plan: StreamPlan) -> str | None:
        if self.title_generator is None:
            return None
        title = await self.title_generator.generate(plan.live_content)
        try:
            await self.store.set_conversation_title(plan.conversation.id, title)
        except PersistenceError as e:
            log_stage(logger, Stage.TITLE, "Auto-title generation failed", level="warning",
                      conversation_id=plan.conversation.id, error=e.message)
            return None
        return title
