"""
SSE Relay

Runs one orchestration in its own task and relays its events to the HTTP
response as Server-Sent Events frames.

The orchestration runs in a separate "pump" task so that cancelling it (on
client disconnect or shutdown) interrupts whatever it is awaiting, and so
the orchestrator's cleanup always executes inside that task. A one-slot
queue keeps the pump at most one event ahead of the client.

The relay watches the pump task as well as the queue: if the pump is
cancelled from the server side (graceful shutdown, ``registry.cancel``) the
client still receives a terminal ``error`` frame instead of a stream that
never closes.
"""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import aclosing

from fastapi.responses import StreamingResponse

from chatstream.core.config.constants import (
    HEADER_REQUEST_ID,
    STREAM_INTERRUPTED_MESSAGE,
    ErrorKind,
    Stage,
)
from chatstream.core.logging import get_logger, log_stage
from chatstream.llm_stream.models import ErrorEvent
from chatstream.llm_stream.services import StreamOrchestrator, StreamPlan

logger = get_logger(__name__)

# Strong references to running pumps; the event loop only keeps weak ones.
_pump_tasks: set[asyncio.Task] = set()

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def _closing_frame(pump_task: asyncio.Task, plan: StreamPlan) -> str:
    """Terminal frame for a pump that ended without relaying its own terminal event."""
    if pump_task.cancelled():
        log_stage(logger, Stage.CLEANUP, "Stream cancelled by the server", level="warning",
                  stream_id=plan.stream_id)
        event = ErrorEvent(
            message=STREAM_INTERRUPTED_MESSAGE,
            kind=ErrorKind.UNAVAILABLE,
            request_id=plan.request_id,
        )
    else:
        error = pump_task.exception()
        logger.error("Stream pump failed", stage=Stage.CLEANUP.value, stream_id=plan.stream_id,
                     error_type=type(error).__name__, error=str(error))
        event = ErrorEvent(
            message="An unexpected error occurred",
            kind=ErrorKind.INTERNAL,
            request_id=plan.request_id,
        )
    return event.format()


async def relay_events(
    orchestrator: StreamOrchestrator, plan: StreamPlan
) -> AsyncGenerator[str, None]:
    """Yield SSE frames for ``plan``; cancels the orchestration if abandoned."""
    queue: asyncio.Queue[str] = asyncio.Queue(maxsize=1)
    terminated = False

    async def pump() -> None:
        nonlocal terminated
        async with aclosing(orchestrator.stream(plan)) as events:
            async for event in events:
                await queue.put(event.format())
                terminated = terminated or event.is_terminal

    pump_task = asyncio.create_task(pump(), name=f"stream-{plan.stream_id}")
    _pump_tasks.add(pump_task)
    pump_task.add_done_callback(_pump_tasks.discard)

    try:
        while not pump_task.done():
            getter = asyncio.ensure_future(queue.get())
            try:
                await asyncio.wait({getter, pump_task}, return_when=asyncio.FIRST_COMPLETED)
            finally:
                if not getter.done():
                    getter.cancel()
            if getter.done() and not getter.cancelled():
                yield getter.result()

        # The pump may finish with its last frame still queued
        while not queue.empty():
            yield queue.get_nowait()

        if not terminated and (pump_task.cancelled() or pump_task.exception() is not None):
            yield _closing_frame(pump_task, plan)
    finally:
        if not pump_task.done():
            log_stage(logger, Stage.CLEANUP, "Client disconnected, cancelling stream",
                      stream_id=plan.stream_id)
            if not orchestrator.registry.cancel(plan.stream_id):
                pump_task.cancel()


def event_stream_response(orchestrator: StreamOrchestrator, plan: StreamPlan) -> StreamingResponse:
    return StreamingResponse(
        relay_events(orchestrator, plan),
        media_type="text/event-stream",
        headers={HEADER_REQUEST_ID: plan.request_id, **SSE_HEADERS},
    )
