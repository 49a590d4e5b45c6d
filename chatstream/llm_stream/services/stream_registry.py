"""
Stream Registry

Process-wide bookkeeping of in-flight streams so that a client disconnect or
a graceful shutdown can cancel them and wait for their cleanup.

Each stream registers an ``ActiveStream`` handle bound to the task that runs
it. Cancelling the handle cancels that task once; the orchestrator's cleanup
then runs and marks the handle closed.
"""

import asyncio
import threading
import time

from chatstream.core.config.constants import Stage
from chatstream.core.exceptions import ServiceShuttingDownError
from chatstream.core.logging import get_logger, log_stage
from chatstream.core.observability import MetricsCollector

logger = get_logger(__name__)


class ActiveStream:
    """Cancellation handle for one orchestration."""

    def __init__(self, stream_id: str, conversation_id: str):
        self.stream_id = stream_id
        self.conversation_id = conversation_id
        self.started_at = time.monotonic()
        self._task: asyncio.Task | None = None
        self._cancelled = asyncio.Event()
        self._closed = asyncio.Event()

    def bind(self, task: asyncio.Task | None) -> None:
        self._task = task

    @property
    def age(self) -> float:
        """Seconds since the stream registered."""
        return time.monotonic() - self.started_at

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def cancel(self) -> bool:
        """
        Signal cancellation and cancel the bound task.

        Idempotent: returns False if the handle was already cancelled or closed.
        """
        if self._cancelled.is_set() or self._closed.is_set():
            return False
        self._cancelled.set()
        if self._task is not None and not self._task.done():
            self._task.cancel()
        return True

    def mark_closed(self) -> None:
        self._closed.set()

    async def wait_closed(self) -> None:
        await self._closed.wait()


class StreamRegistry:
    """
    Concurrency-safe map of stream id to ActiveStream.

    Usage:
        handle = registry.register(stream_id, conversation_id)
        try:
            ...
        finally:
            registry.deregister(stream_id)
    """

    def __init__(self, metrics: MetricsCollector | None = None):
        self._lock = threading.Lock()
        self._streams: dict[str, ActiveStream] = {}
        self._accepting = True
        self._metrics = metrics

    @property
    def accepting(self) -> bool:
        return self._accepting

    @property
    def active_count(self) -> int:
        with self._lock:
            return len(self._streams)

    def _report(self) -> None:
        if self._metrics is not None:
            self._metrics.set_active_streams(len(self._streams))

    def register(self, stream_id: str, conversation_id: str) -> ActiveStream:
        """
        Raises:
            ServiceShuttingDownError: Once shutdown has begun
        """
        handle = ActiveStream(stream_id, conversation_id)
        with self._lock:
            if not self._accepting:
                raise ServiceShuttingDownError(
                    "Service is shutting down", details={"stream_id": stream_id}
                )
            self._streams[stream_id] = handle
            self._report()
        log_stage(logger, Stage.REGISTRY, "Stream registered", level="debug",
                  stream_id=stream_id, conversation_id=conversation_id)
        return handle

    def deregister(self, stream_id: str) -> None:
        with self._lock:
            self._streams.pop(stream_id, None)
            self._report()

    def get(self, stream_id: str) -> ActiveStream | None:
        with self._lock:
            return self._streams.get(stream_id)

    def cancel(self, stream_id: str) -> bool:
        """Cancel one stream; False if unknown or already cancelled."""
        handle = self.get(stream_id)
        if handle is None:
            return False
        return handle.cancel()

    async def shutdown(self) -> None:
        """
        Stop accepting streams, cancel every active one and wait for each to
        finish its cleanup. There is no timeout.
        """
        with self._lock:
            self._accepting = False
            handles = list(self._streams.values())

        log_stage(logger, Stage.REGISTRY, "Draining active streams", active=len(handles))
        for handle in handles:
            log_stage(logger, Stage.REGISTRY, "Cancelling stream", stream_id=handle.stream_id,
                      conversation_id=handle.conversation_id, age_seconds=round(handle.age, 3))
            handle.cancel()
        await asyncio.gather(*(handle.wait_closed() for handle in handles))
        log_stage(logger, Stage.REGISTRY, "All streams closed", drained=len(handles))
