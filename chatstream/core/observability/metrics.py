"""
Metrics Collector with Prometheus Integration

Stream lifecycle metrics:
- Streams started and finished, labelled by outcome
- Provider failovers
- Retrieval failures (degraded to "no document context")
- Active streams gauge
- Stream duration histogram
"""

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest

from chatstream.core.logging.logger import get_logger

logger = get_logger(__name__)


# ============================================================================
# Metric Definitions
# ============================================================================

STREAMS_STARTED = Counter(
    "chat_streams_started_total",
    "Total number of chat streams opened",
    ["provider"],
)

STREAMS_FINISHED = Counter(
    "chat_streams_finished_total",
    "Total number of chat streams closed, by outcome",
    ["outcome"],  # completed, empty, error, cancelled
)

FAILOVERS = Counter(
    "chat_provider_failovers_total",
    "Mid-stream switches from the primary to the fallback provider",
    ["from_provider", "to_provider"],
)

RETRIEVAL_FAILURES = Counter(
    "chat_retrieval_failures_total",
    "Retrieval errors recovered as 'no document context'",
    ["error_type"],
)

ACTIVE_STREAMS = Gauge(
    "chat_active_streams",
    "Number of streams currently registered",
)

STREAM_DURATION = Histogram(
    "chat_stream_duration_seconds",
    "Wall time from placeholder insert to terminal event",
    ["outcome"],
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
)


class MetricsCollector:
    """
    Thin facade over the module-level prometheus metrics.

    Keeps call sites free of label plumbing and lets tests swap in a mock.
    """

    def record_stream_started(self, provider: str) -> None:
        STREAMS_STARTED.labels(provider=provider).inc()

    def record_stream_finished(self, outcome: str, duration_seconds: float) -> None:
        STREAMS_FINISHED.labels(outcome=outcome).inc()
        STREAM_DURATION.labels(outcome=outcome).observe(duration_seconds)

    def record_failover(self, from_provider: str, to_provider: str) -> None:
        FAILOVERS.labels(from_provider=from_provider, to_provider=to_provider).inc()

    def record_retrieval_failure(self, error_type: str) -> None:
        RETRIEVAL_FAILURES.labels(error_type=error_type).inc()

    def set_active_streams(self, count: int) -> None:
        ACTIVE_STREAMS.set(count)

    @staticmethod
    def export() -> tuple[bytes, str]:
        """Render all metrics in the Prometheus text format."""
        return generate_latest(), CONTENT_TYPE_LATEST


_metrics_collector: MetricsCollector | None = None


def get_metrics_collector() -> MetricsCollector:
    """Get global metrics collector."""
    global _metrics_collector
    if _metrics_collector is None:
        _metrics_collector = MetricsCollector()
    return _metrics_collector
