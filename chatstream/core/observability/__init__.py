"""Observability: prometheus metrics."""

from chatstream.core.observability.metrics import MetricsCollector, get_metrics_collector

__all__ = ["MetricsCollector", "get_metrics_collector"]
