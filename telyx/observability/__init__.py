"""
Observability infrastructure for the ingestion backend.

Components:
- metrics.py: Prometheus request counters and latency histograms
- tracing.py: OpenTelemetry trace provider with batched OTLP export
- instrumentation.py: per-request scope combining both
- logging.py: Structured JSON logging with trace correlation
- health.py: Liveness probe
"""

from telyx.observability.metrics import MetricsRegistry
from telyx.observability.tracing import SpanHandle, TraceProvider

__all__ = [
    "MetricsRegistry",
    "SpanHandle",
    "TraceProvider",
]
