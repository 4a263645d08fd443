"""
Per-request instrumentation scope shared by every handler.

Entering the scope starts the latency timer and the span. Leaving it, on
any exit path including exceptions, ends the span, counts the request and
records exactly one latency observation.
"""

import time
from collections.abc import Iterator
from contextlib import contextmanager

from opentelemetry.context import Context

from telyx.observability.metrics import MetricsRegistry
from telyx.observability.tracing import SpanHandle, TraceProvider


class RequestInstrumentation:
    """Binds the metrics registry and trace provider for handler use."""

    def __init__(self, metrics: MetricsRegistry, tracing: TraceProvider):
        self.metrics = metrics
        self.tracing = tracing

    @contextmanager
    def scope(
        self,
        route: str,
        operation_name: str,
        parent_context: Context | None = None,
    ) -> Iterator[SpanHandle]:
        """
        Instrument one request.

        Args:
            route: Route literal used as the metric label
            operation_name: Span name
            parent_context: Remote parent extracted from the request, if any

        Yields:
            SpanHandle: span for attributes and error recording
        """
        start_time = time.perf_counter()
        try:
            with self.tracing.start_span(operation_name, parent_context) as (_, span):
                span.set_attribute("http.route", route)
                yield span
        finally:
            # Counted on every outcome, success or failure
            self.metrics.increment_request_count(route)
            self.metrics.observe_latency(route, time.perf_counter() - start_time)
