"""
OpenTelemetry tracing for request handlers.

Design:
  - One explicitly constructed TraceProvider per process, injected into
    handlers (no global tracer provider)
  - Parent-based ratio sampling decided at span start
  - Finished spans queued and exported in batches by a background thread;
    a full queue drops spans instead of blocking request threads
  - Unsampled spans accept the same calls as no-ops

Usage:
    tracing = TraceProvider(settings.tracing)

    with tracing.start_span("logHandler", tracing.extract_parent(headers)) as (ctx, span):
        span.set_attribute("log.field_count", 3)
        ...

    tracing.shutdown()  # bounded flush at process exit
"""

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import Any

from opentelemetry import context as otel_context
from opentelemetry.context import Context
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, SpanExporter
from opentelemetry.sdk.trace.sampling import ALWAYS_OFF, ParentBased, TraceIdRatioBased
from opentelemetry.semconv.attributes.exception_attributes import EXCEPTION_MESSAGE
from opentelemetry.trace import Span, SpanKind, Status, StatusCode, set_span_in_context
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

from telyx.config import TracingConfig
from telyx.observability.logging import get_logger

logger = get_logger(__name__)


class SpanHandle:
    """
    Handle over one started span.

    Works identically for sampled and unsampled spans; on an unsampled span
    every call is a no-op. end() is idempotent.
    """

    __slots__ = ("_span", "_ended")

    def __init__(self, span: Span):
        self._span = span
        self._ended = False

    @property
    def is_sampled(self) -> bool:
        return self._span.get_span_context().trace_flags.sampled

    def set_attribute(self, key: str, value: Any) -> None:
        self._span.set_attribute(key, value)

    def record_error(self, err: BaseException | None, message: str | None = None) -> None:
        """
        Mark the span as failed.

        Args:
            err: Underlying exception (recorded as an exception event)
            message: Fixed operator-facing message, stored as exception.message
        """
        if err is not None:
            self._span.record_exception(err)
        description = message or (str(err) if err is not None else None)
        self._span.set_status(Status(StatusCode.ERROR, description))
        if message:
            self._span.set_attribute(EXCEPTION_MESSAGE, message)

    def end(self) -> None:
        if not self._ended:
            self._ended = True
            self._span.end()


class TraceProvider:
    """
    Span-producing facility backed by the OpenTelemetry SDK.

    Sampling: ParentBased(TraceIdRatioBased(ratio)). A root span is recorded
    with probability ``ratio``; a child inherits its parent's decision.

    Export: BatchSpanProcessor over an OTLP/HTTP exporter (or an injected
    exporter). Export failures are handled inside the processor and never
    reach request code.
    """

    def __init__(
        self,
        config: TracingConfig | None = None,
        exporter: SpanExporter | None = None,
    ):
        self.config = config or TracingConfig()

        if self.config.enabled:
            sampler = ParentBased(TraceIdRatioBased(self.config.sampling_ratio))
        else:
            sampler = ALWAYS_OFF

        self._provider = TracerProvider(
            sampler=sampler,
            resource=Resource.create({SERVICE_NAME: self.config.service_name}),
        )

        if self.config.enabled:
            if exporter is None:
                exporter = OTLPSpanExporter(endpoint=self.config.otlp_endpoint)
            self._provider.add_span_processor(
                BatchSpanProcessor(
                    exporter,
                    max_queue_size=self.config.max_queue_size,
                    max_export_batch_size=self.config.max_export_batch_size,
                    schedule_delay_millis=self.config.schedule_delay_millis,
                )
            )

        self._tracer = self._provider.get_tracer(self.config.service_name)
        self._propagator = TraceContextTextMapPropagator()
        self._shutdown = False

        logger.info(
            "Tracer provider initialized",
            enabled=self.config.enabled,
            sampling_ratio=self.config.sampling_ratio,
            endpoint=self.config.otlp_endpoint if self.config.enabled else None,
        )

    def extract_parent(self, headers: Mapping[str, str] | None) -> Context | None:
        """
        Read a W3C traceparent from inbound headers.

        Returns:
            Context carrying the remote parent, or None when absent
        """
        if not headers:
            return None
        carrier = {key.lower(): value for key, value in headers.items()}
        if "traceparent" not in carrier:
            return None
        return self._propagator.extract(carrier=carrier)

    @contextmanager
    def start_span(
        self,
        operation_name: str,
        parent_context: Context | None = None,
    ) -> Iterator[tuple[Context, SpanHandle]]:
        """
        Start a span and end it on every exit path.

        Args:
            operation_name: Span name (e.g. "logHandler")
            parent_context: Context carrying the parent span, if any

        Yields:
            (active_context, span_handle)
        """
        span = self._tracer.start_span(
            operation_name, context=parent_context, kind=SpanKind.SERVER
        )
        handle = SpanHandle(span)
        active_context = set_span_in_context(span, parent_context)
        token = otel_context.attach(active_context)
        try:
            yield active_context, handle
        except Exception as exc:
            handle.record_error(exc)
            raise
        finally:
            otel_context.detach(token)
            handle.end()

    def force_flush(self, timeout_millis: int | None = None) -> bool:
        """Export every queued span now (bounded by timeout)."""
        timeout = timeout_millis or self.config.shutdown_timeout_millis
        return self._provider.force_flush(timeout_millis=timeout)

    def shutdown(self) -> None:
        """Drain the span queue with a bounded flush, then stop the exporter."""
        if self._shutdown:
            return
        self._shutdown = True

        flushed = self.force_flush()
        if not flushed:
            logger.warning(
                "Span flush timed out on shutdown",
                timeout_millis=self.config.shutdown_timeout_millis,
            )
        self._provider.shutdown()
        logger.info("Tracer provider shut down")
