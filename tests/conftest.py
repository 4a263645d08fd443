"""
Pytest configuration and fixtures.

Provides shared fixtures for:
- Test settings (no log file, sample every root span)
- In-memory span exporter and trace provider
- Isolated metrics registry
- Recording OpenSearch stand-in (httpx.MockTransport)
- FastAPI test client
"""

import json

import httpx
import pytest
from fastapi.testclient import TestClient
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from telyx.config import (
    LoggingConfig,
    OpenSearchConfig,
    Settings,
    TracingConfig,
)
from telyx.forwarder import LogForwarder
from telyx.main import create_app
from telyx.observability.instrumentation import RequestInstrumentation
from telyx.observability.metrics import MetricsRegistry
from telyx.observability.tracing import TraceProvider

STORE_URL = "http://opensearch.test:9200/logs/_doc"


class RecordingStore:
    """
    OpenSearch stand-in for httpx.MockTransport.

    Records every indexed document; can be switched to reject (status >= 400)
    or to fail at the transport level.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.status_code = 201
        self.unreachable = False

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if self.unreachable:
            raise httpx.ConnectError("Connection refused", request=request)
        request.read()
        self.requests.append(request)
        return httpx.Response(self.status_code, json={"result": "created"})

    @property
    def documents(self) -> list[dict]:
        return [json.loads(request.content) for request in self.requests]


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings: stdout logging only, every root span sampled."""
    return Settings(
        opensearch=OpenSearchConfig(url=STORE_URL),
        tracing=TracingConfig(
            sampling_ratio=1.0,
            otlp_endpoint="http://collector.test:4318/v1/traces",
            schedule_delay_millis=50,
            shutdown_timeout_millis=2000,
        ),
        logging=LoggingConfig(log_file="", json_output=False),
    )


@pytest.fixture
def span_exporter() -> InMemorySpanExporter:
    return InMemorySpanExporter()


@pytest.fixture
def tracing(test_settings: Settings, span_exporter: InMemorySpanExporter) -> TraceProvider:
    provider = TraceProvider(test_settings.tracing, exporter=span_exporter)
    yield provider
    provider.shutdown()


@pytest.fixture
def metrics() -> MetricsRegistry:
    """Metrics registry with its own CollectorRegistry (no cross-test leakage)."""
    return MetricsRegistry()


def sample_value(metrics: MetricsRegistry, name: str, route: str) -> float:
    value = metrics.registry.get_sample_value(name, {"path": route})
    return value or 0.0


@pytest.fixture
def request_count(metrics: MetricsRegistry):
    """Callable reading http_requests_total for a route (0.0 when never seen)."""

    def read(route: str, registry: MetricsRegistry | None = None) -> float:
        return sample_value(registry or metrics, "http_requests_total", route)

    return read


@pytest.fixture
def latency_observations(metrics: MetricsRegistry):
    """Callable reading the histogram observation count for a route."""

    def read(route: str, registry: MetricsRegistry | None = None) -> float:
        return sample_value(registry or metrics, "http_request_duration_seconds_count", route)

    return read


@pytest.fixture
def instrumentation(metrics: MetricsRegistry, tracing: TraceProvider) -> RequestInstrumentation:
    return RequestInstrumentation(metrics=metrics, tracing=tracing)


@pytest.fixture
def store() -> RecordingStore:
    return RecordingStore()


@pytest.fixture
def forwarder(test_settings: Settings, store: RecordingStore) -> LogForwarder:
    client = httpx.Client(transport=httpx.MockTransport(store))
    forwarder = LogForwarder(test_settings.opensearch, client=client)
    yield forwarder
    forwarder.close()


@pytest.fixture
def app_client(
    test_settings: Settings,
    metrics: MetricsRegistry,
    tracing: TraceProvider,
    forwarder: LogForwarder,
) -> TestClient:
    """FastAPI test client with lifespan (shutdown flushes spans)."""
    app = create_app(test_settings, metrics=metrics, tracing=tracing, forwarder=forwarder)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def finished_spans(tracing: TraceProvider, span_exporter: InMemorySpanExporter):
    """Callable flushing the batch processor and returning exported spans."""

    def collect() -> list:
        tracing.force_flush(timeout_millis=2000)
        return list(span_exporter.get_finished_spans())

    return collect
