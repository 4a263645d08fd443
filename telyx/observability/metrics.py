"""
Prometheus metrics for the ingestion backend.

Metrics tracked:
- Request count (counter) per route
- Request latency (histogram) per route

Each MetricsRegistry owns a dedicated CollectorRegistry, so an application
instance renders only its own metrics and several instances can coexist in
one process (tests).

Integration:
- Exposed via /metrics endpoint (Prometheus scraping)
- 15-second scrape interval recommended
"""

from collections.abc import Iterable

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

from telyx.observability.logging import get_logger

logger = get_logger(__name__)

LOGS_ROUTE = "/logs"
HEALTH_ROUTE = "/health"
KNOWN_ROUTES = (LOGS_ROUTE, HEALTH_ROUTE)

# Prometheus client defaults (5ms .. 10s)
DEFAULT_BUCKETS = Histogram.DEFAULT_BUCKETS


class MetricsRegistry:
    """
    Per-route request counters and latency histograms.

    Thread-safe: prometheus_client guards every child value with a lock, so
    concurrent request threads never lose updates.

    Updates are best-effort. A failing update is logged and dropped; it never
    propagates into the request path.
    """

    def __init__(
        self,
        registry: CollectorRegistry | None = None,
        routes: Iterable[str] = KNOWN_ROUTES,
        buckets: Iterable[float] = DEFAULT_BUCKETS,
    ):
        self.registry = registry if registry is not None else CollectorRegistry()
        routes = tuple(routes)

        self.http_requests_total = Counter(
            "http_requests_total",
            "Total number of HTTP requests",
            labelnames=["path"],
            registry=self.registry,
        )

        self.http_request_duration_seconds = Histogram(
            "http_request_duration_seconds",
            "Histogram of response time for HTTP requests",
            labelnames=["path"],
            buckets=tuple(buckets),
            registry=self.registry,
        )

        # Pre-create children so known routes render before their first request
        for route in routes:
            self.http_requests_total.labels(path=route)
            self.http_request_duration_seconds.labels(path=route)

        logger.info("Prometheus metrics initialized", routes=list(routes))

    def increment_request_count(self, route: str) -> None:
        """
        Count one served request.

        Args:
            route: Route literal (e.g. "/logs")
        """
        try:
            self.http_requests_total.labels(path=route).inc()
        except Exception as e:
            logger.warning("Request counter update failed", route=route, error=str(e))

    def observe_latency(self, route: str, duration_seconds: float) -> None:
        """
        Record one latency observation.

        Args:
            route: Route literal (e.g. "/logs")
            duration_seconds: Time from handler start to handler return
        """
        try:
            self.http_request_duration_seconds.labels(path=route).observe(duration_seconds)
        except Exception as e:
            logger.warning("Latency observation failed", route=route, error=str(e))

    def render(self) -> tuple[bytes, str]:
        """
        Generate Prometheus metrics in exposition format (bytes).

        Returns:
            tuple: (metrics_bytes, content_type)
        """
        return generate_latest(self.registry), CONTENT_TYPE_LATEST
