"""
Liveness probe for the ingestion backend.

The probe performs no I/O: it reports that the process is serving requests.
It is instrumented exactly like the ingestion route (span, request counter,
latency histogram).

Kubernetes Integration:
```yaml
livenessProbe:
  httpGet:
    path: /health
    port: 8080
  periodSeconds: 10
  timeoutSeconds: 5
```
"""

from collections.abc import Mapping
from datetime import UTC, datetime

from fastapi import status

from telyx.models import INTERNAL_SERVER_ERROR, HandlerResponse, HealthResponse
from telyx.observability.instrumentation import RequestInstrumentation
from telyx.observability.logging import get_logger
from telyx.observability.metrics import HEALTH_ROUTE

logger = get_logger(__name__)


class HealthHandler:
    """Builds the static liveness payload for GET /health."""

    route = HEALTH_ROUTE
    operation_name = "healthCheck"

    def __init__(
        self,
        instrumentation: RequestInstrumentation,
        message: str = "TelyX Backend is running!",
    ):
        self.instrumentation = instrumentation
        self.message = message

    def handle(self, headers: Mapping[str, str] | None = None) -> HandlerResponse:
        parent_context = self.instrumentation.tracing.extract_parent(headers)

        with self.instrumentation.scope(
            self.route, self.operation_name, parent_context
        ) as span:
            try:
                content = self.build_payload().model_dump(mode="json")
            except (TypeError, ValueError) as e:
                logger.error("Failed to encode health response", error=str(e))
                span.record_error(e, "Failed to encode health response")
                span.set_attribute("http.status_code", status.HTTP_500_INTERNAL_SERVER_ERROR)
                return HandlerResponse(
                    status.HTTP_500_INTERNAL_SERVER_ERROR, dict(INTERNAL_SERVER_ERROR)
                )

            span.set_attribute("http.status_code", status.HTTP_200_OK)
            return HandlerResponse(status.HTTP_200_OK, content)

    def build_payload(self) -> HealthResponse:
        return HealthResponse(
            message=self.message,
            time=datetime.now(UTC).isoformat(timespec="seconds"),
        )
