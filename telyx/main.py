"""
FastAPI application for the TelyX ingestion backend.

Routes:
- POST /logs: ingest one structured log record and forward it to OpenSearch
- GET /health: liveness probe
- GET /metrics: Prometheus exposition of request counters and latencies

Handlers run on the Starlette thread pool, one worker thread per in-flight
request; the OpenSearch call blocks only that thread.

Process-wide telemetry objects (metrics registry, trace provider) and the
forwarder are constructed here and injected into the handlers. The app
lifespan shuts them down on every exit path.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from telyx.config import Settings, get_settings
from telyx.forwarder import LogForwarder
from telyx.ingestion.handler import IngestionHandler
from telyx.observability.health import HealthHandler
from telyx.observability.instrumentation import RequestInstrumentation
from telyx.observability.logging import configure_logging, get_logger
from telyx.observability.metrics import HEALTH_ROUTE, LOGS_ROUTE, MetricsRegistry
from telyx.observability.tracing import TraceProvider

logger = get_logger(__name__)


def create_app(
    settings: Settings | None = None,
    *,
    metrics: MetricsRegistry | None = None,
    tracing: TraceProvider | None = None,
    forwarder: LogForwarder | None = None,
) -> FastAPI:
    """
    Build the application and its process-wide collaborators.

    Args:
        settings: Configuration (environment defaults when omitted)
        metrics: Metrics registry (a fresh one when omitted)
        tracing: Trace provider (built from settings.tracing when omitted)
        forwarder: OpenSearch forwarder (built from settings.opensearch when omitted)

    Returns:
        FastAPI: Application owning the shutdown of every collaborator

    Raises:
        Exception: Trace provider or forwarder construction failed. Startup
            must abort before serving.
    """
    settings = settings or get_settings()
    metrics = metrics or MetricsRegistry()
    tracing = tracing or TraceProvider(settings.tracing)
    forwarder = forwarder or LogForwarder(settings.opensearch)

    instrumentation = RequestInstrumentation(metrics=metrics, tracing=tracing)
    ingestion_handler = IngestionHandler(forwarder=forwarder, instrumentation=instrumentation)
    health_handler = HealthHandler(
        instrumentation=instrumentation, message=settings.service.health_message
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan manager.

        Shutdown closes the forwarder's connection pool and drains the span
        queue with a bounded flush, whatever way serving ended.
        """
        logger.info(
            "=== TelyX Backend Starting ===",
            opensearch_url=forwarder.url,
            tracing_enabled=tracing.config.enabled,
        )
        try:
            yield  # Application runs here
        finally:
            logger.info("=== Shutting down ===")
            try:
                forwarder.close()
                logger.info("✓ OpenSearch client closed")
            finally:
                tracing.shutdown()
                logger.info("=== Shutdown complete ===")

    app = FastAPI(
        title="TelyX Backend",
        description="Log ingestion endpoint with Prometheus metrics and OpenTelemetry tracing",
        version=settings.logging.service_version,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.metrics = metrics
    app.state.tracing = tracing
    app.state.forwarder = forwarder

    # CORS for the dashboard front-end (configured via environment variables)
    cors_origins = settings.cors.origins_list
    if "*" in cors_origins:
        logger.warning(
            "CORS allows ALL origins (*) - configure CORS_ALLOWED_ORIGINS for production"
        )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_methods=settings.cors.methods_list,
        allow_headers=settings.cors.headers_list,
    )

    @app.post(LOGS_ROUTE, tags=["Ingestion"])
    async def ingest_log(request: Request) -> JSONResponse:
        """
        Ingest one log record.

        Responses:
            201: {"status": "Log successfully ingested"}
            400: {"error": "Invalid log format"}
            500: {"error": "Internal server error"} or
                 {"error": "Failed to send log to OpenSearch"}
        """
        body = await request.body()
        result = await run_in_threadpool(
            ingestion_handler.handle, body, dict(request.headers)
        )
        return JSONResponse(status_code=result.status_code, content=result.content)

    @app.get(HEALTH_ROUTE, tags=["Health"])
    async def health_check(request: Request) -> JSONResponse:
        """Liveness probe: {"status": "healthy", "message": ..., "time": RFC 3339}."""
        result = await run_in_threadpool(health_handler.handle, dict(request.headers))
        return JSONResponse(status_code=result.status_code, content=result.content)

    @app.get("/metrics", tags=["System"])
    async def metrics_endpoint() -> Response:
        """
        Prometheus metrics endpoint.

        Example Prometheus config:
            scrape_configs:
              - job_name: 'telyx-backend'
                scrape_interval: 15s
                static_configs:
                  - targets: ['backend:8080']
        """
        metrics_data, content_type = metrics.render()
        return Response(content=metrics_data, media_type=content_type)

    return app


def main() -> None:
    """Process entry point: logging, telemetry, then serve until stopped."""
    import uvicorn

    settings = Settings()
    # Raises (and aborts startup) if the diagnostics file cannot be opened
    configure_logging(settings.logging)
    settings.validate_configuration()

    app = create_app(settings)

    logger.info("Server is running", host=settings.service.host, port=settings.service.port)
    uvicorn.run(
        app,
        host=settings.service.host,
        port=settings.service.port,
        log_level=settings.service.log_level.lower(),
        log_config=None,
    )


if __name__ == "__main__":
    main()
