"""
Structured logging with JSON output for process diagnostics.

Features:
- JSON output for log aggregation (OpenSearch, Loki, CloudWatch)
- Trace correlation (trace_id, span_id from the active OpenTelemetry span)
- Append-only diagnostics file next to stdout

Architecture:
- structlog for structured logging
- stdlib logging handlers for the file and stdout sinks
- Processors for formatting and enrichment
- Multiple output formats (JSON for prod, console for dev)
"""

import logging
import sys
import time

import structlog
from opentelemetry import trace
from structlog.types import EventDict, Processor

from telyx.config import LoggingConfig


# ============================================================================
# CUSTOM PROCESSORS
# ============================================================================


def add_trace_context(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """
    Add trace context to log events.

    Injects trace_id and span_id (hex, W3C format) when a recording span is
    current, so log lines can be joined with exported spans.
    """
    span_context = trace.get_current_span().get_span_context()
    if span_context.is_valid:
        event_dict["trace_id"] = trace.format_trace_id(span_context.trace_id)
        event_dict["span_id"] = trace.format_span_id(span_context.span_id)
    return event_dict


def add_timestamp(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Add ISO 8601 timestamp with microsecond precision.

    Format: 2026-01-15T10:30:45.123456Z
    """
    now = time.time()
    event_dict["timestamp"] = (
        time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime(now)) + f".{int((now % 1) * 1000000):06d}Z"
    )
    return event_dict


def service_metadata_processor(config: LoggingConfig) -> Processor:
    """
    Build a processor injecting service, version and environment.

    This enables filtering in log aggregation systems:
    - OpenSearch: service:telyx-backend AND environment:production
    """
    metadata = {
        "service": config.service_name,
        "version": config.service_version,
        "environment": config.environment,
    }

    def add_service_metadata(
        logger: logging.Logger, method_name: str, event_dict: EventDict
    ) -> EventDict:
        for key, value in metadata.items():
            event_dict.setdefault(key, value)
        return event_dict

    return add_service_metadata


# ============================================================================
# LOGGER CONFIGURATION
# ============================================================================


def configure_logging(config: LoggingConfig | None = None) -> None:
    """
    Configure structured logging for the process.

    Args:
        config: Logging settings (defaults from environment when omitted)

    Raises:
        OSError: The diagnostics file cannot be opened. This is a startup
            failure; the caller must not start serving.

    Output formats:

    JSON (production):
        {
          "timestamp": "2026-01-15T10:30:45.123456Z",
          "level": "info",
          "event": "Log forwarded",
          "service": "telyx-backend",
          "environment": "production",
          "trace_id": "4bf92f3577b34da6a3ce929d0e0e4736",
          "route": "/logs"
        }

    Console (development):
        2026-01-15 10:30:45 [info] Log forwarded route=/logs
    """
    config = config or LoggingConfig()

    # Shared processors (run for all outputs)
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_trace_context,
        service_metadata_processor(config),
        add_timestamp,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.StackInfoRenderer(),
    ]

    if config.json_output:
        # Production: JSON output for log aggregation
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        # Development: Human-readable console output
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(colors=config.colorized),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if config.log_file:
        # Opening the file here surfaces permission errors before serving
        handlers.append(logging.FileHandler(config.log_file, mode="a", encoding="utf-8"))

    logging.basicConfig(
        format="%(message)s",
        handlers=handlers,
        level=getattr(logging, config.level.upper()),
        force=True,
    )

    get_logger(__name__).info(
        "Logger initialized",
        log_file=config.log_file or None,
        json_output=config.json_output,
    )


# ============================================================================
# LOGGER FACTORY
# ============================================================================


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        BoundLogger: Structured logger with trace context

    Usage:
        logger = get_logger(__name__)
        logger.info("Log forwarded", route="/logs", status_code=201)
    """
    return structlog.get_logger(name)
