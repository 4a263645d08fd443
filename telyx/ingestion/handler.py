"""
Log ingestion handler.

Pipeline (each step a possible exit):
1. Start: instrumentation scope opens (timer, span)
2. Decode: request body must be a JSON object (400 on failure)
3. Enrich: add an RFC 3339 timestamp when the caller sent none
4. Re-serialize: strict JSON encoding (500 on failure)
5. Forward: one POST to OpenSearch (500 on failure)
6. Respond: 201

Every exit path ends the span once, counts the request once and records
one latency observation (see RequestInstrumentation).
"""

import json
from collections.abc import Mapping
from datetime import UTC, datetime

from fastapi import status

from telyx.forwarder import ForwardingError, LogForwarder, LogRecord, encode_record
from telyx.models import (
    FORWARDING_FAILED,
    INGESTED,
    INTERNAL_SERVER_ERROR,
    INVALID_LOG_FORMAT,
    HandlerResponse,
)
from telyx.observability.instrumentation import RequestInstrumentation
from telyx.observability.logging import get_logger
from telyx.observability.metrics import LOGS_ROUTE
from telyx.observability.tracing import SpanHandle

logger = get_logger(__name__)

TIMESTAMP_FIELD = "timestamp"


class InvalidLogFormat(ValueError):
    """Request body is not a JSON object."""

    pass


def decode_record(body: bytes) -> LogRecord:
    """
    Decode a request body into a log record.

    Raises:
        InvalidLogFormat: Body is not valid JSON, nests too deeply, or is
            not a JSON object
    """
    try:
        record = json.loads(body)
    except (ValueError, RecursionError) as e:
        raise InvalidLogFormat(f"Body is not valid JSON: {e}") from e

    if not isinstance(record, dict):
        raise InvalidLogFormat(f"Expected a JSON object, got {type(record).__name__}")
    return record


def utc_now_rfc3339() -> str:
    """Current UTC time, RFC 3339 with second precision."""
    return datetime.now(UTC).isoformat(timespec="seconds")


def enrich_record(record: LogRecord) -> bool:
    """
    Add a timestamp when missing. A caller-supplied value is kept verbatim.

    Returns:
        bool: True if a timestamp was added
    """
    if TIMESTAMP_FIELD in record:
        return False
    record[TIMESTAMP_FIELD] = utc_now_rfc3339()
    return True


class IngestionHandler:
    """
    Orchestrates decode, enrichment and forwarding for POST /logs.

    Runs on a request worker thread; the forward step blocks that thread for
    the duration of the OpenSearch call.
    """

    route = LOGS_ROUTE
    operation_name = "logHandler"

    def __init__(self, forwarder: LogForwarder, instrumentation: RequestInstrumentation):
        self.forwarder = forwarder
        self.instrumentation = instrumentation

    def handle(
        self, body: bytes, headers: Mapping[str, str] | None = None
    ) -> HandlerResponse:
        """
        Ingest one log record.

        Args:
            body: Raw request body
            headers: Request headers (W3C trace context is honoured)

        Returns:
            HandlerResponse: status code and JSON payload
        """
        parent_context = self.instrumentation.tracing.extract_parent(headers)

        with self.instrumentation.scope(
            self.route, self.operation_name, parent_context
        ) as span:
            response = self._process(body, span)
            span.set_attribute("http.status_code", response.status_code)
            return response

    def _process(self, body: bytes, span: SpanHandle) -> HandlerResponse:
        try:
            record = decode_record(body)
        except InvalidLogFormat as e:
            logger.warning("Rejected log record", route=self.route, error=str(e))
            span.record_error(e, "Invalid log format")
            return HandlerResponse(status.HTTP_400_BAD_REQUEST, dict(INVALID_LOG_FORMAT))

        timestamp_added = enrich_record(record)
        span.set_attribute("log.field_count", len(record))
        span.set_attribute("log.timestamp_added", timestamp_added)

        try:
            payload = encode_record(record)
        except (TypeError, ValueError) as e:
            logger.error("Failed to marshal log data", route=self.route, error=str(e))
            span.record_error(e, "Failed to marshal log data")
            return HandlerResponse(
                status.HTTP_500_INTERNAL_SERVER_ERROR, dict(INTERNAL_SERVER_ERROR)
            )

        try:
            self.forwarder.send(payload)
        except ForwardingError as e:
            logger.error(
                "Failed to send log to OpenSearch",
                route=self.route,
                error_type=type(e).__name__,
                error=str(e),
            )
            span.record_error(e, "Failed to send log to OpenSearch")
            return HandlerResponse(
                status.HTTP_500_INTERNAL_SERVER_ERROR, dict(FORWARDING_FAILED)
            )

        logger.info("Log ingested", route=self.route, fields=len(record))
        return HandlerResponse(status.HTTP_201_CREATED, dict(INGESTED))
