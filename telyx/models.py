"""
Response models shared by the request handlers.
"""

from typing import Any, NamedTuple

from pydantic import BaseModel, Field


class HandlerResponse(NamedTuple):
    """Status code and JSON body produced by a handler."""

    status_code: int
    content: dict[str, Any]


class HealthResponse(BaseModel):
    """Liveness probe payload."""

    status: str = Field(default="healthy", description="Liveness status")
    message: str = Field(description="Human-readable service message")
    time: str = Field(description="Check time (RFC 3339)")


# Fixed payloads of the HTTP surface
INGESTED = {"status": "Log successfully ingested"}
INVALID_LOG_FORMAT = {"error": "Invalid log format"}
INTERNAL_SERVER_ERROR = {"error": "Internal server error"}
FORWARDING_FAILED = {"error": "Failed to send log to OpenSearch"}
