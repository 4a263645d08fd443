"""
OpenSearch forwarder: one synchronous POST per ingested log record.

No retry, no batching, no timeout beyond the transport default. A record
is delivered when the transport succeeds and the store answers < 400.
"""

import json
from typing import Any

import httpx

from telyx.config import OpenSearchConfig
from telyx.observability.logging import get_logger

logger = get_logger(__name__)

LogRecord = dict[str, Any]


class ForwardingError(Exception):
    """Base exception for forwarding failures. Handlers catch only this."""

    pass


class StoreUnavailableError(ForwardingError):
    """Transport failure: store unreachable, connection reset, timeout."""

    pass


class StoreRejectedError(ForwardingError):
    """Store answered with an HTTP status >= 400."""

    def __init__(self, status_code: int, body: str = ""):
        self.status_code = status_code
        self.body = body
        super().__init__(f"OpenSearch rejected log with status {status_code}")


def encode_record(record: LogRecord) -> bytes:
    """
    Encode a log record as strict JSON.

    Raises:
        TypeError: Value is not JSON-serializable
        ValueError: Value is out of range for JSON (NaN, Infinity)
    """
    return json.dumps(record, allow_nan=False, separators=(",", ":")).encode("utf-8")


class LogForwarder:
    """
    Synchronous client for the OpenSearch index endpoint.

    The underlying httpx.Client pools connections and is safe to share across
    request threads.
    """

    def __init__(
        self,
        config: OpenSearchConfig | None = None,
        client: httpx.Client | None = None,
    ):
        self.config = config or OpenSearchConfig()
        self.url = self.config.url
        self._client = client or httpx.Client(timeout=self.config.timeout_seconds)

    def send(self, payload: bytes) -> None:
        """
        POST an already-encoded record.

        Args:
            payload: JSON document bytes

        Raises:
            StoreUnavailableError: Transport failure
            StoreRejectedError: Store status >= 400
        """
        try:
            response = self._client.post(
                self.url,
                content=payload,
                headers={"Content-Type": "application/json"},
            )
        except httpx.HTTPError as e:
            raise StoreUnavailableError(f"OpenSearch request failed: {e}") from e

        if response.status_code >= 400:
            raise StoreRejectedError(response.status_code, response.text[:512])

        logger.debug("Log forwarded", url=self.url, status_code=response.status_code)

    def forward(self, record: LogRecord) -> None:
        """
        Encode and deliver one record.

        Raises:
            TypeError, ValueError: Record cannot be encoded
            ForwardingError: Delivery failed
        """
        self.send(encode_record(record))

    def close(self) -> None:
        """Release pooled connections."""
        self._client.close()
