"""
TelyX - telemetry-instrumented log ingestion backend.

Accepts structured log records over HTTP, stamps them with a timestamp and
forwards them to OpenSearch. Every request is counted, timed (Prometheus)
and traced (OpenTelemetry).

Example:
    >>> from telyx import get_settings
    >>> settings = get_settings()
    >>> print(settings.opensearch.url)
"""

from telyx.config import get_settings

__all__ = ["get_settings"]
