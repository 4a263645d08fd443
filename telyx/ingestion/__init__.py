"""
Log ingestion: decode, timestamp enrichment and forwarding.
"""

from telyx.ingestion.handler import IngestionHandler

__all__ = ["IngestionHandler"]
