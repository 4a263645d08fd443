"""
Tests for the OpenSearch forwarder.

Tests:
- One POST per record with the JSON body
- Status classification (< 400 success, >= 400 rejection)
- Transport failures
- Strict JSON encoding
"""

import math

import httpx
import pytest

from telyx.config import OpenSearchConfig
from telyx.forwarder import (
    ForwardingError,
    LogForwarder,
    StoreRejectedError,
    StoreUnavailableError,
    encode_record,
)


def test_forward_posts_json_document(forwarder, store):
    """Test that one record produces exactly one POST with the record as body."""
    forwarder.forward({"level": "info", "msg": "started", "timestamp": "2026-01-01T00:00:00Z"})

    assert len(store.requests) == 1
    request = store.requests[0]
    assert request.method == "POST"
    assert str(request.url) == forwarder.url
    assert request.headers["content-type"] == "application/json"
    assert store.documents[0] == {
        "level": "info",
        "msg": "started",
        "timestamp": "2026-01-01T00:00:00Z",
    }


@pytest.mark.parametrize("status_code", [200, 201, 302, 399])
def test_forward_accepts_status_below_400(forwarder, store, status_code):
    store.status_code = status_code

    forwarder.forward({"msg": "ok"})  # Should not raise

    assert len(store.requests) == 1


@pytest.mark.parametrize("status_code", [400, 404, 429, 500, 503])
def test_forward_rejects_status_400_and_above(forwarder, store, status_code):
    store.status_code = status_code

    with pytest.raises(StoreRejectedError) as exc_info:
        forwarder.forward({"msg": "rejected"})

    assert exc_info.value.status_code == status_code
    assert isinstance(exc_info.value, ForwardingError)


def test_forward_transport_failure(forwarder, store):
    """Test that an unreachable store surfaces as a forwarding error."""
    store.unreachable = True

    with pytest.raises(StoreUnavailableError) as exc_info:
        forwarder.forward({"msg": "lost"})

    assert isinstance(exc_info.value, ForwardingError)
    assert isinstance(exc_info.value.__cause__, httpx.ConnectError)


def test_forward_does_not_retry(forwarder, store):
    store.status_code = 503

    with pytest.raises(ForwardingError):
        forwarder.forward({"msg": "once"})

    assert len(store.requests) == 1


def test_send_posts_payload_verbatim(forwarder, store):
    payload = b'{"msg":"raw"}'

    forwarder.send(payload)

    assert store.requests[0].content == payload


def test_encode_record_rejects_nan():
    with pytest.raises(ValueError):
        encode_record({"value": math.nan})


def test_encode_record_rejects_unserializable_values():
    with pytest.raises(TypeError):
        encode_record({"value": object()})


def test_encode_record_is_compact_json():
    assert encode_record({"a": 1, "b": [True, None]}) == b'{"a":1,"b":[true,null]}'


def test_forwarder_uses_configured_url():
    forwarder = LogForwarder(OpenSearchConfig(url="http://store.example:9200/app/_doc"))
    try:
        assert forwarder.url == "http://store.example:9200/app/_doc"
    finally:
        forwarder.close()
