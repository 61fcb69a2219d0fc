"""
Tests for error envelope normalization.
"""

import httpx

from nimproxy.errors import (
    BackendError,
    FALLBACK_MESSAGE,
    error_envelope,
    extract_error_message,
    normalize,
)


def test_envelope_shape():
    assert error_envelope("nope", 404) == {
        "error": {"message": "nope", "type": "invalid_request_error", "code": 404}
    }


def test_backend_status_is_reused():
    status, envelope = normalize(BackendError("rate limited", status_code=429))
    assert status == 429
    assert envelope == {"error": {"message": "rate limited", "type": "invalid_request_error", "code": 429}}


def test_missing_status_becomes_500():
    status, envelope = normalize(BackendError("connection refused"))
    assert status == 500
    assert envelope["error"]["code"] == 500
    assert envelope["error"]["message"] == "connection refused"


def test_type_is_fixed_regardless_of_fault():
    for fault in (BackendError("x", 401), BackendError("x", 503), RuntimeError("boom")):
        _, envelope = normalize(fault)
        assert envelope["error"]["type"] == "invalid_request_error"


def test_plain_exception_uses_description():
    status, envelope = normalize(RuntimeError("boom"))
    assert status == 500
    assert envelope["error"]["message"] == "boom"


def test_empty_exception_uses_fallback_message():
    _, envelope = normalize(RuntimeError())
    assert envelope["error"]["message"] == FALLBACK_MESSAGE


def test_httpx_status_error_prefers_structured_message():
    request = httpx.Request("POST", "http://nim/chat/completions")
    response = httpx.Response(403, json={"error": {"message": "forbidden model"}}, request=request)
    fault = httpx.HTTPStatusError("Client error '403 Forbidden'", request=request, response=response)
    status, envelope = normalize(fault)
    assert status == 403
    assert envelope["error"]["message"] == "forbidden model"


def test_extract_error_message_variants():
    assert extract_error_message({"error": {"message": "a"}}) == "a"
    assert extract_error_message({"error": "b"}) == "b"
    assert extract_error_message({"detail": "c"}) == "c"
    assert extract_error_message(b'{"message": "d"}') == "d"
    assert extract_error_message(b"<html>502</html>") is None
    assert extract_error_message({"error": {}}) is None
    assert extract_error_message(["not", "a", "dict"]) is None
