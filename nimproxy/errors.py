"""
Error envelope shared by every client-facing failure.

    {"error": {"message": ..., "type": "invalid_request_error", "code": <status>}}

`type` is always invalid_request_error, whatever actually went wrong.
"""

from __future__ import annotations

import json

import httpx

ERROR_TYPE = "invalid_request_error"
FALLBACK_MESSAGE = "Internal server error"


class BackendError(Exception):
    """The backend call failed. status_code is None for transport faults."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def error_envelope(message: str, code: int) -> dict:
    return {"error": {"message": message, "type": ERROR_TYPE, "code": code}}


def extract_error_message(payload) -> str | None:
    """
    Pull a human-readable message out of a backend error body.
    Understands {"error": {"message": ...}}, {"error": "..."},
    {"detail": ...} and {"message": ...}.
    """
    if isinstance(payload, (bytes, str)):
        try:
            payload = json.loads(payload)
        except (ValueError, UnicodeDecodeError):
            return None

    if not isinstance(payload, dict):
        return None

    err = payload.get("error")
    if isinstance(err, dict) and err.get("message"):
        return str(err["message"])
    if isinstance(err, str) and err:
        return err
    for key in ("detail", "message"):
        value = payload.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def normalize(fault: BaseException) -> tuple[int, dict]:
    """Map any fault to (http_status, ErrorEnvelope)."""
    status: int | None = None
    message: str | None = None

    if isinstance(fault, BackendError):
        status = fault.status_code
        message = fault.message
    elif isinstance(fault, httpx.HTTPStatusError):
        status = fault.response.status_code
        try:
            message = extract_error_message(fault.response.content)
        except httpx.ResponseNotRead:
            message = None

    status = status or 500
    message = message or str(fault) or FALLBACK_MESSAGE
    return status, error_envelope(message, status)
