"""
Request translation: client CompletionRequest -> NIM BackendRequest.
Pure structural transform. No validation happens here: an empty
conversation is forwarded and the backend decides what to do with it.
"""

from __future__ import annotations

from nimproxy.models import BackendRequest, CompletionRequest


def translate(
    req: CompletionRequest,
    resolved_model: str,
    default_temperature: float = 0.6,
    default_max_tokens: int = 4096,
    thinking: bool = False,
) -> BackendRequest:
    """
    Build the backend payload. Only absent (None) parameters are defaulted;
    an explicit temperature of 0 is kept.
    """
    return BackendRequest(
        model=resolved_model,
        messages=tuple(req.source.to_messages()),
        temperature=req.temperature if req.temperature is not None else default_temperature,
        max_tokens=req.max_tokens if req.max_tokens is not None else default_max_tokens,
        stream=req.stream,
        thinking=thinking,
    )
