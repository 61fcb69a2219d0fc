"""
Response relay: backend reply -> client reply.

Buffered replies are reshaped into a chat.completion document.
Streamed replies are passed through byte-for-byte; per-event reshaping
is not attempted, so clients see NIM's own SSE frames.
"""

from __future__ import annotations

import logging
import time
from typing import AsyncIterator, Awaitable, Callable

import httpx

from nimproxy.backends.base import BackendStream
from nimproxy.models import CompletionResponse, Usage

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}
SSE_MEDIA_TYPE = "text/event-stream"


def completion_id() -> str:
    """Millisecond timestamp id. Collisions are possible and tolerated."""
    return f"chatcmpl-{time.time_ns() // 1_000_000}"


def _reasoning_of(message: dict) -> str | None:
    return message.get("reasoning_content") or message.get("reasoning")


def _relay_message(message: dict, show_reasoning: bool) -> dict:
    content = message.get("content")
    reasoning = _reasoning_of(message)
    if show_reasoning and reasoning:
        content = f"<think>\n{reasoning}\n</think>\n\n{content or ''}"
    return {"role": message.get("role", "assistant"), "content": content}


def relay_buffered(
    backend_reply: dict,
    client_model: str,
    show_reasoning: bool = False,
) -> dict:
    """
    Reshape a NIM chat completion into the client-facing schema.
    Always well-formed: missing choices -> [], missing usage -> zeros.
    """
    choices = []
    for choice in backend_reply.get("choices") or []:
        choices.append({
            "index": choice.get("index", len(choices)),
            "message": _relay_message(choice.get("message") or {}, show_reasoning),
            "finish_reason": choice.get("finish_reason"),
        })

    return CompletionResponse(
        id=completion_id(),
        created=int(time.time()),
        model=client_model,
        choices=choices,
        usage=backend_reply.get("usage") or Usage().to_dict(),
    ).to_dict()


async def relay_stream(
    stream: BackendStream,
    is_disconnected: Callable[[], Awaitable[bool]] | None = None,
) -> AsyncIterator[bytes]:
    """
    Pass backend SSE bytes through unchanged.

    A backend fault mid-stream is logged and the client stream simply ends;
    nothing further is written once the fault is seen. If the client goes
    away, the backend read is torn down instead of being drained.
    """
    try:
        async for chunk in stream.aiter_bytes():
            if is_disconnected is not None and await is_disconnected():
                logger.info("Client disconnected mid-stream, closing backend stream")
                break
            yield chunk
    except httpx.HTTPError as e:
        logger.error("Backend stream error: %s", e)
    except Exception as e:
        logger.error("Stream relay failed: %s", e, exc_info=True)
    finally:
        await stream.aclose()
