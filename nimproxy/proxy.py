"""
Proxy: the core of nimproxy.
Takes OpenAI-shaped requests, translates them for NIM, and translates
the answer back.

    body -> ModelResolver -> translate() -> backend -> relay -> client

Handles streaming (SSE) as a transparent pass-through.
"""

from __future__ import annotations

import logging
from typing import AsyncIterator, Awaitable, Callable

from nimproxy.backends.base import BaseBackend
from nimproxy.backends.nim import NIMBackend
from nimproxy.config import GatewaySettings
from nimproxy.errors import BackendError
from nimproxy.models import CompletionRequest
from nimproxy.relay import relay_buffered, relay_stream
from nimproxy.resolver import ModelResolver
from nimproxy.translator import translate

logger = logging.getLogger(__name__)


class Proxy:
    """Translating proxy between OpenAI-compatible clients and NIM."""

    def __init__(self, settings: GatewaySettings, backend: BaseBackend | None = None):
        self.settings = settings
        self.resolver = ModelResolver(settings.model_map, settings.fallback_model)
        self.backend = backend or NIMBackend(
            url=settings.backend_url,
            timeout=settings.timeout,
            api_key=settings.api_key,
        )

    def _prepare(self, body: dict) -> tuple[CompletionRequest, dict]:
        """Parse the body and build the backend payload."""
        req = CompletionRequest.from_body(body)
        backend_model = self.resolver.resolve(req.model)
        backend_req = translate(
            req,
            backend_model,
            default_temperature=self.settings.default_temperature,
            default_max_tokens=self.settings.default_max_tokens,
            thinking=self.settings.enable_thinking,
        )
        logger.debug(
            "Routing '%s' -> '%s' (%d messages, stream=%s)",
            req.model, backend_model, len(backend_req.messages), backend_req.stream,
        )
        return req, backend_req.to_payload()

    async def forward_chat_completion(self, body: dict) -> dict:
        """Forward a non-streaming chat completion. Raises BackendError on failure."""
        req, payload = self._prepare(body)
        resp = await self.backend.forward(payload)
        if not resp.ok:
            raise BackendError(resp.error, status_code=resp.status_code or None)

        logger.info(
            "Backend '%s' served '%s' in %.0fms",
            resp.backend_name, payload["model"], resp.latency_ms,
        )
        return relay_buffered(resp.data, req.model, show_reasoning=self.settings.show_reasoning)

    async def open_chat_completion_stream(
        self,
        body: dict,
        is_disconnected: Callable[[], Awaitable[bool]] | None = None,
    ) -> AsyncIterator[bytes]:
        """
        Open the backend stream and return the relay generator.
        Raises BackendError if NIM refuses the request up front.
        """
        _, payload = self._prepare(body)
        payload["stream"] = True
        stream = await self.backend.open_stream(payload)
        return relay_stream(stream, is_disconnected)

    def list_models(self, created: int) -> dict:
        """OpenAI /v1/models document for every client-facing name."""
        return {
            "object": "list",
            "data": [
                {
                    "id": name,
                    "object": "model",
                    "created": created,
                    "owned_by": self.settings.owned_by,
                }
                for name in self.resolver.client_models()
            ],
        }

    def health(self) -> dict:
        return {
            "status": "ok",
            "service": self.settings.service_name,
            "reasoning_display": self.settings.show_reasoning,
            "thinking_mode": self.settings.enable_thinking,
        }
