"""
NVIDIA NIM backend.

NIM speaks an OpenAI-like API under <base>/chat/completions with a
bearer token. Differences from the client contract (model catalog,
reasoning fields, thinking hint) are handled by the translator and relay;
this module only moves bytes.
"""

from __future__ import annotations

import logging
import time
from typing import AsyncIterator

import httpx

from nimproxy.backends.base import BackendResponse, BackendStream, BaseBackend
from nimproxy.errors import BackendError, extract_error_message

logger = logging.getLogger(__name__)


def _describe_http_error(resp: httpx.Response) -> str:
    """Structured backend message if there is one, else a raw description."""
    message = extract_error_message(resp.content)
    if message:
        return message
    text = resp.text.strip()
    if text:
        return f"HTTP {resp.status_code}: {text[:200]}"
    return f"Request failed with status code {resp.status_code}"


class NIMStream(BackendStream):
    """Owns both the streamed response and the client that opened it."""

    def __init__(self, client: httpx.AsyncClient, response: httpx.Response):
        self.client = client
        self.response = response
        self._closed = False

    async def aiter_bytes(self) -> AsyncIterator[bytes]:
        async for chunk in self.response.aiter_bytes():
            if chunk:
                yield chunk

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self.response.aclose()
        finally:
            await self.client.aclose()


class NIMBackend(BaseBackend):
    """Backend for the NVIDIA NIM inference API."""

    def __init__(
        self,
        name: str = "nim",
        url: str = "https://integrate.api.nvidia.com/v1",
        timeout: float | None = None,
        api_key: str = "",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(name, url, timeout)
        self.api_key = api_key
        self.transport = transport

    @property
    def endpoint(self) -> str:
        return f"{self.url}/chat/completions"

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    async def forward(self, payload: dict) -> BackendResponse:
        """Forward a non-streaming request."""
        t0 = time.monotonic()
        try:
            async with self._client() as client:
                resp = await client.post(self.endpoint, json=payload, headers=self._headers())
                latency = (time.monotonic() - t0) * 1000

                if resp.status_code >= 400:
                    error = _describe_http_error(resp)
                    logger.warning(
                        "NIM backend '%s' returned HTTP %d for model '%s': %s",
                        self.name, resp.status_code, payload.get("model", ""), error,
                    )
                    return BackendResponse(
                        ok=False,
                        status_code=resp.status_code,
                        backend_name=self.name,
                        latency_ms=latency,
                        error=error,
                    )

                data = resp.json()
                return BackendResponse(
                    ok=True,
                    status_code=resp.status_code,
                    data=data if isinstance(data, dict) else {},
                    backend_name=self.name,
                    latency_ms=latency,
                )
        except httpx.TimeoutException:
            latency = (time.monotonic() - t0) * 1000
            logger.warning("NIM backend '%s' timed out after %.0fms", self.name, latency)
            return BackendResponse(
                ok=False,
                status_code=0,
                backend_name=self.name,
                latency_ms=latency,
                error=f"Timeout after {self.timeout}s",
            )
        except (httpx.HTTPError, ValueError) as e:
            latency = (time.monotonic() - t0) * 1000
            logger.warning("NIM backend '%s' failed: %s", self.name, e)
            return BackendResponse(
                ok=False,
                status_code=0,
                backend_name=self.name,
                latency_ms=latency,
                error=str(e),
            )

    async def open_stream(self, payload: dict) -> NIMStream:
        """
        Send the request and wait for the status line only.
        HTTP errors surface here, before the client has seen any bytes.
        """
        client = self._client()
        request = client.build_request("POST", self.endpoint, json=payload, headers=self._headers())
        try:
            resp = await client.send(request, stream=True)
        except httpx.HTTPError as e:
            await client.aclose()
            logger.warning("NIM backend '%s' stream failed to open: %s", self.name, e)
            raise BackendError(str(e)) from e

        if resp.status_code >= 400:
            try:
                await resp.aread()
                error = _describe_http_error(resp)
            finally:
                await resp.aclose()
                await client.aclose()
            logger.warning(
                "NIM backend '%s' refused stream with HTTP %d: %s",
                self.name, resp.status_code, error,
            )
            raise BackendError(error, status_code=resp.status_code)

        return NIMStream(client, resp)
