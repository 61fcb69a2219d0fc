"""
Base backend abstraction.
The proxy only talks to this interface, so a test double or another
provider can be dropped in without touching the translation layer.
"""

from __future__ import annotations

import abc
import logging
from dataclasses import dataclass, field
from typing import AsyncIterator

logger = logging.getLogger(__name__)


@dataclass
class BackendResponse:
    """Standardized buffered response from a backend."""
    ok: bool
    status_code: int = 200
    data: dict = field(default_factory=dict)
    backend_name: str = ""
    latency_ms: float = 0.0
    error: str = ""


class BackendStream(abc.ABC):
    """An opened streaming response. Bytes come out exactly as received."""

    @abc.abstractmethod
    def aiter_bytes(self) -> AsyncIterator[bytes]:
        ...

    @abc.abstractmethod
    async def aclose(self) -> None:
        ...


class BaseBackend(abc.ABC):
    """
    Abstract base for inference backends.
    Payloads are already in the backend's own request shape.
    """

    def __init__(self, name: str, url: str, timeout: float | None = None):
        self.name = name
        self.url = url.rstrip("/")
        self.timeout = timeout

    @abc.abstractmethod
    async def forward(self, payload: dict) -> BackendResponse:
        """
        Forward a buffered chat completion request.
        Returns BackendResponse with data or error; never raises for HTTP errors.
        """
        ...

    @abc.abstractmethod
    async def open_stream(self, payload: dict) -> BackendStream:
        """
        Open a streaming chat completion request.
        Raises BackendError if the backend refuses before the first byte.
        """
        ...

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r} url={self.url!r}>"
