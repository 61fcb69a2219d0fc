"""
Backend clients for nimproxy.
"""
from nimproxy.backends.base import BackendResponse, BackendStream, BaseBackend
from nimproxy.backends.nim import NIMBackend, NIMStream

__all__ = [
    "BackendResponse",
    "BackendStream",
    "BaseBackend",
    "NIMBackend",
    "NIMStream",
]
