"""Adapter exports."""

from .cache import KeyValueCache, MemoryCache
from .cwop import CWOPClient, select_server
from .transport import Connection, TcpTransport, Transport

__all__ = [
    "KeyValueCache",
    "MemoryCache",
    "CWOPClient",
    "select_server",
    "Connection",
    "Transport",
    "TcpTransport",
]
