"""Transports carrying JSON-RPC messages to an MCP server."""

from .base import CloseHandler, MessageHandler, Transport
from .http import SESSION_HEADER, HttpTransport, wait_until_ready
from .stdio import StdioTransport

__all__ = [
    "CloseHandler",
    "MessageHandler",
    "Transport",
    "HttpTransport",
    "StdioTransport",
    "SESSION_HEADER",
    "wait_until_ready",
]
