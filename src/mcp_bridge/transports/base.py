"""Transport protocol shared by the stdio and HTTP MCP transports."""

from __future__ import annotations

from typing import Any, Callable, Protocol

__all__ = ["MessageHandler", "CloseHandler", "Transport"]

# Called with every decoded JSON-RPC message the server sends.
MessageHandler = Callable[[dict[str, Any]], None]
# Called once when the transport can no longer deliver replies.
CloseHandler = Callable[[Exception], None]


class Transport(Protocol):
    """Moves JSON-RPC messages between the channel and the MCP server."""

    async def start(self, on_message: MessageHandler, on_close: CloseHandler) -> None:
        """Open the connection and begin delivering messages to ``on_message``."""
        ...

    async def send(self, message: dict[str, Any]) -> None:
        """Transmit one message. Raises TransportError on failure."""
        ...

    async def close(self) -> None:
        """Release the connection. Safe to call multiple times."""
        ...
