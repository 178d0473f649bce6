"""Shared fixtures: an in-memory transport standing in for a real server."""

import asyncio
from typing import Any, Optional

import pytest


class FakeTransport:
    """Records what the channel sends; tests deliver replies by hand."""

    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []
        self.closed = False
        self.send_error: Optional[Exception] = None
        self.on_message = None
        self.on_close = None

    async def start(self, on_message, on_close) -> None:
        self.on_message = on_message
        self.on_close = on_close

    async def send(self, message: dict[str, Any]) -> None:
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(message)

    async def close(self) -> None:
        self.closed = True

    def reply(self, request_id, result=None, error=None) -> None:
        message: dict[str, Any] = {"jsonrpc": "2.0", "id": request_id}
        if error is not None:
            message["error"] = error
        else:
            message["result"] = result
        self.on_message(message)


async def wait_for_sent(transport: FakeTransport, count: int) -> None:
    """Yield to the event loop until ``count`` messages went out."""
    for _ in range(100):
        if len(transport.sent) >= count:
            return
        await asyncio.sleep(0)
    raise AssertionError(f"expected {count} sent messages, got {len(transport.sent)}")


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()
