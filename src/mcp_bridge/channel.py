"""
Correlated request channel: pairs outgoing JSON-RPC requests with the replies
that arrive from the transport, by id.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from typing import Any, Optional

from mcp_bridge.errors import RequestTimeout, TransportError
from mcp_bridge.transports.base import Transport
from mcp_bridge.types import JsonRpcRequest, JsonRpcResponse, RpcId

__all__ = ["RpcChannel", "DEFAULT_TIMEOUT"]

DEFAULT_TIMEOUT = 30.0


class RpcChannel:
    """
    Owns one transport and the table of in-flight requests.

    Ids increase strictly per channel instance and are never reused. Replies
    are matched by id, so out-of-order delivery is fine; a reply whose request
    already completed or timed out is dropped with a warning.
    """

    def __init__(
        self,
        transport: Transport,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        logger: Optional[logging.Logger] = None,
        name: Optional[str] = None,
    ) -> None:
        self.transport = transport
        self.timeout = timeout
        self.logger = logger or logging.getLogger(__name__)
        self.name = name or self.__class__.__name__
        self._next_id = 1
        self._pending: dict[RpcId, asyncio.Future[JsonRpcResponse]] = {}
        self._started = False
        self._closed = False
        self._failure: Optional[Exception] = None

    @property
    def pending_ids(self) -> list[RpcId]:
        return list(self._pending)

    async def start(self) -> None:
        if self._started:
            return
        await self.transport.start(self.dispatch, self.fail_all)
        self._started = True

    async def request(self, method: str, params: Optional[dict[str, Any]] = None) -> Any:
        """
        Send ``method`` and wait for its reply.

        Returns the reply's ``result``. Raises RemoteError for an ``error``
        reply, RequestTimeout when nothing matching arrives in time, and
        TransportError when the transport fails or closes.
        """
        self._ensure_open()
        request = JsonRpcRequest(method=method, params=params, id=self._allocate_id())
        future: asyncio.Future[JsonRpcResponse] = (
            asyncio.get_running_loop().create_future()
        )
        self._pending[request.id] = future
        self._log(f"-> {method} (id {request.id})", logging.DEBUG)

        try:
            response = await asyncio.wait_for(
                self._exchange(request, future), self.timeout
            )
        except RequestTimeout:
            raise
        except asyncio.TimeoutError:
            self._log(f"Timeout waiting for {method} (id {request.id})", logging.WARNING)
            raise RequestTimeout(method, self.timeout) from None
        finally:
            self._pending.pop(request.id, None)

        self._log(f"<- {method} (id {request.id})", logging.DEBUG)
        return response.unwrap()

    async def notify(self, method: str, params: Optional[dict[str, Any]] = None) -> None:
        """Send a notification; no reply is expected."""
        self._ensure_open()
        await self.transport.send(JsonRpcRequest(method=method, params=params).to_dict())

    def dispatch(self, message: dict[str, Any]) -> None:
        """Resolve the pending call matching ``message``'s id."""
        if "id" not in message or message.get("method"):
            self._log(
                f"Ignoring server-initiated message {message.get('method')!r}",
                logging.DEBUG,
            )
            return

        request_id = message["id"]
        if isinstance(request_id, bool) or not isinstance(request_id, (int, str)):
            self._log(f"Discarding reply with malformed id {request_id!r}", logging.WARNING)
            return

        future = self._pending.get(request_id)
        if future is None or future.done():
            self._log(
                f"Discarding reply with unknown or expired id {request_id!r}",
                logging.WARNING,
            )
            return
        future.set_result(JsonRpcResponse.from_dict(message))

    def fail_all(self, exc: Exception) -> None:
        """
        Reject every outstanding call; later requests fail with ``exc`` too.

        Each caller receives its own copy of ``exc``.
        """
        if self._failure is None:
            self._failure = exc
        pending, self._pending = self._pending, {}
        for future in pending.values():
            if not future.done():
                future.set_exception(copy.copy(exc))
        if pending:
            self._log(f"Failed {len(pending)} pending request(s): {exc}", logging.WARNING)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self.transport.close()
        finally:
            self.fail_all(TransportError("channel closed"))

    async def __aenter__(self) -> "RpcChannel":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _exchange(
        self, request: JsonRpcRequest, future: asyncio.Future[JsonRpcResponse]
    ) -> JsonRpcResponse:
        await self.transport.send(request.to_dict())
        return await future

    def _allocate_id(self) -> int:
        request_id = self._next_id
        self._next_id += 1
        return request_id

    def _ensure_open(self) -> None:
        if self._closed:
            raise TransportError("channel closed")
        if self._failure is not None:
            raise copy.copy(self._failure)
        if not self._started:
            raise TransportError("channel not started")

    def _log(self, message: str, level: int = logging.INFO) -> None:
        self.logger.log(level, f"[{self.name}] {message}")
