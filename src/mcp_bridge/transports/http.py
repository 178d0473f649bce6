"""JSON-RPC over HTTP POST with ``mcp-session-id`` correlation."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Final, Optional

import httpx

from mcp_bridge.config import mask_secret
from mcp_bridge.errors import RequestTimeout, TransportError
from mcp_bridge.framing import decode_record, parse_event_stream

from .base import CloseHandler, MessageHandler

__all__ = ["HttpTransport", "SESSION_HEADER", "wait_until_ready"]

SESSION_HEADER: Final = "mcp-session-id"
_ACCEPT: Final = "application/json, text/event-stream"

logger = logging.getLogger(__name__)


class HttpTransport:
    """
    One POST per message; the reply body carries at most one envelope.

    The server assigns the session id in its reply to ``initialize``. That
    first request goes out without the header, the id is captured once, and
    every later request carries it. Attempts by the server to change the id
    afterwards are ignored.
    """

    def __init__(
        self,
        url: str,
        *,
        auth_token: Optional[str] = None,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
        logger: Optional[logging.Logger] = None,
        name: Optional[str] = None,
    ) -> None:
        self.url = url
        self.auth_token = auth_token
        self.timeout = timeout
        self.logger = logger or logging.getLogger(__name__)
        self.name = name or self.__class__.__name__
        self._client = client
        self._owns_client = client is None
        self._session_id: Optional[str] = None
        self._on_message: Optional[MessageHandler] = None

    @property
    def session_id(self) -> Optional[str]:
        return self._session_id

    async def start(self, on_message: MessageHandler, on_close: CloseHandler) -> None:
        # Each reply arrives in its own HTTP response, there is no reader to close.
        self._on_message = on_message
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        auth = mask_secret(self.auth_token) if self.auth_token else "none"
        self._log(f"Using MCP endpoint {self.url} (auth token: {auth})")

    async def send(self, message: dict[str, Any]) -> None:
        if self._client is None or self._on_message is None:
            raise TransportError("HTTP transport is not started")

        method = message.get("method", "")
        is_initialize = method == "initialize"
        headers = self._headers(include_session=not is_initialize)

        try:
            response = await self._client.post(self.url, json=message, headers=headers)
        except httpx.TimeoutException as exc:
            raise RequestTimeout(method, self.timeout) from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"HTTP request to {self.url} failed: {exc}") from exc

        self._capture_session(response, is_initialize)
        self._raise_for_status(response)

        envelope = self._decode(response)
        if envelope is None:
            if "id" in message:
                raise TransportError(f"No JSON-RPC envelope in reply to {method!r}")
            return
        self._on_message(envelope)

    async def close(self) -> None:
        client = self._client
        if client is None:
            return
        if self._session_id is not None:
            try:
                await client.delete(self.url, headers=self._headers(include_session=True))
            except httpx.HTTPError as exc:
                self._log(f"Session termination failed: {exc}", logging.DEBUG)
            self._session_id = None
        if self._owns_client:
            await client.aclose()
        self._client = None

    def _headers(self, *, include_session: bool) -> dict[str, str]:
        headers = {"Accept": _ACCEPT}
        if self.auth_token:
            headers["Authorization"] = f"Bearer {self.auth_token}"
        if include_session and self._session_id:
            headers[SESSION_HEADER] = self._session_id
        return headers

    def _capture_session(self, response: httpx.Response, is_initialize: bool) -> None:
        session_id = response.headers.get(SESSION_HEADER)
        if not session_id or session_id == self._session_id:
            return
        if is_initialize and self._session_id is None:
            self._session_id = session_id
            self._log(f"Session id received from server: {session_id[:8]}...")
        else:
            self._log(
                f"Ignoring attempt to change session id to {session_id[:8]}...",
                logging.WARNING,
            )

    def _raise_for_status(self, response: httpx.Response) -> None:
        if not response.is_error:
            return
        status = response.status_code
        if status == 401:
            raise TransportError(
                f"HTTP {status}: Unauthorized, check the authentication token"
            )
        body = response.text[:200]
        if status == 400 and "session" in body.lower():
            self._log(
                "Server rejected the session id; initialize must be sent first "
                "and without a session header",
                logging.ERROR,
            )
        raise TransportError(f"HTTP {status}: {body or response.reason_phrase}")

    def _decode(self, response: httpx.Response) -> Optional[dict[str, Any]]:
        body = response.text
        if not body.strip():
            return None
        content_type = response.headers.get("content-type", "")
        if "text/event-stream" in content_type:
            return parse_event_stream(body)
        return decode_record(body)

    def _log(self, message: str, level: int = logging.INFO) -> None:
        self.logger.log(level, f"[{self.name}] {message}")


async def wait_until_ready(
    url: str,
    *,
    timeout: float = 30.0,
    interval: float = 0.5,
    client: Optional[httpx.AsyncClient] = None,
) -> None:
    """
    Poll ``url`` until the server answers at all.

    Any HTTP status counts as ready: an MCP endpoint typically rejects a bare
    GET, which still proves it is listening.
    """
    owns_client = client is None
    http = client or httpx.AsyncClient(timeout=interval * 4)
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    try:
        while True:
            try:
                response = await http.get(url)
            except httpx.TransportError as exc:
                if loop.time() >= deadline:
                    raise TransportError(
                        f"MCP server at {url} not ready after {timeout:g}s: {exc}"
                    ) from exc
                await asyncio.sleep(interval)
                continue
            logger.info("MCP server at %s is up (HTTP %s)", url, response.status_code)
            return
    finally:
        if owns_client:
            await http.aclose()
