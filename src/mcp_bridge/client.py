"""
MCP client session on top of :class:`RpcChannel`.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Self, Sequence

import httpx

from mcp_bridge import __version__
from mcp_bridge.channel import DEFAULT_TIMEOUT, RpcChannel
from mcp_bridge.errors import RemoteError
from mcp_bridge.transports import HttpTransport, StdioTransport
from mcp_bridge.types import ToolDescriptor

__all__ = ["MCPClient", "PROTOCOL_VERSION"]

PROTOCOL_VERSION = "2024-11-05"


class MCPClient:
    """
    The MCP methods this project consumes: ``initialize``, ``tools/list``,
    ``tools/call``, ``resources/list`` and ``resources/read``.

    Use :meth:`open_stdio` or :meth:`open_http` to build one with its
    transport, and ``async with`` to start and close it.
    """

    def __init__(
        self,
        channel: RpcChannel,
        *,
        client_name: str = "mcp-bridge",
        client_version: str = __version__,
        logger: Optional[logging.Logger] = None,
        name: Optional[str] = None,
    ) -> None:
        self.channel = channel
        self.client_name = client_name
        self.client_version = client_version
        self.logger = logger or logging.getLogger(__name__)
        self.name = name or self.__class__.__name__
        self.server_info: dict[str, Any] = {}
        self.capabilities: dict[str, Any] = {}
        self.protocol_version: Optional[str] = None

    @classmethod
    def open_stdio(
        cls,
        command: Sequence[str],
        *,
        env: Optional[Mapping[str, str]] = None,
        timeout: float = DEFAULT_TIMEOUT,
        logger: Optional[logging.Logger] = None,
    ) -> Self:
        """Client for a server spawned as a child process."""
        transport = StdioTransport(command, env=env, logger=logger)
        return cls(RpcChannel(transport, timeout=timeout, logger=logger), logger=logger)

    @classmethod
    def open_http(
        cls,
        url: str,
        *,
        auth_token: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
        logger: Optional[logging.Logger] = None,
    ) -> Self:
        """Client for a server already listening on ``url``."""
        transport = HttpTransport(
            url, auth_token=auth_token, timeout=timeout, client=client, logger=logger
        )
        return cls(RpcChannel(transport, timeout=timeout, logger=logger), logger=logger)

    async def initialize(self) -> dict[str, Any]:
        """Handshake; must be the first request of the session."""
        result = await self.channel.request(
            "initialize",
            {
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": {},
                "clientInfo": {"name": self.client_name, "version": self.client_version},
            },
        )
        result = result or {}
        self.server_info = result.get("serverInfo") or {}
        self.capabilities = result.get("capabilities") or {}
        self.protocol_version = result.get("protocolVersion")
        await self.channel.notify("notifications/initialized")
        self._log(
            f"Connected to {self.server_info.get('name', 'MCP server')} "
            f"{self.server_info.get('version', '')}".rstrip()
        )
        return result

    async def list_tools(self) -> list[ToolDescriptor]:
        result = await self.channel.request("tools/list") or {}
        return [ToolDescriptor.from_dict(tool) for tool in result.get("tools") or []]

    async def call_tool(
        self, name: str, arguments: Optional[dict[str, Any]] = None
    ) -> dict[str, Any]:
        return await self.channel.request(
            "tools/call", {"name": name, "arguments": arguments or {}}
        )

    async def list_resources(self) -> Optional[list[dict[str, Any]]]:
        """Resources, or None when the server does not implement the method."""
        try:
            result = await self.channel.request("resources/list")
        except RemoteError as exc:
            if exc.is_method_not_found:
                self._log("resources/list is not available on this server")
                return None
            raise
        return list((result or {}).get("resources") or [])

    async def read_resource(self, uri: str) -> dict[str, Any]:
        return await self.channel.request("resources/read", {"uri": uri})

    async def aclose(self) -> None:
        await self.channel.close()

    async def __aenter__(self) -> Self:
        await self.channel.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def _log(self, message: str, level: int = logging.INFO) -> None:
        self.logger.log(level, f"[{self.name}] {message}")
