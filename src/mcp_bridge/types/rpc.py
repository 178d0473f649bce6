"""JSON-RPC 2.0 envelopes exchanged with the MCP server."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from mcp_bridge.errors import RemoteError

__all__ = ["JSONRPC_VERSION", "JsonRpcRequest", "JsonRpcResponse", "RpcId"]

JSONRPC_VERSION = "2.0"

RpcId = int | str


@dataclass(slots=True)
class JsonRpcRequest:
    """A request, or a notification when ``id`` is None."""

    method: str
    params: Optional[dict[str, Any]] = None
    id: Optional[RpcId] = None

    @property
    def is_notification(self) -> bool:
        return self.id is None

    def to_dict(self) -> dict[str, Any]:
        message: dict[str, Any] = {"jsonrpc": JSONRPC_VERSION, "method": self.method}
        if self.params is not None:
            message["params"] = self.params
        if self.id is not None:
            message["id"] = self.id
        return message


@dataclass(slots=True)
class JsonRpcResponse:
    """A reply carrying either ``result`` or ``error``."""

    id: Optional[RpcId]
    result: Any = None
    error: Optional[dict[str, Any]] = None

    @classmethod
    def from_dict(cls, message: dict[str, Any]) -> "JsonRpcResponse":
        error = message.get("error")
        return cls(
            id=message.get("id"),
            result=message.get("result"),
            error=error if isinstance(error, dict) else None,
        )

    @property
    def is_error(self) -> bool:
        return self.error is not None

    def to_exception(self) -> RemoteError:
        err = self.error or {}
        return RemoteError(
            code=int(err.get("code", 0)),
            message=str(err.get("message", "unknown error")),
            data=err.get("data"),
        )

    def unwrap(self) -> Any:
        """Return ``result`` or raise the RemoteError carried by ``error``."""
        if self.is_error:
            raise self.to_exception()
        return self.result
