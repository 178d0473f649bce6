from typing import Any

from .rpc import JsonRpcRequest, JsonRpcResponse, RpcId
from .tool import ToolCallRequest, ToolCallResult, ToolDescriptor, parse_tool_arguments

# Type alias for chat messages
ChatMessage = dict[str, Any]

__all__ = [
    "ChatMessage",
    "JsonRpcRequest",
    "JsonRpcResponse",
    "RpcId",
    "ToolCallRequest",
    "ToolCallResult",
    "ToolDescriptor",
    "parse_tool_arguments",
]
