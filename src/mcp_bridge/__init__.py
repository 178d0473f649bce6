"""
MCP Bridge - JSON-RPC client for MCP servers plus an LLM tool-calling loop.
"""

# Defined before the imports below, client.py reads it at import time
__version__ = "0.1.0"

from .client import MCPClient, PROTOCOL_VERSION
from .channel import RpcChannel
from .config import Settings
from .errors import (
    MCPBridgeError,
    ConfigurationError,
    TransportError,
    ServerExitedError,
    RequestTimeout,
    RemoteError,
    ToolArgumentError,
    IterationBudgetExceeded,
    ProviderError,
)
from .llm import BaseAsyncLLM, OpenAICompatibleLLM, AnthropicLLM, create_llm
from .loop import LoopState, ToolLoop
from .normalize import Items, Unrecognized, extract_text, normalize_items
from .params import ChatMessage
from .provider import Provider, get_api_key
from .response import ChatResponse
from .transports import HttpTransport, StdioTransport
from .types import ToolCallRequest, ToolCallResult, ToolDescriptor

__all__ = [
    "MCPClient",
    "PROTOCOL_VERSION",
    "RpcChannel",
    "Settings",
    "MCPBridgeError",
    "ConfigurationError",
    "TransportError",
    "ServerExitedError",
    "RequestTimeout",
    "RemoteError",
    "ToolArgumentError",
    "IterationBudgetExceeded",
    "ProviderError",
    "BaseAsyncLLM",
    "OpenAICompatibleLLM",
    "AnthropicLLM",
    "create_llm",
    "LoopState",
    "ToolLoop",
    "Items",
    "Unrecognized",
    "extract_text",
    "normalize_items",
    "ChatMessage",
    "Provider",
    "get_api_key",
    "ChatResponse",
    "HttpTransport",
    "StdioTransport",
    "ToolCallRequest",
    "ToolCallResult",
    "ToolDescriptor",
]
