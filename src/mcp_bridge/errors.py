"""
Error taxonomy for mcp-bridge, plus translation of noisy provider tracebacks
into short messages while preserving the original exception.
"""

from __future__ import annotations

import importlib
import logging
from typing import Any, Final, Optional, Type

__all__: tuple[str, ...] = (
    "MCPBridgeError",
    "ConfigurationError",
    "TransportError",
    "ServerExitedError",
    "RequestTimeout",
    "RemoteError",
    "ToolArgumentError",
    "IterationBudgetExceeded",
    "ProviderError",
    "METHOD_NOT_FOUND",
    "classify_error",
)

# JSON-RPC 2.0 reserved error codes
PARSE_ERROR: Final = -32700
INVALID_REQUEST: Final = -32600
METHOD_NOT_FOUND: Final = -32601
INVALID_PARAMS: Final = -32602
INTERNAL_ERROR: Final = -32603


class MCPBridgeError(Exception):
    """Base class for every error raised by mcp-bridge."""


class ConfigurationError(MCPBridgeError):
    """A required credential or endpoint is missing or invalid."""


class TransportError(MCPBridgeError):
    """The connection to the MCP server failed, closed, or returned garbage."""


class ServerExitedError(TransportError):
    """The MCP server child process exited while requests were outstanding."""

    def __init__(self, returncode: int | None) -> None:
        super().__init__(f"MCP server exited with code {returncode}")
        self.returncode = returncode

    def __reduce__(self):
        return type(self), (self.returncode,)


class RequestTimeout(MCPBridgeError, TimeoutError):
    """No matching response arrived within the per-request window."""

    def __init__(self, method: str, timeout: float) -> None:
        super().__init__(f"Timeout: no response to {method!r} after {timeout:g}s")
        self.method = method
        self.timeout = timeout

    def __reduce__(self):
        return type(self), (self.method, self.timeout)


class RemoteError(MCPBridgeError):
    """The MCP server answered with a JSON-RPC error object.

    Attributes:
        code: JSON-RPC error code.
        message: Server supplied message.
        data: Optional server supplied details.
    """

    def __init__(self, code: int, message: str, data: Any = None) -> None:
        super().__init__(f"MCP error: {message} (code: {code})")
        self.code = code
        self.message = message
        self.data = data

    def __reduce__(self):
        return type(self), (self.code, self.message, self.data)

    @property
    def is_method_not_found(self) -> bool:
        return self.code == METHOD_NOT_FOUND


class ToolArgumentError(MCPBridgeError, ValueError):
    """The model produced tool-call arguments that are not a JSON object."""


class IterationBudgetExceeded(MCPBridgeError):
    """The tool-calling loop hit its ceiling without a final answer."""

    def __init__(self, max_iterations: int) -> None:
        super().__init__(f"Maximum number of iterations reached ({max_iterations})")
        self.max_iterations = max_iterations

    def __reduce__(self):
        return type(self), (self.max_iterations,)


class ProviderError(MCPBridgeError):
    """The text-generation endpoint failed to produce a reply."""


def _import_exception(path: str) -> Type[Exception]:
    """Dynamically import an exception type, falling back to a never-raised one."""
    module_name, _, attr = path.rpartition(".")
    try:
        module = importlib.import_module(module_name)
        return getattr(module, attr)
    except (ImportError, AttributeError):
        return _Unavailable


class _Unavailable(Exception):
    pass


OpenAI_APIStatusError: Final = _import_exception("openai.APIStatusError")
OpenAI_APIConnectionError: Final = _import_exception("openai.APIConnectionError")
OpenAI_RateLimitError: Final = _import_exception("openai.RateLimitError")
OpenAI_APIError: Final = _import_exception("openai.APIError")

Anthropic_APIStatusError: Final = _import_exception("anthropic.APIStatusError")
Anthropic_APIConnectionError: Final = _import_exception("anthropic.APIConnectionError")
Anthropic_RateLimitError: Final = _import_exception("anthropic.RateLimitError")
Anthropic_APIError: Final = _import_exception("anthropic.APIError")

Httpx_HTTPError: Final = _import_exception("httpx.HTTPError")

RATE_LIMIT_ERRORS: Final[tuple[Type[Exception], ...]] = (
    OpenAI_RateLimitError,
    Anthropic_RateLimitError,
)

CONN_ERRORS: Final[tuple[Type[Exception], ...]] = (
    OpenAI_APIConnectionError,
    Anthropic_APIConnectionError,
    Httpx_HTTPError,
    TimeoutError,
    ConnectionError,
)

STATUS_ERRORS: Final[tuple[Type[Exception], ...]] = (
    OpenAI_APIStatusError,
    Anthropic_APIStatusError,
)

API_ERRORS: Final[tuple[Type[Exception], ...]] = (
    OpenAI_APIError,
    Anthropic_APIError,
)


def classify_error(
    exc: Exception,
    logger: Optional[logging.Logger] = None,
) -> str:
    """Turn an SDK exception into a friendly, concise message and log it."""
    log = logger or logging.getLogger(__name__)

    if isinstance(exc, RATE_LIMIT_ERRORS):
        msg = "Rate limit exceeded, please retry later"
    elif isinstance(exc, STATUS_ERRORS):
        status = getattr(exc, "status_code", "unknown")
        msg = f"HTTP {status} from the LLM provider"
    elif isinstance(exc, CONN_ERRORS):
        msg = "Connection problem, unable to reach the LLM provider"
    elif isinstance(exc, API_ERRORS):
        msg = "Provider reported an error"
    else:
        msg = exc.__class__.__name__
        log.exception("%s: %s", msg, exc)
        return f"{msg}: {exc}"

    log.error("%s: %s", msg, exc)
    return f"{msg}: {exc}"
