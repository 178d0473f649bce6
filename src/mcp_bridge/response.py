from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from mcp_bridge.errors import ProviderError
from mcp_bridge.types import ToolCallRequest


@dataclass
class ChatResponse:
    """Unified response object for all LLM providers."""

    content: str
    tool_calls: list[ToolCallRequest] | None = None
    raw: Any = None
    error: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.error is not None

    @property
    def wants_tools(self) -> bool:
        return bool(self.tool_calls)

    def raise_for_error(self) -> None:
        if self.is_error:
            raise ProviderError(self.error)
