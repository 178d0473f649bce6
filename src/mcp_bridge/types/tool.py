"""
Provider-neutral dataclasses for tool use.

They are intentionally minimal: everything provider-specific lives in adapters.
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any

from mcp_bridge.errors import ToolArgumentError

__all__ = [
    "ToolCallRequest",
    "ToolCallResult",
    "ToolDescriptor",
    "parse_tool_arguments",
]

_STATUS_LINE = re.compile(r"^\d{3}:")


@dataclass(slots=True)
class ToolCallRequest:
    """A model-agnostic request emitted by the LLM to call an MCP tool.

    ``arguments`` is kept exactly as the provider sent it: a JSON string for
    OpenAI-compatible endpoints, a dict for Anthropic.
    """
    id: str
    name: str
    arguments: dict[str, Any] | str | None


@dataclass(slots=True)
class ToolCallResult:
    """Payload to send back to the LLM after the tool finished running."""
    id: str                     # must match the request id
    content: str | dict[str, Any]
    name: str | None = None


@dataclass(frozen=True, slots=True)
class ToolDescriptor:
    """One entry of the MCP server's tool catalog."""
    name: str
    description: str = ""
    input_schema: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "ToolDescriptor":
        return cls(
            name=raw.get("name") or "unknown",
            description=raw.get("description") or "",
            input_schema=raw.get("inputSchema") or raw.get("parameters") or {},
        )

    def clean_description(self) -> str:
        """Description without the error-response boilerplate of OpenAPI servers."""
        lines = [
            line
            for line in self.description.splitlines()
            if "Error Responses" not in line and not _STATUS_LINE.match(line.strip())
        ]
        return "\n".join(lines).strip()

    def parameters(self) -> dict[str, Any]:
        """JSON-Schema object for function calling, always with the three keys."""
        schema = self.input_schema or {}
        return {
            **schema,
            "type": schema.get("type") or "object",
            "properties": schema.get("properties") or {},
            "required": list(schema.get("required") or []),
        }


def parse_tool_arguments(raw: dict[str, Any] | str | None) -> dict[str, Any]:
    """
    Decode a model-supplied argument payload into a dict.

    ``None`` and blank strings mean "no arguments". Raises ToolArgumentError
    when the payload is not valid JSON or does not decode to an object.
    """
    if raw is None:
        return {}
    if isinstance(raw, dict):
        return raw
    if not isinstance(raw, str):
        raise ToolArgumentError(f"Unsupported argument payload: {type(raw).__name__}")
    if not raw.strip():
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ToolArgumentError(f"Bad JSON in tool call arguments: {exc}") from exc
    if not isinstance(parsed, dict):
        raise ToolArgumentError(
            f"Tool call arguments must be a JSON object, got {type(parsed).__name__}"
        )
    return parsed
