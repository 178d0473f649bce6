"""Anthropic adapter for pure request/response transformations."""

from __future__ import annotations

from typing import Any, Optional, Sequence

from anthropic.types import Message

from mcp_bridge.params import ChatMessage
from mcp_bridge.response import ChatResponse
from mcp_bridge.types import ToolCallRequest, ToolCallResult, ToolDescriptor

# Anthropic requires max_tokens on every request
_DEFAULT_MAX_TOKENS = 4096


def anthropic_tool(tool: ToolDescriptor) -> dict[str, Any]:
    """Convert an MCP tool descriptor to Anthropic's tool schema."""
    return {
        "name": tool.name,
        "description": tool.clean_description() or f"MCP tool: {tool.name}",
        "input_schema": tool.parameters(),
    }


def _is_tool_result(msg: ChatMessage) -> bool:
    content = msg.get("content")
    return (
        msg.get("role") == "user"
        and isinstance(content, list)
        and all(isinstance(b, dict) and b.get("type") == "tool_result" for b in content)
    )


class AnthropicRequestAdapter:
    """Adapter for converting between generic format and Anthropic format."""

    def to_provider(
        self,
        messages: Sequence[ChatMessage],
        params: dict[str, Any],
        tools: Optional[Sequence[ToolDescriptor]] = None,
    ) -> dict[str, Any]:
        """Convert generic messages, normalized params and tools to a request."""
        anthropic_messages: list[dict[str, Any]] = []
        system_prompt: str | list[Any] = ""

        for msg in messages:
            if msg["role"] == "system":
                content = msg.get("content", "")
                system_prompt = content if isinstance(content, (str, list)) else str(content)
                continue

            if msg.get("tool_call_id"):
                # Generic tool message written by hand
                msg = self.tool_result_message(
                    ToolCallResult(id=msg["tool_call_id"], content=msg.get("content", ""))
                )

            # All results of one assistant turn must travel in one user message
            if (
                _is_tool_result(msg)
                and anthropic_messages
                and _is_tool_result(anthropic_messages[-1])
            ):
                anthropic_messages[-1]["content"].extend(msg["content"])
                continue

            content = msg.get("content")
            if content is None:
                content = ""
            elif not isinstance(content, (str, list)):
                content = str(content)
            anthropic_messages.append(
                {
                    "role": msg["role"],
                    "content": list(content) if isinstance(content, list) else content,
                }
            )

        base_params = dict(params)
        extras = base_params.pop("extra", {})
        base_params.setdefault("max_tokens", _DEFAULT_MAX_TOKENS)

        if "stop" in base_params:
            stop = base_params.pop("stop")
            base_params["stop_sequences"] = stop if isinstance(stop, list) else [stop]

        tool_choice = base_params.pop("tool_choice", None)
        base_params.pop("parallel_tool_calls", None)
        if tools:
            base_params["tools"] = [anthropic_tool(tool) for tool in tools]
            if isinstance(tool_choice, dict):
                base_params["tool_choice"] = tool_choice
            elif tool_choice in ("auto", "any", "none"):
                base_params["tool_choice"] = {"type": tool_choice}

        for k, v in extras.items():
            base_params.setdefault(k, v)

        request: dict[str, Any] = {"messages": anthropic_messages, **base_params}
        if system_prompt:
            request["system"] = system_prompt
        return request

    def from_provider(self, raw: Message) -> ChatResponse:
        """Convert Anthropic response to unified ChatResponse."""
        text_parts: list[str] = []
        tool_calls: list[ToolCallRequest] = []

        for block in raw.content or []:
            if block.type == "text":
                text_parts.append(block.text)
            elif block.type == "tool_use":
                tool_calls.append(
                    ToolCallRequest(
                        id=block.id,
                        name=block.name,
                        arguments=dict(block.input) if hasattr(block.input, "items") else block.input,
                    )
                )

        return ChatResponse(
            content="".join(text_parts), tool_calls=tool_calls or None, raw=raw
        )

    def assistant_message_from(self, raw: Message) -> ChatMessage:
        """Convert Anthropic response to the assistant transcript entry."""
        blocks: list[dict[str, Any]] = []
        for block in raw.content or []:
            if block.type == "text":
                blocks.append({"type": "text", "text": block.text})
            elif block.type == "tool_use":
                blocks.append(
                    {
                        "type": "tool_use",
                        "id": block.id,
                        "name": block.name,
                        "input": dict(block.input) if hasattr(block.input, "items") else {},
                    }
                )

        if any(b["type"] == "tool_use" for b in blocks):
            return {"role": "assistant", "content": blocks}
        return {"role": "assistant", "content": "".join(b["text"] for b in blocks)}

    def tool_result_message(self, result: ToolCallResult) -> ChatMessage:
        """Convert ToolCallResult to an Anthropic tool_result message."""
        content = result.content if isinstance(result.content, str) else str(result.content)
        return {
            "role": "user",
            "content": [
                {
                    "type": "tool_result",
                    "tool_use_id": result.id,
                    "content": content,
                }
            ],
        }
