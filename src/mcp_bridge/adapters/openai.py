"""OpenAI-compatible adapter (OpenAI, Mistral, Gemini, OpenRouter)."""

from __future__ import annotations

from typing import Any, Optional, Sequence

from openai.types.chat import ChatCompletion

from mcp_bridge.params import ChatMessage
from mcp_bridge.response import ChatResponse
from mcp_bridge.types import ToolCallRequest, ToolCallResult, ToolDescriptor


def function_tool(tool: ToolDescriptor) -> dict[str, Any]:
    """Convert an MCP tool descriptor to the function-calling schema."""
    return {
        "type": "function",
        "function": {
            "name": tool.name,
            "description": tool.clean_description() or f"MCP tool: {tool.name}",
            "parameters": tool.parameters(),
        },
    }


class OpenAIRequestAdapter:
    """Adapter for converting between generic format and OpenAI format."""

    def to_provider(
        self,
        messages: Sequence[ChatMessage],
        params: dict[str, Any],
        tools: Optional[Sequence[ToolDescriptor]] = None,
    ) -> dict[str, Any]:
        """Convert generic messages, normalized params and tools to a request."""
        openai_messages: list[dict[str, Any]] = []
        for msg in messages:
            openai_msg: dict[str, Any] = {"role": msg["role"]}

            if msg.get("content") is not None:
                openai_msg["content"] = msg["content"]

            if msg.get("tool_calls"):
                openai_msg["tool_calls"] = msg["tool_calls"]
                # content must be null when tool_calls is present
                openai_msg.setdefault("content", None)

            if msg.get("tool_call_id"):
                openai_msg["tool_call_id"] = msg["tool_call_id"]

            if msg.get("name"):
                openai_msg["name"] = msg["name"]

            if "content" not in openai_msg:
                openai_msg["content"] = ""

            openai_messages.append(openai_msg)

        base_params = dict(params)
        extras = base_params.pop("extra", {})
        for k, v in extras.items():
            base_params.setdefault(k, v)

        if tools:
            base_params["tools"] = [function_tool(tool) for tool in tools]
            base_params.setdefault("tool_choice", "auto")
        else:
            base_params.pop("tool_choice", None)
            base_params.pop("parallel_tool_calls", None)

        return {"messages": openai_messages, **base_params}

    def from_provider(self, raw: ChatCompletion) -> ChatResponse:
        """Convert an OpenAI-compatible completion to a ChatResponse."""
        if not raw.choices or not raw.choices[0].message:
            return ChatResponse(content="", raw=raw, error="No choices in LLM response")

        message = raw.choices[0].message
        tool_calls = None
        if message.tool_calls:
            tool_calls = []
            for tc in message.tool_calls:
                function = getattr(tc, "function", None)
                if function is None:
                    continue  # custom (non-function) tools are never offered
                # Arguments stay raw; the loop decides how to recover bad JSON
                tool_calls.append(
                    ToolCallRequest(
                        id=tc.id, name=function.name, arguments=function.arguments
                    )
                )

        return ChatResponse(
            content=message.content or "", tool_calls=tool_calls or None, raw=raw
        )

    def assistant_message_from(self, raw: ChatCompletion) -> ChatMessage:
        """Convert an OpenAI-compatible completion to the assistant transcript entry."""
        if not raw.choices or not raw.choices[0].message:
            return {"role": "assistant", "content": ""}

        message = raw.choices[0].message
        chat_message: ChatMessage = {"role": "assistant", "content": message.content}

        calls = [tc for tc in message.tool_calls or [] if getattr(tc, "function", None)]
        if calls:
            chat_message["tool_calls"] = [
                {
                    "id": tc.id,
                    "type": "function",
                    "function": {
                        "name": tc.function.name,
                        "arguments": tc.function.arguments,
                    },
                }
                for tc in calls
            ]
        elif chat_message["content"] is None:
            chat_message["content"] = ""

        return chat_message

    def tool_result_message(self, result: ToolCallResult) -> ChatMessage:
        """Convert ToolCallResult to an OpenAI tool message."""
        message: ChatMessage = {
            "role": "tool",
            "tool_call_id": result.id,
            "content": str(result.content)
            if not isinstance(result.content, str)
            else result.content,
        }
        if result.name:
            message["name"] = result.name
        return message
