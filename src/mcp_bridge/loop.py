"""
Bounded tool-invocation loop: lets an LLM call MCP tools until it produces a
final answer or runs out of iterations.
"""

from __future__ import annotations

import json
import logging
from enum import StrEnum
from typing import Any, Optional, Protocol, Self, Sequence

from mcp_bridge.errors import IterationBudgetExceeded, ToolArgumentError
from mcp_bridge.llm import BaseAsyncLLM
from mcp_bridge.normalize import MAX_RESULT_CHARS, extract_text, truncate
from mcp_bridge.params import ChatMessage
from mcp_bridge.types import (
    ToolCallRequest,
    ToolCallResult,
    ToolDescriptor,
    parse_tool_arguments,
)

__all__ = ["LoopState", "ToolExecutor", "ToolLoop", "DEFAULT_MAX_ITERATIONS"]

DEFAULT_MAX_ITERATIONS = 10
NO_ANSWER = "No response generated"


class LoopState(StrEnum):
    AWAITING_MODEL_REPLY = "awaiting_model_reply"
    EXECUTING_TOOLS = "executing_tools"
    DONE = "done"
    EXHAUSTED = "exhausted"


class ToolExecutor(Protocol):
    """Anything that can run a named tool, e.g. :class:`mcp_bridge.client.MCPClient`."""

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> Any: ...


class ToolLoop:
    """
    One conversation session between an LLM and an MCP server's tools.

    Each ``ask`` makes one model call per iteration. Tool calls requested in a
    reply run one at a time, in the order the model listed them, and each adds
    exactly one tool-result entry to the transcript (the tool's text, or an
    ``Error: ...`` marker) before the model is called again. Reaching
    ``max_iterations`` without a plain-text reply raises
    IterationBudgetExceeded; the session stays usable for the next question.
    """

    def __init__(
        self,
        llm: BaseAsyncLLM,
        executor: ToolExecutor,
        tools: Sequence[ToolDescriptor],
        *,
        system_prompt: Optional[str] = None,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        max_result_chars: int = MAX_RESULT_CHARS,
        params: Optional[dict[str, Any]] = None,
        logger: Optional[logging.Logger] = None,
        name: Optional[str] = None,
    ) -> None:
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        self.llm = llm
        self.executor = executor
        self.tools = tuple(tools)
        self.system_prompt = system_prompt
        self.max_iterations = max_iterations
        self.max_result_chars = max_result_chars
        self.params = params
        self.logger = logger or logging.getLogger(__name__)
        self.name = name or self.__class__.__name__
        self.state: Optional[LoopState] = None
        self.iterations = 0
        self.messages: list[ChatMessage] = []
        self.reset()

    @classmethod
    async def from_client(
        cls, llm: BaseAsyncLLM, client: Any, **kwargs: Any
    ) -> Self:
        """Build a loop offering every tool ``client`` lists."""
        tools = await client.list_tools()
        return cls(llm, client, tools, **kwargs)

    def reset(self) -> None:
        """Forget the conversation, keeping only the system prompt."""
        self.messages = (
            [{"role": "system", "content": self.system_prompt}]
            if self.system_prompt
            else []
        )
        self.state = None
        self.iterations = 0

    async def ask(self, query: str) -> str:
        """Answer ``query``, calling tools as the model requests them."""
        self.messages.append({"role": "user", "content": query})
        self.iterations = 0
        adapter = self.llm.adapter

        while self.iterations < self.max_iterations:
            self.state = LoopState.AWAITING_MODEL_REPLY
            response = await self.llm.chat(
                self.messages, tools=self.tools or None, params=self.params
            )
            response.raise_for_error()
            self.messages.append(adapter.assistant_message_from(response.raw))

            if not response.wants_tools:
                self.state = LoopState.DONE
                return response.content or NO_ANSWER

            self.state = LoopState.EXECUTING_TOOLS
            self._log(f"Model requested {len(response.tool_calls)} tool call(s)")
            for call in response.tool_calls:
                result = await self._execute(call)
                self.messages.append(adapter.tool_result_message(result))
            self.iterations += 1

        self.state = LoopState.EXHAUSTED
        self._log(f"No final answer after {self.max_iterations} iterations", logging.WARNING)
        raise IterationBudgetExceeded(self.max_iterations)

    async def _execute(self, call: ToolCallRequest) -> ToolCallResult:
        try:
            arguments = parse_tool_arguments(call.arguments)
        except ToolArgumentError as exc:
            self._log(f"{exc}; calling {call.name} with no arguments", logging.WARNING)
            arguments = {}

        if arguments:
            preview = json.dumps(arguments, ensure_ascii=False)[:200]
            self._log(f"Calling {call.name} with {preview}")
        else:
            self._log(f"Calling {call.name} (no arguments)")

        try:
            result = await self.executor.call_tool(call.name, arguments)
        except Exception as exc:
            # The model sees the failure and may retry or explain it
            self._log(f"Tool {call.name} failed: {exc}", logging.WARNING)
            return ToolCallResult(id=call.id, content=f"Error: {exc}", name=call.name)

        text = truncate(extract_text(result), self.max_result_chars)
        self._log(f"Received {len(text)} characters from {call.name}", logging.DEBUG)
        return ToolCallResult(id=call.id, content=text, name=call.name)

    def _log(self, message: str, level: int = logging.INFO) -> None:
        self.logger.log(level, f"[{self.name}] {message}")
