"""Pure transformation adapters for different LLM providers."""

from .openai import OpenAIRequestAdapter, function_tool
from .anthropic import AnthropicRequestAdapter, anthropic_tool

__all__ = [
    "OpenAIRequestAdapter",
    "AnthropicRequestAdapter",
    "function_tool",
    "anthropic_tool",
]
