"""
LLM clients with a unified chat() method that accepts an MCP tool catalog.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Final, Mapping, Optional, Protocol, Self, Sequence

from anthropic import AsyncAnthropic
from anthropic.types import Message
from openai import AsyncOpenAI
from openai.types.chat import ChatCompletion

from mcp_bridge.adapters import AnthropicRequestAdapter, OpenAIRequestAdapter
from mcp_bridge.errors import ConfigurationError, classify_error
from mcp_bridge.params import DEFAULT_PARAMS, ChatMessage, merge_params
from mcp_bridge.provider import (
    BASE_URLS,
    DEFAULT_MODELS,
    Provider,
    get_api_key,
    openrouter_model,
)
from mcp_bridge.response import ChatResponse
from mcp_bridge.types import ToolCallResult, ToolDescriptor

__all__ = [
    "RequestAdapter",
    "BaseAsyncLLM",
    "OpenAICompatibleLLM",
    "AnthropicLLM",
    "create_llm",
]

# OpenRouter attributes traffic by these two headers
_OPENROUTER_HEADERS: Final = {"HTTP-Referer": "http://localhost", "X-Title": "mcp-bridge"}


class RequestAdapter(Protocol):
    """Protocol for adapting between generic chat format and provider-specific format."""

    def to_provider(
        self,
        messages: Sequence[ChatMessage],
        params: dict[str, Any],
        tools: Optional[Sequence[ToolDescriptor]] = None,
    ) -> dict[str, Any]:
        """Convert generic messages, normalized params and tools to a request."""
        ...

    def from_provider(self, raw: Any) -> ChatResponse:
        """Convert provider response to unified ChatResponse."""
        ...

    def assistant_message_from(self, raw: Any) -> ChatMessage:
        """Convert a provider response to a provider-specific assistant ChatMessage."""
        ...

    def tool_result_message(self, result: ToolCallResult) -> ChatMessage:
        """Convert a ToolCallResult to a provider-specific ChatMessage."""
        ...


class BaseAsyncLLM(ABC):
    """
    Abstract base class for async-first LLM wrappers.
    """

    def __init__(
        self,
        model: str,
        *,
        params: Optional[dict[str, Any]] = None,
        logger: Optional[logging.Logger] = None,
        name: Optional[str] = None,
    ) -> None:
        self.model = model
        self.default_params = dict(DEFAULT_PARAMS if params is None else params)
        self.logger = logger or logging.getLogger(__name__)
        self.name = name or self.__class__.__name__

    @abstractmethod
    async def _chat_impl(
        self,
        messages: Sequence[ChatMessage],
        params: dict[str, Any],
        tools: Optional[Sequence[ToolDescriptor]],
    ) -> Any:
        """
        Send one request to the provider and return its raw response.

        Args:
            messages: The conversation so far.
            params: Normalized parameters (see ``mcp_bridge.params``).
            tools: Tool catalog offered to the model, if any.
        """
        ...

    @property
    @abstractmethod
    def adapter(self) -> RequestAdapter:
        """Request adapter for this provider."""
        ...

    async def chat(
        self,
        messages: Sequence[ChatMessage],
        *,
        tools: Optional[Sequence[ToolDescriptor]] = None,
        params: dict[str, Any] | None = None,
    ) -> ChatResponse:
        """
        Send chat request and return a single response.

        Provider failures do not raise; they come back as an error
        ChatResponse (see ``ChatResponse.raise_for_error``).
        """
        normalized_params = merge_params(self.default_params, params)

        try:
            raw = await self._chat_impl(messages, normalized_params, tools)
            return self.adapter.from_provider(raw)
        except Exception as exc:
            return self._wrap_error(exc)

    def _wrap_error(self, exc: Exception) -> ChatResponse:
        """Wrap exception into an error response."""
        msg = classify_error(exc, self.logger)
        return ChatResponse(content="", error=msg)

    def _log(self, message: str, level: int = logging.INFO) -> None:
        self.logger.log(level, f"[{self.name}] {message}")

    # --- lifecycle ---------------------------------------------------------
    async def aclose(self) -> None:
        """
        Close underlying async HTTP clients. Safe to call multiple times.
        """
        client = getattr(self, "_client", None)
        close = getattr(client, "close", None)
        if close:
            await close()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


class OpenAICompatibleLLM(BaseAsyncLLM):
    """
    Any endpoint speaking the OpenAI chat-completions API: OpenAI itself,
    Mistral, Gemini's compatibility layer and OpenRouter.
    """

    # Provider specific fields the SDK does not know, sent in the body as-is
    passthrough_keys: tuple[str, ...] = ("verbosity", "reasoning_effort", "safe_prompt")

    def __init__(
        self,
        model: str,
        *,
        api_key: str,
        base_url: Optional[str] = None,
        default_headers: Optional[Mapping[str, str]] = None,
        timeout: float = 60.0,
        max_retries: int = 2,
        params: Optional[dict[str, Any]] = None,
        logger: Optional[logging.Logger] = None,
        name: Optional[str] = None,
    ) -> None:
        super().__init__(model=model, params=params, logger=logger, name=name)
        self._client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            default_headers=default_headers,
            timeout=timeout,
            max_retries=max_retries,
        )
        self._adapter = OpenAIRequestAdapter()

    @classmethod
    def from_client(
        cls,
        model: str,
        client: AsyncOpenAI,
        *,
        params: Optional[dict[str, Any]] = None,
        logger: Optional[logging.Logger] = None,
        name: Optional[str] = None,
    ) -> Self:
        """
        Build an ``OpenAICompatibleLLM`` around an already-configured ``AsyncOpenAI`` client.
        """
        if not isinstance(client, AsyncOpenAI):
            raise TypeError(
                f"{cls.__name__}.from_client expects AsyncOpenAI; got {type(client).__name__}"
            )

        self = cls.__new__(cls)  # bypass __init__
        BaseAsyncLLM.__init__(self, model=model, params=params, logger=logger, name=name)
        self._client = client
        self._adapter = OpenAIRequestAdapter()
        return self

    @property
    def adapter(self) -> RequestAdapter:
        return self._adapter

    async def _chat_impl(
        self,
        messages: Sequence[ChatMessage],
        params: dict[str, Any],
        tools: Optional[Sequence[ToolDescriptor]],
    ) -> ChatCompletion:
        args = {"model": self.model, **self._adapter.to_provider(messages, params, tools)}

        extra_body = {k: args.pop(k) for k in self.passthrough_keys if k in args}
        if extra_body:
            args["extra_body"] = {**args.get("extra_body", {}), **extra_body}

        self._log(
            f"Sending request to {self._client.base_url} model {self.model} "
            f"({len(tools or ())} tools)",
            logging.DEBUG,
        )
        return await self._client.chat.completions.create(**args)


class AnthropicLLM(BaseAsyncLLM):
    """
    Anthropic LLM implementation (async-only).
    """

    def __init__(
        self,
        model: str,
        *,
        api_key: str,
        timeout: float = 60.0,
        max_retries: int = 2,
        params: Optional[dict[str, Any]] = None,
        logger: Optional[logging.Logger] = None,
        name: Optional[str] = None,
        base_url: Optional[str] = None,
    ) -> None:
        super().__init__(model=model, params=params, logger=logger, name=name)
        self._client = AsyncAnthropic(
            api_key=api_key,
            timeout=timeout,
            max_retries=max_retries,
            base_url=base_url,
        )
        self._adapter = AnthropicRequestAdapter()

    @classmethod
    def from_client(
        cls,
        model: str,
        client: AsyncAnthropic,
        *,
        params: Optional[dict[str, Any]] = None,
        logger: Optional[logging.Logger] = None,
        name: Optional[str] = None,
    ) -> Self:
        """
        Wrap an existing ``AsyncAnthropic`` client.
        """
        if not isinstance(client, AsyncAnthropic):
            raise TypeError(
                f"AnthropicLLM.from_client expects AsyncAnthropic; got {type(client).__name__}"
            )

        self = cls.__new__(cls)  # bypass __init__
        BaseAsyncLLM.__init__(self, model=model, params=params, logger=logger, name=name)
        self._client = client
        self._adapter = AnthropicRequestAdapter()
        return self

    @property
    def adapter(self) -> RequestAdapter:
        return self._adapter

    async def _chat_impl(
        self,
        messages: Sequence[ChatMessage],
        params: dict[str, Any],
        tools: Optional[Sequence[ToolDescriptor]],
    ) -> Message:
        args = {"model": self.model, **self._adapter.to_provider(messages, params, tools)}

        self._log(
            f"Sending request to Anthropic model {self.model} ({len(tools or ())} tools)",
            logging.DEBUG,
        )
        return await self._client.messages.create(**args)


def create_llm(
    provider: Provider | str,
    model: str | None = None,
    *,
    api_key: str | None = None,
    via_openrouter: bool = False,
    client: AsyncOpenAI | AsyncAnthropic | None = None,
    logger: logging.Logger | None = None,
    **provider_kwargs: Any,
) -> BaseAsyncLLM:
    """
    Factory for creating any supported LLM.

    Args:
        provider: Which provider to use (MISTRAL, GEMINI, OPENROUTER, OPENAI, ANTHROPIC).
        model: Model identifier; defaults per provider.
        api_key: Overrides automatic lookup; if omitted, pulled from env.
        via_openrouter: Route *provider*'s model through OpenRouter, using
            ``OPENROUTER_API_KEY`` and a vendor-qualified model id.
        client: Optional pre-configured SDK client (AsyncAnthropic for
            ANTHROPIC, AsyncOpenAI for everything else).
        logger: Optional custom logger.
        **provider_kwargs: Any extra args to pass through (timeout, max_retries, params).
    """
    try:
        provider = Provider(provider)
    except ValueError:
        raise ConfigurationError(f"Unsupported provider: {provider}") from None

    if via_openrouter or provider == Provider.OPENROUTER:
        upstream = Provider.MISTRAL if provider == Provider.OPENROUTER else provider
        model = openrouter_model(upstream, model)
        if client is not None:
            return OpenAICompatibleLLM.from_client(model, client, logger=logger, **provider_kwargs)
        return OpenAICompatibleLLM(
            model,
            api_key=api_key or get_api_key(Provider.OPENROUTER),
            base_url=BASE_URLS[Provider.OPENROUTER],
            default_headers=_OPENROUTER_HEADERS,
            logger=logger,
            **provider_kwargs,
        )

    model = model or DEFAULT_MODELS[provider]
    if provider == Provider.ANTHROPIC:
        if client is not None:
            return AnthropicLLM.from_client(model, client, logger=logger, **provider_kwargs)
        return AnthropicLLM(
            model, api_key=api_key or get_api_key(provider), logger=logger, **provider_kwargs
        )

    if client is not None:
        return OpenAICompatibleLLM.from_client(model, client, logger=logger, **provider_kwargs)
    return OpenAICompatibleLLM(
        model,
        api_key=api_key or get_api_key(provider),
        base_url=BASE_URLS[provider],
        logger=logger,
        **provider_kwargs,
    )
