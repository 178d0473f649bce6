from __future__ import annotations

import os
from enum import StrEnum
from typing import Final, Optional

from dotenv import load_dotenv

from mcp_bridge.errors import ConfigurationError


class Provider(StrEnum):
    MISTRAL = "mistral"
    GEMINI = "gemini"
    OPENROUTER = "openrouter"
    OPENAI = "openai"
    ANTHROPIC = "anthropic"


_ENV_VARS: Final[dict[Provider, str]] = {
    Provider.MISTRAL: "MISTRAL_API_KEY",
    Provider.GEMINI: "GEMINI_API_KEY",
    Provider.OPENROUTER: "OPENROUTER_API_KEY",
    Provider.OPENAI: "OPENAI_API_KEY",
    Provider.ANTHROPIC: "ANTHROPIC_API_KEY",
}

_KEY_PAGES: Final[dict[Provider, str]] = {
    Provider.MISTRAL: "https://console.mistral.ai/",
    Provider.GEMINI: "https://aistudio.google.com/app/apikey",
    Provider.OPENROUTER: "https://openrouter.ai/keys",
    Provider.OPENAI: "https://platform.openai.com/api-keys",
    Provider.ANTHROPIC: "https://console.anthropic.com/",
}

# None means "the SDK default"
BASE_URLS: Final[dict[Provider, Optional[str]]] = {
    Provider.MISTRAL: "https://api.mistral.ai/v1",
    Provider.GEMINI: "https://generativelanguage.googleapis.com/v1beta/openai/",
    Provider.OPENROUTER: "https://openrouter.ai/api/v1",
    Provider.OPENAI: None,
    Provider.ANTHROPIC: None,
}

DEFAULT_MODELS: Final[dict[Provider, str]] = {
    Provider.MISTRAL: "mistral-small-latest",
    Provider.GEMINI: "gemini-2.5-flash",
    Provider.OPENAI: "gpt-4o-mini",
    Provider.ANTHROPIC: "claude-3-5-haiku-latest",
}

# Vendor prefix OpenRouter expects in front of upstream model ids
OPENROUTER_VENDORS: Final[dict[Provider, str]] = {
    Provider.MISTRAL: "mistralai",
    Provider.GEMINI: "google",
    Provider.OPENAI: "openai",
    Provider.ANTHROPIC: "anthropic",
}


def get_api_key(provider: Provider) -> str:
    """Return the API key for *provider* or raise ConfigurationError."""
    load_dotenv()
    try:
        env_var = _ENV_VARS[provider]
    except KeyError:
        raise ConfigurationError(f"No config for {provider!s}") from None

    key = os.getenv(env_var)
    if not key:
        raise ConfigurationError(
            f"{env_var} missing; get a key at {_KEY_PAGES[provider]} "
            f"and add {env_var}=... to your .env file"
        )
    return key


def openrouter_model(upstream: Provider, model: Optional[str] = None) -> str:
    """Qualify *model* with the vendor prefix OpenRouter routes on."""
    model = model or DEFAULT_MODELS[upstream]
    if "/" in model:
        return model
    return f"{OPENROUTER_VENDORS[upstream]}/{model}"


__all__ = [
    "Provider",
    "BASE_URLS",
    "DEFAULT_MODELS",
    "get_api_key",
    "openrouter_model",
]
