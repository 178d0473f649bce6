"""
Runtime settings, read once from the environment (and a ``.env`` file).
"""

from __future__ import annotations

import os
import shlex
from dataclasses import dataclass, field
from typing import Final, Mapping, Optional

from dotenv import load_dotenv

from mcp_bridge.errors import ConfigurationError

__all__ = ["Settings", "mask_secret", "DEFAULT_SERVER_COMMAND"]

DEFAULT_SERVER_COMMAND: Final = "npx -y @notionhq/notion-mcp-server"
_TRANSPORTS: Final = ("http", "stdio")
_TRUE: Final = ("1", "true", "yes", "on")


def mask_secret(secret: Optional[str], visible: int = 10) -> str:
    """Show only the first *visible* characters of a token."""
    if not secret:
        return ""
    return f"{secret[:visible]}..."


@dataclass
class Settings:
    """Everything the entry points need, with their defaults."""

    transport: str = "http"
    server_url: str = "http://localhost:3000/mcp"
    auth_token: Optional[str] = None
    server_command: list[str] = field(
        default_factory=lambda: shlex.split(DEFAULT_SERVER_COMMAND)
    )
    notion_token: Optional[str] = None
    timeout: float = 30.0
    wait_ready: float = 0.0
    llm_provider: str = "mistral"
    use_openrouter: bool = False
    llm_model: Optional[str] = None
    max_iterations: int = 10
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from *environ* (``os.environ`` after loading ``.env``
        when omitted). Raises ConfigurationError on unusable values.
        """
        if environ is None:
            load_dotenv()
            environ = os.environ

        def get(*names: str) -> Optional[str]:
            for name in names:
                value = environ.get(name)
                if value:
                    return value
            return None

        transport = (get("MCP_TRANSPORT") or "http").lower()
        if transport not in _TRANSPORTS:
            raise ConfigurationError(
                f"MCP_TRANSPORT must be one of {', '.join(_TRANSPORTS)}, got {transport!r}"
            )

        port = get("PORT") or "3000"
        return cls(
            transport=transport,
            server_url=get("MCP_SERVER_URL") or f"http://localhost:{port}/mcp",
            auth_token=get("MCP_AUTH_TOKEN", "AUTH_TOKEN"),
            server_command=shlex.split(get("MCP_SERVER_COMMAND") or DEFAULT_SERVER_COMMAND),
            notion_token=get("NOTION_TOKEN", "NOTION_API_KEY"),
            timeout=_number(get("MCP_TIMEOUT"), "MCP_TIMEOUT", 30.0),
            wait_ready=_number(get("MCP_WAIT_READY"), "MCP_WAIT_READY", 0.0),
            llm_provider=(get("LLM_PROVIDER") or "mistral").lower(),
            use_openrouter=(get("USE_OPENROUTER") or "").lower() in _TRUE,
            llm_model=get("LLM_MODEL"),
            max_iterations=int(
                _number(get("LLM_MAX_ITERATIONS"), "LLM_MAX_ITERATIONS", 10)
            ),
            log_level=(get("LOG_LEVEL") or "INFO").upper(),
        )

    def server_env(self) -> dict[str, str]:
        """Extra environment for a stdio server child."""
        return {"NOTION_TOKEN": self.notion_token} if self.notion_token else {}

    def require_server_credentials(self) -> None:
        """The bundled Notion server refuses to start without a Notion token."""
        if (
            self.transport == "stdio"
            and self.server_command == shlex.split(DEFAULT_SERVER_COMMAND)
            and not self.notion_token
        ):
            raise ConfigurationError(
                "NOTION_TOKEN or NOTION_API_KEY is not set; "
                "create a .env file with your Notion API key"
            )


def _number(raw: Optional[str], name: str, default: float) -> float:
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from None
    if value < 0:
        raise ConfigurationError(f"{name} must not be negative, got {raw!r}")
    return value
