"""
Command line entry points.

``mcp-probe`` checks that an MCP server is reachable and usable;
``mcp-ask`` answers one question with an LLM that can call the server's tools.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Optional, Sequence

from mcp_bridge.client import MCPClient
from mcp_bridge.config import Settings, mask_secret
from mcp_bridge.errors import (
    ConfigurationError,
    IterationBudgetExceeded,
    MCPBridgeError,
    ServerExitedError,
)
from mcp_bridge.llm import create_llm
from mcp_bridge.loop import ToolLoop
from mcp_bridge.normalize import extract_text, truncate
from mcp_bridge.transports import wait_until_ready

__all__ = ["probe_main", "ask_main", "open_client", "exit_code_for"]

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_CONFIG = 1
EXIT_FAILURE = 2
EXIT_EXHAUSTED = 3

SYSTEM_PROMPT = (
    "You are a helpful assistant with access to tools from an MCP server. "
    "Use them when they help answer the user's question, and answer "
    "directly when they do not."
)


def configure_logging(level: str) -> None:
    logging.basicConfig(level=level, format="%(message)s")


def exit_code_for(exc: BaseException) -> int:
    """Process exit code for a failure that ended a command."""
    if isinstance(exc, ConfigurationError):
        return EXIT_CONFIG
    if isinstance(exc, IterationBudgetExceeded):
        return EXIT_EXHAUSTED
    if isinstance(exc, ServerExitedError) and exc.returncode:
        return exc.returncode
    return EXIT_FAILURE


async def open_client(settings: Settings) -> MCPClient:
    """Build an unstarted client for the configured transport."""
    if settings.transport == "stdio":
        return MCPClient.open_stdio(
            settings.server_command,
            env=settings.server_env(),
            timeout=settings.timeout,
        )
    if settings.wait_ready:
        await wait_until_ready(settings.server_url, timeout=settings.wait_ready)
    return MCPClient.open_http(
        settings.server_url,
        auth_token=settings.auth_token,
        timeout=settings.timeout,
    )


async def probe(settings: Settings) -> None:
    client = await open_client(settings)
    async with client:
        await client.initialize()
        info = client.server_info
        print(f"Server: {info.get('name', 'unknown')} {info.get('version', '')}".rstrip())
        print(f"Protocol: {client.protocol_version}")

        tools = await client.list_tools()
        print(f"Tools ({len(tools)}):")
        for tool in tools:
            summary = tool.clean_description().splitlines()
            print(f"  - {tool.name}: {summary[0] if summary else ''}")

        resources = await client.list_resources()
        if resources is None:
            print("Resources: not available")
        else:
            print(f"Resources ({len(resources)}):")
            for resource in resources:
                print(f"  - {resource.get('uri')}: {resource.get('name', '')}")

        search = next((t for t in tools if "search" in t.name), None)
        if search is None:
            print("No search tool to try")
            return
        print(f"Calling {search.name} with a test query...")
        result = await client.call_tool(search.name, {"query": "test"})
        print(truncate(extract_text(result), 500))


async def ask(settings: Settings, question: str) -> str:
    llm = create_llm(
        settings.llm_provider,
        settings.llm_model,
        via_openrouter=settings.use_openrouter,
    )
    async with llm:
        client = await open_client(settings)
        async with client:
            await client.initialize()
            loop = await ToolLoop.from_client(
                llm,
                client,
                system_prompt=SYSTEM_PROMPT,
                max_iterations=settings.max_iterations,
            )
            logger.info("Loaded %d tools, asking %s", len(loop.tools), llm.model)
            return await loop.ask(question)


def _run(command, *args, settings: Optional[Settings] = None) -> int:
    try:
        settings = settings or Settings.from_env()
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return EXIT_CONFIG
    configure_logging(settings.log_level)
    if settings.auth_token:
        logger.debug("Auth token: %s", mask_secret(settings.auth_token))

    try:
        settings.require_server_credentials()
        result = asyncio.run(command(settings, *args))
    except MCPBridgeError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return exit_code_for(exc)
    if result is not None:
        print(result)
    return EXIT_OK


def probe_main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="mcp-probe",
        description="Connect to an MCP server and exercise its basic methods.",
    )
    parser.parse_args(argv)
    return _run(probe)


def ask_main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="mcp-ask",
        description="Answer a question with an LLM that can call MCP tools.",
    )
    parser.add_argument("question", help="the question to answer")
    args = parser.parse_args(argv)
    return _run(ask, args.question)


if __name__ == "__main__":
    sys.exit(ask_main())
