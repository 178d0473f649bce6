from __future__ import annotations

import argparse
import asyncio
import logging

from mcp_bridge import MCPClient, Settings
from mcp_bridge.normalize import Items, normalize_items

logger = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO, format="%(message)s")


def page_title(page: dict) -> str:
    """Title of a Notion page object, whatever its title property is called."""
    for prop in (page.get("properties") or {}).values():
        if isinstance(prop, dict) and prop.get("type") == "title":
            return "".join(part.get("plain_text", "") for part in prop.get("title") or [])
    return page.get("id", "untitled")


async def list_pages(query: str) -> None:
    """
    Search the workspace through the Notion MCP server and print page titles.

    Talks to the server configured by MCP_TRANSPORT (see ``.env``).
    """
    settings = Settings.from_env()
    settings.require_server_credentials()
    if settings.transport == "stdio":
        client = MCPClient.open_stdio(settings.server_command, env=settings.server_env())
    else:
        client = MCPClient.open_http(settings.server_url, auth_token=settings.auth_token)

    async with client:
        await client.initialize()
        result = await client.call_tool(
            "API-post-search",
            {"query": query, "filter": {"property": "object", "value": "page"}},
        )

    found = normalize_items(result)
    if not isinstance(found, Items):
        logger.warning("Unexpected search result: %s", found.raw)
        return
    for page in found.items:
        logger.info("- %s (%s)", page_title(page), page.get("url", ""))


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("query", nargs="?", default="")
    args = parser.parse_args()

    asyncio.run(list_pages(args.query))
