from __future__ import annotations

import argparse
import asyncio
import logging

from mcp_bridge import MCPClient, Provider, ToolLoop, create_llm
from mcp_bridge.errors import IterationBudgetExceeded

logger = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO, format="%(message)s")


async def ask(url: str, provider: Provider, model: str | None, question: str) -> None:
    """
    Let the model answer *question* using the tools of the MCP server at *url*.

    1) Handshake with the server and fetch its tool catalog
    2) Hand the catalog to the model
    3) Run tool calls until the model answers (at most five rounds)
    """
    llm = create_llm(provider, model)
    async with llm, MCPClient.open_http(url) as client:
        await client.initialize()
        loop = await ToolLoop.from_client(llm, client, max_iterations=5)
        try:
            answer = await loop.ask(question)
        except IterationBudgetExceeded as exc:
            logger.warning("%s", exc)
            return
    logger.info("%s says: %s", provider.value.capitalize(), answer)


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("question")
    parser.add_argument("--url", default="http://localhost:3000/mcp")
    parser.add_argument(
        "--provider",
        choices=[p.value for p in Provider],
        default=Provider.MISTRAL.value,
    )
    parser.add_argument("--model", default=None)
    args = parser.parse_args()

    asyncio.run(ask(args.url, Provider(args.provider), args.model, args.question))
