"""Tests for the MCP client session."""

import asyncio

import pytest

from conftest import wait_for_sent
from mcp_bridge import __version__
from mcp_bridge.channel import RpcChannel
from mcp_bridge.client import PROTOCOL_VERSION, MCPClient
from mcp_bridge.errors import RemoteError


async def _started(transport) -> MCPClient:
    client = MCPClient(RpcChannel(transport, timeout=1))
    await client.channel.start()
    return client


async def _answer(transport, coro, result=None, error=None):
    """Run ``coro`` and answer the request it sends."""
    task = asyncio.create_task(coro)
    count = len(transport.sent) + 1
    await wait_for_sent(transport, count)
    transport.reply(transport.sent[count - 1]["id"], result, error)
    return await task


@pytest.mark.asyncio
async def test_initialize_handshake(transport):
    client = await _started(transport)

    result = await _answer(
        transport,
        client.initialize(),
        {
            "protocolVersion": PROTOCOL_VERSION,
            "serverInfo": {"name": "notion", "version": "1.8.1"},
            "capabilities": {"tools": {}},
        },
    )

    request, notification = transport.sent
    assert request["method"] == "initialize"
    assert request["params"] == {
        "protocolVersion": "2024-11-05",
        "capabilities": {},
        "clientInfo": {"name": "mcp-bridge", "version": __version__},
    }
    assert notification == {"jsonrpc": "2.0", "method": "notifications/initialized"}
    assert result["serverInfo"]["name"] == "notion"
    assert client.server_info == {"name": "notion", "version": "1.8.1"}
    assert client.capabilities == {"tools": {}}
    assert client.protocol_version == PROTOCOL_VERSION


@pytest.mark.asyncio
async def test_list_tools_minimal_entry(transport):
    client = await _started(transport)

    tools = await _answer(transport, client.list_tools(), {"tools": [{"name": "search"}]})

    assert len(tools) == 1
    assert tools[0].name == "search"
    assert tools[0].description == ""
    assert tools[0].parameters() == {"type": "object", "properties": {}, "required": []}


@pytest.mark.asyncio
async def test_list_tools_empty_result(transport):
    client = await _started(transport)
    assert await _answer(transport, client.list_tools(), {}) == []


@pytest.mark.asyncio
async def test_call_tool_always_sends_arguments(transport):
    client = await _started(transport)

    await _answer(transport, client.call_tool("API-get-self"), {"content": []})

    assert transport.sent[0]["params"] == {"name": "API-get-self", "arguments": {}}


@pytest.mark.asyncio
async def test_list_resources_not_supported(transport):
    client = await _started(transport)

    resources = await _answer(
        transport,
        client.list_resources(),
        error={"code": -32601, "message": "Method not found"},
    )
    assert resources is None


@pytest.mark.asyncio
async def test_list_resources_other_errors_propagate(transport):
    client = await _started(transport)

    with pytest.raises(RemoteError) as excinfo:
        await _answer(
            transport,
            client.list_resources(),
            error={"code": -32603, "message": "Internal error"},
        )
    assert excinfo.value.code == -32603


@pytest.mark.asyncio
async def test_read_resource(transport):
    client = await _started(transport)

    result = await _answer(
        transport,
        client.read_resource("notion://page/1"),
        {"contents": [{"uri": "notion://page/1", "text": "hi"}]},
    )

    assert transport.sent[0]["params"] == {"uri": "notion://page/1"}
    assert result["contents"][0]["text"] == "hi"


@pytest.mark.asyncio
async def test_tools_list_after_handshake_uses_next_id(transport):
    client = await _started(transport)
    await _answer(transport, client.initialize(), {"protocolVersion": PROTOCOL_VERSION})

    task = asyncio.create_task(client.list_tools())
    await wait_for_sent(transport, 3)
    assert transport.sent[2] == {"jsonrpc": "2.0", "method": "tools/list", "id": 2}
    transport.on_message({"id": 2, "result": {"tools": [{"name": "search"}]}})

    assert [tool.name for tool in await task] == ["search"]
