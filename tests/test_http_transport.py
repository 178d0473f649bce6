"""Tests for the HTTP transport, against httpx.MockTransport."""

import json
import logging

import httpx
import pytest

from mcp_bridge.client import MCPClient
from mcp_bridge.errors import RequestTimeout, TransportError
from mcp_bridge.transports import SESSION_HEADER, HttpTransport, wait_until_ready

URL = "http://mcp.test/mcp"


def _result(body, result, **headers):
    return httpx.Response(
        200, json={"jsonrpc": "2.0", "id": body["id"], "result": result}, headers=headers
    )


class FakeServer:
    """Minimal streamable-HTTP MCP server recording every request."""

    def __init__(self, session_id="sess-123"):
        self.session_id = session_id
        self.requests: list[httpx.Request] = []
        self.rotate_session = False

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.method == "DELETE":
            return httpx.Response(200)

        body = json.loads(request.content)
        method = body["method"]
        if method == "initialize":
            return _result(
                body,
                {
                    "protocolVersion": "2024-11-05",
                    "capabilities": {"tools": {}},
                    "serverInfo": {"name": "notion-mcp", "version": "1.0.0"},
                },
                **{SESSION_HEADER: self.session_id},
            )
        if "id" not in body:
            return httpx.Response(202)
        if request.headers.get(SESSION_HEADER) != self.session_id:
            return httpx.Response(400, text="Bad Request: No valid session ID provided")
        if method == "tools/list":
            payload = {
                "jsonrpc": "2.0",
                "id": body["id"],
                "result": {"tools": [{"name": "API-post-search", "inputSchema": {}}]},
            }
            headers = {"content-type": "text/event-stream"}
            if self.rotate_session:
                headers[SESSION_HEADER] = "sess-other"
            return httpx.Response(
                200, text=f"event: message\ndata: {json.dumps(payload)}\n\n", headers=headers
            )
        if method == "resources/list":
            return httpx.Response(
                200,
                json={
                    "jsonrpc": "2.0",
                    "id": body["id"],
                    "error": {"code": -32601, "message": "Method not found"},
                },
            )
        return _result(body, {"content": [{"type": "text", "text": "ok"}]})


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_session_id_flow():
    server = FakeServer()
    client = MCPClient.open_http(URL, client=_client(server))

    async with client:
        await client.initialize()
        tools = await client.list_tools()
        assert await client.list_resources() is None

    assert [t.name for t in tools] == ["API-post-search"]
    initialize, initialized, tools_list, resources_list, delete = server.requests

    assert SESSION_HEADER not in initialize.headers
    assert json.loads(initialize.content)["params"]["protocolVersion"] == "2024-11-05"
    assert initialized.headers[SESSION_HEADER] == "sess-123"
    assert "id" not in json.loads(initialized.content)
    assert tools_list.headers[SESSION_HEADER] == "sess-123"
    assert resources_list.headers[SESSION_HEADER] == "sess-123"
    assert delete.method == "DELETE"
    assert delete.headers[SESSION_HEADER] == "sess-123"
    assert "text/event-stream" in initialize.headers["accept"]


@pytest.mark.asyncio
async def test_session_id_change_is_ignored(caplog):
    server = FakeServer()
    server.rotate_session = True
    client = MCPClient.open_http(URL, client=_client(server))

    async with client:
        await client.initialize()
        with caplog.at_level(logging.WARNING):
            await client.list_tools()
        await client.call_tool("API-post-search", {"query": "x"})
        assert client.channel.transport.session_id == "sess-123"

    assert "Ignoring attempt to change session id" in caplog.text
    assert server.requests[-2].headers[SESSION_HEADER] == "sess-123"


@pytest.mark.asyncio
async def test_bearer_token_is_sent():
    server = FakeServer()
    client = MCPClient.open_http(URL, auth_token="secret-token-123", client=_client(server))

    async with client:
        await client.initialize()

    assert server.requests[0].headers["authorization"] == "Bearer secret-token-123"


@pytest.mark.asyncio
async def test_unauthorized_reply():
    def handler(request):
        return httpx.Response(401, text="Unauthorized")

    transport = HttpTransport(URL, client=_client(handler))
    await transport.start(lambda message: None, lambda exc: None)

    with pytest.raises(TransportError, match="Unauthorized"):
        await transport.send({"jsonrpc": "2.0", "id": 1, "method": "initialize"})


@pytest.mark.asyncio
async def test_server_error_includes_body():
    def handler(request):
        return httpx.Response(500, text="upstream exploded")

    transport = HttpTransport(URL, client=_client(handler))
    await transport.start(lambda message: None, lambda exc: None)

    with pytest.raises(TransportError, match="HTTP 500: upstream exploded"):
        await transport.send({"jsonrpc": "2.0", "id": 1, "method": "tools/list"})


@pytest.mark.asyncio
async def test_empty_reply_to_request_is_an_error():
    def handler(request):
        return httpx.Response(200, text="")

    transport = HttpTransport(URL, client=_client(handler))
    await transport.start(lambda message: None, lambda exc: None)

    with pytest.raises(TransportError, match="No JSON-RPC envelope"):
        await transport.send({"jsonrpc": "2.0", "id": 1, "method": "tools/list"})


@pytest.mark.asyncio
async def test_event_stream_reply_is_delivered():
    received = []

    def handler(request):
        return httpx.Response(
            200,
            text=': ping\ndata: {"jsonrpc": "2.0", "id": 4, "result": {"ok": true}}\n\n',
            headers={"content-type": "text/event-stream"},
        )

    transport = HttpTransport(URL, client=_client(handler))
    await transport.start(received.append, lambda exc: None)
    await transport.send({"jsonrpc": "2.0", "id": 4, "method": "ping"})

    assert received == [{"jsonrpc": "2.0", "id": 4, "result": {"ok": True}}]


@pytest.mark.asyncio
async def test_http_timeout_maps_to_request_timeout():
    def handler(request):
        raise httpx.ReadTimeout("too slow", request=request)

    transport = HttpTransport(URL, timeout=5, client=_client(handler))
    await transport.start(lambda message: None, lambda exc: None)

    with pytest.raises(RequestTimeout) as excinfo:
        await transport.send({"jsonrpc": "2.0", "id": 1, "method": "tools/call"})
    assert excinfo.value.method == "tools/call"


@pytest.mark.asyncio
async def test_send_before_start():
    transport = HttpTransport(URL)
    with pytest.raises(TransportError, match="not started"):
        await transport.send({"jsonrpc": "2.0", "id": 1, "method": "ping"})


@pytest.mark.asyncio
async def test_wait_until_ready_accepts_any_status():
    def handler(request):
        return httpx.Response(405)

    async with _client(handler) as http:
        await wait_until_ready(URL, timeout=1, interval=0.01, client=http)


@pytest.mark.asyncio
async def test_wait_until_ready_gives_up():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with _client(handler) as http:
        with pytest.raises(TransportError, match="not ready"):
            await wait_until_ready(URL, timeout=0.05, interval=0.01, client=http)
