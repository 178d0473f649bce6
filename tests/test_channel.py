"""Tests for the correlated request channel."""

import asyncio
import logging

import pytest

from conftest import wait_for_sent
from mcp_bridge.channel import RpcChannel
from mcp_bridge.errors import (
    RemoteError,
    RequestTimeout,
    ServerExitedError,
    TransportError,
)


@pytest.mark.asyncio
async def test_ids_start_at_one_and_increase(transport):
    channel = RpcChannel(transport, timeout=1)
    await channel.start()

    for expected_id in (1, 2, 3):
        task = asyncio.create_task(channel.request("ping"))
        await wait_for_sent(transport, expected_id)
        assert transport.sent[-1] == {"jsonrpc": "2.0", "method": "ping", "id": expected_id}
        transport.reply(expected_id, {})
        assert await task == {}


@pytest.mark.asyncio
async def test_out_of_order_replies_reach_their_callers(transport):
    channel = RpcChannel(transport, timeout=1)
    await channel.start()

    first = asyncio.create_task(channel.request("tools/list"))
    second = asyncio.create_task(channel.request("resources/list", {"cursor": "x"}))
    await wait_for_sent(transport, 2)
    assert transport.sent[1]["params"] == {"cursor": "x"}

    transport.reply(2, {"resources": []})
    transport.reply(1, {"tools": []})

    assert await first == {"tools": []}
    assert await second == {"resources": []}
    assert channel.pending_ids == []


@pytest.mark.asyncio
async def test_error_reply_raises_remote_error(transport):
    channel = RpcChannel(transport, timeout=1)
    await channel.start()

    task = asyncio.create_task(channel.request("resources/list"))
    await wait_for_sent(transport, 1)
    transport.reply(1, error={"code": -32601, "message": "Method not found"})

    with pytest.raises(RemoteError) as excinfo:
        await task
    assert excinfo.value.code == -32601
    assert excinfo.value.is_method_not_found
    assert "Method not found" in str(excinfo.value)


@pytest.mark.asyncio
async def test_timeout_deregisters_and_late_reply_is_dropped(transport, caplog):
    channel = RpcChannel(transport, timeout=0.05)
    await channel.start()

    with pytest.raises(RequestTimeout) as excinfo:
        await channel.request("tools/call", {"name": "slow"})
    assert excinfo.value.method == "tools/call"
    assert channel.pending_ids == []

    with caplog.at_level(logging.WARNING):
        transport.reply(1, {"content": []})
    assert "unknown or expired id 1" in caplog.text

    # The channel keeps working and never reuses the id
    task = asyncio.create_task(channel.request("ping"))
    await wait_for_sent(transport, 2)
    assert transport.sent[-1]["id"] == 2
    transport.reply(2, {})
    assert await task == {}


@pytest.mark.asyncio
async def test_unknown_id_is_ignored(transport, caplog):
    channel = RpcChannel(transport, timeout=1)
    await channel.start()

    task = asyncio.create_task(channel.request("ping"))
    await wait_for_sent(transport, 1)
    with caplog.at_level(logging.WARNING):
        transport.reply(99, {"stray": True})
    assert channel.pending_ids == [1]

    transport.reply(1, {"ok": True})
    assert await task == {"ok": True}


@pytest.mark.asyncio
async def test_server_notifications_do_not_resolve_calls(transport):
    channel = RpcChannel(transport, timeout=1)
    await channel.start()

    task = asyncio.create_task(channel.request("ping"))
    await wait_for_sent(transport, 1)
    transport.on_message({"jsonrpc": "2.0", "method": "notifications/progress"})
    transport.on_message({"jsonrpc": "2.0", "id": 1, "method": "sampling/createMessage"})
    assert not task.done()

    transport.reply(1, {})
    assert await task == {}


@pytest.mark.asyncio
async def test_transport_close_rejects_every_pending_call(transport):
    channel = RpcChannel(transport, timeout=1)
    await channel.start()

    calls = [asyncio.create_task(channel.request(m)) for m in ("a", "b")]
    await wait_for_sent(transport, 2)
    transport.on_close(ServerExitedError(3))

    for call in calls:
        with pytest.raises(ServerExitedError) as excinfo:
            await call
        assert excinfo.value.returncode == 3
    assert channel.pending_ids == []

    with pytest.raises(ServerExitedError):
        await channel.request("ping")


@pytest.mark.asyncio
async def test_each_rejected_call_gets_its_own_error(transport):
    channel = RpcChannel(transport, timeout=1)
    await channel.start()

    calls = [asyncio.create_task(channel.request(m)) for m in ("a", "b")]
    await wait_for_sent(transport, 2)
    transport.on_close(ServerExitedError(3))

    errors = await asyncio.gather(*calls, return_exceptions=True)
    assert errors[0] is not errors[1]
    assert [e.returncode for e in errors] == [3, 3]

    later = [None, None]
    for i in range(2):
        try:
            await channel.request("ping")
        except ServerExitedError as exc:
            later[i] = exc
    assert later[0] is not later[1]
    assert later[0].returncode == 3


@pytest.mark.asyncio
async def test_reply_with_malformed_id_is_discarded(transport, caplog):
    channel = RpcChannel(transport, timeout=1)
    await channel.start()

    task = asyncio.create_task(channel.request("ping"))
    await wait_for_sent(transport, 1)
    with caplog.at_level(logging.WARNING):
        for bad_id in ([1], {"n": 1}, True, 1.5):
            transport.on_message({"jsonrpc": "2.0", "id": bad_id, "result": {}})
    assert caplog.text.count("malformed id") == 4
    assert channel.pending_ids == [1]
    assert not task.done()

    transport.reply(1, {"ok": True})
    assert await task == {"ok": True}


@pytest.mark.asyncio
async def test_send_failure_surfaces_and_clears_pending(transport):
    channel = RpcChannel(transport, timeout=1)
    await channel.start()
    transport.send_error = TransportError("HTTP 500: boom")

    with pytest.raises(TransportError, match="HTTP 500"):
        await channel.request("tools/list")
    assert channel.pending_ids == []


@pytest.mark.asyncio
async def test_close_fails_outstanding_calls(transport):
    channel = RpcChannel(transport, timeout=1)
    await channel.start()

    task = asyncio.create_task(channel.request("ping"))
    await wait_for_sent(transport, 1)
    await channel.close()

    assert transport.closed
    with pytest.raises(TransportError, match="channel closed"):
        await task
    with pytest.raises(TransportError):
        await channel.request("ping")


@pytest.mark.asyncio
async def test_request_before_start(transport):
    channel = RpcChannel(transport)
    with pytest.raises(TransportError, match="not started"):
        await channel.request("ping")


@pytest.mark.asyncio
async def test_notify_has_no_id(transport):
    async with RpcChannel(transport) as channel:
        await channel.notify("notifications/initialized")
    assert transport.sent == [{"jsonrpc": "2.0", "method": "notifications/initialized"}]
