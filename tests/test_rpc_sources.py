"""Tests for the HTTP/websocket chain sources against in-process nodes."""

import asyncio

import aiohttp
import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from blockseq.core.sequencer import Sequencer
from blockseq.sources.base import SourceError
from blockseq.sources.bitcoin import BitcoinSource
from blockseq.sources.ethereum import EthereumSource
from blockseq.sources.rpc import JsonRpcClient
from blockseq.sources.tron import TronSource
from tests.conftest import next_event

SUBSCRIPTION = "0x9cef478923ff08bf67fde6c64013158d"
CALLS = web.AppKey("calls", list)


@pytest.fixture
async def node():
    """Start aiohttp apps on local ports; closes them after the test."""
    servers: list[TestServer] = []

    async def start(app: web.Application) -> TestServer:
        server = TestServer(app)
        await server.start_server()
        servers.append(server)
        return server

    yield start

    for server in servers:
        await server.close()


def jsonrpc_app(results: dict, status: int = 200) -> web.Application:
    """JSON-RPC node answering each method from ``results``."""
    calls: list[dict] = []

    async def handle(request: web.Request) -> web.Response:
        body = await request.json()
        calls.append({"body": body, "auth": request.headers.get("Authorization")})
        method = body["method"]
        if method not in results:
            return web.json_response(
                {"id": body["id"], "result": None, "error": {"code": -32601, "message": "Method not found"}},
                status=status,
            )
        return web.json_response({"jsonrpc": "2.0", "id": body["id"], "result": results[method]})

    app = web.Application()
    app[CALLS] = calls
    app.router.add_post("/", handle)
    return app


def ethereum_app(block_number: int, heads: list[int], close_after: bool = False) -> web.Application:
    """Ethereum node with eth_blockNumber over HTTP and newHeads over websocket."""
    app = jsonrpc_app({"eth_blockNumber": hex(block_number)})

    async def websocket(request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse()
        await ws.prepare(request)

        message = await ws.receive_json()
        assert message["method"] == "eth_subscribe"
        assert message["params"] == ["newHeads"]
        await ws.send_json({"jsonrpc": "2.0", "id": message["id"], "result": SUBSCRIPTION})

        # Heads for another subscription must be ignored
        await ws.send_json(
            {
                "jsonrpc": "2.0",
                "method": "eth_subscription",
                "params": {"subscription": "0xother", "result": {"number": hex(10**6)}},
            }
        )
        await ws.send_str("not json")
        # Valid JSON that is not an object
        await ws.send_json([1, 2])
        await ws.send_json("hi")
        await ws.send_json({"jsonrpc": "2.0", "method": "eth_subscription", "params": ["bad"]})
        for number in heads:
            await ws.send_json(
                {
                    "jsonrpc": "2.0",
                    "method": "eth_subscription",
                    "params": {"subscription": SUBSCRIPTION, "result": {"number": hex(number)}},
                }
            )

        if close_after:
            await ws.close()
        else:
            async for _ in ws:
                pass
        return ws

    app.router.add_get("/", websocket)
    return app


def tron_app(number) -> web.Application:
    async def getnowblock(request: web.Request) -> web.Response:
        return web.json_response(
            {
                "blockID": "0000000002faf08074f1f1bf13a4b9ae09e5ee0c3bc9ebea7f55cd11c7bf1eb4",
                "block_header": {"raw_data": {"number": number, "timestamp": 1700000000000}},
            }
        )

    app = web.Application()
    app.router.add_post("/wallet/getnowblock", getnowblock)
    return app


# =============================================================================
# JsonRpcClient
# =============================================================================


@pytest.mark.asyncio
async def test_call_returns_result(node):
    server = await node(jsonrpc_app({"getblockcount": 850000}))
    client = JsonRpcClient(str(server.make_url("/")))

    try:
        assert await client.call("getblockcount") == 850000
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_call_raises_on_jsonrpc_error(node):
    server = await node(jsonrpc_app({}, status=500))
    client = JsonRpcClient(str(server.make_url("/")), name="bitcoin")

    try:
        with pytest.raises(SourceError, match="Method not found") as exc_info:
            await client.call("getblockcount")
    finally:
        await client.close()

    assert exc_info.value.source == "bitcoin"


@pytest.mark.asyncio
async def test_request_raises_on_http_error(node):
    async def broken(request: web.Request) -> web.Response:
        return web.Response(status=502, text="bad gateway")

    app = web.Application()
    app.router.add_post("/", broken)
    server = await node(app)
    client = JsonRpcClient(str(server.make_url("/")))

    try:
        with pytest.raises(SourceError, match="HTTP 502"):
            await client.call("eth_blockNumber")
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_request_raises_on_connection_failure(node):
    server = await node(web.Application())
    url = str(server.make_url("/"))
    await server.close()
    client = JsonRpcClient(url, timeout=2.0)

    try:
        with pytest.raises(SourceError, match="failed"):
            await client.call("eth_blockNumber")
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_credentials_sent_as_basic_auth(node):
    app = jsonrpc_app({"getblockcount": 1})
    server = await node(app)
    url = str(server.make_url("/")).replace("http://", "http://alice:s3cret@")
    client = JsonRpcClient(url)

    try:
        await client.call("getblockcount")
    finally:
        await client.close()

    assert "alice" not in client.url
    assert app[CALLS][0]["auth"] == aiohttp.BasicAuth("alice", "s3cret").encode()


# =============================================================================
# BitcoinSource
# =============================================================================


def test_bitcoin_polls_every_three_minutes():
    assert BitcoinSource("http://localhost:8332").poll_interval == 180.0


@pytest.mark.asyncio
async def test_bitcoin_recent_height(node):
    server = await node(jsonrpc_app({"getblockcount": 850123}))
    source = BitcoinSource(str(server.make_url("/")))

    try:
        assert await source.recent_height() == 850123
    finally:
        await source.close()


@pytest.mark.asyncio
async def test_bitcoin_rejects_non_integer_count(node):
    server = await node(jsonrpc_app({"getblockcount": "850123"}))
    source = BitcoinSource(str(server.make_url("/")))

    try:
        with pytest.raises(SourceError, match="getblockcount"):
            await source.recent_height()
    finally:
        await source.close()


# =============================================================================
# TronSource
# =============================================================================


def test_tron_polls_every_five_seconds():
    assert TronSource("https://api.shasta.trongrid.io").poll_interval == 5.0


@pytest.mark.asyncio
async def test_tron_recent_height(node):
    server = await node(tron_app(50000000))
    source = TronSource(str(server.make_url("/")))

    try:
        assert await source.recent_height() == 50000000
    finally:
        await source.close()


@pytest.mark.asyncio
async def test_tron_missing_number_raises(node):
    async def empty(request: web.Request) -> web.Response:
        return web.json_response({})

    app = web.Application()
    app.router.add_post("/wallet/getnowblock", empty)
    server = await node(app)
    source = TronSource(str(server.make_url("/")))

    try:
        with pytest.raises(SourceError, match="no block number"):
            await source.recent_height()
    finally:
        await source.close()


@pytest.mark.asyncio
async def test_tron_watch_polls(node):
    server = await node(tron_app(77))
    source = TronSource(str(server.make_url("/")), poll_interval=0.01)
    stream = source.watch()

    try:
        assert await asyncio.wait_for(anext(stream), timeout=1.0) == 77
        assert await asyncio.wait_for(anext(stream), timeout=1.0) == 77
    finally:
        await stream.aclose()
        await source.close()


# =============================================================================
# EthereumSource
# =============================================================================


def test_ethereum_ws_url_derived_from_rpc_url():
    assert EthereumSource("https://node.example/rpc").ws_url == "wss://node.example/rpc"
    assert EthereumSource("http://node:8545", ws_url="ws://node:8546").ws_url == "ws://node:8546"


@pytest.mark.asyncio
async def test_ethereum_recent_height(node):
    server = await node(ethereum_app(block_number=0x1B4, heads=[]))
    source = EthereumSource(str(server.make_url("/")))

    try:
        assert await source.recent_height() == 436
    finally:
        await source.close()


@pytest.mark.asyncio
async def test_ethereum_watch_yields_new_heads(node):
    server = await node(ethereum_app(block_number=16, heads=[17, 18]))
    source = EthereumSource(str(server.make_url("/")))
    stream = source.watch()

    try:
        assert await asyncio.wait_for(anext(stream), timeout=1.0) == 17
        assert await asyncio.wait_for(anext(stream), timeout=1.0) == 18
    finally:
        await stream.aclose()
        await source.close()


@pytest.mark.asyncio
async def test_ethereum_closed_websocket_ends_stream_with_error(node):
    server = await node(ethereum_app(block_number=16, heads=[17], close_after=True))
    source = EthereumSource(str(server.make_url("/")))
    received = []

    try:
        with pytest.raises(SourceError, match="closed"):
            async for height in source.watch():
                received.append(height)
    finally:
        await source.close()

    assert received == [17]


@pytest.mark.asyncio
async def test_sequencer_over_ethereum_node(node):
    server = await node(ethereum_app(block_number=16, heads=[17, 18]))
    source = EthereumSource(str(server.make_url("/")))
    received = []

    try:
        async with Sequencer(source, start=16) as sequencer:
            for _ in range(3):
                event = await next_event(sequencer)
                received.append(event.height)
                event.acknowledge()
    finally:
        await source.close()

    assert received == [16, 17, 18]


@pytest.mark.asyncio
async def test_ethereum_malformed_head_raises_source_error(node):
    app = jsonrpc_app({"eth_blockNumber": hex(16)})

    async def websocket(request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        message = await ws.receive_json()
        await ws.send_json({"jsonrpc": "2.0", "id": message["id"], "result": SUBSCRIPTION})
        await ws.send_json(
            {
                "jsonrpc": "2.0",
                "method": "eth_subscription",
                "params": {"subscription": SUBSCRIPTION, "result": ["0x11"]},
            }
        )
        async for _ in ws:
            pass
        return ws

    app.router.add_get("/", websocket)
    server = await node(app)
    source = EthereumSource(str(server.make_url("/")))
    stream = source.watch()

    try:
        with pytest.raises(SourceError, match="newHeads number"):
            await asyncio.wait_for(anext(stream), timeout=1.0)
    finally:
        await stream.aclose()
        await source.close()
