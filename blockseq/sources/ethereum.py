"""Ethereum source: push-driven via eth_subscribe("newHeads")."""

import json
import logging
from collections.abc import AsyncIterator

import aiohttp

from blockseq.sources.base import SourceError, sanitize_url
from blockseq.sources.rpc import JsonRpcClient

logger = logging.getLogger("blockseq.sources.ethereum")

_SUBSCRIBE_ID = 1


def _parse_quantity(value: object, what: str) -> int:
    """Decode an Ethereum hex quantity ("0x1b4")."""
    if not isinstance(value, str):
        raise SourceError(f"{what} is not a hex quantity: {value!r}", source="ethereum")
    try:
        return int(value, 16)
    except ValueError as e:
        raise SourceError(f"{what} is not a hex quantity: {value!r}", source="ethereum") from e


class EthereumSource:
    """Source for Ethereum-compatible nodes.

    recent_height() calls eth_blockNumber over HTTP. watch() opens a
    websocket and subscribes to new heads, yielding each head's number as the
    node announces it.

    Args:
        rpc_url: HTTP(S) JSON-RPC endpoint.
        ws_url: Websocket endpoint. Defaults to rpc_url with http -> ws.
        timeout: HTTP request timeout in seconds.
        heartbeat: Websocket ping interval in seconds.
    """

    def __init__(
        self,
        rpc_url: str,
        ws_url: str | None = None,
        timeout: float = 10.0,
        heartbeat: float = 20.0,
    ) -> None:
        self.name = "ethereum"
        self._client = JsonRpcClient(rpc_url, timeout=timeout, name=self.name)
        self.ws_url = ws_url or rpc_url.replace("http", "ws", 1)
        self._heartbeat = heartbeat

    async def recent_height(self) -> int:
        result = await self._client.call("eth_blockNumber")
        return _parse_quantity(result, "eth_blockNumber result")

    async def watch(self) -> AsyncIterator[int]:
        session = await self._client.session()
        ws_safe = sanitize_url(self.ws_url)
        try:
            async with session.ws_connect(self.ws_url, heartbeat=self._heartbeat) as ws:
                await ws.send_json(
                    {
                        "jsonrpc": "2.0",
                        "id": _SUBSCRIBE_ID,
                        "method": "eth_subscribe",
                        "params": ["newHeads"],
                    }
                )
                subscription: str | None = None

                async for msg in ws:
                    if msg.type == aiohttp.WSMsgType.ERROR:
                        raise SourceError(f"WebSocket error: {ws.exception()}", source=self.name)
                    if msg.type != aiohttp.WSMsgType.TEXT:
                        continue

                    try:
                        data = json.loads(msg.data)
                    except json.JSONDecodeError:
                        logger.warning(f"Ignoring non-JSON websocket frame from {ws_safe}")
                        continue
                    if not isinstance(data, dict):
                        logger.warning(f"Ignoring non-object websocket frame from {ws_safe}")
                        continue

                    if data.get("id") == _SUBSCRIBE_ID:
                        if data.get("error"):
                            raise SourceError(
                                f"eth_subscribe failed: {data['error']}", source=self.name
                            )
                        subscription = data.get("result")
                        logger.info(f"Subscribed to new heads on {ws_safe}")
                        continue

                    if data.get("method") != "eth_subscription":
                        continue
                    params = data.get("params")
                    if not isinstance(params, dict):
                        params = {}
                    if subscription is not None and params.get("subscription") != subscription:
                        continue
                    head = params.get("result")
                    if not isinstance(head, dict):
                        raise SourceError(
                            f"newHeads number missing from head: {head!r}", source=self.name
                        )
                    yield _parse_quantity(head.get("number"), "newHeads number")

                raise SourceError(f"WebSocket to {ws_safe} closed", source=self.name)
        except aiohttp.ClientError as e:
            raise SourceError(f"WebSocket to {ws_safe} failed: {e}", source=self.name) from e

    async def close(self) -> None:
        await self._client.close()
