"""Tron source: polled every five seconds."""

from blockseq.sources.base import PollingSource, SourceError
from blockseq.sources.rpc import JsonRpcClient


class TronSource(PollingSource):
    """Polls ``/wallet/getnowblock`` on a Tron full node HTTP API."""

    poll_interval = 5.0

    def __init__(
        self, full_host: str, poll_interval: float | None = None, timeout: float = 10.0
    ) -> None:
        super().__init__(poll_interval=poll_interval, name="tron")
        self._client = JsonRpcClient(full_host, timeout=timeout, name=self.name)

    async def recent_height(self) -> int:
        block = await self._client.request("/wallet/getnowblock", {})
        try:
            number = block["block_header"]["raw_data"]["number"]
        except (KeyError, TypeError) as e:
            raise SourceError(f"getnowblock reply has no block number: {e}", source=self.name) from e
        if isinstance(number, bool) or not isinstance(number, int):
            raise SourceError(f"getnowblock returned number {number!r}", source=self.name)
        return number

    async def close(self) -> None:
        await self._client.close()
