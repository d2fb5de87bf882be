"""In-memory push-driven source for development and testing."""

import asyncio
from collections.abc import AsyncIterator

from blockseq.sources.base import SourceError


class InMemorySource:
    """Push-driven Source fed by publish().

    Every watch() stream sees every height published on this source, in
    publish order, starting from the first one. This makes the source
    deterministic for tests regardless of when a subscriber starts reading.

    The source provides no durability: heights live only in this object.

    Args:
        initial: Height reported by recent_height() before anything is published.
    """

    def __init__(self, initial: int = 0) -> None:
        self._initial = initial
        self._heights: list[int] = []
        self._changed = asyncio.Condition()
        self._closed = False
        self._error: Exception | None = None
        self.subscriptions = 0

    async def recent_height(self) -> int:
        """Return the last published height, or the initial height."""
        if self._error is not None:
            raise SourceError(str(self._error), source="inmemory")
        if self._heights:
            return self._heights[-1]
        return self._initial

    async def publish(self, height: int) -> None:
        """Report a new watermark to all subscribers.

        Raises:
            SourceError: If the source has been closed or failed.
        """
        if self._closed:
            raise SourceError("Source is closed, cannot publish", source="inmemory")
        async with self._changed:
            self._heights.append(height)
            self._changed.notify_all()

    async def close(self) -> None:
        """End all watch streams once they have drained."""
        async with self._changed:
            self._closed = True
            self._changed.notify_all()

    async def fail(self, error: Exception) -> None:
        """End all watch streams with a SourceError wrapping ``error``."""
        async with self._changed:
            self._error = error
            self._closed = True
            self._changed.notify_all()

    async def watch(self) -> AsyncIterator[int]:
        self.subscriptions += 1
        index = 0
        while True:
            async with self._changed:
                await self._changed.wait_for(
                    lambda: index < len(self._heights) or self._closed
                )
                pending = self._heights[index:]
                index = len(self._heights)
                closed = self._closed

            for height in pending:
                yield height

            if closed and index == len(self._heights):
                if self._error is not None:
                    raise SourceError(str(self._error), source="inmemory") from self._error
                return
