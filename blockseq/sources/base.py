"""Source protocol for block height watermarks.

A Source knows only how to talk to one remote system. It reports the most
recent height it knows of and streams new heights as it learns of them; the
Sequencer decides what to release and when.
"""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import ClassVar, Protocol
from urllib.parse import urlparse, urlunparse


class SourceError(Exception):
    """Raised when a Source's transport fails or returns an unusable answer.

    Attributes:
        source: Name of the failing source, if known.
    """

    def __init__(self, message: str, source: str | None = None):
        self.source = source
        super().__init__(message)

    def __str__(self) -> str:
        base = super().__str__()
        if self.source:
            return f"{self.source}: {base}"
        return base


class Source(Protocol):
    """Protocol defining the interface for watermark sources.

    Sources are responsible for:
    - Reporting the latest known height (recent_height)
    - Streaming watermark updates over time (watch)

    watch() promises only eventual delivery. Heights may repeat, arrive late
    or, in principle, go backwards. Failures of the underlying mechanism end
    the stream with an exception; sources do not retry.
    """

    async def recent_height(self) -> int:
        """Return the latest known height.

        Raises:
            SourceError: If the remote system cannot be queried.
        """
        ...

    def watch(self) -> AsyncIterator[int]:
        """Return a lazy, unbounded stream of watermark heights."""
        ...

    async def close(self) -> None:
        """Release connections held by the source."""
        ...


class PollingSource(ABC):
    """Base class for sources sampled on a fixed interval.

    Subclasses implement recent_height(); watch() sleeps for poll_interval
    and then yields a fresh sample, forever. Each sample is awaited before
    the next sleep starts, so samples never overlap. The interval is chosen
    per source: shorter for fast-finalizing chains, longer for slow ones.
    """

    poll_interval: ClassVar[float] = 60.0

    def __init__(self, poll_interval: float | None = None, name: str | None = None) -> None:
        """Initialize the polling source.

        Args:
            poll_interval: Seconds between samples. Defaults to the class value.
            name: Optional name for logs and errors. Defaults to the class name.
        """
        interval = type(self).poll_interval if poll_interval is None else poll_interval
        if interval <= 0:
            raise ValueError(f"poll_interval must be positive, got {interval}")
        self.poll_interval = interval
        self.name = name or self.__class__.__name__

    @abstractmethod
    async def recent_height(self) -> int: ...

    async def watch(self) -> AsyncIterator[int]:
        while True:
            await asyncio.sleep(self.poll_interval)
            yield await self.recent_height()


def sanitize_url(url: str) -> str:
    """Mask the password in a URL for logging."""
    try:
        parsed = urlparse(url)
        if parsed.password:
            netloc = f"{parsed.username}:****@{parsed.hostname}"
            if parsed.port:
                netloc += f":{parsed.port}"
            return urlunparse(
                (parsed.scheme, netloc, parsed.path, parsed.params, parsed.query, parsed.fragment)
            )
        if parsed.port:
            return f"{parsed.hostname}:{parsed.port}"
        return parsed.hostname or "<url>"
    except Exception:
        return "<url>"
