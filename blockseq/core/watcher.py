"""Watcher adapting a Source's notification stream for the Sequencer."""

from collections.abc import AsyncIterator
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from blockseq.sources.base import Source


class Watcher:
    """Lazy, single-use pass-through over ``source.watch()``.

    No subscription or polling is started until the Watcher is iterated.
    Heights are handed through unchanged, without buffering or filtering.

    A Watcher can be iterated once. Iterating it again raises RuntimeError
    rather than silently opening a second subscription on the source; create
    a new Watcher for a fresh subscription.
    """

    def __init__(self, source: "Source") -> None:
        self.source = source
        self._stream: AsyncIterator[int] | None = None

    @property
    def consumed(self) -> bool:
        """True once iteration has started."""
        return self._stream is not None

    def __aiter__(self) -> AsyncIterator[int]:
        if self._stream is not None:
            raise RuntimeError(
                "Watcher is not restartable; create a new Watcher to resubscribe"
            )
        self._stream = self.source.watch()
        return self._stream

    async def aclose(self) -> None:
        """Close the underlying stream, releasing its subscription."""
        stream = self._stream
        aclose = getattr(stream, "aclose", None)
        if aclose is not None:
            await aclose()
