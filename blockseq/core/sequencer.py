"""Sequencer releasing block heights one at a time.

The Sequencer is the flow-control core of blockseq. It:
- Tracks three cursors: current (C), next (N) and watermark (M)
- Releases C as a BlockEvent when nothing is in flight and C <= M
- Waits for the consumer to acknowledge before releasing C + 1

IMPORTANT: the cursors are mutated only by the Sequencer's owner task.
Watermark updates (from the Watcher pump) and acknowledgments (from
consumers) are posted as messages into a single inbox and applied one at a
time, so no locking is needed.
"""

import asyncio
from dataclasses import dataclass, replace
from typing import NamedTuple

from blockseq.core.event import BlockEvent
from blockseq.core.logging import configure_sequencer_logger
from blockseq.core.watcher import Watcher
from blockseq.sources.base import Source


class WatcherError(Exception):
    """Raised to the consumer when the source's watch stream failed.

    Attributes:
        original: The exception that terminated the watch stream.
    """

    def __init__(self, original: BaseException):
        self.original = original
        super().__init__(f"Watch stream failed: {original}")


class SequencerState(NamedTuple):
    """Read-only snapshot of the Sequencer cursors."""

    current: int
    next: int
    watermark: int | None


@dataclass
class SequencerStats:
    """Statistics from a Sequencer run."""

    released: int = 0
    acknowledged: int = 0
    ignored_acks: int = 0
    watermark_updates: int = 0
    watermark_regressions: int = 0


@dataclass(frozen=True)
class _WatermarkUpdate:
    height: int


@dataclass(frozen=True)
class _Acknowledge:
    height: int


@dataclass(frozen=True)
class _WatchEnded:
    error: BaseException | None = None


@dataclass(frozen=True)
class _EndOfStream:
    error: BaseException | None = None


_Message = _WatermarkUpdate | _Acknowledge | _WatchEnded


def is_available(current: int, next_: int, watermark: int | None) -> bool:
    """Return True when ``current`` may be released.

    Nothing may be in flight (current == next) and the watermark must have
    reached current.
    """
    return watermark is not None and current == next_ and current <= watermark


class Sequencer:
    """Single-credit sequencer over a block height Source.

    Usage::

        async with Sequencer(source, start=100) as sequencer:
            async for event in sequencer:
                await process(event.height)
                event.acknowledge()

    Args:
        source: Source reporting the chain's watermark height.
        start: First height to release. Must be a non-negative int.
    """

    def __init__(self, source: Source, start: int) -> None:
        if isinstance(start, bool) or not isinstance(start, int):
            raise TypeError(f"start must be an int, got {type(start).__name__}")
        if start < 0:
            raise ValueError(f"start must be non-negative, got {start}")

        self.source = source
        self.start_height = start
        self.watcher = Watcher(source)
        self._current = start
        self._next = start
        self._watermark: int | None = None
        self._inbox: asyncio.Queue[_Message] = asyncio.Queue()
        self._outbox: asyncio.Queue[BlockEvent | _EndOfStream] = asyncio.Queue()
        self._owner_task: asyncio.Task[None] | None = None
        self._pump_task: asyncio.Task[None] | None = None
        self._watch_ended = False
        self._watch_error: BaseException | None = None
        self._started = False
        self._finished = False
        self._exhausted = False
        self._closed = False
        self._stats = SequencerStats()
        self._log = configure_sequencer_logger()

    @property
    def state(self) -> SequencerState:
        return SequencerState(self._current, self._next, self._watermark)

    @property
    def closed(self) -> bool:
        return self._closed

    def get_stats(self) -> SequencerStats:
        """Return a copy of current statistics."""
        return replace(self._stats)

    def _cursor_fields(self) -> dict[str, int | None]:
        return {
            "current": self._current,
            "next": self._next,
            "watermark": self._watermark,
        }

    async def start(self) -> None:
        """Read the source's recent height and start the owner and pump tasks.

        Errors from ``source.recent_height()`` propagate to the caller.
        """
        if self._closed:
            raise RuntimeError("Sequencer is closed")
        if self._started:
            raise RuntimeError("Sequencer already started")
        self._started = True

        try:
            watermark = await self.source.recent_height()
        except BaseException:
            # Leave the Sequencer startable so the caller can retry
            self._started = False
            raise
        self._inbox.put_nowait(_WatermarkUpdate(watermark))

        self._owner_task = asyncio.create_task(self._run(), name="blockseq-sequencer")
        self._pump_task = asyncio.create_task(self._pump(), name="blockseq-watcher")

        self._log.info(
            f"Sequencer started at height {self.start_height}",
            extra={"height": self.start_height, "watermark": watermark},
        )

    async def close(self) -> None:
        """Tear down the Sequencer.

        Stops the watcher (unsubscribing from the source), stops the owner
        task and ends the outbound stream. Acknowledging an outstanding event
        afterwards is a no-op. Safe to call more than once.
        """
        if self._closed:
            return
        self._closed = True

        for task in (self._pump_task, self._owner_task):
            if task is not None and not task.done():
                task.cancel()
        for task in (self._pump_task, self._owner_task):
            if task is not None:
                try:
                    await task
                except asyncio.CancelledError:
                    pass

        await self.watcher.aclose()
        self._outbox.put_nowait(_EndOfStream())
        self._log.info("Sequencer closed", extra=self._cursor_fields())

    async def __aenter__(self) -> "Sequencer":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def __aiter__(self) -> "Sequencer":
        return self

    async def __anext__(self) -> BlockEvent:
        if not self._started and not self._closed:
            await self.start()
        if self._exhausted:
            raise StopAsyncIteration

        item = await self._outbox.get()
        if isinstance(item, _EndOfStream):
            self._exhausted = True
            if item.error is not None:
                raise WatcherError(item.error) from item.error
            raise StopAsyncIteration
        return item

    def acknowledge(self, height: int) -> None:
        """Acknowledge the in-flight ``height``.

        Usually called through ``BlockEvent.acknowledge()``. The message is
        applied by the owner task; acknowledgments for anything other than the
        in-flight height are ignored.
        """
        if self._closed or self._finished:
            self._log.debug(
                "Acknowledgment after teardown ignored", extra={"height": height}
            )
            return
        self._inbox.put_nowait(_Acknowledge(height))

    async def _pump(self) -> None:
        """Forward watermarks from the Watcher into the inbox."""
        error: Exception | None = None
        try:
            async for height in self.watcher:
                self._inbox.put_nowait(_WatermarkUpdate(height))
        except Exception as e:
            error = e
        self._inbox.put_nowait(_WatchEnded(error))

    async def _run(self) -> None:
        while not self._finished:
            message = await self._inbox.get()
            if isinstance(message, _WatermarkUpdate):
                self._on_watermark(message.height)
            elif isinstance(message, _Acknowledge):
                self._on_acknowledge(message.height)
            else:
                self._on_watch_ended(message.error)
            self._evaluate()

    def _on_watermark(self, height: int) -> None:
        self._stats.watermark_updates += 1
        previous = self._watermark
        if previous is not None and height < previous:
            self._stats.watermark_regressions += 1
            self._log.warning(
                f"Watermark regressed from {previous} to {height}",
                extra={**self._cursor_fields(), "reported": height},
            )
        self._watermark = height

    def _on_acknowledge(self, height: int) -> None:
        if self._next != self._current and height == self._current:
            self._current = self._next
            self._stats.acknowledged += 1
            self._log.debug(f"Acknowledged height {height}", extra=self._cursor_fields())
        else:
            self._stats.ignored_acks += 1
            self._log.debug(
                f"Ignored acknowledgment for height {height}",
                extra={**self._cursor_fields(), "height": height},
            )

    def _on_watch_ended(self, error: BaseException | None) -> None:
        self._watch_ended = True
        self._watch_error = error
        if error is not None:
            self._log.error(
                f"Watch stream failed: {error}",
                extra={**self._cursor_fields(), "error": str(error)},
            )
        else:
            self._log.info("Watch stream ended", extra=self._cursor_fields())

    def _evaluate(self) -> None:
        """Apply the release rule to the current cursors.

        Re-evaluating an unchanged state has no effect: a release moves next
        past current, so the rule cannot fire again until acknowledgment.
        """
        current, next_, watermark = self._current, self._next, self._watermark
        if is_available(current, next_, watermark):
            self._next = current + 1
            self._stats.released += 1
            self._outbox.put_nowait(BlockEvent.bind(current, self))
            self._log.info(
                f"Released height {current}",
                extra={"height": current, "watermark": watermark},
            )
        elif self._watch_ended and current == next_:
            # No in-flight event and no further watermark can arrive
            self._finished = True
            self._outbox.put_nowait(_EndOfStream(self._watch_error))
