"""Pytest configuration, Hypothesis profiles and shared source doubles."""

import asyncio
from collections.abc import AsyncIterator

import pytest
from hypothesis import settings

from blockseq.core.event import BlockEvent
from blockseq.core.sequencer import Sequencer

# Register Hypothesis profiles
settings.register_profile("ci", max_examples=100)
settings.register_profile("dev", max_examples=20)

# Load dev profile by default, CI can override via --hypothesis-profile=ci
settings.load_profile("dev")

# Upper bound for waiting on an event that should arrive
EVENT_TIMEOUT = 1.0
# How long to wait before concluding that nothing will be released
QUIET_PERIOD = 0.05


class StaticSource:
    """Source whose watch stream yields a fixed list of heights, then waits forever."""

    def __init__(self, recent: int, heights: list[int] | None = None) -> None:
        self.recent = recent
        self.heights = list(heights or [])
        self.watch_calls = 0
        self.closed_streams = 0

    async def recent_height(self) -> int:
        return self.recent

    async def watch(self) -> AsyncIterator[int]:
        self.watch_calls += 1
        try:
            for height in self.heights:
                yield height
            await asyncio.Event().wait()
        finally:
            self.closed_streams += 1

    async def close(self) -> None:
        pass


async def next_event(sequencer: Sequencer, timeout: float = EVENT_TIMEOUT) -> BlockEvent:
    """Wait for the next released event."""
    return await asyncio.wait_for(anext(sequencer), timeout=timeout)


async def assert_nothing_released(sequencer: Sequencer, wait: float = QUIET_PERIOD) -> None:
    """Assert no event is released within ``wait`` seconds."""
    with pytest.raises(TimeoutError):
        await asyncio.wait_for(anext(sequencer), timeout=wait)


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Use asyncio as the async backend for pytest-asyncio."""
    return "asyncio"
