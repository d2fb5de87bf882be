"""Core components for blockseq.

Types:
    BlockEvent: Immutable released height with a one-shot acknowledge().
    Watcher: Lazy, single-use pass-through over a Source's watch stream.
    Sequencer: Single-credit sequencer releasing one height at a time.
    SequencerState: Read-only (current, next, watermark) snapshot.
    SequencerStats: Statistics dataclass from a Sequencer run.

Errors:
    WatcherError: Raised to the consumer when the watch stream failed.

Functions:
    is_available: The release rule over (current, next, watermark).
"""

from blockseq.core.event import BlockEvent
from blockseq.core.sequencer import (
    Sequencer,
    SequencerState,
    SequencerStats,
    WatcherError,
    is_available,
)
from blockseq.core.watcher import Watcher

__all__ = [
    "BlockEvent",
    "Watcher",
    "Sequencer",
    "SequencerState",
    "SequencerStats",
    "WatcherError",
    "is_available",
]
