"""blockseq - Acknowledged, in-order delivery of block heights."""

from blockseq.core import (
    BlockEvent,
    Sequencer,
    SequencerState,
    SequencerStats,
    Watcher,
    WatcherError,
)
from blockseq.sources import (
    BitcoinSource,
    EthereumSource,
    InMemorySource,
    Network,
    PollingSource,
    RedisSource,
    Source,
    SourceError,
    SourceSettings,
    TronSource,
    build_source,
)

__version__ = "0.1.0"

__all__ = [
    # Core
    "BlockEvent",
    "Watcher",
    "Sequencer",
    "SequencerState",
    "SequencerStats",
    "WatcherError",
    # Sources
    "Source",
    "SourceError",
    "PollingSource",
    "InMemorySource",
    "EthereumSource",
    "BitcoinSource",
    "TronSource",
    "RedisSource",
    # Configuration
    "Network",
    "SourceSettings",
    "build_source",
    # Meta
    "__version__",
]
