"""Watermark source implementations."""

from blockseq.sources.base import PollingSource, Source, SourceError
from blockseq.sources.bitcoin import BitcoinSource
from blockseq.sources.ethereum import EthereumSource
from blockseq.sources.inmemory import InMemorySource
from blockseq.sources.redis_source import RedisSource
from blockseq.sources.settings import Network, SourceSettings, build_source
from blockseq.sources.tron import TronSource

__all__ = [
    "Source",
    "SourceError",
    "PollingSource",
    "InMemorySource",
    "EthereumSource",
    "BitcoinSource",
    "TronSource",
    "RedisSource",
    "Network",
    "SourceSettings",
    "build_source",
]
