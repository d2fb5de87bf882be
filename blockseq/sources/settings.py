"""Validated source configuration."""

from enum import Enum

from pydantic import BaseModel, Field, field_validator

from blockseq.sources.base import Source
from blockseq.sources.bitcoin import BitcoinSource
from blockseq.sources.ethereum import EthereumSource
from blockseq.sources.redis_source import RedisSource
from blockseq.sources.tron import TronSource


class Network(Enum):
    """Supported watermark sources."""

    ETHEREUM = "ethereum"
    BITCOIN = "bitcoin"
    TRON = "tron"
    REDIS = "redis"


class SourceSettings(BaseModel):
    """Immutable, validated settings for building a Source.

    Attributes:
        network: Which kind of source to build.
        url: Endpoint URL (JSON-RPC, Tron full host or Redis URL).
        ws_url: Ethereum websocket endpoint, derived from url when omitted.
        poll_interval: Override for polling sources (seconds, > 0).
        key: Redis key holding the latest height.
        channel: Redis channel announcing new heights.
    """

    network: Network
    url: str
    ws_url: str | None = None
    poll_interval: float | None = Field(default=None, gt=0)
    key: str = "blockseq:height"
    channel: str = "blockseq:heights"

    model_config = {
        "extra": "forbid",
        "frozen": True,
    }

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Ensure url is non-empty after whitespace stripping."""
        v = v.strip()
        if not v:
            raise ValueError("url must not be empty")
        return v


def build_source(settings: SourceSettings) -> Source:
    """Create the Source described by ``settings``."""
    if settings.network == Network.ETHEREUM:
        return EthereumSource(settings.url, ws_url=settings.ws_url)
    if settings.network == Network.BITCOIN:
        return BitcoinSource(settings.url, poll_interval=settings.poll_interval)
    if settings.network == Network.TRON:
        return TronSource(settings.url, poll_interval=settings.poll_interval)
    return RedisSource(settings.url, key=settings.key, channel=settings.channel)
