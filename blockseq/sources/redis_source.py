"""Redis source: watermark published by another service.

An indexer or node sidecar writes the latest height to a key and announces
each new height on a pub/sub channel. recent_height() reads the key and
watch() follows the channel, so this is a push-driven source.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Any

from blockseq.sources.base import SourceError, sanitize_url

logger = logging.getLogger("blockseq.sources.redis")


def _parse_height(value: Any) -> int | None:
    try:
        height = int(value)
    except (TypeError, ValueError):
        return None
    return height if height >= 0 else None


class RedisSource:
    """Push-driven Source backed by a Redis key and pub/sub channel.

    Args:
        redis_url: Redis connection URL.
        key: Key holding the latest height.
        channel: Pub/sub channel on which new heights are announced.
    """

    def __init__(
        self,
        redis_url: str,
        key: str = "blockseq:height",
        channel: str = "blockseq:heights",
    ) -> None:
        self.name = "redis"
        self._url = redis_url
        self._url_safe = sanitize_url(redis_url)
        self.key = key
        self.channel = channel
        self._redis: Any = None
        self._conn_lock = asyncio.Lock()

    async def _get_client(self) -> Any:
        try:
            from redis.asyncio import Redis
        except ImportError as e:
            raise ImportError("Install redis: pip install blockseq[redis]") from e

        async with self._conn_lock:
            if self._redis is None:
                self._redis = Redis.from_url(self._url, decode_responses=True)
                logger.info(f"Connected to Redis at {self._url_safe}")
            return self._redis

    async def recent_height(self) -> int:
        redis = await self._get_client()
        try:
            value = await redis.get(self.key)
        except Exception as e:
            raise SourceError(f"GET {self.key} failed: {e}", source=self.name) from e

        height = _parse_height(value)
        if height is None:
            raise SourceError(f"No valid height stored at {self.key}: {value!r}", source=self.name)
        return height

    async def publish(self, height: int) -> None:
        """Store ``height`` as the latest and announce it to watchers."""
        redis = await self._get_client()
        try:
            await redis.set(self.key, height)
            await redis.publish(self.channel, height)
        except Exception as e:
            raise SourceError(f"Publishing height {height} failed: {e}", source=self.name) from e

    async def watch(self) -> AsyncIterator[int]:
        redis = await self._get_client()
        pubsub = redis.pubsub()
        try:
            try:
                await pubsub.subscribe(self.channel)
            except Exception as e:
                raise SourceError(f"SUBSCRIBE {self.channel} failed: {e}", source=self.name) from e
            logger.info(f"Subscribed to {self.channel} on {self._url_safe}")

            messages = pubsub.listen()
            while True:
                try:
                    message = await anext(messages)
                except StopAsyncIteration:
                    raise SourceError(f"Subscription to {self.channel} ended", source=self.name)
                except Exception as e:
                    raise SourceError(f"Subscription to {self.channel} failed: {e}", source=self.name) from e

                if message.get("type") != "message":
                    continue
                height = _parse_height(message.get("data"))
                if height is None:
                    logger.warning(f"Ignoring invalid height on {self.channel}: {message.get('data')!r}")
                    continue
                yield height
        finally:
            try:
                await pubsub.aclose()
            except Exception as close_err:
                logger.debug(f"Error closing pubsub: {close_err}")

    async def close(self) -> None:
        """Close Redis connection."""
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
            logger.info("Closed Redis connection")
