"""Follow demo application entrypoint.

Prints each block height as it is released and acknowledges it after a
delay, showing that the next height is only released once the previous one
has been acknowledged:

    source -> Sequencer -> print, sleep -> acknowledge -> next height

Usage:
    python -m blockseq.apps.follow.main --network tron --url https://api.shasta.trongrid.io
"""

import argparse
import asyncio
import inspect
from collections.abc import Awaitable, Callable

from blockseq.core.logging import get_logger
from blockseq.core.sequencer import Sequencer, SequencerStats
from blockseq.sources.base import Source, sanitize_url
from blockseq.sources.settings import Network, SourceSettings, build_source

logger = get_logger("blockseq.apps.follow")


async def follow(
    source: Source,
    start: int | None = None,
    handler: Callable[[int], Awaitable[None] | None] | None = None,
    limit: int | None = None,
) -> SequencerStats:
    """Release heights from ``source`` one by one until ``limit`` is reached.

    Args:
        source: Source to follow.
        start: First height to release. Defaults to the source's recent height.
        handler: Called with each height before it is acknowledged. May be sync
            or async.
        limit: Stop after this many heights. None follows forever.

    Returns:
        SequencerStats for the run.

    Example:
        stats = await follow(source, start=100, handler=print, limit=5)
        print(f"Released {stats.released} heights")
    """
    if start is None:
        start = await source.recent_height()

    handled = 0
    async with Sequencer(source, start) as sequencer:
        async for event in sequencer:
            if handler is not None:
                result = handler(event.height)
                if inspect.isawaitable(result):
                    await result
            event.acknowledge()
            handled += 1
            if limit is not None and handled >= limit:
                break
    return sequencer.get_stats()


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Follow a chain block by block.")
    parser.add_argument(
        "--network",
        choices=[network.value for network in Network],
        default=Network.TRON.value,
    )
    parser.add_argument("--url", default="https://api.shasta.trongrid.io")
    parser.add_argument("--ws-url", default=None)
    parser.add_argument("--start", type=int, default=None)
    parser.add_argument("--delay", type=float, default=1.0, help="seconds before acknowledging")
    parser.add_argument("--limit", type=int, default=None)
    return parser.parse_args(argv)


async def _run(args: argparse.Namespace) -> SequencerStats:
    settings = SourceSettings(network=Network(args.network), url=args.url, ws_url=args.ws_url)
    source = build_source(settings)

    async def show(height: int) -> None:
        print(f"block {height}")
        await asyncio.sleep(args.delay)

    try:
        return await follow(source, start=args.start, handler=show, limit=args.limit)
    finally:
        await source.close()


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the follow demo."""
    args = _parse_args(argv)
    logger.info(f"Following {args.network} at {sanitize_url(args.url)}")
    try:
        stats = asyncio.run(_run(args))
    except KeyboardInterrupt:
        return
    print(f"\nReleased {stats.released} blocks, acknowledged {stats.acknowledged}")


if __name__ == "__main__":
    main()
