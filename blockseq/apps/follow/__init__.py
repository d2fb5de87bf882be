"""Follow a chain block by block."""

from blockseq.apps.follow.main import follow

__all__ = ["follow"]
