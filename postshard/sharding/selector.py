"""Shard selection: reduce a key's hash to a shard index in [0, shard_count)."""

from __future__ import annotations

from postshard.core.exceptions import RoutingError
from postshard.sharding.hashing import hash_key


def select_shard(key: str | int, shard_count: int) -> int:
    """Return the index of the shard that owns ``key``.

    The mapping is stable only for a fixed ``shard_count``; data written
    under one count is not relocated when the count changes.

    Raises:
        RoutingError: if shard_count is not a positive integer.
    """
    if isinstance(shard_count, bool) or not isinstance(shard_count, int) or shard_count < 1:
        raise RoutingError(f"shard_count must be a positive integer, got {shard_count!r}")
    return hash_key(key) % shard_count
