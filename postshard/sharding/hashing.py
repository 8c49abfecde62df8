"""Shard key hashing.

Placement must agree across every running replica and survive restarts, so
the digest comes from SHA-256 rather than Python's per-process salted hash().
"""

from __future__ import annotations

import hashlib

DIGEST_BYTES = 8  # 64-bit routing hash


def hash_key(key: str | int) -> int:
    """Return a stable unsigned 64-bit hash of a sharding key.

    Integer keys hash as their decimal string, so 7 and "7" route alike.
    """
    data = str(key).encode("utf-8")
    digest = hashlib.sha256(data).digest()
    return int.from_bytes(digest[:DIGEST_BYTES], "big")
