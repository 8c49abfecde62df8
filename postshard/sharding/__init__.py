"""
postshard.sharding - shard placement and connection lookup.

Provides:
  - hash_key / select_shard: deterministic category -> shard index mapping
  - ConnectionRegistry / ShardConnection / ShardRole: (index, role) -> engine
  - build_registry: registry wired to pooled engines from Settings
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine

from postshard.config import Settings, ShardTopology
from postshard.db.pool import create_shard_engine
from postshard.sharding.hashing import hash_key
from postshard.sharding.registry import ConnectionRegistry, ShardConnection, ShardRole
from postshard.sharding.selector import select_shard


def build_registry(settings: Settings, *, for_test: bool = False) -> ConnectionRegistry:
    """Validate the configured topology and create one engine per shard/role.

    Raises:
        ConfigurationError: if the shard configuration is missing or malformed.
    """
    topology = ShardTopology.from_settings(settings)

    def _factory(url: str, shard: str, role: ShardRole) -> AsyncEngine:
        return create_shard_engine(url, settings=settings, shard=shard, role=str(role), for_test=for_test)

    return ConnectionRegistry.from_topology(topology, _factory)


__all__ = [
    "ConnectionRegistry",
    "ShardConnection",
    "ShardRole",
    "build_registry",
    "hash_key",
    "select_shard",
]
