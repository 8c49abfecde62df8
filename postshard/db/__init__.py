"""
postshard.db - Database package.

Provides:
  - create_shard_engine: pooled AsyncEngine factory for one shard/role
  - STATEMENT_CACHE_SIZE: asyncpg prepared-statement cache size
"""

from postshard.db.pool import STATEMENT_CACHE_SIZE, create_shard_engine

__all__ = [
    "create_shard_engine",
    "STATEMENT_CACHE_SIZE",
]
