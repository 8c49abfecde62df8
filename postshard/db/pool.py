"""
Async SQLAlchemy engine factory for shard connections.

Every shard/role pair gets its own AsyncEngine and therefore its own pool;
the service never shares a pool across shards or between a master and its
slave. Pool sizing comes from Settings:

  - pool_size / pool_max_overflow   permanent and burst connections per engine
  - pool_timeout                    seconds to wait for a free connection
  - pool_recycle                    recycle connections to survive proxy/firewall timeouts
  - pool_pre_ping=True              detect dead connections before checkout

Pool events are emitted via structlog so they appear in the same structured
log stream as routing decisions, tagged with the shard and role they belong to.
"""

from __future__ import annotations

from typing import Any

import structlog
from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool

from postshard.config import Settings, redact_url

log = structlog.get_logger(__name__)

STATEMENT_CACHE_SIZE: int = 100  # asyncpg per-connection prepared-statement LRU cache


def _attach_pool_listeners(engine: AsyncEngine, *, shard: str, role: str) -> None:
    """Register pool event listeners for structured logging."""

    # SQLAlchemy pool events fire on the *sync* underlying pool.
    sync_pool = engine.pool

    @event.listens_for(sync_pool, "checkout")
    def on_checkout(dbapi_connection: Any, connection_record: Any, connection_proxy: Any) -> None:
        log.debug("db.pool.checkout", shard=shard, role=role, checked_out=sync_pool.checkedout())

    @event.listens_for(sync_pool, "checkin")
    def on_checkin(dbapi_connection: Any, connection_record: Any) -> None:
        log.debug("db.pool.checkin", shard=shard, role=role, checked_out=sync_pool.checkedout())

    @event.listens_for(sync_pool, "connect")
    def on_connect(dbapi_connection: Any, connection_record: Any) -> None:
        log.info("db.pool.new_connection", shard=shard, role=role)


def create_shard_engine(
    url: str,
    *,
    settings: Settings,
    shard: str,
    role: str,
    for_test: bool = False,
) -> AsyncEngine:
    """Create the AsyncEngine backing one shard/role connection.

    Args:
        url:      Connection string for this shard/role.
        settings: Application settings (pool sizing, SQL echo).
        shard:    Shard name used to tag log events (e.g. "Shard1").
        role:     "master" or "slave", used to tag log events.
        for_test: Use NullPool so each test gets a clean connection.

    Returns:
        A configured AsyncEngine. No connection is opened until first use.
    """
    if for_test:
        engine = create_async_engine(url, echo=settings.db_echo_sql, poolclass=NullPool)
        log.info("db.engine.created", shard=shard, role=role, mode="test", poolclass="NullPool")
        return engine

    connect_args: dict[str, Any] = {}
    if make_url(url).get_driver_name() == "asyncpg":
        connect_args = {
            "statement_cache_size": STATEMENT_CACHE_SIZE,
            "server_settings": {
                # Visible in pg_stat_activity
                "application_name": f"postshard-{shard.lower()}-{role}",
            },
        }

    engine = create_async_engine(
        url,
        echo=settings.db_echo_sql,
        pool_size=settings.pool_size,
        max_overflow=settings.pool_max_overflow,
        pool_timeout=settings.pool_timeout,
        pool_recycle=settings.pool_recycle,
        pool_pre_ping=True,
        connect_args=connect_args,
    )

    _attach_pool_listeners(engine, shard=shard, role=role)

    log.info(
        "db.engine.created",
        shard=shard,
        role=role,
        url=redact_url(url),
        pool_size=settings.pool_size,
        max_overflow=settings.pool_max_overflow,
        pool_timeout=settings.pool_timeout,
        pool_recycle=settings.pool_recycle,
    )
    return engine
