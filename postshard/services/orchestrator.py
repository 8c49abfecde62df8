"""Sharded data access.

ShardedDataAccess is the only entry point the HTTP layer uses. For every call
it picks the shard from the category key, picks the role from the kind of
operation, and runs one independent unit of work on the resolved engine:

    initialize_all    every shard, master   (reference data is replicated)
    create_post       select_shard(category), master
    get_latest_posts  select_shard(category), slave

There is no fallback between roles or shards and no retry. A shard whose
master is down rejects writes for its categories; reads keep working while
its slave is reachable. Reads may trail writes by the replication delay.

Each call runs under a timeout (caller-supplied or the configured default).
An elapsed timeout abandons the call and raises CancellationError.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

import structlog
from sqlalchemy import insert, select, text
from sqlalchemy.exc import (
    DBAPIError,
    DisconnectionError,
    InterfaceError,
    OperationalError,
)
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncConnection

from postshard.core.exceptions import CancellationError, ConnectivityError
from postshard.models import tables
from postshard.models.records import (
    InitializationReport,
    Post,
    generate_categories,
    generate_users,
    new_post,
)
from postshard.sharding.registry import ConnectionRegistry, ShardConnection, ShardRole
from postshard.sharding.selector import select_shard

log = structlog.get_logger(__name__)

T = TypeVar("T")

# Failures while opening a connection: the resolved target is unreachable
_CHECKOUT_ERRORS = (
    OperationalError,
    InterfaceError,
    DisconnectionError,
    PoolTimeoutError,
    OSError,
)

DEFAULT_TIMEOUT_SECONDS = 5.0


@dataclass(frozen=True)
class ConnectionHealth:
    shard_index: int
    shard: str
    role: ShardRole
    healthy: bool
    latency_ms: float | None = None
    error: str | None = None


def normalize_key(value: str | int, *, field: str = "category_id") -> str:
    """Canonical string form of a user/category identifier."""
    key = str(value).strip()
    if not key:
        raise ValueError(f"{field} must not be empty")
    if len(key) > tables.IDENTIFIER_LENGTH:
        raise ValueError(f"{field} must be at most {tables.IDENTIFIER_LENGTH} characters")
    return key


class ShardedDataAccess:
    """Routes record-level operations to the right shard and role."""

    def __init__(
        self,
        registry: ConnectionRegistry,
        *,
        default_timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._registry = registry
        self._default_timeout = default_timeout

    @property
    def registry(self) -> ConnectionRegistry:
        return self._registry

    @property
    def shard_count(self) -> int:
        return self._registry.shard_count

    def resolve_shard(self, category_id: str | int) -> int:
        """Index of the shard that owns posts of ``category_id``."""
        return select_shard(normalize_key(category_id), self._registry.shard_count)

    # ---------------------------------------------------------------- #
    # Operations
    # ---------------------------------------------------------------- #

    async def initialize_all(
        self,
        user_count: int,
        category_count: int,
        *,
        timeout: float | None = None,
    ) -> InitializationReport:
        """Write ``user_count`` users and ``category_count`` categories to every shard.

        Runs one task per shard master. All shards are attempted even if one
        fails; the first failure is then raised. Shards that succeeded keep
        their rows. Not idempotent: a second run inserts the same reference
        rows again.

        Raises:
            ValueError: user_count < 0 or category_count < 1.
            ConnectivityError / CancellationError: a shard master failed.
        """
        if user_count < 0:
            raise ValueError("user_count must be >= 0")
        if category_count < 1:
            raise ValueError("category_count must be >= 1")

        user_rows = [user.to_row() for user in generate_users(user_count)]
        category_rows = [category.to_row() for category in generate_categories(category_count)]

        async def _seed(conn: AsyncConnection) -> None:
            if user_rows:
                await conn.execute(insert(tables.users), user_rows)
            await conn.execute(insert(tables.categories), category_rows)

        masters = self._registry.masters()
        results = await asyncio.gather(
            *(self._write(master, "initialize_all", _seed, timeout=timeout) for master in masters),
            return_exceptions=True,
        )

        failures = [(master, result) for master, result in zip(masters, results) if isinstance(result, BaseException)]
        for master, error in failures:
            log.error(
                "orchestrator.initialize_all.shard_failed",
                shard=master.shard_name,
                error=str(error),
            )
        if failures:
            raise failures[0][1]

        log.info(
            "orchestrator.initialized",
            shard_count=len(masters),
            users=user_count,
            categories=category_count,
        )
        return InitializationReport(
            shard_count=len(masters),
            users_per_shard=user_count,
            categories_per_shard=category_count,
        )

    async def create_post(
        self,
        title: str,
        content: str,
        user_id: str | int,
        category_id: str | int,
        *,
        timeout: float | None = None,
    ) -> Post:
        """Insert a post on the master of the shard owning its category.

        Raises:
            ConnectivityError: the shard's master is unreachable (no fallback).
            CancellationError: the timeout elapsed.
        """
        category_key = normalize_key(category_id)
        shard_index = select_shard(category_key, self._registry.shard_count)
        post = new_post(
            title,
            content,
            normalize_key(user_id, field="user_id"),
            category_key,
            shard_index=shard_index,
        )

        async def _insert(conn: AsyncConnection) -> None:
            await conn.execute(insert(tables.posts).values(**post.to_row()))

        await self._write(self._registry.master(shard_index), "create_post", _insert, timeout=timeout)

        log.info(
            "orchestrator.post_created",
            post_id=str(post.id),
            category_id=category_key,
            shard_index=shard_index,
        )
        return post

    async def get_latest_posts(
        self,
        category_id: str | int,
        count: int,
        *,
        timeout: float | None = None,
    ) -> list[Post]:
        """Up to ``count`` newest posts of a category, read from the shard's slave.

        Raises:
            ValueError: count < 1.
            ConnectivityError: the shard's slave is unreachable.
            CancellationError: the timeout elapsed.
        """
        if count < 1:
            raise ValueError("count must be >= 1")

        category_key = normalize_key(category_id)
        shard_index = select_shard(category_key, self._registry.shard_count)
        stmt = (
            select(tables.posts)
            .where(tables.posts.c.category_id == category_key)
            .order_by(tables.posts.c.created_at.desc(), tables.posts.c.id.desc())
            .limit(count)
        )

        async def _query(conn: AsyncConnection) -> list[Post]:
            result = await conn.execute(stmt)
            return [Post.from_row(row._mapping, shard_index=shard_index) for row in result]

        posts = await self._read(self._registry.slave(shard_index), "get_latest_posts", _query, timeout=timeout)

        log.debug(
            "orchestrator.posts_read",
            category_id=category_key,
            shard_index=shard_index,
            returned=len(posts),
        )
        return posts

    # ---------------------------------------------------------------- #
    # Schema and health
    # ---------------------------------------------------------------- #

    async def ensure_schema(self, *, timeout: float | None = None) -> None:
        """Create any missing tables on every shard master."""

        async def _create(conn: AsyncConnection) -> None:
            await conn.run_sync(tables.metadata.create_all)

        for master in self._registry.masters():
            await self._write(master, "ensure_schema", _create, timeout=timeout)
        log.info("orchestrator.schema_ready", shard_count=self._registry.shard_count)

    async def check_health(self, *, timeout: float | None = None) -> list[ConnectionHealth]:
        """Ping every shard/role with SELECT 1. Never raises for a down connection."""
        connections = list(self._registry)
        return list(await asyncio.gather(*(self._ping(conn, timeout) for conn in connections)))

    async def _ping(self, conn: ShardConnection, timeout: float | None) -> ConnectionHealth:
        start = time.perf_counter()

        async def _select_one(c: AsyncConnection) -> None:
            await c.execute(text("SELECT 1"))

        try:
            await self._read(conn, "health_check", _select_one, timeout=timeout)
        except (ConnectivityError, CancellationError) as exc:
            return ConnectionHealth(
                shard_index=conn.shard_index,
                shard=conn.shard_name,
                role=conn.role,
                healthy=False,
                error=str(exc),
            )
        return ConnectionHealth(
            shard_index=conn.shard_index,
            shard=conn.shard_name,
            role=conn.role,
            healthy=True,
            latency_ms=round((time.perf_counter() - start) * 1000, 2),
        )

    # ---------------------------------------------------------------- #
    # Execution
    # ---------------------------------------------------------------- #

    async def _write(
        self,
        target: ShardConnection,
        operation: str,
        work: Callable[[AsyncConnection], Awaitable[T]],
        *,
        timeout: float | None,
    ) -> T:
        return await self._run(target, operation, work, transactional=True, timeout=timeout)

    async def _read(
        self,
        target: ShardConnection,
        operation: str,
        work: Callable[[AsyncConnection], Awaitable[T]],
        *,
        timeout: float | None,
    ) -> T:
        return await self._run(target, operation, work, transactional=False, timeout=timeout)

    async def _checkout(self, target: ShardConnection, operation: str) -> AsyncConnection:
        """Open a connection on ``target``. Any failure here means it is unreachable."""
        conn = target.engine.connect()
        try:
            await conn.start()
        except _CHECKOUT_ERRORS as exc:
            raise self._unreachable(target, operation, exc) from exc
        return conn

    async def _run(
        self,
        target: ShardConnection,
        operation: str,
        work: Callable[[AsyncConnection], Awaitable[T]],
        *,
        transactional: bool,
        timeout: float | None,
    ) -> T:
        """Run ``work`` on a fresh connection under a timeout and translate failures.

        Errors raised by a statement on an open connection (missing table,
        constraint violation) propagate unchanged unless the driver reports
        that the connection itself was lost.
        """
        effective_timeout = self._default_timeout if timeout is None else timeout

        try:
            async with asyncio.timeout(effective_timeout) as deadline:
                conn = await self._checkout(target, operation)
                try:
                    if transactional:
                        async with conn.begin():
                            return await work(conn)
                    return await work(conn)
                finally:
                    await conn.close()
        except TimeoutError as exc:
            if deadline.expired():
                log.warning(
                    "orchestrator.timeout",
                    timeout=effective_timeout,
                    operation=operation,
                    shard=target.shard_name,
                    role=str(target.role),
                )
                raise CancellationError(
                    f"{operation} on {target.shard_name} {target.role} timed out after {effective_timeout}s",
                    shard_index=target.shard_index,
                    role=target.role,
                    timeout=effective_timeout,
                ) from exc
            raise self._unreachable(target, operation, exc) from exc
        except (DisconnectionError, OSError) as exc:
            raise self._unreachable(target, operation, exc) from exc
        except DBAPIError as exc:
            if not exc.connection_invalidated:
                raise
            raise self._unreachable(target, operation, exc) from exc
        except asyncio.CancelledError:
            log.warning("orchestrator.cancelled", operation=operation, shard=target.shard_name, role=str(target.role))
            raise

    @staticmethod
    def _unreachable(target: ShardConnection, operation: str, exc: BaseException) -> ConnectivityError:
        log.error(
            "orchestrator.connection_failed",
            operation=operation,
            shard=target.shard_name,
            role=str(target.role),
            error=str(exc),
        )
        return ConnectivityError(
            f"{operation} failed: {target.shard_name} {target.role} unreachable ({exc})",
            shard_index=target.shard_index,
            role=target.role,
        )
