"""Per-shard connection registry.

Maps (shard index, role) to the engine that serves it. The registry is built
once from a validated ShardTopology during startup and has no mutation API
afterwards, so request handlers read it concurrently without locking.

Lifecycle: unconfigured -> configured (from_topology) -> serving -> disposed.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from enum import StrEnum
from types import MappingProxyType
from typing import Any

import structlog
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine

from postshard.config import ShardTopology, redact_url
from postshard.core.exceptions import ConfigurationError, RoutingError

log = structlog.get_logger(__name__)


class ShardRole(StrEnum):
    MASTER = "master"
    SLAVE = "slave"


# (url, shard name, role) -> engine; see postshard.db.pool.create_shard_engine
EngineFactory = Callable[[str, str, ShardRole], AsyncEngine]


@dataclass(frozen=True)
class ShardConnection:
    """A resolved connection: the engine plus what it points at."""

    shard_index: int
    shard_name: str
    role: ShardRole
    url: str
    engine: AsyncEngine

    @property
    def display_url(self) -> str:
        return redact_url(self.url)

    @property
    def host(self) -> str | None:
        return make_url(self.url).host

    @property
    def database(self) -> str | None:
        return make_url(self.url).database

    def describe(self) -> dict[str, Any]:
        return {
            "shard_index": self.shard_index,
            "shard": self.shard_name,
            "role": str(self.role),
            "host": self.host,
            "database": self.database,
            "url": self.display_url,
        }


class ConnectionRegistry:
    """Immutable (shard index, role) -> ShardConnection lookup."""

    __slots__ = ("_connections", "_shard_count")

    def __init__(self, connections: Mapping[tuple[int, ShardRole], ShardConnection]) -> None:
        indices = {index for index, _ in connections}
        if not indices:
            raise ConfigurationError("Connection registry needs at least one shard")
        if indices != set(range(len(indices))):
            raise ConfigurationError(
                f"Shard indices must be contiguous from 0, got {sorted(indices)}"
            )
        for index in sorted(indices):
            for role in ShardRole:
                if (index, role) not in connections:
                    raise ConfigurationError(f"Shard index {index} has no {role} connection")

        self._connections: Mapping[tuple[int, ShardRole], ShardConnection] = MappingProxyType(
            dict(connections)
        )
        self._shard_count = len(indices)

    @classmethod
    def from_topology(cls, topology: ShardTopology, engine_factory: EngineFactory) -> ConnectionRegistry:
        """Create one engine per shard/role and freeze the result.

        If any engine cannot be created, the engines built so far are
        disposed before the error propagates.
        """
        connections: dict[tuple[int, ShardRole], ShardConnection] = {}
        try:
            for shard in topology.shards:
                for role, url in ((ShardRole.MASTER, shard.master_url), (ShardRole.SLAVE, shard.slave_url)):
                    connections[(shard.index, role)] = ShardConnection(
                        shard_index=shard.index,
                        shard_name=shard.name,
                        role=role,
                        url=url,
                        engine=engine_factory(url, shard.name, role),
                    )
            registry = cls(connections)
        except Exception:
            # No connection has been opened yet; the sync dispose only drops the pools
            for conn in connections.values():
                conn.engine.sync_engine.dispose()
            log.error("registry.build_failed", built=len(connections))
            raise
        log.info("registry.built", shard_count=registry.shard_count)
        return registry

    @property
    def shard_count(self) -> int:
        return self._shard_count

    def resolve(self, shard_index: int, role: ShardRole) -> ShardConnection:
        """Return the connection serving ``role`` on shard ``shard_index``.

        Raises:
            RoutingError: if the shard index is outside [0, shard_count).
        """
        try:
            return self._connections[(shard_index, ShardRole(role))]
        except (KeyError, ValueError):
            raise RoutingError(
                f"No {role} connection for shard index {shard_index} "
                f"(shard_count={self._shard_count})"
            ) from None

    def master(self, shard_index: int) -> ShardConnection:
        return self.resolve(shard_index, ShardRole.MASTER)

    def slave(self, shard_index: int) -> ShardConnection:
        return self.resolve(shard_index, ShardRole.SLAVE)

    def masters(self) -> list[ShardConnection]:
        return [self.master(index) for index in range(self._shard_count)]

    def __iter__(self) -> Iterator[ShardConnection]:
        for index in range(self._shard_count):
            for role in ShardRole:
                yield self._connections[(index, role)]

    def __len__(self) -> int:
        return len(self._connections)

    def describe(self) -> list[dict[str, Any]]:
        """Redacted view of every connection, for logging and the shards endpoint."""
        return [conn.describe() for conn in self]

    async def dispose(self) -> None:
        """Dispose every engine and release pooled connections.

        Every engine is attempted; the first failure is raised afterwards.
        """
        errors: list[Exception] = []
        for conn in self:
            try:
                await conn.engine.dispose()
            except Exception as exc:
                log.error(
                    "registry.dispose_failed",
                    shard=conn.shard_name,
                    role=str(conn.role),
                    error=str(exc),
                )
                errors.append(exc)
        log.info("registry.disposed", shard_count=self._shard_count, failed=len(errors))
        if errors:
            raise errors[0]
