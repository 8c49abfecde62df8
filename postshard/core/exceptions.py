"""Error taxonomy for shard routing and data access.

ConfigurationError  - startup-fatal, raised while building the shard topology
RoutingError        - invalid shard count or unknown shard index
ConnectivityError   - resolved master/slave connection unreachable at call time
CancellationError   - call abandoned because its timeout elapsed

None of these are retried or recovered from inside the service. The HTTP
layer maps each one to a distinct response status.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from postshard.sharding.registry import ShardRole


class ShardingError(Exception):
    """Base class for all postshard errors."""


class ConfigurationError(ShardingError):
    """Shard connection configuration is missing or malformed."""


class RoutingError(ShardingError):
    """A routing invariant was violated (bad shard count or index)."""


class DataAccessError(ShardingError):
    """A call against a resolved shard connection did not complete."""

    def __init__(self, message: str, *, shard_index: int, role: ShardRole) -> None:
        super().__init__(message)
        self.shard_index = shard_index
        self.role = role


class ConnectivityError(DataAccessError):
    """The resolved connection could not be reached."""


class CancellationError(DataAccessError):
    """The call was abandoned after its timeout elapsed."""

    def __init__(
        self,
        message: str,
        *,
        shard_index: int,
        role: ShardRole,
        timeout: float | None = None,
    ) -> None:
        super().__init__(message, shard_index=shard_index, role=role)
        self.timeout = timeout
