"""
Application configuration via pydantic-settings.

All settings are loaded from environment variables (or a .env file in dev).
Shard connections are declared per shard, keyed Shard1, Shard2, ... either
as a JSON object in SHARDS or as nested variables:

    SHARDS='{"Shard1": {"master": "postgresql+asyncpg://...", "slave": "..."}}'

    SHARDS__SHARD1__MASTER=postgresql+asyncpg://app:pw@shard1-master:5432/posts
    SHARDS__SHARD1__SLAVE=postgresql+asyncpg://app:pw@shard1-slave:5432/posts

Settings only carry raw values. ShardTopology.from_settings() turns them into
the validated, immutable topology the connection registry is built from; any
problem there is a ConfigurationError and the process must not start serving.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import StrEnum
from functools import lru_cache

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

from postshard.core.exceptions import ConfigurationError


class Environment(StrEnum):
    DEV = "dev"
    PROD = "prod"
    TEST = "test"


class ShardPairSettings(BaseModel):
    """Raw master/slave connection strings for one shard.

    Both fields are optional here so that a missing role surfaces as a
    ConfigurationError naming the shard, not a generic validation error.
    """

    master: str | None = None
    slave: str | None = None


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    # ------------------------------------------------------------------ #
    # Application
    # ------------------------------------------------------------------ #
    environment: Environment = Environment.DEV
    debug: bool = False

    # ------------------------------------------------------------------ #
    # Shards
    # ------------------------------------------------------------------ #
    shards: dict[str, ShardPairSettings] = Field(
        default_factory=dict,
        description="Master/slave connection strings keyed Shard1..ShardN",
    )
    shard_count: int | None = Field(
        default=None,
        description=(
            "Expected number of shards. Optional; when set it must equal the "
            "number of configured master/slave pairs."
        ),
    )
    auto_create_schema: bool = Field(
        default=False,
        description="Create missing tables on every shard master at startup",
    )

    # ------------------------------------------------------------------ #
    # Database
    # ------------------------------------------------------------------ #
    db_echo_sql: bool = False  # Set True for SQL query logging in dev
    query_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Default timeout for a single shard call when the caller supplies none",
    )
    pool_size: int = Field(default=10, ge=1)
    pool_max_overflow: int = Field(default=20, ge=0)
    pool_timeout: int = Field(default=30, ge=1, description="Seconds to wait for a pooled connection")
    pool_recycle: int = Field(default=3600, ge=1, description="Seconds before a connection is recycled")

    # ------------------------------------------------------------------ #
    # Derived / Computed
    # ------------------------------------------------------------------ #
    @model_validator(mode="after")
    def _set_debug_from_env(self) -> Settings:
        if self.environment == Environment.DEV:
            self.debug = True
        return self

    @property
    def is_dev(self) -> bool:
        return self.environment in (Environment.DEV, Environment.TEST)

    @property
    def is_prod(self) -> bool:
        return self.environment == Environment.PROD


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings singleton.

    Use FastAPI dependency injection via Depends(get_settings) in endpoints,
    or call directly in non-request contexts (startup, scripts).
    """
    return Settings()


# ------------------------------------------------------------------ #
# Shard topology
# ------------------------------------------------------------------ #

_SHARD_KEY = re.compile(r"^shard(\d+)$", re.IGNORECASE)


def redact_url(url: str) -> str:
    """Render a connection URL with its password hidden."""
    try:
        return make_url(url).render_as_string(hide_password=True)
    except ArgumentError:
        return "<unparseable>"


@dataclass(frozen=True)
class ShardEndpoints:
    """Validated connection strings for a single shard.

    ``index`` is zero-based; ``name`` is the configured key (Shard1 -> 0).
    """

    index: int
    name: str
    master_url: str
    slave_url: str


@dataclass(frozen=True)
class ShardTopology:
    """Immutable description of every configured shard, ordered by index."""

    shards: tuple[ShardEndpoints, ...]

    @property
    def shard_count(self) -> int:
        return len(self.shards)

    @classmethod
    def from_settings(cls, settings: Settings) -> ShardTopology:
        return cls.from_mapping(settings.shards, expected_count=settings.shard_count)

    @classmethod
    def from_mapping(
        cls,
        shards: dict[str, ShardPairSettings],
        *,
        expected_count: int | None = None,
    ) -> ShardTopology:
        """Validate raw shard settings and build the topology.

        Raises:
            ConfigurationError: no shards, a malformed key, a gap in the
                Shard1..ShardN numbering, a missing role, an unparseable URL,
                or a shard count that disagrees with the configured pairs.
        """
        if not shards:
            raise ConfigurationError("No shards configured. Set SHARDS or SHARDS__SHARD1__MASTER/SLAVE.")

        numbered: dict[int, tuple[str, ShardPairSettings]] = {}
        for key, pair in shards.items():
            match = _SHARD_KEY.match(key.strip())
            if match is None:
                raise ConfigurationError(f"Invalid shard key {key!r}; expected Shard1, Shard2, ...")
            number = int(match.group(1))
            if number < 1:
                raise ConfigurationError(f"Invalid shard key {key!r}; shard numbering starts at 1")
            if number in numbered:
                raise ConfigurationError(f"Shard {number} is configured more than once")
            numbered[number] = (key, pair)

        expected_numbers = set(range(1, len(numbered) + 1))
        if set(numbered) != expected_numbers:
            missing = sorted(expected_numbers - set(numbered))
            raise ConfigurationError(
                f"Shard keys must be contiguous from Shard1; missing Shard{missing[0]}"
            )

        if expected_count is not None and expected_count != len(numbered):
            raise ConfigurationError(
                f"SHARD_COUNT={expected_count} but {len(numbered)} master/slave pairs are configured"
            )

        endpoints: list[ShardEndpoints] = []
        for number in sorted(numbered):
            key, pair = numbered[number]
            master = _require_url(key, "master", pair.master)
            slave = _require_url(key, "slave", pair.slave)
            endpoints.append(
                ShardEndpoints(index=number - 1, name=f"Shard{number}", master_url=master, slave_url=slave)
            )

        return cls(shards=tuple(endpoints))


def _require_url(key: str, role: str, value: str | None) -> str:
    if value is None or not value.strip():
        raise ConfigurationError(f"{key} has no {role} connection string")
    try:
        make_url(value.strip())
    except ArgumentError as exc:
        raise ConfigurationError(f"{key} {role} connection string is malformed: {exc}") from exc
    return value.strip()
