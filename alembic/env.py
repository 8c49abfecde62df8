"""Alembic environment configuration.

Every shard master carries the same schema, so an online upgrade walks the
configured topology and applies the migrations to each master in turn.
Slaves receive the schema through replication and are never migrated
directly. Offline mode renders the SQL once; it is identical for all shards.

Shard connection strings come from the application settings, so migrations
and the running service always agree on the topology.
"""

from __future__ import annotations

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine

from postshard.config import ShardTopology, get_settings, redact_url
from postshard.models.tables import metadata

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = metadata


def run_migrations_offline() -> None:
    """Run migrations in offline mode (generate SQL without connecting)."""
    topology = ShardTopology.from_settings(get_settings())
    context.configure(
        url=topology.shards[0].master_url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    """Execute migrations on an open connection."""
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        compare_type=True,
    )
    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    """Upgrade every shard master, one after another."""
    topology = ShardTopology.from_settings(get_settings())

    for shard in topology.shards:
        print(f"Migrating {shard.name} master: {redact_url(shard.master_url)}")
        connectable = create_async_engine(shard.master_url, poolclass=pool.NullPool)
        try:
            async with connectable.connect() as connection:
                await connection.run_sync(do_run_migrations)
        finally:
            await connectable.dispose()


def run_migrations_online() -> None:
    """Run migrations in online mode (connect to each master and apply)."""
    asyncio.run(run_async_migrations())


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
