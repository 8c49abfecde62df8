#!/usr/bin/env python3
"""Seed every shard with generated reference data.

Creates, on the master of every configured shard:
  - N users (User1..UserN)
  - M categories (Category1..CategoryM)
  - optionally a few sample posts per category, each routed to its own shard

NOT idempotent: running it twice stores the reference rows twice.

Usage:
    # Shards configured via SHARDS / SHARDS__SHARD1__MASTER etc.
    python scripts/seed.py --users 100 --categories 10
    python scripts/seed.py --users 10 --categories 3 --posts-per-category 5 --create-schema
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from postshard.config import get_settings
from postshard.core.exceptions import ShardingError
from postshard.services.orchestrator import ShardedDataAccess
from postshard.sharding import build_registry
from postshard.telemetry.logging import configure_logging


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Replicate users and categories to every shard")
    parser.add_argument("--users", type=int, default=100, help="users to create (>= 0)")
    parser.add_argument("--categories", type=int, default=10, help="categories to create (>= 1)")
    parser.add_argument(
        "--posts-per-category",
        type=int,
        default=0,
        help="sample posts to create per category (default: 0)",
    )
    parser.add_argument(
        "--create-schema",
        action="store_true",
        help="create missing tables on every master first",
    )
    return parser.parse_args(argv)


async def seed(args: argparse.Namespace) -> None:
    settings = get_settings()
    registry = build_registry(settings)
    data_access = ShardedDataAccess(registry, default_timeout=settings.query_timeout_seconds)

    try:
        if args.create_schema:
            await data_access.ensure_schema()

        report = await data_access.initialize_all(args.users, args.categories)
        print(
            f"  [+] {report.users_per_shard} users and {report.categories_per_shard} categories "
            f"written to each of {report.shard_count} shards"
        )

        for n in range(1, args.categories + 1):
            category_id = f"Category{n}"
            for i in range(args.posts_per_category):
                user_id = f"User{(i % max(args.users, 1)) + 1}"
                await data_access.create_post(
                    f"Sample post {i + 1} in {category_id}",
                    f"Generated by the seed script for {category_id}.",
                    user_id,
                    category_id,
                )
            if args.posts_per_category:
                print(
                    f"  [+] {args.posts_per_category} posts -> {category_id} "
                    f"(shard {data_access.resolve_shard(category_id)})"
                )
    finally:
        await registry.dispose()


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    if args.users < 0 or args.categories < 1 or args.posts_per_category < 0:
        print("--users must be >= 0, --categories >= 1, --posts-per-category >= 0", file=sys.stderr)
        return 2

    configure_logging(log_level="WARNING")
    try:
        asyncio.run(seed(args))
    except ShardingError as exc:
        print(f"[ERROR] {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
