"""Table definitions shared by every shard.

Plain SQLAlchemy Core tables: the service builds its own INSERT/SELECT
statements and maps rows to the dataclasses in postshard.models.records.
All shards carry the same schema; users and categories hold replicated
reference data, posts hold the rows placed on that shard.

Reference identifiers (users.id, categories.id) are intentionally not unique:
re-running initialization appends duplicate rows rather than failing.
"""

from __future__ import annotations

from sqlalchemy import (
    Column,
    DateTime,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    Uuid,
)

metadata = MetaData()

IDENTIFIER_LENGTH = 64

users = Table(
    "users",
    metadata,
    Column("row_id", Integer, primary_key=True, autoincrement=True),
    Column("id", String(IDENTIFIER_LENGTH), nullable=False, index=True),
    Column("name", String(255), nullable=False),
)

categories = Table(
    "categories",
    metadata,
    Column("row_id", Integer, primary_key=True, autoincrement=True),
    Column("id", String(IDENTIFIER_LENGTH), nullable=False, index=True),
    Column("name", String(255), nullable=False),
)

posts = Table(
    "posts",
    metadata,
    Column("id", Uuid, primary_key=True),
    Column("title", String(255), nullable=False),
    Column("content", Text, nullable=False),
    Column("user_id", String(IDENTIFIER_LENGTH), nullable=False),
    Column("category_id", String(IDENTIFIER_LENGTH), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    # Latest-posts-per-category is the only read path
    Index("ix_posts_category_id_created_at", "category_id", "created_at"),
)
