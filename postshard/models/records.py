"""Data-transfer records and their row mappings.

These are what the orchestrator returns and the HTTP layer serializes.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any


@dataclass(frozen=True)
class User:
    id: str
    name: str

    def to_row(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name}


@dataclass(frozen=True)
class Category:
    id: str
    name: str

    def to_row(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name}


@dataclass(frozen=True)
class Post:
    """A stored post and the shard it lives on."""

    id: uuid.UUID
    title: str
    content: str
    user_id: str
    category_id: str
    created_at: datetime
    shard_index: int

    def to_row(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "user_id": self.user_id,
            "category_id": self.category_id,
            "created_at": self.created_at,
        }

    @classmethod
    def from_row(cls, row: Mapping[str, Any], *, shard_index: int) -> Post:
        created_at = row["created_at"]
        # SQLite hands back naive datetimes; everything is stored in UTC
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=UTC)
        return cls(
            id=row["id"],
            title=row["title"],
            content=row["content"],
            user_id=row["user_id"],
            category_id=row["category_id"],
            created_at=created_at,
            shard_index=shard_index,
        )


@dataclass(frozen=True)
class InitializationReport:
    """What initialize_all wrote: the same reference rows on every shard."""

    shard_count: int
    users_per_shard: int
    categories_per_shard: int


def generate_users(count: int) -> list[User]:
    return [User(id=f"User{n}", name=f"User {n}") for n in range(1, count + 1)]


def generate_categories(count: int) -> list[Category]:
    return [Category(id=f"Category{n}", name=f"Category {n}") for n in range(1, count + 1)]


def new_post(title: str, content: str, user_id: str, category_id: str, *, shard_index: int) -> Post:
    return Post(
        id=uuid.uuid4(),
        title=title,
        content=content,
        user_id=user_id,
        category_id=category_id,
        created_at=datetime.now(UTC),
        shard_index=shard_index,
    )
