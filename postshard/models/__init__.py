"""Schema tables and data-transfer records."""

from postshard.models.records import (
    Category,
    InitializationReport,
    Post,
    User,
    generate_categories,
    generate_users,
    new_post,
)
from postshard.models.tables import categories, metadata, posts, users

__all__ = [
    "Category",
    "InitializationReport",
    "Post",
    "User",
    "categories",
    "generate_categories",
    "generate_users",
    "metadata",
    "new_post",
    "posts",
    "users",
]
