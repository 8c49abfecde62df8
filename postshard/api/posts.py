"""Post and initialization endpoints.

POST /api/v1/initialize  - Replicate generated users and categories to every shard
POST /api/v1/posts       - Create a post on its category's shard master
GET  /api/v1/posts       - Latest posts of a category from its shard slave
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from postshard.api.dependencies import CategoryQuery, Identifier, get_data_access, get_request_timeout
from postshard.models.records import Post
from postshard.services.orchestrator import ShardedDataAccess

log = structlog.get_logger(__name__)

router = APIRouter(tags=["posts"])


# ------------------------------------------------------------------ #
# Request/Response Models
# ------------------------------------------------------------------ #


class InitializeResponse(BaseModel):
    status: str
    shard_count: int
    users_per_shard: int
    categories_per_shard: int


class CreatePostRequest(BaseModel):
    """Request to create a post. The category decides the shard."""

    title: str = Field(..., min_length=1, max_length=255)
    content: str = Field(..., description="Post body")
    user_id: Identifier | int = Field(..., description="Owning user identifier", examples=["User1"])
    category_id: Identifier | int = Field(..., description="Owning category identifier", examples=["Category1"])


class PostResponse(BaseModel):
    id: uuid.UUID
    title: str
    content: str
    user_id: str
    category_id: str
    created_at: datetime
    shard_index: int

    @classmethod
    def from_record(cls, post: Post) -> PostResponse:
        return cls(
            id=post.id,
            title=post.title,
            content=post.content,
            user_id=post.user_id,
            category_id=post.category_id,
            created_at=post.created_at,
            shard_index=post.shard_index,
        )


# ------------------------------------------------------------------ #
# Endpoints
# ------------------------------------------------------------------ #


@router.post("/initialize", response_model=InitializeResponse)
async def initialize(
    user_count: Annotated[int, Query(ge=0, le=100_000)],
    category_count: Annotated[int, Query(ge=1, le=100_000)],
    data_access: ShardedDataAccess = Depends(get_data_access),
    timeout: float | None = Depends(get_request_timeout),
) -> InitializeResponse:
    """Write users and categories to every shard master.

    Not idempotent: calling it twice stores the reference rows twice.
    """
    report = await data_access.initialize_all(user_count, category_count, timeout=timeout)
    return InitializeResponse(
        status="ok",
        shard_count=report.shard_count,
        users_per_shard=report.users_per_shard,
        categories_per_shard=report.categories_per_shard,
    )


@router.post("/posts", response_model=PostResponse, status_code=status.HTTP_201_CREATED)
async def create_post(
    body: CreatePostRequest,
    data_access: ShardedDataAccess = Depends(get_data_access),
    timeout: float | None = Depends(get_request_timeout),
) -> PostResponse:
    try:
        post = await data_access.create_post(
            body.title,
            body.content,
            body.user_id,
            body.category_id,
            timeout=timeout,
        )
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(exc),
        )
    return PostResponse.from_record(post)


@router.get("/posts", response_model=list[PostResponse])
async def latest_posts(
    category_id: CategoryQuery,
    count: Annotated[int, Query(ge=1, le=1000)] = 10,
    data_access: ShardedDataAccess = Depends(get_data_access),
    timeout: float | None = Depends(get_request_timeout),
) -> list[PostResponse]:
    """Newest posts first. Served by a replica, so very recent posts may be missing."""
    posts = await data_access.get_latest_posts(category_id, count, timeout=timeout)
    return [PostResponse.from_record(post) for post in posts]
