"""Shard topology endpoints.

GET /api/v1/shards          - Configured shards with redacted connection info
GET /api/v1/shards/resolve  - Which shard a category routes to
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from postshard.api.dependencies import CategoryQuery, get_data_access
from postshard.services.orchestrator import ShardedDataAccess

router = APIRouter(prefix="/shards", tags=["shards"])


class ShardTopologyResponse(BaseModel):
    shard_count: int
    connections: list[dict[str, Any]]


class ShardResolution(BaseModel):
    category_id: str
    shard_index: int
    shard_count: int


@router.get("", response_model=ShardTopologyResponse)
async def list_shards(data_access: ShardedDataAccess = Depends(get_data_access)) -> ShardTopologyResponse:
    return ShardTopologyResponse(
        shard_count=data_access.shard_count,
        connections=data_access.registry.describe(),
    )


@router.get("/resolve", response_model=ShardResolution)
async def resolve_shard(
    category_id: CategoryQuery,
    data_access: ShardedDataAccess = Depends(get_data_access),
) -> ShardResolution:
    return ShardResolution(
        category_id=category_id.strip(),
        shard_index=data_access.resolve_shard(category_id),
        shard_count=data_access.shard_count,
    )
