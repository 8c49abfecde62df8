"""Main API router - aggregates all sub-routers.

All data routes are versioned under /api/v1 except health checks.
"""

from __future__ import annotations

from fastapi import APIRouter

from postshard.api import health, posts, shards

# Public router (probes)
public_router = APIRouter()
public_router.include_router(health.router)

# Versioned API router
api_v1_router = APIRouter(prefix="/api/v1")
api_v1_router.include_router(posts.router)
api_v1_router.include_router(shards.router)
