"""Health check endpoints.

/health/live   - Liveness probe: is the process up?
/health/ready  - Readiness probe: is every shard master and slave reachable?

These are public endpoints, mounted outside /api/v1.
"""

from __future__ import annotations

from datetime import UTC, datetime

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from postshard.api.dependencies import get_data_access
from postshard.services.orchestrator import ShardedDataAccess

router = APIRouter(prefix="/health", tags=["health"])

_PROBE_TIMEOUT_SECONDS = 2.0


@router.get("/live")
async def liveness() -> dict:
    """Liveness probe - always returns 200 if the process is running."""
    return {"status": "ok", "timestamp": datetime.now(UTC).isoformat()}


@router.get("/ready")
async def readiness(data_access: ShardedDataAccess = Depends(get_data_access)) -> JSONResponse:
    """Readiness probe - 503 unless every shard connection answers SELECT 1."""
    results = await data_access.check_health(timeout=_PROBE_TIMEOUT_SECONDS)
    is_ready = all(result.healthy for result in results)
    return JSONResponse(
        status_code=200 if is_ready else 503,
        content={
            "status": "ready" if is_ready else "not_ready",
            "connections": [
                {
                    "shard_index": result.shard_index,
                    "shard": result.shard,
                    "role": str(result.role),
                    "status": "ok" if result.healthy else "error",
                    "latency_ms": result.latency_ms,
                    "error": result.error,
                }
                for result in results
            ],
            "timestamp": datetime.now(UTC).isoformat(),
        },
    )
