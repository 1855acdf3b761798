"""Health and readiness endpoints.

  /health (liveness): the process can respond.  Reports per-dependency
    status; 200 even when degraded, the status field carries the verdict.
  /ready (readiness): this instance can take traffic.  Redis is optional
    (the write-back guard falls back to in-memory), so readiness does not
    depend on it.
"""

from __future__ import annotations

from fastapi import APIRouter, Response
from redis.exceptions import RedisError

from suite_access.db.redis import redis_pool

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict:
    checks: dict[str, str] = {}
    overall = "ok"

    if redis_pool is not None:
        try:
            await redis_pool.ping()  # type: ignore[misc]
            checks["redis"] = "ok"
        except (RedisError, OSError):
            checks["redis"] = "degraded"
            overall = "degraded"
    else:
        checks["redis"] = "not_configured"

    return {"status": overall, "checks": checks}


@router.get("/ready")
async def ready() -> Response:
    return Response(status_code=200)
