"""Redis connection management.

When REDIS_URL is configured we create a shared connection pool; when it
is None (local dev, tests) every consumer falls back to an in-memory
implementation and no Redis server is needed.

Redis holds only short-lived coordination state here: the per-session
"trial fields already written" markers that keep several API instances
from writing the same profile over and over.  Profiles and suites live
in the external document store.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis

from suite_access.core.config import SETTINGS

logger = logging.getLogger(__name__)

if SETTINGS.redis_url:
    redis_pool: aioredis.Redis | None = aioredis.from_url(  # type: ignore[type-arg]
        SETTINGS.redis_url,
        decode_responses=True,
        max_connections=20,
    )
else:
    redis_pool = None


@asynccontextmanager
async def lifespan_redis():
    """Startup/shutdown hook: verify connectivity, then release the pool."""
    if redis_pool is None:
        logger.info("No REDIS_URL configured, write-back guard is in-memory")
        yield
        return

    try:
        await redis_pool.ping()  # type: ignore[misc]
        logger.info("Redis connected: %s", SETTINGS.redis_url)
    except Exception:
        # Keep serving: a failed guard only means redundant write-backs.
        logger.exception("Redis connection failed on startup")

    try:
        yield
    finally:
        await redis_pool.aclose()
        logger.info("Redis connection pool closed")
