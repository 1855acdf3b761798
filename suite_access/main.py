from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from suite_access.api.capabilities import router as capabilities_router
from suite_access.api.health import router as health_router
from suite_access.api.metrics_endpoint import router as metrics_router
from suite_access.api.suites import router as suites_router
from suite_access.core.config import SETTINGS
from suite_access.core.logging import setup_logging
from suite_access.db.redis import lifespan_redis
from suite_access.middleware.metrics import MetricsMiddleware
from suite_access.middleware.request_context import RequestContextMiddleware

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    async with lifespan_redis():
        yield


app = FastAPI(
    title="suite-access-service",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Last-added runs first: RequestContext → Metrics → CORS → route handler
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)

app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(capabilities_router)
app.include_router(suites_router)

logger.info(
    "suite-access-service started  env=%s log_level=%s port=%d "
    "verified_email_required=%s redis=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    SETTINGS.require_verified_email,
    "on" if SETTINGS.redis_url else "off",
)
