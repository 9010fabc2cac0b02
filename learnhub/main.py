from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from learnhub.api.courses import router as courses_router
from learnhub.api.enrollments import router as enrollments_router
from learnhub.api.health import router as health_router
from learnhub.api.lessons import router as lessons_router
from learnhub.api.metrics_endpoint import router as metrics_router
from learnhub.api.reviews import router as reviews_router
from learnhub.core.config import SETTINGS
from learnhub.core.logging import setup_logging
from learnhub.db.engine import lifespan_db
from learnhub.db.redis import lifespan_redis, redis_pool
from learnhub.middleware.metrics import MetricsMiddleware
from learnhub.middleware.request_context import RequestContextMiddleware
from learnhub.worker import run_worker

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _in_process_worker() -> AsyncGenerator[None, None]:
    """Run the worker loop inside the API when there is no shared queue."""
    if redis_pool is not None:
        yield
        return

    task = asyncio.create_task(run_worker(), name="learnhub-worker")
    logger.info("Worker running in-process")
    try:
        yield
    finally:
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    # Nested so teardown runs in reverse order.
    async with lifespan_db():
        async with lifespan_redis():
            async with _in_process_worker():
                yield


app = FastAPI(
    title="learnhub",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

# Last added runs first: RequestContext (outermost) -> Metrics -> route.
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)

app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(courses_router)
app.include_router(enrollments_router)
app.include_router(lessons_router)
app.include_router(reviews_router)

logger.info(
    "learnhub started  env=%s log_level=%s port=%d docs=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    "on" if SETTINGS.is_dev else "off",
)
