"""FastAPI application entry point."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from redis.exceptions import RedisError

from cellstatus import __version__
from cellstatus.api.v1.router import api_v1_router
from cellstatus.core.config import settings
from cellstatus.core.redis import close_redis, init_redis

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application startup and shutdown lifecycle."""
    logger.info("Starting %s ...", settings.PROJECT_NAME)

    # Rate limiting falls back to in-memory buckets without Redis
    try:
        await init_redis(app.state)
        logger.info("Redis connected")
    except (RedisError, OSError) as exc:
        app.state.redis = None
        logger.warning("Redis unavailable (%s); using in-memory rate limiting", exc)

    yield

    # Shutdown
    await close_redis(app.state)
    logger.info("Redis disconnected")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", settings.API_KEY_HEADER, "Accept"],
)

# Register API v1 router
app.include_router(api_v1_router, prefix="/api/v1")
