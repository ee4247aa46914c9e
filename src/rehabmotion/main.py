"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from rehabmotion.config import Settings, get_settings
from rehabmotion.database import close_db, create_schema, get_session_factory, init_db
from rehabmotion.gamification.badge_service import BadgeEvaluator
from rehabmotion.gamification.catalog import get_catalog
from rehabmotion.gamification.router import router as badges_router
from rehabmotion.gamification.store import (
    BadgeStore,
    InMemoryBadgeStore,
    RedisBadgeCache,
    SqlBadgeStore,
    TieredBadgeStore,
)
from rehabmotion.health.router import router as health_router
from rehabmotion.middleware import setup_middleware
from rehabmotion.redis_client import close_redis, get_redis, init_redis

logger = logging.getLogger(__name__)


async def build_evaluator(settings: Settings) -> BadgeEvaluator:
    """Open the configured backends and wire a badge evaluator to them."""
    if settings.store_backend == "memory":
        return BadgeEvaluator(InMemoryBadgeStore(), get_catalog())

    await init_db(settings.database_url)
    await init_redis(settings.redis_url)

    if settings.create_schema_on_startup:
        try:
            await create_schema()
        except Exception:
            logger.warning("Badge schema creation failed (database may be down)", exc_info=True)

    redis = get_redis()
    store: BadgeStore = TieredBadgeStore(
        primary=SqlBadgeStore(get_session_factory()),
        cache=RedisBadgeCache(
            redis,
            key_prefix=settings.badge_cache_key_prefix,
            ttl_seconds=settings.badge_cache_ttl_seconds,
        ),
    )
    return BadgeEvaluator(
        store,
        get_catalog(),
        redis=redis if settings.publish_badge_events else None,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    app.state.badge_evaluator = await build_evaluator(settings)

    yield

    if settings.store_backend != "memory":
        await close_db()
        await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="RehabMotion Badges API",
        description="Achievement tracking for the RehabMotion rehabilitation app",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(badges_router)

    return app


app = create_app()
