"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from tradoor.achievements.seed import seed_achievements
from tradoor.admin.router import router as admin_router
from tradoor.chain.client import get_chain_client
from tradoor.chain.price import get_price_oracle
from tradoor.config import get_settings
from tradoor.database import close_db, get_session_factory, init_db
from tradoor.health.router import router as health_router
from tradoor.leaderboard.router import router as leaderboard_router
from tradoor.live.router import router as live_router
from tradoor.middleware import setup_middleware
from tradoor.profiles.router import router as profiles_router
from tradoor.redis_client import close_redis, init_redis
from tradoor.stats.milestones import seed_milestones
from tradoor.stats.router import router as stats_router
from tradoor.stats.service import ensure_stats
from tradoor.trading.router import router as trading_router


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url)

    # Seed achievements, milestones and the stats row (idempotent)
    try:
        async with get_session_factory()() as db:
            await seed_achievements(db)
            await seed_milestones(db)
            await ensure_stats(db)
            await db.commit()
    except Exception:
        logging.getLogger(__name__).warning("Seeding failed (tables may not exist yet)", exc_info=True)

    yield

    await get_chain_client().aclose()
    await get_price_oracle().aclose()
    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="pTradoor Points API",
        description="Points, tiers, achievements and leaderboard for the pTradoor trading mini-app",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(profiles_router)
    app.include_router(trading_router)
    app.include_router(leaderboard_router)
    app.include_router(stats_router)
    app.include_router(admin_router)
    app.include_router(live_router)

    return app


app = create_app()
