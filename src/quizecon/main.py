"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy.exc import SQLAlchemyError

from quizecon.cache import ResponseCache
from quizecon.config import get_settings
from quizecon.database import close_db, get_session, init_db
from quizecon.gamification.router import router as progress_router
from quizecon.gamification.seed import seed_milestones
from quizecon.health.router import router as health_router
from quizecon.middleware import setup_middleware
from quizecon.payments.processor import StripeCheckoutProcessor
from quizecon.payments.router import router as payments_router
from quizecon.ranked.router import router as ranked_router
from quizecon.redis_client import close_redis, get_redis, init_redis
from quizecon.wallet.router import router as wallet_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle. Everything stateful hangs off ``app.state``."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url)

    # Milestone ladders (idempotent)
    try:
        async for db in get_session():
            await seed_milestones(db)
            break
    except SQLAlchemyError:
        logger.warning("Milestone seeding failed (tables may not exist yet)", exc_info=True)

    app.state.cache = ResponseCache(
        get_redis(),
        prefix="quizecon",
        default_ttl=settings.leaderboard_cache_ttl_seconds,
    )
    app.state.payment_processor = StripeCheckoutProcessor.from_settings(settings)

    yield

    await app.state.payment_processor.aclose()
    await app.state.cache.clear()
    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Quiz Economy API",
        description="Hint wallet, XP, streaks, milestones, ranked play and hint pack purchases",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(wallet_router)
    app.include_router(progress_router)
    app.include_router(ranked_router)
    app.include_router(payments_router)

    return app


app = create_app()
