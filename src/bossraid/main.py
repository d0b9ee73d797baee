"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from bossraid.config import get_settings
from bossraid.database import close_db, init_db
from bossraid.health.router import router as health_router
from bossraid.middleware import setup_middleware
from bossraid.raids.router import router as raids_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    if settings.database_url:
        await init_db(settings.database_url)
    else:
        # Tests initialize the engine themselves.
        logger.warning("RAIDSYNC_DATABASE_URL not set; database not initialized by the app")

    yield

    await close_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Boss Raid API",
        description="District boss raids fed by daily rider delivery logs",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(raids_router)

    return app


app = create_app()
