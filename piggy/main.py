"""
FastAPI Main Application
Round-up savings and auto-invest service
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from piggy import __version__
from piggy.api.routes import config as config_routes
from piggy.api.routes import health, piggy as piggy_routes
from piggy.config import resolve_config_dir, settings
from piggy.core.logging import setup_logging
from piggy.domain.services.config_engine import ConfigEngine
from piggy.infrastructure.db.database import close_db, init_db
from piggy.infrastructure.market_data.provider_factory import get_price_feed

setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager
    Loads configuration and opens the database before serving
    """
    logger.info("Starting UPI Piggy %s (%s)", __version__, settings.APP_ENV)

    # 1. Database
    await init_db()
    logger.info("Database initialized")

    # 2. Configuration (fail fast)
    config_engine = ConfigEngine(resolve_config_dir())
    config_engine.load_all()
    app.state.config_engine = config_engine

    # 3. Price feed
    app.state.price_feed = get_price_feed(config_engine)
    logger.info("Price feed ready")

    try:
        yield
    finally:
        await close_db()
        logger.info("Shutdown complete")


def create_app() -> FastAPI:
    app = FastAPI(
        title="UPI Piggy",
        version=__version__,
        lifespan=lifespan,
    )
    app.include_router(health.router, tags=["Health"])
    app.include_router(config_routes.router, prefix="/api/v1/config", tags=["Config"])
    app.include_router(piggy_routes.router, prefix="/api/v1/piggy", tags=["Piggy"])
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("piggy.main:app", host=settings.API_HOST, port=settings.API_PORT)
