"""FastAPI application for the BoltLab progression engine."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .api.exception_handlers import register_exception_handlers
from .api.routes import gamification
from .config import get_settings
from .services.achievements import get_catalog
from .utils.log_sanitizer import install_log_sanitizer


settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
# Handlers must exist before the filter is attached to them
install_log_sanitizer()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    logger.info(f"Starting BoltLab progression v{__version__}")
    logger.info(f"Store backend: {settings.store_backend}")
    if settings.store_backend == "sqlite":
        logger.info(f"SQLite DB: {settings.sqlite_db_path}")
    if settings.streak_shields_enabled:
        logger.info(f"Streak shields enabled (max {settings.max_streak_shields})")

    # Fail fast on a broken catalog
    catalog = get_catalog()
    logger.info(f"Achievement catalog: {len(catalog)} achievements")

    yield

    # Shutdown
    logger.info("Shutting down BoltLab progression")


app = FastAPI(
    title="BoltLab Progression API",
    description="XP, levels, streaks and achievements for completed workouts",
    version=__version__,
    lifespan=lifespan,
    debug=settings.debug,
    redirect_slashes=False,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register exception handlers
register_exception_handlers(app)

# Include routers
app.include_router(gamification.router, prefix="/api/v1", tags=["gamification"])


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


def run() -> None:
    """Run the API server with uvicorn."""
    import uvicorn

    uvicorn.run(app, host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    run()
