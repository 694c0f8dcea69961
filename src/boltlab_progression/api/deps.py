"""Dependency injection for API routes."""

import logging
from functools import lru_cache

from ..config import get_settings
from ..services.progression_service import ProgressionService
from ..store import (
    CachedProgressionStore,
    InMemoryProgressionStore,
    ProgressionStore,
    SQLiteProgressionStore,
    SupabaseProgressionStore,
)


logger = logging.getLogger(__name__)


@lru_cache
def get_store() -> ProgressionStore:
    """Get the configured progression store, behind a read cache."""
    settings = get_settings()

    if settings.store_backend == "supabase":
        store: ProgressionStore = SupabaseProgressionStore(
            url=settings.supabase_url,
            key=settings.supabase_key,
            timeout_seconds=settings.store_timeout_seconds,
            max_retries=settings.store_max_retries,
        )
    elif settings.store_backend == "memory":
        store = InMemoryProgressionStore()
    else:
        store = SQLiteProgressionStore(
            db_path=settings.sqlite_db_path,
            timeout_seconds=settings.store_timeout_seconds,
        )

    logger.info(f"Using {settings.store_backend} progression store")
    return CachedProgressionStore(store)


@lru_cache
def get_progression_service() -> ProgressionService:
    """Get the progression service instance."""
    settings = get_settings()
    return ProgressionService(
        store=get_store(),
        timezone=settings.timezone,
        streak_shields_enabled=settings.streak_shields_enabled,
        max_streak_shields=settings.max_streak_shields,
    )
