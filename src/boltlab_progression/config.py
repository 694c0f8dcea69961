"""Configuration settings for the BoltLab progression engine."""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic_settings import BaseSettings


# __file__ = src/boltlab_progression/config.py
PACKAGE_ROOT = Path(__file__).parent
PROJECT_ROOT = PACKAGE_ROOT.parent.parent


class Settings(BaseSettings):
    """Application settings loaded from BOLTLAB_* environment variables."""

    # API settings
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    debug: bool = False
    log_level: str = "INFO"

    # CORS
    cors_origins: list[str] = ["http://localhost:8081", "http://127.0.0.1:8081"]

    # Store selection
    store_backend: Literal["memory", "sqlite", "supabase"] = "sqlite"
    sqlite_db_path: Optional[Path] = None

    # Supabase (remote profile store)
    supabase_url: str = ""
    supabase_key: str = ""

    # Store call behaviour
    store_timeout_seconds: float = 10.0
    store_max_retries: int = 2

    # Calendar day boundaries for streaks are computed in this timezone
    timezone: str = "UTC"

    # Streak shields are an optional extension of the grace-day rule
    streak_shields_enabled: bool = False
    max_streak_shields: int = 3

    # Optional JSON file replacing the built-in achievement catalog
    achievement_catalog_path: Optional[Path] = None

    def model_post_init(self, __context) -> None:
        """Set default database path after initialization."""
        if self.sqlite_db_path is None:
            self.sqlite_db_path = PROJECT_ROOT / "progression.db"

    class Config:
        env_prefix = "BOLTLAB_"
        env_file = str(PROJECT_ROOT / ".env")
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
