"""XP, level, streak and achievement progression for BoltLab workouts."""

from .exceptions import (
    ErrorCode,
    PartialWriteError,
    ProgressionError,
    StoreError,
    ValidationError,
)
from .models import CompletionResult, CumulativeStats, Profile, UserProgress
from .services import (
    ProgressionService,
    evaluate,
    level_from_xp,
    level_progress,
    total_xp_for_level,
    update_streak,
    xp_for_workout,
)
from .store import (
    CachedProgressionStore,
    InMemoryProgressionStore,
    ProgressionStore,
    SQLiteProgressionStore,
    SupabaseProgressionStore,
)

__version__ = "0.1.0"

__all__ = [
    # Version
    "__version__",
    # Errors
    "ErrorCode",
    "PartialWriteError",
    "ProgressionError",
    "StoreError",
    "ValidationError",
    # Models
    "CompletionResult",
    "CumulativeStats",
    "Profile",
    "UserProgress",
    # Rules
    "evaluate",
    "level_from_xp",
    "level_progress",
    "total_xp_for_level",
    "update_streak",
    "xp_for_workout",
    # Service
    "ProgressionService",
    # Stores
    "CachedProgressionStore",
    "InMemoryProgressionStore",
    "ProgressionStore",
    "SQLiteProgressionStore",
    "SupabaseProgressionStore",
]
