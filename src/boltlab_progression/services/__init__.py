"""Progression rules and the service that applies them."""

from .leveling import (
    BASE_WORKOUT_XP,
    XP_PER_SET,
    level_from_xp,
    level_progress,
    total_xp_for_level,
    xp_for_workout,
)
from .streaks import GRACE_DAYS, StreakState, StreakUpdate, days_between, update_streak
from .achievements import (
    DEFAULT_ACHIEVEMENTS,
    achievement_progress,
    build_catalog,
    evaluate,
    get_catalog,
    load_catalog,
)
from .progression_service import ProgressionService

__all__ = [
    # Leveling
    "BASE_WORKOUT_XP",
    "XP_PER_SET",
    "level_from_xp",
    "level_progress",
    "total_xp_for_level",
    "xp_for_workout",
    # Streaks
    "GRACE_DAYS",
    "StreakState",
    "StreakUpdate",
    "days_between",
    "update_streak",
    # Achievements
    "DEFAULT_ACHIEVEMENTS",
    "achievement_progress",
    "build_catalog",
    "evaluate",
    "get_catalog",
    "load_catalog",
    # Orchestration
    "ProgressionService",
]
