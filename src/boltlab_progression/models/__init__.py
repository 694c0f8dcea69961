"""Data models for the progression engine."""

from .gamification import (
    AchievementDefinition,
    AchievementRarity,
    AchievementWithStatus,
    CompletionResult,
    ConditionType,
    CumulativeStats,
    LevelProgress,
    Profile,
    StreakInfo,
    StreakShieldGrantRequest,
    UnlockedAchievement,
    UserProgress,
    WorkoutCompletionRequest,
    to_camel,
)

__all__ = [
    "AchievementDefinition",
    "AchievementRarity",
    "AchievementWithStatus",
    "CompletionResult",
    "ConditionType",
    "CumulativeStats",
    "LevelProgress",
    "Profile",
    "StreakInfo",
    "StreakShieldGrantRequest",
    "UnlockedAchievement",
    "UserProgress",
    "WorkoutCompletionRequest",
    "to_camel",
]
