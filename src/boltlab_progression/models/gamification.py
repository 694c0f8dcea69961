"""Gamification data models for XP, levels, streaks and achievements."""

from datetime import date, datetime
from enum import Enum
from typing import List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field


def to_camel(string: str) -> str:
    """Convert snake_case to camelCase."""
    components = string.split("_")
    return components[0] + "".join(x.title() for x in components[1:])


class AchievementRarity(str, Enum):
    """Rarity levels for achievements. Cosmetic only."""
    COMMON = "common"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


class ConditionType(str, Enum):
    """Statistic an achievement threshold is compared against."""
    WORKOUT_COUNT = "workout_count"
    DISTINCT_EXERCISES = "distinct_exercises"
    TOTAL_SETS = "total_sets"
    TOTAL_DURATION = "total_duration"
    STREAK = "streak"
    LEVEL = "level"


class AchievementDefinition(BaseModel):
    """Static achievement definition from the catalog."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    id: str = Field(..., description="Unique achievement identifier")
    name: str = Field(..., description="Display name of the achievement")
    description: str = Field(..., description="Description of how to unlock")
    icon: str = Field(default="", description="Icon/emoji for the achievement")
    rarity: AchievementRarity = Field(default=AchievementRarity.COMMON, description="Rarity level")
    xp_reward: int = Field(default=0, ge=0, description="XP awarded when unlocked")
    condition_type: ConditionType = Field(..., description="Statistic the threshold applies to")
    condition_value: int = Field(..., ge=0, description="Threshold the statistic must reach")
    display_order: int = Field(default=0, description="Order for display")


class Profile(BaseModel):
    """A user's persisted progression state."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    user_id: str = Field(..., description="User identifier")
    level: int = Field(default=1, ge=1, description="Level derived from total XP")
    total_xp: int = Field(default=0, ge=0, description="Total XP earned")
    current_streak: int = Field(default=0, ge=0, description="Current streak in days")
    longest_streak: int = Field(default=0, ge=0, description="Longest streak achieved")
    last_workout_date: Optional[date] = Field(None, description="Last credited workout day")
    streak_shields: int = Field(default=0, ge=0, description="Streak shields available")
    updated_at: Optional[datetime] = Field(None, description="Last update time")


class CumulativeStats(BaseModel):
    """Running totals used as achievement evaluator input."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    total_workouts: int = Field(default=0, ge=0)
    total_sets: int = Field(default=0, ge=0)
    total_duration_minutes: int = Field(default=0, ge=0)
    exercises_tried: Set[str] = Field(default_factory=set)

    def with_workout(
        self,
        exercise_ids: List[str],
        duration_minutes: int,
        set_count: int,
    ) -> "CumulativeStats":
        """Return a new snapshot with one more completed workout folded in."""
        return CumulativeStats(
            total_workouts=self.total_workouts + 1,
            total_sets=self.total_sets + set_count,
            total_duration_minutes=self.total_duration_minutes + duration_minutes,
            exercises_tried=self.exercises_tried | set(exercise_ids),
        )


class UnlockedAchievement(BaseModel):
    """A user's unlock record. At most one per (user, achievement)."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    achievement_id: str = Field(..., description="Reference to achievement")
    unlocked_at: datetime = Field(..., description="When the achievement was unlocked")


class LevelProgress(BaseModel):
    """Progress within the current level."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    level: int = Field(..., description="Current level")
    current_xp: int = Field(..., description="XP earned within current level")
    max_xp: int = Field(..., description="XP span of the current level")
    xp_to_next_level: int = Field(..., description="XP still needed to reach next level")
    progress_percent: float = Field(..., description="Progress to next level (0-100)")


class StreakInfo(BaseModel):
    """Information about user's workout streak."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    current: int = Field(default=0, description="Current streak in days")
    longest: int = Field(default=0, description="Longest streak achieved")
    shields: int = Field(default=0, description="Streak shields available")
    last_workout_date: Optional[date] = Field(None, description="Date of last credited workout")


class UserProgress(BaseModel):
    """User's overall gamification progress."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    user_id: str = Field(..., description="User identifier")
    total_xp: int = Field(default=0, description="Total XP earned")
    level: LevelProgress = Field(..., description="Current level information")
    streak: StreakInfo = Field(..., description="Streak information")
    stats: CumulativeStats = Field(..., description="Running workout totals")
    achievements_unlocked: int = Field(default=0, description="Number of achievements unlocked")
    updated_at: Optional[datetime] = Field(None, description="Last update time")


class AchievementWithStatus(BaseModel):
    """Achievement with its unlock status and progress for the user."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    achievement: AchievementDefinition = Field(..., description="The achievement")
    unlocked: bool = Field(default=False, description="Whether user has unlocked it")
    unlocked_at: Optional[datetime] = Field(None, description="When it was unlocked")
    progress: int = Field(default=0, description="Progress toward the threshold")
    max_progress: int = Field(default=0, description="Threshold value")


class WorkoutCompletionRequest(BaseModel):
    """Request model for a completed workout session."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    exercise_ids: List[str] = Field(default_factory=list, description="Exercises performed")
    duration_minutes: int = Field(default=0, ge=0, description="Session duration in minutes")
    set_count: int = Field(default=0, ge=0, description="Completed sets")
    session_id: Optional[str] = Field(None, description="Idempotency key for the session")


class CompletionResult(BaseModel):
    """Outcome of one workout completion event."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    xp_gained: int = Field(default=0, description="Total XP awarded by this event")
    leveled_up: bool = Field(default=False, description="Whether user leveled up")
    newly_unlocked: List[str] = Field(default_factory=list, description="Achievement ids unlocked")
    workout_xp: int = Field(default=0, description="XP from the workout itself")
    achievement_xp: int = Field(default=0, description="XP from unlocked achievements")
    total_xp: int = Field(default=0, description="Total XP after this event")
    level: int = Field(default=1, description="Level after this event")
    current_streak: int = Field(default=0, description="Current streak after this event")
    longest_streak: int = Field(default=0, description="Longest streak after this event")
    streak_anomaly: bool = Field(default=False, description="Last workout date was in the future")
    replayed: bool = Field(default=False, description="Result replayed from an earlier submission")


class StreakShieldGrantRequest(BaseModel):
    """Request model for granting streak shields."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    count: int = Field(default=1, description="Number of shields to grant")
