"""Gamification API routes for workout completion, progress and achievements.

The store and service calls block, so the endpoints are plain functions and
FastAPI runs them in its threadpool.
"""

from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from ..deps import get_progression_service
from ...services.progression_service import ProgressionService
from ...models.gamification import (
    AchievementDefinition,
    AchievementWithStatus,
    CompletionResult,
    Profile,
    StreakShieldGrantRequest,
    UserProgress,
    WorkoutCompletionRequest,
    to_camel,
)


router = APIRouter()


# =============================================================================
# Response Models
# =============================================================================


class AchievementsListResponse(BaseModel):
    """Response model for listing all achievements."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    achievements: List[AchievementWithStatus] = Field(
        ..., description="All achievements with unlock status"
    )
    total: int = Field(..., description="Total number of achievements")
    unlocked: int = Field(..., description="Number of unlocked achievements")


# =============================================================================
# Endpoints
# =============================================================================


@router.post("/users/{user_id}/workouts/complete", response_model=CompletionResult)
def complete_workout(
    user_id: str,
    request: WorkoutCompletionRequest,
    service: ProgressionService = Depends(get_progression_service),
):
    """
    Record a completed workout.

    Awards workout XP, updates the streak and unlocks any achievements the
    new totals satisfy. Sending the same sessionId again returns the first
    result with replayed=true.
    """
    return service.complete_workout(
        user_id,
        exercise_ids=request.exercise_ids,
        duration_minutes=request.duration_minutes,
        set_count=request.set_count,
        session_id=request.session_id,
    )


@router.get("/users/{user_id}/progress", response_model=UserProgress)
def get_user_progress(
    user_id: str,
    service: ProgressionService = Depends(get_progression_service),
):
    """Get the user's XP, level, streak and workout totals."""
    return service.get_progress(user_id)


@router.get("/users/{user_id}/achievements", response_model=AchievementsListResponse)
def get_user_achievements(
    user_id: str,
    service: ProgressionService = Depends(get_progression_service),
):
    """
    Get all achievements with their unlock status.

    Returns every achievement in the catalog, whether the user has unlocked
    it and when, and progress toward its threshold.
    """
    achievements = service.list_achievements(user_id)
    unlocked_count = sum(1 for a in achievements if a.unlocked)

    return AchievementsListResponse(
        achievements=achievements,
        total=len(achievements),
        unlocked=unlocked_count,
    )


@router.post("/users/{user_id}/streak-shields", response_model=Profile)
def grant_streak_shields(
    user_id: str,
    request: StreakShieldGrantRequest,
    service: ProgressionService = Depends(get_progression_service),
):
    """Grant streak shields. Fails with 400 when shields are disabled."""
    return service.grant_streak_shields(user_id, request.count)


@router.get("/achievements/catalog", response_model=List[AchievementDefinition])
def get_achievement_catalog(
    service: ProgressionService = Depends(get_progression_service),
):
    """Get the static achievement catalog."""
    return service.get_catalog()
