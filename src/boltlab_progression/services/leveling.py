"""
XP and level calculations.

Levels follow a triangular curve: reaching level L takes
100 * (L-1) * L / 2 total XP, so level 2 starts at 100, level 3 at 300,
level 4 at 600 and so on. All functions here are pure.
"""

import math

from ..models.gamification import LevelProgress
from ..utils.validation import require_non_negative_int


BASE_WORKOUT_XP = 50
XP_PER_SET = 5
XP_LEVEL_STEP = 100


def xp_for_workout(set_count: int, duration_minutes: int = 0, exercise_count: int = 1) -> int:
    """
    Calculate the XP awarded for one completed workout.

    The award is a fixed base plus a per-set bonus. Duration and exercise
    count are validated and accepted so callers can pass the full workout
    shape, but they do not currently change the result.

    Args:
        set_count: Completed sets in the session
        duration_minutes: Session length (not used in the award)
        exercise_count: Number of exercises performed (not used in the award)

    Returns:
        XP to award
    """
    require_non_negative_int(set_count, "set_count")
    require_non_negative_int(duration_minutes, "duration_minutes")
    require_non_negative_int(exercise_count, "exercise_count")
    return BASE_WORKOUT_XP + set_count * XP_PER_SET


def total_xp_for_level(level: int) -> int:
    """Total XP required to reach the start of a level. Level 1 starts at 0."""
    require_non_negative_int(level, "level")
    if level <= 1:
        return 0
    return XP_LEVEL_STEP * (level - 1) * level // 2


def level_from_xp(total_xp: int) -> int:
    """
    Level for a total XP amount.

    Solves 100 * (L-1) * L / 2 = xp for L, i.e.
    L = floor((1 + sqrt(1 + 8 * xp / 100)) / 2), clamped to 1. Rewritten as
    floor((10 + sqrt(100 + 8 * xp)) / 20) so it can use the integer square
    root; the XP value that starts a level belongs to that level.
    """
    require_non_negative_int(total_xp, "total_xp")
    level = (10 + math.isqrt(XP_LEVEL_STEP + 8 * total_xp)) // 20
    return max(1, level)


def level_progress(total_xp: int) -> LevelProgress:
    """
    Calculate progress within the current level.

    Args:
        total_xp: Total XP earned

    Returns:
        LevelProgress with current level and XP within it
    """
    level = level_from_xp(total_xp)
    level_start = total_xp_for_level(level)
    next_level_start = total_xp_for_level(level + 1)

    current_xp = total_xp - level_start
    max_xp = next_level_start - level_start
    progress = (current_xp / max_xp * 100) if max_xp > 0 else 100.0

    return LevelProgress(
        level=level,
        current_xp=current_xp,
        max_xp=max_xp,
        xp_to_next_level=next_level_start - total_xp,
        progress_percent=round(progress, 1),
    )
