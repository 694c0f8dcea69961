"""
Achievement catalog and evaluator.

Achievements are data: each definition names a statistic (condition_type)
and a threshold (condition_value). An achievement unlocks when the
statistic reaches the threshold. Evaluation depends only on the current
snapshot and the set of ids already unlocked, never on history, so it is
idempotent.
"""

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from pydantic import ValidationError as PydanticValidationError

from ..exceptions import CatalogError
from ..models.gamification import (
    AchievementDefinition,
    ConditionType,
    CumulativeStats,
)


logger = logging.getLogger(__name__)


# =============================================================================
# Default Achievement Definitions
# =============================================================================

DEFAULT_ACHIEVEMENTS: List[Dict[str, Any]] = [
    # Workout count achievements
    {
        "id": "first-steps",
        "name": "First Steps",
        "description": "Complete your first workout",
        "icon": "⚡",
        "rarity": "common",
        "xp_reward": 0,
        "condition_type": "workout_count",
        "condition_value": 1,
        "display_order": 1,
    },
    {
        "id": "early-bird",
        "name": "Early Bird",
        "description": "Complete 5 workouts",
        "icon": "🌅",
        "rarity": "common",
        "xp_reward": 50,
        "condition_type": "workout_count",
        "condition_value": 5,
        "display_order": 2,
    },
    {
        "id": "getting-started",
        "name": "Getting Started",
        "description": "Try 5 different exercises",
        "icon": "🧭",
        "rarity": "common",
        "xp_reward": 50,
        "condition_type": "distinct_exercises",
        "condition_value": 5,
        "display_order": 3,
    },
    # Streak achievements
    {
        "id": "streak-warrior",
        "name": "Streak Warrior",
        "description": "Maintain a 7-day workout streak",
        "icon": "🔥",
        "rarity": "rare",
        "xp_reward": 100,
        "condition_type": "streak",
        "condition_value": 7,
        "display_order": 4,
    },
    {
        "id": "consistency-king",
        "name": "Consistency King",
        "description": "Maintain a 14-day workout streak",
        "icon": "👑",
        "rarity": "epic",
        "xp_reward": 200,
        "condition_type": "streak",
        "condition_value": 14,
        "display_order": 5,
    },
    {
        "id": "iron-will",
        "name": "Iron Will",
        "description": "Maintain a 30-day workout streak",
        "icon": "🛡️",
        "rarity": "legendary",
        "xp_reward": 500,
        "condition_type": "streak",
        "condition_value": 30,
        "display_order": 6,
    },
    {
        "id": "dedication",
        "name": "Dedication",
        "description": "Maintain a 90-day workout streak",
        "icon": "💎",
        "rarity": "legendary",
        "xp_reward": 1000,
        "condition_type": "streak",
        "condition_value": 90,
        "display_order": 7,
    },
    # Volume achievements
    {
        "id": "beast-mode",
        "name": "Beast Mode",
        "description": "Complete 50 workouts",
        "icon": "🦍",
        "rarity": "epic",
        "xp_reward": 250,
        "condition_type": "workout_count",
        "condition_value": 50,
        "display_order": 8,
    },
    {
        "id": "century-club",
        "name": "Century Club",
        "description": "Complete 100 workouts",
        "icon": "💯",
        "rarity": "legendary",
        "xp_reward": 500,
        "condition_type": "workout_count",
        "condition_value": 100,
        "display_order": 9,
    },
    {
        "id": "set-master",
        "name": "Set Master",
        "description": "Complete 500 sets",
        "icon": "🏋️",
        "rarity": "epic",
        "xp_reward": 300,
        "condition_type": "total_sets",
        "condition_value": 500,
        "display_order": 10,
    },
    {
        "id": "marathon-warrior",
        "name": "Marathon Warrior",
        "description": "Train for 1000 minutes in total",
        "icon": "⏱️",
        "rarity": "epic",
        "xp_reward": 300,
        "condition_type": "total_duration",
        "condition_value": 1000,
        "display_order": 11,
    },
    # Level achievements
    {
        "id": "lightning-rod",
        "name": "Lightning Rod",
        "description": "Reach level 10",
        "icon": "🌩️",
        "rarity": "rare",
        "xp_reward": 150,
        "condition_type": "level",
        "condition_value": 10,
        "display_order": 12,
    },
    {
        "id": "thunder-god",
        "name": "Thunder God",
        "description": "Reach level 25",
        "icon": "⛈️",
        "rarity": "epic",
        "xp_reward": 400,
        "condition_type": "level",
        "condition_value": 25,
        "display_order": 13,
    },
    {
        "id": "lightning-legend",
        "name": "Lightning Legend",
        "description": "Reach level 50",
        "icon": "🏆",
        "rarity": "legendary",
        "xp_reward": 1000,
        "condition_type": "level",
        "condition_value": 50,
        "display_order": 14,
    },
]


# Each condition type reads one number from (stats, level, streak)
_METRICS: Dict[ConditionType, Callable[[CumulativeStats, int, int], int]] = {
    ConditionType.WORKOUT_COUNT: lambda stats, level, streak: stats.total_workouts,
    ConditionType.DISTINCT_EXERCISES: lambda stats, level, streak: len(stats.exercises_tried),
    ConditionType.TOTAL_SETS: lambda stats, level, streak: stats.total_sets,
    ConditionType.TOTAL_DURATION: lambda stats, level, streak: stats.total_duration_minutes,
    ConditionType.STREAK: lambda stats, level, streak: streak,
    ConditionType.LEVEL: lambda stats, level, streak: level,
}


# =============================================================================
# Catalog Loading
# =============================================================================

def build_catalog(entries: Iterable[Dict[str, Any]]) -> Tuple[AchievementDefinition, ...]:
    """
    Validate raw catalog entries and return them as definitions.

    Raises:
        CatalogError: If an entry is malformed or an id repeats
    """
    definitions: List[AchievementDefinition] = []
    seen: Set[str] = set()

    for index, entry in enumerate(entries):
        try:
            definition = AchievementDefinition.model_validate(entry)
        except PydanticValidationError as e:
            raise CatalogError(
                f"Invalid achievement definition at index {index}",
                details={"index": index, "errors": e.errors(include_url=False, include_context=False)},
            ) from e

        if definition.id in seen:
            raise CatalogError(
                f"Duplicate achievement id: {definition.id}",
                details={"id": definition.id},
            )
        seen.add(definition.id)
        definitions.append(definition)

    return tuple(definitions)


def load_catalog(path: Optional[Path] = None) -> Tuple[AchievementDefinition, ...]:
    """
    Load the achievement catalog.

    Args:
        path: Optional JSON file holding a list of definitions. The built-in
            catalog is used when not provided.

    Returns:
        Ordered tuple of definitions
    """
    if path is None:
        return build_catalog(DEFAULT_ACHIEVEMENTS)

    try:
        entries = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise CatalogError(f"Could not read achievement catalog {path}: {e}") from e

    if not isinstance(entries, list):
        raise CatalogError(f"Achievement catalog {path} must contain a JSON list")

    catalog = build_catalog(entries)
    logger.info(f"Loaded {len(catalog)} achievements from {path}")
    return catalog


@lru_cache
def get_catalog() -> Tuple[AchievementDefinition, ...]:
    """Get the process-wide catalog, loaded once from settings."""
    from ..config import get_settings

    return load_catalog(get_settings().achievement_catalog_path)


def catalog_by_id(
    catalog: Sequence[AchievementDefinition],
) -> Dict[str, AchievementDefinition]:
    """Index a catalog by achievement id."""
    return {definition.id: definition for definition in catalog}


# =============================================================================
# Evaluation
# =============================================================================

def metric_value(
    definition: AchievementDefinition,
    stats: CumulativeStats,
    level: int,
    streak: int,
) -> int:
    """The statistic a definition's threshold is compared against."""
    return _METRICS[definition.condition_type](stats, level, streak)


def is_satisfied(
    definition: AchievementDefinition,
    stats: CumulativeStats,
    level: int,
    streak: int,
) -> bool:
    """Whether the snapshot meets a definition's threshold."""
    return metric_value(definition, stats, level, streak) >= definition.condition_value


def evaluate(
    stats: CumulativeStats,
    level: int,
    streak: int,
    already_unlocked: Iterable[str],
    catalog: Optional[Sequence[AchievementDefinition]] = None,
) -> List[str]:
    """
    Return ids of achievements that the snapshot newly unlocks.

    Args:
        stats: Cumulative statistics snapshot
        level: Current level
        streak: Current streak
        already_unlocked: Ids the user already holds
        catalog: Definitions to check, the process catalog by default

    Returns:
        Newly satisfied ids in catalog order
    """
    if catalog is None:
        catalog = get_catalog()
    unlocked = set(already_unlocked)

    return [
        definition.id
        for definition in catalog
        if definition.id not in unlocked
        and is_satisfied(definition, stats, level, streak)
    ]


def achievement_progress(
    definition: AchievementDefinition,
    stats: CumulativeStats,
    level: int,
    streak: int,
) -> Tuple[int, int]:
    """Return (progress, max_progress) with progress capped at the threshold."""
    value = metric_value(definition, stats, level, streak)
    return min(value, definition.condition_value), definition.condition_value
