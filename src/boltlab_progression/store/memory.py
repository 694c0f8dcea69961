"""In-process progression store.

Keeps everything in dictionaries guarded by a lock. Used by tests and by
single-device deployments that have no remote profile store.
"""

import threading
from datetime import datetime
from typing import Any, Dict, List, Optional, Set, Tuple

from . import ProgressionStore, check_profile_fields
from ..models.gamification import (
    CompletionResult,
    CumulativeStats,
    Profile,
    UnlockedAchievement,
)


class InMemoryProgressionStore(ProgressionStore):
    """Dictionary-backed implementation of the ProgressionStore interface."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._profiles: Dict[str, Profile] = {}
        self._stats: Dict[str, CumulativeStats] = {}
        self._unlocks: Dict[str, Dict[str, UnlockedAchievement]] = {}
        self._completions: Dict[Tuple[str, str], CompletionResult] = {}

    def get_profile(self, user_id: str) -> Profile:
        with self._lock:
            profile = self._profiles.get(user_id)
            if profile is None:
                return Profile(user_id=user_id)
            return profile.model_copy(deep=True)

    def update_profile(self, user_id: str, fields: Dict[str, Any]) -> Profile:
        check_profile_fields(fields)
        with self._lock:
            current = self._profiles.get(user_id) or Profile(user_id=user_id)
            data = current.model_dump()
            data.update(fields)
            data["updated_at"] = datetime.now()
            profile = Profile.model_validate(data)
            self._profiles[user_id] = profile
            return profile.model_copy(deep=True)

    def list_unlocked_achievements(self, user_id: str) -> Set[str]:
        with self._lock:
            return set(self._unlocks.get(user_id, {}))

    def list_achievement_unlocks(self, user_id: str) -> List[UnlockedAchievement]:
        with self._lock:
            records = list(self._unlocks.get(user_id, {}).values())
        return sorted(records, key=lambda record: record.unlocked_at)

    def record_achievement_unlock(
        self,
        user_id: str,
        achievement_id: str,
        unlocked_at: Optional[datetime] = None,
    ) -> bool:
        with self._lock:
            user_unlocks = self._unlocks.setdefault(user_id, {})
            if achievement_id in user_unlocks:
                return False
            user_unlocks[achievement_id] = UnlockedAchievement(
                achievement_id=achievement_id,
                unlocked_at=unlocked_at or datetime.now(),
            )
            return True

    def get_cumulative_stats(self, user_id: str) -> CumulativeStats:
        with self._lock:
            stats = self._stats.get(user_id)
            if stats is None:
                return CumulativeStats()
            return stats.model_copy(deep=True)

    def update_cumulative_stats(self, user_id: str, stats: CumulativeStats) -> CumulativeStats:
        with self._lock:
            self._stats[user_id] = stats.model_copy(deep=True)
            return stats

    def get_completion(self, user_id: str, session_id: str) -> Optional[CompletionResult]:
        with self._lock:
            result = self._completions.get((user_id, session_id))
            return result.model_copy(deep=True) if result else None

    def record_completion(
        self,
        user_id: str,
        session_id: str,
        result: CompletionResult,
    ) -> None:
        with self._lock:
            self._completions.setdefault((user_id, session_id), result.model_copy(deep=True))
