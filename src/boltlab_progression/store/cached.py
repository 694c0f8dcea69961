"""Read cache in front of a progression store.

Profiles, unlocked achievement ids and cumulative stats are cached per
user. Any write for a user drops that user's cached entries, so a read
after a write always reaches the backing store.

Only read views are served from the cache. load_for_update(), which the
write path uses, always reads the inner store, since other processes may
write to it.
"""

import logging
import threading
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Set, Tuple

from . import ProgressionSnapshot, ProgressionStore, ProgressionUpdate
from ..models.gamification import (
    CompletionResult,
    CumulativeStats,
    Profile,
    UnlockedAchievement,
)


logger = logging.getLogger(__name__)


class CachedProgressionStore(ProgressionStore):
    """Wraps another ProgressionStore with a per-user read cache."""

    CACHE_TTL_SECONDS = 300  # 5 minutes

    def __init__(self, inner: ProgressionStore, ttl_seconds: Optional[float] = None):
        self.inner = inner
        self._cache_ttl = timedelta(
            seconds=self.CACHE_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        )
        self._lock = threading.RLock()
        self._cache: Dict[Tuple[str, str], Tuple[datetime, Any]] = {}

    # =========================================================================
    # Cache helpers
    # =========================================================================

    def _get_cached(self, user_id: str, kind: str) -> Optional[Any]:
        with self._lock:
            entry = self._cache.get((user_id, kind))
            if entry is None:
                return None
            stored_at, value = entry
            if datetime.now() - stored_at > self._cache_ttl:
                del self._cache[(user_id, kind)]
                return None
            return value

    def _set_cached(self, user_id: str, kind: str, value: Any) -> None:
        with self._lock:
            self._cache[(user_id, kind)] = (datetime.now(), value)

    def invalidate(self, user_id: str) -> None:
        """Drop every cached entry for a user."""
        with self._lock:
            for key in [key for key in self._cache if key[0] == user_id]:
                del self._cache[key]
        logger.debug(f"Invalidated progression cache for {user_id}")

    def clear(self) -> None:
        """Drop the whole cache."""
        with self._lock:
            self._cache.clear()

    # =========================================================================
    # Reads
    # =========================================================================

    def get_profile(self, user_id: str) -> Profile:
        cached = self._get_cached(user_id, "profile")
        if cached is not None:
            return cached.model_copy(deep=True)
        profile = self.inner.get_profile(user_id)
        self._set_cached(user_id, "profile", profile.model_copy(deep=True))
        return profile

    def list_unlocked_achievements(self, user_id: str) -> Set[str]:
        cached = self._get_cached(user_id, "unlocked")
        if cached is not None:
            return set(cached)
        unlocked = self.inner.list_unlocked_achievements(user_id)
        self._set_cached(user_id, "unlocked", frozenset(unlocked))
        return unlocked

    def list_achievement_unlocks(self, user_id: str) -> List[UnlockedAchievement]:
        return self.inner.list_achievement_unlocks(user_id)

    def get_cumulative_stats(self, user_id: str) -> CumulativeStats:
        cached = self._get_cached(user_id, "stats")
        if cached is not None:
            return cached.model_copy(deep=True)
        stats = self.inner.get_cumulative_stats(user_id)
        self._set_cached(user_id, "stats", stats.model_copy(deep=True))
        return stats

    def get_completion(self, user_id: str, session_id: str) -> Optional[CompletionResult]:
        return self.inner.get_completion(user_id, session_id)

    def load_for_update(self, user_id: str) -> ProgressionSnapshot:
        """Read through to the inner store; other writers may share it."""
        self.invalidate(user_id)
        return self.inner.load_for_update(user_id)

    # =========================================================================
    # Writes
    # =========================================================================

    def update_profile(self, user_id: str, fields: Dict[str, Any]) -> Profile:
        try:
            return self.inner.update_profile(user_id, fields)
        finally:
            self.invalidate(user_id)

    def record_achievement_unlock(
        self,
        user_id: str,
        achievement_id: str,
        unlocked_at: Optional[datetime] = None,
    ) -> bool:
        try:
            return self.inner.record_achievement_unlock(user_id, achievement_id, unlocked_at)
        finally:
            self.invalidate(user_id)

    def update_cumulative_stats(self, user_id: str, stats: CumulativeStats) -> CumulativeStats:
        try:
            return self.inner.update_cumulative_stats(user_id, stats)
        finally:
            self.invalidate(user_id)

    def record_completion(
        self,
        user_id: str,
        session_id: str,
        result: CompletionResult,
    ) -> None:
        try:
            self.inner.record_completion(user_id, session_id, result)
        finally:
            self.invalidate(user_id)

    def apply_progression(self, user_id: str, update: ProgressionUpdate) -> None:
        try:
            self.inner.apply_progression(user_id, update)
        finally:
            self.invalidate(user_id)
