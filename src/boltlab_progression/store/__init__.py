"""Store port for progression state.

The engine never talks to a database directly. It reads and writes
profiles, cumulative stats and achievement unlocks through the
ProgressionStore interface, so the backing technology can change without
touching the progression rules.

Usage:
    # In-process (tests, single device)
    from boltlab_progression.store import InMemoryProgressionStore
    store = InMemoryProgressionStore()

    # SQLite (development)
    from boltlab_progression.store import SQLiteProgressionStore
    store = SQLiteProgressionStore(db_path="progression.db")

    # Supabase (production)
    from boltlab_progression.store import SupabaseProgressionStore
    store = SupabaseProgressionStore(url=SUPABASE_URL, key=SUPABASE_KEY)

    # Read cache in front of any store
    store = CachedProgressionStore(store)
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Set

from ..exceptions import PartialWriteError, StoreError, ValidationError
from ..models.gamification import (
    CompletionResult,
    CumulativeStats,
    Profile,
    UnlockedAchievement,
)


logger = logging.getLogger(__name__)


PROFILE_FIELDS = frozenset({
    "level",
    "total_xp",
    "current_streak",
    "longest_streak",
    "last_workout_date",
    "streak_shields",
})


def check_profile_fields(fields: Dict[str, Any]) -> None:
    """Reject partial profile updates naming unknown fields."""
    unknown = set(fields) - PROFILE_FIELDS
    if unknown:
        raise ValidationError(
            f"Unknown profile fields: {', '.join(sorted(unknown))}",
            field="fields",
        )


@dataclass
class ProgressionUpdate:
    """Everything one completion event writes."""

    profile_fields: Dict[str, Any]
    stats: CumulativeStats
    unlocks: List[UnlockedAchievement] = field(default_factory=list)
    session_id: Optional[str] = None
    result: Optional[CompletionResult] = None


@dataclass
class ProgressionSnapshot:
    """State a completion event is computed from."""

    profile: Profile
    stats: CumulativeStats
    unlocked: Set[str]


class ProgressionStore(ABC):
    """Abstract base class for progression stores.

    Implementations translate backend failures into StoreError (or its
    subclasses) and never let raw driver exceptions escape.

    A store asked about an unknown user returns a fresh default profile
    and empty stats rather than failing.
    """

    # =========================================================================
    # Profile
    # =========================================================================

    @abstractmethod
    def get_profile(self, user_id: str) -> Profile:
        """Get a user's profile, or a fresh one if none is stored."""

    @abstractmethod
    def update_profile(self, user_id: str, fields: Dict[str, Any]) -> Profile:
        """Apply a partial profile update and return the stored profile."""

    # =========================================================================
    # Achievements
    # =========================================================================

    @abstractmethod
    def list_unlocked_achievements(self, user_id: str) -> Set[str]:
        """Ids of achievements the user has unlocked."""

    @abstractmethod
    def list_achievement_unlocks(self, user_id: str) -> List[UnlockedAchievement]:
        """Unlock records for the user, oldest first."""

    @abstractmethod
    def record_achievement_unlock(
        self,
        user_id: str,
        achievement_id: str,
        unlocked_at: Optional[datetime] = None,
    ) -> bool:
        """
        Append one unlock record.

        Returns:
            True if recorded, False if the user already had it (no error)
        """

    # =========================================================================
    # Cumulative Stats
    # =========================================================================

    @abstractmethod
    def get_cumulative_stats(self, user_id: str) -> CumulativeStats:
        """Running workout totals for the user."""

    @abstractmethod
    def update_cumulative_stats(self, user_id: str, stats: CumulativeStats) -> CumulativeStats:
        """Replace the user's running totals."""

    # =========================================================================
    # Idempotency
    # =========================================================================

    @abstractmethod
    def get_completion(self, user_id: str, session_id: str) -> Optional[CompletionResult]:
        """Result previously stored for a workout session, if any."""

    @abstractmethod
    def record_completion(
        self,
        user_id: str,
        session_id: str,
        result: CompletionResult,
    ) -> None:
        """Remember the result of a processed workout session."""

    # =========================================================================
    # Composite Read
    # =========================================================================

    def load_for_update(self, user_id: str) -> ProgressionSnapshot:
        """
        Read the state that a following write will be computed from.

        Writers store absolute totals, so this must reach the backing store.
        Caching wrappers delegate it instead of answering from memory.
        """
        return ProgressionSnapshot(
            profile=self.get_profile(user_id),
            stats=self.get_cumulative_stats(user_id),
            unlocked=self.list_unlocked_achievements(user_id),
        )

    # =========================================================================
    # Composite Write
    # =========================================================================

    def apply_progression(self, user_id: str, update: ProgressionUpdate) -> None:
        """
        Persist all writes of one completion event.

        The default runs the writes in order: profile, stats, unlocks,
        completion marker. If anything fails after the profile write
        landed, a PartialWriteError names what was and was not written.
        Transactional stores override this to write atomically.
        """
        steps = [("profile", lambda: self.update_profile(user_id, update.profile_fields))]
        steps.append(("stats", lambda: self.update_cumulative_stats(user_id, update.stats)))
        for unlock in update.unlocks:
            steps.append((
                f"achievement:{unlock.achievement_id}",
                lambda unlock=unlock: self.record_achievement_unlock(
                    user_id, unlock.achievement_id, unlock.unlocked_at
                ),
            ))
        if update.session_id and update.result is not None:
            steps.append((
                "completion",
                lambda: self.record_completion(user_id, update.session_id, update.result),
            ))

        written: List[str] = []
        for index, (name, write) in enumerate(steps):
            try:
                write()
            except StoreError as e:
                if not written:
                    raise
                failed = [step_name for step_name, _ in steps[index:]]
                logger.error(
                    f"Partial progression write for user {user_id}: "
                    f"written={written} failed={failed}: {e.message}"
                )
                raise PartialWriteError(
                    f"Progression for user {user_id} was only partially saved",
                    written=written,
                    failed=failed,
                    retryable=e.retryable,
                ) from e
            written.append(name)


# Export the store classes
from .memory import InMemoryProgressionStore
from .sqlite_store import SQLiteProgressionStore
from .supabase_store import SupabaseProgressionStore
from .cached import CachedProgressionStore

__all__ = [
    "ProgressionStore",
    "ProgressionUpdate",
    "ProgressionSnapshot",
    "PROFILE_FIELDS",
    "check_profile_fields",
    "InMemoryProgressionStore",
    "SQLiteProgressionStore",
    "SupabaseProgressionStore",
    "CachedProgressionStore",
]
