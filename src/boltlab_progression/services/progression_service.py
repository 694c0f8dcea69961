"""
Progression service for workout completion events.

Handles:
- Turning one completed workout into XP, level, streak and achievement updates
- Replaying already processed workout sessions
- Read views of a user's progress and achievements
- Granting streak shields
"""

import logging
import threading
from contextlib import contextmanager
from datetime import date, datetime
from typing import Any, Callable, Iterator, List, Optional, Sequence
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..exceptions import FeatureDisabledError, ValidationError
from ..models.gamification import (
    AchievementDefinition,
    AchievementWithStatus,
    CompletionResult,
    LevelProgress,
    Profile,
    StreakInfo,
    UnlockedAchievement,
    UserProgress,
)
from ..store import ProgressionStore, ProgressionUpdate
from ..utils.validation import (
    parse_calendar_date,
    require_exercise_ids,
    require_non_negative_int,
)
from .achievements import achievement_progress, catalog_by_id, evaluate, get_catalog
from .leveling import level_from_xp, level_progress, xp_for_workout
from .streaks import StreakState, update_streak


logger = logging.getLogger(__name__)

# Users hashing to the same stripe share a lock
USER_LOCK_STRIPES = 64


class ProgressionService:
    """
    Service composing the XP, streak and achievement rules around one
    completed workout.

    All reads and writes go through a ProgressionStore. Work for one user
    is serialized by an in-process lock; a session id makes repeated
    submissions of the same workout return the first result.
    """

    def __init__(
        self,
        store: ProgressionStore,
        catalog: Optional[Sequence[AchievementDefinition]] = None,
        clock: Optional[Callable[[], datetime]] = None,
        timezone: str = "UTC",
        streak_shields_enabled: bool = False,
        max_streak_shields: int = 3,
    ):
        """
        Initialize the progression service.

        Args:
            store: Store used for every read and write
            catalog: Achievement definitions. Uses the process catalog if not provided.
            clock: Returns the current time. Defaults to the wall clock.
            timezone: IANA zone in which calendar days are counted
            streak_shields_enabled: Whether shields may cover streak gaps
            max_streak_shields: Upper bound on shields a user can hold
        """
        self.store = store
        self.catalog = tuple(catalog) if catalog is not None else get_catalog()
        self._definitions = catalog_by_id(self.catalog)

        try:
            self._tz = ZoneInfo(timezone)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValidationError(f"Unknown timezone: {timezone}", field="timezone") from e
        self._clock = clock or (lambda: datetime.now(self._tz))

        self.streak_shields_enabled = streak_shields_enabled
        self.max_streak_shields = require_non_negative_int(max_streak_shields, "max_streak_shields")

        self._user_locks: List[threading.Lock] = [
            threading.Lock() for _ in range(USER_LOCK_STRIPES)
        ]

    # =========================================================================
    # Helpers
    # =========================================================================

    def now(self) -> datetime:
        """Current time in the configured timezone."""
        current = self._clock()
        if current.tzinfo is not None:
            current = current.astimezone(self._tz)
        return current

    def today(self) -> date:
        """Current calendar day in the configured timezone."""
        return self.now().date()

    @contextmanager
    def _user_lock(self, user_id: str) -> Iterator[None]:
        lock = self._user_locks[hash(user_id) % USER_LOCK_STRIPES]
        with lock:
            yield

    # =========================================================================
    # Workout Completion
    # =========================================================================

    def complete_workout(
        self,
        user_id: str,
        exercise_ids: List[str],
        duration_minutes: int,
        set_count: int,
        session_id: Optional[str] = None,
        today: Any = None,
    ) -> CompletionResult:
        """
        Process one completed workout.

        Order of evaluation is streak, then XP, then achievements. Each
        unlocked achievement adds its reward, and achievements are checked
        again until nothing new unlocks, so a reward that crosses a level
        boundary can unlock a level achievement in the same event.

        Args:
            user_id: User who completed the workout
            exercise_ids: Exercises performed (may be empty)
            duration_minutes: Session length, >= 0
            set_count: Completed sets, >= 0
            session_id: Optional idempotency key for the session
            today: Calendar day of the workout. Defaults to today in the
                configured timezone.

        Returns:
            CompletionResult describing what was awarded

        Raises:
            ValidationError: On bad input, before any store call
            StoreError: If the store fails; nothing computed is kept
            PartialWriteError: If only some writes landed
        """
        if not isinstance(user_id, str) or not user_id:
            raise ValidationError("user_id must be a non-empty string", field="user_id")
        ids = require_exercise_ids(exercise_ids)
        require_non_negative_int(duration_minutes, "duration_minutes")
        require_non_negative_int(set_count, "set_count")
        if session_id is not None and (not isinstance(session_id, str) or not session_id):
            raise ValidationError("session_id must be a non-empty string", field="session_id")
        workout_day = parse_calendar_date(today, "today") if today is not None else self.today()

        workout_xp = xp_for_workout(set_count, duration_minutes, len(ids))

        with self._user_lock(user_id):
            if session_id:
                previous = self.store.get_completion(user_id, session_id)
                if previous is not None:
                    logger.info(f"Workout session {session_id} for {user_id} already processed")
                    return previous.model_copy(update={"replayed": True})

            snapshot = self.store.load_for_update(user_id)
            profile = snapshot.profile
            stats = snapshot.stats
            unlocked = snapshot.unlocked

            # Streak
            streak = update_streak(
                StreakState(
                    last_workout_date=profile.last_workout_date,
                    current_streak=profile.current_streak,
                    longest_streak=profile.longest_streak,
                    shields=profile.streak_shields,
                ),
                workout_day,
                shields_enabled=self.streak_shields_enabled,
            )
            streak_state = streak.state

            # XP
            total_xp = profile.total_xp + workout_xp
            level = level_from_xp(total_xp)

            # Achievements
            new_stats = stats.with_workout(ids, duration_minutes, set_count)
            held = set(unlocked)
            newly_unlocked: List[str] = []
            achievement_xp = 0

            while True:
                batch = evaluate(
                    new_stats,
                    level,
                    streak_state.current_streak,
                    held,
                    self.catalog,
                )
                if not batch:
                    break
                for achievement_id in batch:
                    reward = self._definitions[achievement_id].xp_reward
                    achievement_xp += reward
                    total_xp += reward
                    held.add(achievement_id)
                    newly_unlocked.append(achievement_id)
                level = level_from_xp(total_xp)

            leveled_up = level > profile.level

            result = CompletionResult(
                xp_gained=workout_xp + achievement_xp,
                leveled_up=leveled_up,
                newly_unlocked=newly_unlocked,
                workout_xp=workout_xp,
                achievement_xp=achievement_xp,
                total_xp=total_xp,
                level=level,
                current_streak=streak_state.current_streak,
                longest_streak=streak_state.longest_streak,
                streak_anomaly=streak.anomaly,
            )

            unlocked_at = self.now()
            update = ProgressionUpdate(
                profile_fields={
                    "level": level,
                    "total_xp": total_xp,
                    "current_streak": streak_state.current_streak,
                    "longest_streak": streak_state.longest_streak,
                    "last_workout_date": streak_state.last_workout_date,
                    "streak_shields": streak_state.shields,
                },
                stats=new_stats,
                unlocks=[
                    UnlockedAchievement(achievement_id=achievement_id, unlocked_at=unlocked_at)
                    for achievement_id in newly_unlocked
                ],
                session_id=session_id,
                result=result,
            )
            self.store.apply_progression(user_id, update)

        logger.info(
            f"Workout completed for {user_id}: +{result.xp_gained} XP "
            f"(workout {workout_xp}, achievements {achievement_xp}). Total: {total_xp}"
        )
        if leveled_up:
            logger.info(f"Level up! {profile.level} -> {level}")
        if newly_unlocked:
            logger.info(f"Unlocked achievements for {user_id}: {', '.join(newly_unlocked)}")

        return result

    # =========================================================================
    # Read Views
    # =========================================================================

    def get_progress(self, user_id: str) -> UserProgress:
        """
        Get the user's overall progress.

        Returns:
            UserProgress with XP, level, streak and stats
        """
        profile = self.store.get_profile(user_id)
        stats = self.store.get_cumulative_stats(user_id)
        unlocked = self.store.list_unlocked_achievements(user_id)

        level_info: LevelProgress = level_progress(profile.total_xp)

        return UserProgress(
            user_id=user_id,
            total_xp=profile.total_xp,
            level=level_info,
            streak=StreakInfo(
                current=profile.current_streak,
                longest=profile.longest_streak,
                shields=profile.streak_shields,
                last_workout_date=profile.last_workout_date,
            ),
            stats=stats,
            achievements_unlocked=len(unlocked),
            updated_at=profile.updated_at,
        )

    def list_achievements(self, user_id: str) -> List[AchievementWithStatus]:
        """
        Get all achievements with unlock status and progress for the user.

        Returns:
            Catalog entries in display order
        """
        profile = self.store.get_profile(user_id)
        stats = self.store.get_cumulative_stats(user_id)
        unlock_times = {
            record.achievement_id: record.unlocked_at
            for record in self.store.list_achievement_unlocks(user_id)
        }

        achievements = []
        for definition in sorted(self.catalog, key=lambda d: d.display_order):
            progress, max_progress = achievement_progress(
                definition,
                stats,
                profile.level,
                profile.current_streak,
            )
            unlocked = definition.id in unlock_times
            if unlocked:
                progress = max_progress

            achievements.append(
                AchievementWithStatus(
                    achievement=definition,
                    unlocked=unlocked,
                    unlocked_at=unlock_times.get(definition.id),
                    progress=progress,
                    max_progress=max_progress,
                )
            )

        return achievements

    def get_catalog(self) -> List[AchievementDefinition]:
        """The static achievement catalog."""
        return list(self.catalog)

    # =========================================================================
    # Streak Shields
    # =========================================================================

    def grant_streak_shields(self, user_id: str, count: int = 1) -> Profile:
        """
        Give a user streak shields, capped at the configured maximum.

        Raises:
            FeatureDisabledError: If streak shields are switched off
            ValidationError: If count is not a positive integer
        """
        if not self.streak_shields_enabled:
            raise FeatureDisabledError("streak_shields")
        require_non_negative_int(count, "count")
        if count < 1:
            raise ValidationError("count must be >= 1", field="count")

        with self._user_lock(user_id):
            profile = self.store.load_for_update(user_id).profile
            shields = min(self.max_streak_shields, profile.streak_shields + count)
            updated = self.store.update_profile(user_id, {"streak_shields": shields})

        logger.info(f"Granted streak shields to {user_id}: {profile.streak_shields} -> {shields}")
        return updated
