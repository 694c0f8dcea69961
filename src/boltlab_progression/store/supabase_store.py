"""Supabase/PostgreSQL implementation of the progression store.

This is the canonical remote profile store. It talks to the Supabase REST
API through the official client.

Tables used:
    profiles             - one row per user (id, level, total_xp, streak fields)
    user_achievements    - unlock records, UNIQUE (user_id, achievement_id)
    user_stats           - running workout totals, exercises_tried as JSON array
    workout_completions  - processed session ids, PRIMARY KEY (user_id, session_id)

Supabase REST calls are not transactional across tables, so this store keeps
the default ordered apply_progression() and reports partial writes.

Reads are retried with backoff on transient failures. Writes are sent once.

Environment Variables:
    BOLTLAB_SUPABASE_URL  - Project URL (https://xxx.supabase.co)
    BOLTLAB_SUPABASE_KEY  - Service role key for backend access
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Set, TypeVar

from postgrest.exceptions import APIError
from supabase import Client, ClientOptions, create_client

from . import ProgressionStore, check_profile_fields
from .retry import RetryConfig, call_with_retry, is_retryable, to_store_error
from ..exceptions import StoreConflictError, StoreError
from ..models.gamification import (
    CompletionResult,
    CumulativeStats,
    Profile,
    UnlockedAchievement,
)


logger = logging.getLogger(__name__)

T = TypeVar("T")

# Postgres unique_violation
UNIQUE_VIOLATION = "23505"


class SupabaseProgressionStore(ProgressionStore):
    """Supabase implementation of the ProgressionStore interface.

    Usage:
        # Settings-driven
        store = SupabaseProgressionStore()

        # Explicit credentials
        store = SupabaseProgressionStore(
            url="https://xxx.supabase.co",
            key="service-role-key",
        )
    """

    def __init__(
        self,
        url: Optional[str] = None,
        key: Optional[str] = None,
        client: Optional[Client] = None,
        timeout_seconds: float = 10.0,
        max_retries: int = 2,
    ):
        """Initialize Supabase store.

        Args:
            url: Supabase project URL. Falls back to settings.
            key: Supabase API key. Falls back to settings.
            client: Pre-built client, used as-is when given.
            timeout_seconds: Timeout applied to every REST call.
            max_retries: Retries for transient read failures.

        Raises:
            ValueError: If no client is given and credentials are missing.
        """
        self.timeout_seconds = timeout_seconds
        self.retry_config = RetryConfig(max_retries=max_retries)
        self._client: Optional[Client] = client

        if client is None:
            from ..config import get_settings
            settings = get_settings()

            self.url = url or settings.supabase_url
            if not self.url:
                raise ValueError(
                    "Supabase URL not provided. Set BOLTLAB_SUPABASE_URL "
                    "or pass url parameter."
                )

            self.key = key or settings.supabase_key
            if not self.key:
                raise ValueError(
                    "Supabase API key not provided. Set BOLTLAB_SUPABASE_KEY "
                    "or pass key parameter."
                )

    @property
    def client(self) -> Client:
        """Lazy-initialize Supabase client."""
        if self._client is None:
            self._client = create_client(
                self.url,
                self.key,
                options=ClientOptions(postgrest_client_timeout=self.timeout_seconds),
            )
        return self._client

    # =========================================================================
    # Call helpers
    # =========================================================================

    def _read(self, operation: str, func: Callable[[], T]) -> T:
        """Run an idempotent read with retries."""
        return call_with_retry(
            lambda: self._translate(operation, func),
            operation,
            self.retry_config,
        )

    def _write(self, operation: str, func: Callable[[], T]) -> T:
        """Run a write once."""
        return self._translate(operation, func)

    def _translate(self, operation: str, func: Callable[[], T]) -> T:
        """Convert client exceptions into StoreError subclasses."""
        try:
            return func()
        except StoreError:
            raise
        except APIError as e:
            if e.code == UNIQUE_VIOLATION:
                raise StoreConflictError(
                    f"Store operation '{operation}' conflicted: {e.message}",
                    operation=operation,
                ) from e
            raise StoreError(
                f"Store operation '{operation}' failed: {e.message}",
                operation=operation,
                retryable=is_retryable(e),
                details={"postgrest_code": e.code},
            ) from e
        except Exception as e:
            raise to_store_error(operation, e, self.timeout_seconds) from e

    # =========================================================================
    # Profile
    # =========================================================================

    def get_profile(self, user_id: str) -> Profile:
        response = self._read(
            "get_profile",
            lambda: self.client.table("profiles")
            .select("id, level, total_xp, current_streak, longest_streak, "
                    "last_workout_date, streak_shields, updated_at")
            .eq("id", user_id)
            .limit(1)
            .execute(),
        )
        rows = response.data or []
        if not rows:
            return Profile(user_id=user_id)
        return _profile_from_row(user_id, rows[0])

    def update_profile(self, user_id: str, fields: Dict[str, Any]) -> Profile:
        check_profile_fields(fields)
        payload: Dict[str, Any] = {"id": user_id}
        for name, value in fields.items():
            payload[name] = value.isoformat() if hasattr(value, "isoformat") else value
        payload["updated_at"] = datetime.now().isoformat()

        response = self._write(
            "update_profile",
            lambda: self.client.table("profiles").upsert(payload).execute(),
        )
        rows = response.data or []
        if rows:
            return _profile_from_row(user_id, rows[0])
        return self.get_profile(user_id)

    # =========================================================================
    # Achievements
    # =========================================================================

    def list_unlocked_achievements(self, user_id: str) -> Set[str]:
        return {record.achievement_id for record in self.list_achievement_unlocks(user_id)}

    def list_achievement_unlocks(self, user_id: str) -> List[UnlockedAchievement]:
        response = self._read(
            "list_achievement_unlocks",
            lambda: self.client.table("user_achievements")
            .select("achievement_id, unlocked_date")
            .eq("user_id", user_id)
            .order("unlocked_date")
            .execute(),
        )
        return [
            UnlockedAchievement(
                achievement_id=row["achievement_id"],
                unlocked_at=row["unlocked_date"],
            )
            for row in response.data or []
        ]

    def record_achievement_unlock(
        self,
        user_id: str,
        achievement_id: str,
        unlocked_at: Optional[datetime] = None,
    ) -> bool:
        row = {
            "user_id": user_id,
            "achievement_id": achievement_id,
            "unlocked_date": (unlocked_at or datetime.now()).isoformat(),
        }
        try:
            response = self._write(
                "record_achievement_unlock",
                lambda: self.client.table("user_achievements")
                .upsert(row, on_conflict="user_id,achievement_id", ignore_duplicates=True)
                .execute(),
            )
        except StoreConflictError:
            logger.debug(f"Achievement {achievement_id} already unlocked for {user_id}")
            return False

        inserted = bool(response.data)
        if inserted:
            logger.info(f"Achievement unlocked for {user_id}: {achievement_id}")
        return inserted

    # =========================================================================
    # Cumulative Stats
    # =========================================================================

    def get_cumulative_stats(self, user_id: str) -> CumulativeStats:
        response = self._read(
            "get_cumulative_stats",
            lambda: self.client.table("user_stats")
            .select("total_workouts, total_sets, total_duration_minutes, exercises_tried")
            .eq("user_id", user_id)
            .limit(1)
            .execute(),
        )
        rows = response.data or []
        if not rows:
            return CumulativeStats()

        row = rows[0]
        return CumulativeStats(
            total_workouts=row.get("total_workouts") or 0,
            total_sets=row.get("total_sets") or 0,
            total_duration_minutes=row.get("total_duration_minutes") or 0,
            exercises_tried=set(row.get("exercises_tried") or []),
        )

    def update_cumulative_stats(self, user_id: str, stats: CumulativeStats) -> CumulativeStats:
        payload = {
            "user_id": user_id,
            "total_workouts": stats.total_workouts,
            "total_sets": stats.total_sets,
            "total_duration_minutes": stats.total_duration_minutes,
            "exercises_tried": sorted(stats.exercises_tried),
            "updated_at": datetime.now().isoformat(),
        }
        self._write(
            "update_cumulative_stats",
            lambda: self.client.table("user_stats").upsert(payload).execute(),
        )
        return stats

    # =========================================================================
    # Idempotency
    # =========================================================================

    def get_completion(self, user_id: str, session_id: str) -> Optional[CompletionResult]:
        response = self._read(
            "get_completion",
            lambda: self.client.table("workout_completions")
            .select("result")
            .eq("user_id", user_id)
            .eq("session_id", session_id)
            .limit(1)
            .execute(),
        )
        rows = response.data or []
        if not rows:
            return None
        return CompletionResult.model_validate(rows[0]["result"])

    def record_completion(
        self,
        user_id: str,
        session_id: str,
        result: CompletionResult,
    ) -> None:
        row = {
            "user_id": user_id,
            "session_id": session_id,
            "result": result.model_dump(mode="json"),
        }
        self._write(
            "record_completion",
            lambda: self.client.table("workout_completions")
            .upsert(row, on_conflict="user_id,session_id", ignore_duplicates=True)
            .execute(),
        )


def _profile_from_row(user_id: str, row: Dict[str, Any]) -> Profile:
    """Build a Profile from a profiles row."""
    return Profile(
        user_id=user_id,
        level=row.get("level") or 1,
        total_xp=row.get("total_xp") or 0,
        current_streak=row.get("current_streak") or 0,
        longest_streak=row.get("longest_streak") or 0,
        last_workout_date=row.get("last_workout_date"),
        streak_shields=row.get("streak_shields") or 0,
        updated_at=row.get("updated_at"),
    )
