"""SQLite implementation of the progression store.

All writes of one completion event happen in a single transaction, so a
failure leaves the database exactly as it was before the event.
"""

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Set, Union

from . import ProgressionStore, ProgressionUpdate, check_profile_fields
from .retry import to_store_error
from .schema import SCHEMA
from ..models.gamification import (
    CompletionResult,
    CumulativeStats,
    Profile,
    UnlockedAchievement,
)


logger = logging.getLogger(__name__)

# Profile field -> user_progress column
_PROFILE_COLUMNS = {
    "level": "current_level",
    "total_xp": "total_xp",
    "current_streak": "current_streak",
    "longest_streak": "longest_streak",
    "last_workout_date": "last_workout_date",
    "streak_shields": "streak_shields",
}


class SQLiteProgressionStore(ProgressionStore):
    """
    Progression store backed by a local SQLite file.

    Handles:
    - Schema creation on first use
    - Profile, stats and unlock persistence per user
    - Atomic application of a completion event
    """

    def __init__(
        self,
        db_path: Optional[Union[str, Path]] = None,
        timeout_seconds: float = 10.0,
    ):
        """
        Initialize the store.

        Args:
            db_path: Path to SQLite database. Uses the configured path if not provided.
            timeout_seconds: How long to wait on a locked database.
        """
        if db_path:
            self.db_path = Path(db_path)
        else:
            from ..config import get_settings
            self.db_path = Path(get_settings().sqlite_db_path)
        self.timeout_seconds = timeout_seconds

        self._init_db()

    def _init_db(self) -> None:
        """Initialize database tables if they don't exist."""
        with self._get_connection("init_db") as conn:
            conn.executescript(SCHEMA)

    @contextmanager
    def _get_connection(self, operation: str = "query") -> Iterator[sqlite3.Connection]:
        """Get database connection with context manager."""
        try:
            conn = sqlite3.connect(self.db_path, timeout=self.timeout_seconds)
        except sqlite3.Error as e:
            raise to_store_error(operation, e, self.timeout_seconds) from e
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise to_store_error(operation, e, self.timeout_seconds) from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    # =========================================================================
    # Profile
    # =========================================================================

    def get_profile(self, user_id: str) -> Profile:
        with self._get_connection("get_profile") as conn:
            row = conn.execute(
                "SELECT * FROM user_progress WHERE user_id = ?",
                (user_id,),
            ).fetchone()

        if not row:
            return Profile(user_id=user_id)

        updated_at = None
        if row["updated_at"]:
            updated_at = datetime.fromisoformat(row["updated_at"])

        return Profile(
            user_id=user_id,
            level=row["current_level"] or 1,
            total_xp=row["total_xp"] or 0,
            current_streak=row["current_streak"] or 0,
            longest_streak=row["longest_streak"] or 0,
            last_workout_date=row["last_workout_date"],
            streak_shields=row["streak_shields"] or 0,
            updated_at=updated_at,
        )

    def update_profile(self, user_id: str, fields: Dict[str, Any]) -> Profile:
        check_profile_fields(fields)
        with self._get_connection("update_profile") as conn:
            self._write_profile(conn, user_id, fields)
        return self.get_profile(user_id)

    def _write_profile(self, conn: sqlite3.Connection, user_id: str, fields: Dict[str, Any]) -> None:
        conn.execute(
            "INSERT OR IGNORE INTO user_progress (user_id) VALUES (?)",
            (user_id,),
        )
        if not fields:
            return

        assignments = [f"{_PROFILE_COLUMNS[name]} = ?" for name in fields]
        values = [_to_sql(value) for value in fields.values()]
        conn.execute(
            f"""
            UPDATE user_progress
            SET {', '.join(assignments)}, updated_at = ?
            WHERE user_id = ?
            """,
            (*values, datetime.now().isoformat(), user_id),
        )

    # =========================================================================
    # Achievements
    # =========================================================================

    def list_unlocked_achievements(self, user_id: str) -> Set[str]:
        with self._get_connection("list_unlocked_achievements") as conn:
            rows = conn.execute(
                "SELECT achievement_id FROM user_achievements WHERE user_id = ?",
                (user_id,),
            ).fetchall()
        return {row["achievement_id"] for row in rows}

    def list_achievement_unlocks(self, user_id: str) -> List[UnlockedAchievement]:
        with self._get_connection("list_achievement_unlocks") as conn:
            rows = conn.execute(
                """
                SELECT achievement_id, unlocked_at
                FROM user_achievements
                WHERE user_id = ?
                ORDER BY unlocked_at, id
                """,
                (user_id,),
            ).fetchall()

        return [
            UnlockedAchievement(
                achievement_id=row["achievement_id"],
                unlocked_at=datetime.fromisoformat(row["unlocked_at"]),
            )
            for row in rows
        ]

    def record_achievement_unlock(
        self,
        user_id: str,
        achievement_id: str,
        unlocked_at: Optional[datetime] = None,
    ) -> bool:
        with self._get_connection("record_achievement_unlock") as conn:
            inserted = self._write_unlock(conn, user_id, achievement_id, unlocked_at)
        if inserted:
            logger.info(f"Achievement unlocked for {user_id}: {achievement_id}")
        return inserted

    def _write_unlock(
        self,
        conn: sqlite3.Connection,
        user_id: str,
        achievement_id: str,
        unlocked_at: Optional[datetime],
    ) -> bool:
        cursor = conn.execute(
            """
            INSERT OR IGNORE INTO user_achievements (user_id, achievement_id, unlocked_at)
            VALUES (?, ?, ?)
            """,
            (user_id, achievement_id, (unlocked_at or datetime.now()).isoformat()),
        )
        return cursor.rowcount > 0

    # =========================================================================
    # Cumulative Stats
    # =========================================================================

    def get_cumulative_stats(self, user_id: str) -> CumulativeStats:
        with self._get_connection("get_cumulative_stats") as conn:
            row = conn.execute(
                "SELECT * FROM user_stats WHERE user_id = ?",
                (user_id,),
            ).fetchone()

        if not row:
            return CumulativeStats()

        return CumulativeStats(
            total_workouts=row["total_workouts"] or 0,
            total_sets=row["total_sets"] or 0,
            total_duration_minutes=row["total_duration_minutes"] or 0,
            exercises_tried=set(json.loads(row["exercises_tried_json"] or "[]")),
        )

    def update_cumulative_stats(self, user_id: str, stats: CumulativeStats) -> CumulativeStats:
        with self._get_connection("update_cumulative_stats") as conn:
            self._write_stats(conn, user_id, stats)
        return stats

    def _write_stats(self, conn: sqlite3.Connection, user_id: str, stats: CumulativeStats) -> None:
        conn.execute(
            """
            INSERT OR REPLACE INTO user_stats
            (user_id, total_workouts, total_sets, total_duration_minutes,
             exercises_tried_json, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                user_id,
                stats.total_workouts,
                stats.total_sets,
                stats.total_duration_minutes,
                json.dumps(sorted(stats.exercises_tried)),
                datetime.now().isoformat(),
            ),
        )

    # =========================================================================
    # Idempotency
    # =========================================================================

    def get_completion(self, user_id: str, session_id: str) -> Optional[CompletionResult]:
        with self._get_connection("get_completion") as conn:
            row = conn.execute(
                """
                SELECT result_json FROM workout_completions
                WHERE user_id = ? AND session_id = ?
                """,
                (user_id, session_id),
            ).fetchone()

        if not row:
            return None
        return CompletionResult.model_validate_json(row["result_json"])

    def record_completion(
        self,
        user_id: str,
        session_id: str,
        result: CompletionResult,
    ) -> None:
        with self._get_connection("record_completion") as conn:
            self._write_completion(conn, user_id, session_id, result)

    def _write_completion(
        self,
        conn: sqlite3.Connection,
        user_id: str,
        session_id: str,
        result: CompletionResult,
    ) -> None:
        conn.execute(
            """
            INSERT OR IGNORE INTO workout_completions (user_id, session_id, result_json)
            VALUES (?, ?, ?)
            """,
            (user_id, session_id, result.model_dump_json()),
        )

    # =========================================================================
    # Composite Write
    # =========================================================================

    def apply_progression(self, user_id: str, update: ProgressionUpdate) -> None:
        """Persist all writes of one completion event in one transaction."""
        check_profile_fields(update.profile_fields)
        with self._get_connection("apply_progression") as conn:
            self._write_profile(conn, user_id, update.profile_fields)
            self._write_stats(conn, user_id, update.stats)
            for unlock in update.unlocks:
                self._write_unlock(conn, user_id, unlock.achievement_id, unlock.unlocked_at)
            if update.session_id and update.result is not None:
                self._write_completion(conn, user_id, update.session_id, update.result)

        logger.debug(
            f"Applied progression for {user_id}: {len(update.unlocks)} unlock(s)"
        )


def _to_sql(value: Any) -> Any:
    """Convert Python values to SQLite-storable ones."""
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value
