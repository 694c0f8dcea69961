"""Tests for the ProgressionService workout completion flow.

This module tests:
1. XP, level, streak and achievement outcomes of one completed workout
2. Session replay
3. Input validation ahead of any store call
4. Store failure and partial-write reporting
5. Read views and streak shields
"""

import threading
from datetime import date, datetime, timezone
from unittest.mock import MagicMock

import pytest

from boltlab_progression.exceptions import (
    FeatureDisabledError,
    PartialWriteError,
    StoreError,
    StoreTimeoutError,
    ValidationError,
)
from boltlab_progression.models.gamification import CumulativeStats
from boltlab_progression.services.leveling import total_xp_for_level
from boltlab_progression.services.progression_service import (
    USER_LOCK_STRIPES,
    ProgressionService,
)
from boltlab_progression.store import (
    CachedProgressionStore,
    InMemoryProgressionStore,
    ProgressionStore,
    SQLiteProgressionStore,
)


class FailingUnlockStore(InMemoryProgressionStore):
    """Store whose achievement writes always fail."""

    def record_achievement_unlock(self, user_id, achievement_id, unlocked_at=None):
        raise StoreError(
            "unlock write failed",
            operation="record_achievement_unlock",
            retryable=True,
        )


class FailingProfileStore(InMemoryProgressionStore):
    """Store whose profile writes always fail."""

    def update_profile(self, user_id, fields):
        raise StoreError("profile write failed", operation="update_profile", retryable=True)


class TestCompleteWorkout:
    """Tests for the core completion scenarios."""

    def test_fresh_user(self, service, memory_store):
        result = service.complete_workout("user-1", ["squat", "lunge"], 30, 4)

        assert result.xp_gained == 70
        assert result.workout_xp == 70
        assert result.leveled_up is False
        assert result.level == 1
        assert result.current_streak == 1
        assert result.longest_streak == 1
        assert result.newly_unlocked == ["first-steps"]
        assert result.replayed is False

        profile = memory_store.get_profile("user-1")
        assert profile.total_xp == 70
        assert profile.level == 1
        assert profile.last_workout_date == date(2024, 1, 1)

        stats = memory_store.get_cumulative_stats("user-1")
        assert stats.total_workouts == 1
        assert stats.total_sets == 4
        assert stats.total_duration_minutes == 30
        assert stats.exercises_tried == {"squat", "lunge"}

    def test_level_up_across_boundary(self, service, memory_store):
        memory_store.update_profile("user-1", {"total_xp": 95, "level": 1})
        memory_store.update_cumulative_stats("user-1", CumulativeStats(total_workouts=1))
        memory_store.record_achievement_unlock("user-1", "first-steps")

        result = service.complete_workout("user-1", ["squat"], 20, 1)

        assert result.xp_gained == 55
        assert result.total_xp == 150
        assert result.level == 2
        assert result.leveled_up is True
        assert result.newly_unlocked == []

    def test_fifth_workout_unlocks_early_bird_once(self, service, memory_store, clock):
        memory_store.update_cumulative_stats("user-1", CumulativeStats(total_workouts=4))
        memory_store.record_achievement_unlock("user-1", "first-steps")

        result = service.complete_workout("user-1", [], 10, 0)

        assert result.newly_unlocked == ["early-bird"]
        assert result.workout_xp == 50
        assert result.achievement_xp == 50
        assert result.xp_gained == 100
        assert memory_store.list_unlocked_achievements("user-1") == {"first-steps", "early-bird"}

        clock.advance(days=1)
        again = service.complete_workout("user-1", [], 10, 0)
        assert again.newly_unlocked == []
        assert again.xp_gained == 50

    def test_reward_level_up_unlocks_level_achievement_same_event(self, service, memory_store):
        memory_store.update_profile(
            "user-1",
            {"total_xp": total_xp_for_level(10) - 60, "level": 9},
        )
        memory_store.update_cumulative_stats("user-1", CumulativeStats(total_workouts=4))
        memory_store.record_achievement_unlock("user-1", "first-steps")

        result = service.complete_workout("user-1", [], 0, 0)

        assert result.newly_unlocked == ["early-bird", "lightning-rod"]
        assert result.xp_gained == 50 + 50 + 150
        assert result.level == 10
        assert result.leveled_up is True
        assert memory_store.get_profile("user-1").total_xp == total_xp_for_level(10) + 190

    def test_empty_workout_accepted(self, service):
        result = service.complete_workout("user-1", [], 0, 0)
        assert result.xp_gained == 50

    def test_same_day_workouts_do_not_extend_streak(self, service):
        service.complete_workout("user-1", [], 0, 0)
        result = service.complete_workout("user-1", [], 0, 0)

        assert result.current_streak == 1
        assert result.total_xp == 100
        assert result.leveled_up is True

    def test_consecutive_days_grace_and_reset(self, service, clock):
        assert service.complete_workout("user-1", [], 0, 0).current_streak == 1
        clock.advance(days=1)
        assert service.complete_workout("user-1", [], 0, 0).current_streak == 2
        clock.advance(days=2)
        assert service.complete_workout("user-1", [], 0, 0).current_streak == 2
        clock.advance(days=3)
        result = service.complete_workout("user-1", [], 0, 0)
        assert result.current_streak == 1
        assert result.longest_streak == 2

    def test_explicit_today(self, service, memory_store):
        service.complete_workout("user-1", [], 0, 0, today="2024-03-10")
        assert memory_store.get_profile("user-1").last_workout_date == date(2024, 3, 10)

    def test_future_last_workout_is_flagged_not_raised(self, service, memory_store):
        memory_store.update_profile(
            "user-1",
            {"last_workout_date": date(2024, 1, 5), "current_streak": 2, "longest_streak": 2},
        )

        result = service.complete_workout("user-1", [], 0, 2)

        assert result.streak_anomaly is True
        assert result.current_streak == 2
        assert result.xp_gained == 60
        assert memory_store.get_profile("user-1").last_workout_date == date(2024, 1, 5)

    def test_serializes_camel_case(self, service):
        data = service.complete_workout("user-1", [], 0, 4).model_dump(by_alias=True)
        assert data["xpGained"] == 70
        assert data["leveledUp"] is False
        assert data["newlyUnlocked"] == ["first-steps"]


class TestSessionReplay:
    """Tests for idempotent replay by session id."""

    def test_replay_returns_first_result_and_writes_nothing(self, service, memory_store, clock):
        first = service.complete_workout("user-1", ["squat"], 30, 4, session_id="session-1")
        clock.advance(days=1)

        second = service.complete_workout("user-1", ["squat"], 30, 4, session_id="session-1")

        assert second.replayed is True
        assert second.xp_gained == first.xp_gained
        assert second.newly_unlocked == first.newly_unlocked

        profile = memory_store.get_profile("user-1")
        assert profile.total_xp == 70
        assert profile.last_workout_date == date(2024, 1, 1)
        assert memory_store.get_cumulative_stats("user-1").total_workouts == 1

    def test_sessions_are_per_user(self, service):
        service.complete_workout("user-1", [], 0, 0, session_id="session-1")
        other = service.complete_workout("user-2", [], 0, 0, session_id="session-1")
        assert other.replayed is False

    def test_concurrent_duplicate_submissions_apply_once(self, service, memory_store):
        results = []

        def submit():
            results.append(service.complete_workout("user-1", [], 0, 0, session_id="session-1"))

        threads = [threading.Thread(target=submit) for _ in range(5)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sum(1 for result in results if result.replayed) == 4
        assert memory_store.get_cumulative_stats("user-1").total_workouts == 1
        assert memory_store.get_profile("user-1").total_xp == 50

    def test_concurrent_distinct_workouts_all_counted(self, service, memory_store):
        threads = [
            threading.Thread(
                target=service.complete_workout,
                args=("user-1", [], 0, 0),
                kwargs={"session_id": f"session-{i}"},
            )
            for i in range(10)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert memory_store.get_cumulative_stats("user-1").total_workouts == 10
        # 10 workouts plus early-bird
        assert memory_store.get_profile("user-1").total_xp == 550

    def test_lock_table_does_not_grow_with_users(self, service):
        for i in range(200):
            service.complete_workout(f"user-{i}", [], 0, 0)

        assert len(service._user_locks) == USER_LOCK_STRIPES


class TestValidation:
    """Bad input is rejected before the store is touched."""

    @pytest.fixture
    def mock_store(self):
        return MagicMock(spec=ProgressionStore)

    @pytest.fixture
    def mocked_service(self, mock_store, catalog, clock):
        return ProgressionService(mock_store, catalog=catalog, clock=clock)

    @pytest.mark.parametrize(
        "args,field",
        [
            (("user-1", ["squat"], 30, -1), "set_count"),
            (("user-1", ["squat"], -5, 3), "duration_minutes"),
            (("user-1", "squat", 30, 3), "exercise_ids"),
            (("user-1", [""], 30, 3), "exercise_ids"),
            (("user-1", ["squat"], 30.5, 3), "duration_minutes"),
            (("user-1", ["squat"], 30, True), "set_count"),
            (("", ["squat"], 30, 3), "user_id"),
        ],
    )
    def test_rejected_without_store_calls(self, mocked_service, mock_store, args, field):
        with pytest.raises(ValidationError) as exc_info:
            mocked_service.complete_workout(*args)

        assert exc_info.value.details["field"] == field
        assert exc_info.value.status_code == 400
        assert mock_store.method_calls == []

    def test_empty_session_id_rejected(self, mocked_service, mock_store):
        with pytest.raises(ValidationError):
            mocked_service.complete_workout("user-1", [], 0, 0, session_id="")
        assert mock_store.method_calls == []

    def test_malformed_today_rejected(self, mocked_service, mock_store):
        with pytest.raises(ValidationError):
            mocked_service.complete_workout("user-1", [], 0, 0, today="not-a-date")
        assert mock_store.method_calls == []

    def test_unknown_timezone_rejected(self, memory_store, catalog):
        with pytest.raises(ValidationError):
            ProgressionService(memory_store, catalog=catalog, timezone="Mars/Olympus_Mons")


class TestStoreFailures:
    """Tests for store error propagation and partial writes."""

    def test_read_failure_propagates(self, catalog, clock):
        store = MagicMock(spec=ProgressionStore)
        store.load_for_update.side_effect = StoreTimeoutError("get_profile", 10.0)
        service = ProgressionService(store, catalog=catalog, clock=clock)

        with pytest.raises(StoreTimeoutError) as exc_info:
            service.complete_workout("user-1", [], 0, 0)

        assert exc_info.value.retryable is True
        store.apply_progression.assert_not_called()

    def test_first_write_failure_is_plain_store_error(self, catalog, clock):
        store = FailingProfileStore()
        service = ProgressionService(store, catalog=catalog, clock=clock)

        with pytest.raises(StoreError) as exc_info:
            service.complete_workout("user-1", [], 0, 4)

        assert not isinstance(exc_info.value, PartialWriteError)
        assert store.get_cumulative_stats("user-1").total_workouts == 0

    def test_unlock_failure_after_profile_write_is_partial(self, catalog, clock):
        store = FailingUnlockStore()
        service = ProgressionService(store, catalog=catalog, clock=clock)

        with pytest.raises(PartialWriteError) as exc_info:
            service.complete_workout("user-1", ["squat"], 30, 4, session_id="session-1")

        error = exc_info.value
        assert error.written == ["profile", "stats"]
        assert error.failed == ["achievement:first-steps", "completion"]
        assert error.retryable is True
        assert error.details["written"] == ["profile", "stats"]
        assert store.get_profile("user-1").total_xp == 70
        assert store.get_completion("user-1", "session-1") is None


class TestReadViews:
    """Tests for progress and achievement listings."""

    def test_get_progress_for_unknown_user(self, service):
        progress = service.get_progress("nobody")

        assert progress.total_xp == 0
        assert progress.level.level == 1
        assert progress.streak.current == 0
        assert progress.achievements_unlocked == 0

    def test_get_progress_after_workout(self, service):
        service.complete_workout("user-1", ["squat"], 30, 4)

        progress = service.get_progress("user-1")

        assert progress.total_xp == 70
        assert progress.level.current_xp == 70
        assert progress.level.xp_to_next_level == 30
        assert progress.streak.current == 1
        assert progress.streak.last_workout_date == date(2024, 1, 1)
        assert progress.stats.total_workouts == 1
        assert progress.achievements_unlocked == 1

    def test_list_achievements(self, service, clock):
        service.complete_workout("user-1", ["squat"], 30, 4)

        achievements = {a.achievement.id: a for a in service.list_achievements("user-1")}

        assert len(achievements) == 14
        first = achievements["first-steps"]
        assert first.unlocked is True
        assert first.unlocked_at == clock.now
        assert first.progress == first.max_progress == 1

        early = achievements["early-bird"]
        assert early.unlocked is False
        assert early.unlocked_at is None
        assert (early.progress, early.max_progress) == (1, 5)

    def test_get_catalog(self, service, catalog):
        assert service.get_catalog() == list(catalog)


class TestTimezone:
    def test_today_uses_configured_zone(self, memory_store, catalog):
        late_evening_utc = datetime(2024, 1, 1, 23, 30, tzinfo=timezone.utc)
        service = ProgressionService(
            memory_store,
            catalog=catalog,
            clock=lambda: late_evening_utc,
            timezone="Pacific/Auckland",
        )

        assert service.today() == date(2024, 1, 2)
        service.complete_workout("user-1", [], 0, 0)
        assert memory_store.get_profile("user-1").last_workout_date == date(2024, 1, 2)


class TestSharedStore:
    """Two cached services over one SQLite file, as with several app workers."""

    def _service(self, db_path, catalog, clock, **kwargs):
        store = CachedProgressionStore(SQLiteProgressionStore(db_path=db_path))
        return ProgressionService(store, catalog=catalog, clock=clock, **kwargs)

    def test_workouts_from_both_workers_kept(self, temp_db_path, catalog, clock):
        worker_a = self._service(temp_db_path, catalog, clock)
        worker_b = self._service(temp_db_path, catalog, clock)
        assert worker_b.get_progress("user-1").total_xp == 0

        first = worker_a.complete_workout("user-1", ["squat"], 30, 4)
        second = worker_b.complete_workout("user-1", ["lunge"], 30, 4)

        assert first.total_xp == 70
        assert second.total_xp == 140
        assert second.newly_unlocked == []
        stored = SQLiteProgressionStore(db_path=temp_db_path)
        assert stored.get_profile("user-1").total_xp == 140
        stats = stored.get_cumulative_stats("user-1")
        assert stats.total_workouts == 2
        assert stats.exercises_tried == {"squat", "lunge"}
        assert worker_b.get_progress("user-1").total_xp == 140

    def test_shield_grants_from_both_workers_kept(self, temp_db_path, catalog, clock):
        worker_a = self._service(temp_db_path, catalog, clock, streak_shields_enabled=True)
        worker_b = self._service(temp_db_path, catalog, clock, streak_shields_enabled=True)
        assert worker_b.get_progress("user-1").streak.shields == 0

        worker_a.grant_streak_shields("user-1", 2)

        assert worker_b.grant_streak_shields("user-1", 1).streak_shields == 3


class TestStreakShields:
    """Tests for granting and spending streak shields."""

    def test_grant_disabled(self, service):
        with pytest.raises(FeatureDisabledError) as exc_info:
            service.grant_streak_shields("user-1", 1)
        assert exc_info.value.status_code == 400

    def test_grant_capped(self, shield_service):
        assert shield_service.grant_streak_shields("user-1", 2).streak_shields == 2
        assert shield_service.grant_streak_shields("user-1", 5).streak_shields == 3

    @pytest.mark.parametrize("count", [0, -1, "2"])
    def test_grant_rejects_bad_count(self, shield_service, count):
        with pytest.raises(ValidationError):
            shield_service.grant_streak_shields("user-1", count)

    def test_shields_spent_on_gap(self, shield_service, memory_store):
        memory_store.update_profile(
            "user-1",
            {
                "last_workout_date": date(2023, 12, 28),
                "current_streak": 5,
                "longest_streak": 5,
                "streak_shields": 2,
            },
        )

        result = shield_service.complete_workout("user-1", [], 0, 0)

        assert result.current_streak == 5
        profile = memory_store.get_profile("user-1")
        assert profile.streak_shields == 0
        assert profile.last_workout_date == date(2024, 1, 1)
