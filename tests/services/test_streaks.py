"""Tests for day-based streak tracking."""

import logging
from datetime import date, datetime

import pytest

from boltlab_progression.exceptions import ValidationError
from boltlab_progression.services.streaks import StreakState, days_between, update_streak


JAN_1 = date(2024, 1, 1)


@pytest.fixture
def jan_1_state():
    """Three-day streak last credited on Jan 1."""
    return StreakState(last_workout_date=JAN_1, current_streak=3, longest_streak=3)


class TestDaysBetween:
    def test_counts_calendar_days(self):
        assert days_between(JAN_1, date(2024, 1, 1)) == 0
        assert days_between(JAN_1, date(2024, 1, 4)) == 3
        assert days_between(date(2023, 12, 31), JAN_1) == 1
        assert days_between(JAN_1, date(2023, 12, 30)) == -2


class TestStreakTransitions:
    """Tests for each row of the transition table."""

    def test_first_workout_starts_streak(self):
        update = update_streak(StreakState(), JAN_1)
        assert update.state.current_streak == 1
        assert update.state.longest_streak == 1
        assert update.state.last_workout_date == JAN_1
        assert update.credited is True
        assert update.days_between is None

    def test_same_day_is_unchanged(self, jan_1_state):
        update = update_streak(jan_1_state, JAN_1)
        assert update.state.current_streak == 3
        assert update.state.last_workout_date == JAN_1
        assert update.credited is False

    def test_next_day_extends(self, jan_1_state):
        update = update_streak(jan_1_state, date(2024, 1, 2))
        assert update.state.current_streak == 4
        assert update.state.longest_streak == 4
        assert update.state.last_workout_date == date(2024, 1, 2)

    def test_grace_day_keeps_streak_and_advances_date(self, jan_1_state):
        update = update_streak(jan_1_state, date(2024, 1, 3))
        assert update.state.current_streak == 3
        assert update.state.last_workout_date == date(2024, 1, 3)
        assert update.credited is True

    def test_longer_gap_resets(self, jan_1_state):
        update = update_streak(jan_1_state, date(2024, 1, 4))
        assert update.state.current_streak == 1
        assert update.state.longest_streak == 3
        assert update.state.last_workout_date == date(2024, 1, 4)

    def test_reset_keeps_longest(self):
        state = StreakState(last_workout_date=JAN_1, current_streak=3, longest_streak=10)
        update = update_streak(state, date(2024, 2, 1))
        assert update.state.current_streak == 1
        assert update.state.longest_streak == 10

    def test_future_last_date_is_anomaly(self, jan_1_state, caplog):
        with caplog.at_level(logging.WARNING, logger="boltlab_progression.services.streaks"):
            update = update_streak(jan_1_state, date(2023, 12, 31))

        assert update.anomaly is True
        assert update.credited is False
        assert update.state.current_streak == 3
        assert update.state.last_workout_date == JAN_1
        assert "2024-01-01" in caplog.text

    def test_longest_repaired_when_below_current(self):
        state = StreakState(last_workout_date=JAN_1, current_streak=5, longest_streak=2)
        update = update_streak(state, JAN_1)
        assert update.state.longest_streak == 5


class TestDateInputs:
    def test_datetime_is_truncated_to_day(self, jan_1_state):
        update = update_streak(jan_1_state, datetime(2024, 1, 2, 23, 59))
        assert update.state.current_streak == 4
        assert update.state.last_workout_date == date(2024, 1, 2)

    def test_iso_string(self, jan_1_state):
        update = update_streak(jan_1_state, "2024-01-02")
        assert update.state.current_streak == 4

    def test_iso_string_last_date(self):
        state = StreakState(last_workout_date="2024-01-01", current_streak=1, longest_streak=1)
        update = update_streak(state, JAN_1)
        assert update.state.last_workout_date == JAN_1

    def test_iso_timestamp_string(self, jan_1_state):
        update = update_streak(jan_1_state, "2024-01-02T23:59:00+00:00")
        assert update.state.last_workout_date == date(2024, 1, 2)

    @pytest.mark.parametrize(
        "today",
        [
            "01/02/2024",
            "2024-13-01",
            "yesterday",
            20240102,
            "2024-01-02garbage",
            "2024-01-02T99:99",
            "2024-01-02 extra",
        ],
    )
    def test_malformed_dates_rejected(self, jan_1_state, today):
        with pytest.raises(ValidationError):
            update_streak(jan_1_state, today)

    def test_today_required(self, jan_1_state):
        with pytest.raises(ValidationError):
            update_streak(jan_1_state, None)

    def test_negative_counter_rejected(self):
        with pytest.raises(ValidationError):
            update_streak(StreakState(last_workout_date=JAN_1, current_streak=-1), JAN_1)


class TestStreakShields:
    """Tests for shields covering gaps beyond the grace day."""

    def test_shields_cover_extra_missed_days(self):
        state = StreakState(last_workout_date=JAN_1, current_streak=5, longest_streak=5, shields=2)
        update = update_streak(state, date(2024, 1, 5), shields_enabled=True)

        assert update.state.current_streak == 5
        assert update.state.shields == 0
        assert update.shields_used == 2
        assert update.state.last_workout_date == date(2024, 1, 5)

    def test_one_shield_for_three_day_gap(self):
        state = StreakState(last_workout_date=JAN_1, current_streak=5, longest_streak=5, shields=3)
        update = update_streak(state, date(2024, 1, 4), shields_enabled=True)

        assert update.state.current_streak == 5
        assert update.state.shields == 2
        assert update.shields_used == 1

    def test_insufficient_shields_reset_and_consume_none(self):
        state = StreakState(last_workout_date=JAN_1, current_streak=5, longest_streak=5, shields=1)
        update = update_streak(state, date(2024, 1, 5), shields_enabled=True)

        assert update.state.current_streak == 1
        assert update.state.shields == 1
        assert update.shields_used == 0

    def test_grace_day_is_free(self):
        state = StreakState(last_workout_date=JAN_1, current_streak=5, longest_streak=5, shields=2)
        update = update_streak(state, date(2024, 1, 3), shields_enabled=True)

        assert update.state.current_streak == 5
        assert update.state.shields == 2

    def test_shields_ignored_when_disabled(self):
        state = StreakState(last_workout_date=JAN_1, current_streak=5, longest_streak=5, shields=3)
        update = update_streak(state, date(2024, 1, 4))

        assert update.state.current_streak == 1
        assert update.state.shields == 3
