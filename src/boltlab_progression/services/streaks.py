"""
Day-based workout streak tracking.

A streak counts consecutive calendar days with a credited workout. One
skipped day (the grace day) keeps the streak alive without extending it;
a longer gap resets it to 1. Optionally, streak shields cover the days
beyond the grace day.

update_streak() is pure and must run at most once per completion event,
otherwise the streak is incremented twice for one workout.
"""

import logging
from dataclasses import dataclass, replace
from datetime import date
from typing import Any, Optional

from ..exceptions import ValidationError
from ..utils.validation import parse_calendar_date, require_non_negative_int


logger = logging.getLogger(__name__)

GRACE_DAYS = 1


@dataclass(frozen=True)
class StreakState:
    """Streak fields of a profile."""

    last_workout_date: Optional[date] = None
    current_streak: int = 0
    longest_streak: int = 0
    shields: int = 0


@dataclass(frozen=True)
class StreakUpdate:
    """Result of one streak transition."""

    state: StreakState
    days_between: Optional[int]
    credited: bool = False
    anomaly: bool = False
    shields_used: int = 0


def days_between(earlier: date, later: date) -> int:
    """Whole calendar days from earlier to later (negative if reversed)."""
    return (later - earlier).days


def update_streak(
    state: StreakState,
    today: Any,
    shields_enabled: bool = False,
) -> StreakUpdate:
    """
    Apply one workout on `today` to the streak state.

    Args:
        state: Current streak fields
        today: Calendar day of the workout (date, datetime or YYYY-MM-DD)
        shields_enabled: Whether shields may cover gaps beyond the grace day

    Returns:
        StreakUpdate with the new state and what happened
    """
    today_date = parse_calendar_date(today, "today")
    if today_date is None:
        raise ValidationError("today is required", field="today")
    last = parse_calendar_date(state.last_workout_date, "last_workout_date")
    current = require_non_negative_int(state.current_streak, "current_streak")
    longest = require_non_negative_int(state.longest_streak, "longest_streak")
    shields = require_non_negative_int(state.shields, "shields")

    if last is None:
        # First workout ever
        return _finish(
            StreakState(today_date, 1, longest, shields),
            delta=None,
            credited=True,
        )

    delta = days_between(last, today_date)

    if delta < 0:
        logger.warning(
            f"Last workout date {last.isoformat()} is after {today_date.isoformat()}; "
            "leaving streak unchanged"
        )
        return _finish(
            StreakState(last, current, longest, shields),
            delta=delta,
            anomaly=True,
        )

    if delta == 0:
        # Already credited today
        return _finish(StreakState(last, current, longest, shields), delta=delta)

    if delta == 1:
        return _finish(
            StreakState(today_date, current + 1, longest, shields),
            delta=delta,
            credited=True,
        )

    if delta == 1 + GRACE_DAYS:
        return _finish(
            StreakState(today_date, current, longest, shields),
            delta=delta,
            credited=True,
        )

    # Gap longer than the grace day
    shields_needed = delta - 1 - GRACE_DAYS
    if shields_enabled and current > 0 and shields >= shields_needed:
        logger.info(f"Using {shields_needed} streak shield(s) to cover a {delta}-day gap")
        return _finish(
            StreakState(today_date, current, longest, shields - shields_needed),
            delta=delta,
            credited=True,
            shields_used=shields_needed,
        )

    return _finish(
        StreakState(today_date, 1, longest, shields),
        delta=delta,
        credited=True,
    )


def _finish(
    state: StreakState,
    delta: Optional[int],
    credited: bool = False,
    anomaly: bool = False,
    shields_used: int = 0,
) -> StreakUpdate:
    """Apply the longest-streak invariant and wrap the transition."""
    state = replace(state, longest_streak=max(state.longest_streak, state.current_streak))
    return StreakUpdate(
        state=state,
        days_between=delta,
        credited=credited,
        anomaly=anomaly,
        shields_used=shields_used,
    )
