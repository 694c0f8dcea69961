"""Input validation shared by the pure calculators and the orchestrator."""

from datetime import date, datetime
from typing import Any, List, Optional

from ..exceptions import ValidationError


def require_non_negative_int(value: Any, field: str) -> int:
    """Return value if it is a non-negative int, else raise ValidationError."""
    # bool is an int subclass but never a valid count
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(
            f"{field} must be an integer, got {type(value).__name__}",
            field=field,
        )
    if value < 0:
        raise ValidationError(f"{field} must be >= 0, got {value}", field=field)
    return value


def require_exercise_ids(value: Any, field: str = "exercise_ids") -> List[str]:
    """Return exercise ids as a list of strings."""
    if isinstance(value, (str, bytes)) or not isinstance(value, (list, tuple, set, frozenset)):
        raise ValidationError(f"{field} must be a list of strings", field=field)
    ids = list(value)
    for item in ids:
        if not isinstance(item, str) or not item:
            raise ValidationError(
                f"{field} must contain non-empty strings, got {item!r}",
                field=field,
            )
    return ids


def parse_calendar_date(value: Any, field: str) -> Optional[date]:
    """
    Coerce a calendar day from a date, datetime, YYYY-MM-DD string or
    ISO 8601 timestamp string.

    Datetimes are truncated to their date so comparisons stay at day
    granularity. The whole string must parse. None passes through.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            if "T" in text or " " in text:
                return datetime.fromisoformat(text).date()
            return datetime.strptime(text, "%Y-%m-%d").date()
        except ValueError:
            raise ValidationError(
                f"{field} must be a YYYY-MM-DD date, got {value!r}",
                field=field,
            ) from None
    raise ValidationError(
        f"{field} must be a date, got {type(value).__name__}",
        field=field,
    )
