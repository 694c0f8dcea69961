"""Utility modules for the progression engine."""

from .log_sanitizer import (
    LogSanitizationFilter,
    install_log_sanitizer,
    sanitize_string,
)
from .validation import (
    parse_calendar_date,
    require_exercise_ids,
    require_non_negative_int,
)

__all__ = [
    "LogSanitizationFilter",
    "install_log_sanitizer",
    "sanitize_string",
    "parse_calendar_date",
    "require_exercise_ids",
    "require_non_negative_int",
]
