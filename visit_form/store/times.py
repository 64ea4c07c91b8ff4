"""Helpers for HH:MM time values."""

import re

_TIME_PATTERN = re.compile(r"^(\d{2}):(\d{2})$")


def normalize_time(time_value: str | None) -> str:
    """Normalize a time to HH:MM by truncating trailing seconds."""
    if not time_value:
        return ""
    time_value = str(time_value).strip()
    if len(time_value) >= 5:
        return time_value[:5]
    return time_value


def format_time_input(value: str) -> str:
    """Format digits typed so far as HH:MM (e.g. '143' -> '14:3')."""
    digits = re.sub(r"\D", "", value or "")
    if len(digits) <= 2:
        return digits
    return f"{digits[:2]}:{digits[2:4]}"


def is_valid_time(time_value: str | None) -> bool:
    """Whether time_value is a well-formed HH:MM between 00:00 and 23:59."""
    match = _TIME_PATTERN.match(time_value or "")
    if match is None:
        return False
    hours, minutes = int(match.group(1)), int(match.group(2))
    return 0 <= hours <= 23 and 0 <= minutes <= 59


def add_minutes_to_time(time_value: str, minutes_to_add: int) -> str:
    """Add minutes to an HH:MM time, wrapping past midnight.

    Returns an empty string when time_value is not a valid time. No date
    rollover is tracked.
    """
    if not is_valid_time(time_value):
        return ""
    hours, minutes = (int(part) for part in time_value.split(":"))
    total = (hours * 60 + minutes + minutes_to_add) % (24 * 60)
    return f"{total // 60:02d}:{total % 60:02d}"
