"""
Field-level checks shared by the API schemas and the storage adapters.
"""

import re
from datetime import datetime, time, timezone
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .errors import ValidationError

_TIME_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def parse_local_time(value: str) -> time:
    """Parse "HH:MM" (24h) into a time."""
    match = _TIME_RE.match(value or "")
    if not match:
        raise ValidationError(f"Time must be in HH:MM format, got {value!r}")
    return time(int(match.group(1)), int(match.group(2)))


@lru_cache(maxsize=256)
def load_timezone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValidationError(f"Unknown IANA timezone: {name!r}")


def validate_rule_fields(
    weekday: int,
    start_time_local: str,
    end_time_local: str,
    timezone_name: str,
    capacity: int,
) -> None:
    if not 0 <= weekday <= 6:
        raise ValidationError("weekday must be between 0 (Sunday) and 6 (Saturday)")
    start = parse_local_time(start_time_local)
    end = parse_local_time(end_time_local)
    if start >= end:
        raise ValidationError("start_time_local must be before end_time_local")
    load_timezone(timezone_name)
    if capacity < 1:
        raise ValidationError("capacity must be at least 1")


def validate_duration(minutes: int) -> None:
    if minutes <= 0:
        raise ValidationError("duration_minutes must be positive")


def ensure_aware_utc(value: datetime, field: str = "time") -> datetime:
    """Reject naive datetimes, normalize aware ones to UTC."""
    if value.tzinfo is None or value.utcoffset() is None:
        raise ValidationError(f"{field} must include a UTC offset")
    return value.astimezone(timezone.utc)


def to_naive_utc(value: datetime) -> datetime:
    return ensure_aware_utc(value).replace(tzinfo=None)


def from_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
