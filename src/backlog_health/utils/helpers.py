# src/backlog_health/utils/helpers.py

import math
from datetime import datetime, timedelta, timezone
from statistics import mean
from typing import Any, List, Optional

SECONDS_PER_DAY = 86400


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parses an ISO datetime string into an aware UTC datetime.

    Handles the 'Z' suffix and Jira's '+0000' offsets. Returns None for empty
    or unparseable values instead of raising.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value:
        text = value.replace("Z", "+00:00")
        # Jira renders offsets without a colon: 2024-01-15T10:00:00.000+0000
        if len(text) > 5 and text[-5] in "+-" and text[-4:].isdigit():
            text = f"{text[:-2]}:{text[-2:]}"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def now_utc() -> datetime:
    """Returns the current time in UTC."""
    return datetime.now(timezone.utc)


def days_ago(now: datetime, days: float) -> datetime:
    """Returns the instant that lies `days` days before `now`."""
    return now - timedelta(days=days)


def days_between(start: datetime, end: datetime) -> float:
    """Fractional days from start to end."""
    return (end - start).total_seconds() / SECONDS_PER_DAY


def safe_ratio(part: float, total: float) -> float:
    """Divides, returning 0 when the denominator is zero."""
    return part / total if total else 0.0


def safe_mean(values: List[float]) -> Optional[float]:
    """Calculates the mean of a list, returning None for empty lists."""
    return mean(values) if values else None


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def round_half_up(value: float) -> int:
    """Rounds halves upwards (12.5 -> 13, -2.5 -> -2).

    The built-in round() rounds halves to even, which would shift historical
    scores by a point.
    """
    return math.floor(value + 0.5)
