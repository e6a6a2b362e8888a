"""
ThreatWatch Utility Functions

Common helper functions used throughout the application.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Optional


def generate_uuid() -> str:
    """Generate a new UUID4 string."""
    return str(uuid.uuid4())


def get_current_timestamp() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Attach UTC to naive datetimes; aware ones are converted to UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a timestamp into an aware UTC datetime.

    Accepts datetime objects, ISO-8601 strings (with or without a trailing Z)
    and epoch seconds.

    Args:
        value: Timestamp value to parse

    Returns:
        Parsed datetime or None if parsing fails
    """
    if isinstance(value, datetime):
        return ensure_utc(value)

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None

    if isinstance(value, str):
        try:
            return ensure_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
        except ValueError:
            return None

    return None


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    """Clamp a number into [low, high]."""
    return max(low, min(high, value))


def is_number(value: Any) -> bool:
    """True for ints and floats, False for bools and everything else."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)
