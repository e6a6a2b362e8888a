"""
ThreatWatch Utilities Package
"""

from .helpers import (
    clamp,
    ensure_utc,
    generate_uuid,
    get_current_timestamp,
    is_number,
    parse_timestamp,
)

__all__ = [
    "clamp",
    "ensure_utc",
    "generate_uuid",
    "get_current_timestamp",
    "is_number",
    "parse_timestamp",
]
