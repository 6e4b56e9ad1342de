"""Shared validation utilities"""

import re
import uuid
from datetime import datetime, timezone
from typing import Optional


def validate_uuid(value: str) -> bool:
    """Validate UUID format"""
    try:
        uuid.UUID(str(value).strip())
        return True
    except (ValueError, AttributeError):
        return False


def to_utc(value: datetime) -> datetime:
    """Normalize a datetime to aware UTC. Naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp into an aware UTC datetime.

    Returns None for empty or unparseable input.
    """
    if value is None:
        return None
    raw = str(value).strip()
    if not raw:
        return None
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return None
    return to_utc(parsed)


def isoformat_utc(value: Optional[datetime]) -> Optional[str]:
    """Render a stored timestamp as ISO-8601 UTC"""
    if value is None:
        return None
    return to_utc(value).isoformat().replace("+00:00", "Z")


def parse_time_to_minutes(value) -> Optional[int]:
    """Parse "HH:MM" / "HH:MM:SS" (or a time object) into minutes after midnight"""
    if value is None:
        return None
    if hasattr(value, "hour") and hasattr(value, "minute"):
        return value.hour * 60 + value.minute
    match = re.match(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$", str(value).strip())
    if not match:
        return None
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        return None
    return hours * 60 + minutes
