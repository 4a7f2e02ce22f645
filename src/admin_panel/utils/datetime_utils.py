"""
Datetime utilities for consistent timezone handling across the admin panel.

All persisted timestamps are timezone-aware UTC. Some backends (SQLite) hand
naive datetimes back, so readers go through ensure_utc().
"""

import logging
from datetime import datetime, timezone
from typing import Optional

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    """
    Get current UTC datetime.

    Returns:
        Current timezone-aware datetime in UTC
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Ensure a datetime is timezone-aware in UTC.

    Args:
        dt: Datetime to normalize

    Returns:
        Timezone-aware datetime in UTC, or None if input is None
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        # Naive values were written as UTC
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_datetime_string(dt: Optional[datetime]) -> Optional[str]:
    """Format a datetime as "YYYY-MM-DD HH:MM:SS" in UTC."""
    normalized = ensure_utc(dt)
    if normalized is None:
        return None
    return normalized.strftime('%Y-%m-%d %H:%M:%S')


def export_timestamp(dt: Optional[datetime] = None) -> str:
    """Timestamp fragment used in generated export filenames."""
    return (ensure_utc(dt) or utc_now()).strftime('%Y-%m-%d_%H-%M-%S')
