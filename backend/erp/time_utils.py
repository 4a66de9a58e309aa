from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

# Timestamps are stored as naive UTC; every boundary of the app goes through here.

DATE_ONLY_LENGTH = len("YYYY-MM-DD")


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse ISO-8601 into a naive UTC datetime.

    Naive input is taken as UTC; "Z" and explicit offsets are converted.
    Blank input gives None. Malformed input raises ValueError.
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def parse_range_bound(value: Optional[str], *, upper: bool = False) -> Optional[datetime]:
    """
    Parse a report filter bound. A date-only upper bound covers the whole day,
    so end_date=2024-03-01 includes everything recorded on March 1st.
    """
    dt = parse_iso_datetime(value)
    if dt is not None and upper and len(value.strip()) == DATE_ONLY_LENGTH:
        dt += timedelta(days=1) - timedelta(microseconds=1)
    return dt


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Serialize as ISO-8601 with a trailing 'Z' (second precision)."""
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.replace(microsecond=0).isoformat() + "Z"
