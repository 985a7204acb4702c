# fntracker/timeutil.py
"""
Time helpers.

Instants are integer milliseconds since the Unix epoch (UTC). ISO strings only
appear at the persistence and presentation boundaries.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

MS_PER_SECOND = 1000
MS_PER_MINUTE = 60 * MS_PER_SECOND
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

DISPLAY_FORMAT = "%Y-%m-%d %H:%M:%S"


def now_ms() -> int:
    return int(datetime.now(timezone.utc).timestamp() * MS_PER_SECOND)


def from_datetime(dt: datetime) -> int:
    """Convert an aware datetime to epoch ms; naive values are taken as UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    delta = dt - EPOCH
    return (delta.days * 86_400 + delta.seconds) * MS_PER_SECOND + delta.microseconds // 1000


def parse_iso(value: Optional[str]) -> Optional[int]:
    """Parse an ISO-8601 timestamp ('Z' suffix accepted) into epoch ms.

    Returns None for empty input. Raises ValueError for malformed strings.
    """
    if not value:
        return None
    return from_datetime(datetime.fromisoformat(value.strip().replace("Z", "+00:00")))


def to_datetime(ms: int) -> datetime:
    return EPOCH + timedelta(milliseconds=ms)


def to_iso(ms: Optional[int]) -> Optional[str]:
    """Render epoch ms as '2024-05-01T10:15:00.000Z'."""
    if ms is None:
        return None
    return to_datetime(ms).strftime("%Y-%m-%dT%H:%M:%S.") + f"{ms % MS_PER_SECOND:03d}Z"


def ms_between(a: int, b: int) -> int:
    """Absolute distance between two instants."""
    return abs(b - a)


def minutes_between(a: Optional[int], b: Optional[int]) -> Optional[float]:
    if a is None or b is None:
        return None
    return ms_between(a, b) / MS_PER_MINUTE


def format_duration(ms: int) -> str:
    """HH:MM:SS, hours keep accumulating past 24."""
    total_seconds = max(ms, 0) // MS_PER_SECOND
    hours, rest = divmod(total_seconds, 3600)
    minutes, seconds = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def to_zone_iso(ms: Optional[int], tz: str) -> Optional[str]:
    """ISO string of the instant in the display zone, e.g. '...T12:15:00+02:00'."""
    if ms is None:
        return None
    return to_datetime(ms).astimezone(ZoneInfo(tz)).isoformat(timespec="seconds")


def format_local(ms: Optional[int], tz: str) -> str:
    if ms is None:
        return "-"
    return to_datetime(ms).astimezone(ZoneInfo(tz)).strftime(DISPLAY_FORMAT)
