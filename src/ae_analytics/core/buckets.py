"""
Zero-seeded time buckets.

Analytics Engine only returns groups that contain data and has no COALESCE,
so every bucket the chart should show is generated here first and query
rows are written over it afterwards.
"""
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from .intervals import Granularity, local_midnight
from .models import AnalyticsCounts

KEY_FORMAT = "%Y-%m-%d %H:%M:%S"


def bucket_key(instant: datetime) -> str:
    """Format an instant as a UTC bucket key."""
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc).strftime(KEY_FORMAT)


def parse_bucket_key(value) -> str | None:
    """Normalize a backend bucket timestamp into a bucket key.

    Accepts "YYYY-MM-DD HH:MM:SS" as well as ISO-8601 strings; naive values
    are taken to be UTC. Returns None if the value can't be parsed.
    """
    if value is None:
        return None
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return bucket_key(parsed)


def start_of_local_day(instant: datetime, tz: ZoneInfo) -> datetime:
    return local_midnight(instant.astimezone(tz).date(), tz)


def align_to_bucket(start: datetime, granularity: Granularity, tz: ZoneInfo) -> datetime:
    """Return the first local bucket boundary at or after ``start`` (UTC)."""
    start = start.astimezone(timezone.utc)

    if granularity == Granularity.HOUR:
        local = start.astimezone(tz)
        boundary = local.replace(minute=0, second=0, microsecond=0).astimezone(timezone.utc)
        if boundary < start:
            boundary += timedelta(hours=1)
        return boundary

    if granularity == Granularity.DAY:
        boundary = start_of_local_day(start, tz)
        if boundary < start:
            boundary = _next_local_day(boundary, tz)
        return boundary

    raise ValueError(f"Invalid interval type: {granularity!r}")


def _next_local_day(day_start: datetime, tz: ZoneInfo) -> datetime:
    # Local days are 23-25h long around DST changes; overshoot, then snap back.
    return start_of_local_day(day_start + timedelta(hours=25), tz)


def generate_empty_buckets(
    granularity: Granularity,
    start: datetime,
    end: datetime,
    tz: ZoneInfo,
) -> dict[str, AnalyticsCounts]:
    """Build an ordered map of every bucket in ``[start, end)``, seeded at zero.

    Args:
        granularity: HOUR or DAY
        start: Range start (aware datetime)
        end: Range end, exclusive (aware datetime)
        tz: Zone whose hour/day boundaries define the buckets

    Returns:
        Dict of bucket key -> zero counts, in ascending key order
    """
    granularity = Granularity(granularity)
    end = end.astimezone(timezone.utc)
    cursor = align_to_bucket(start, granularity, tz)

    buckets: dict[str, AnalyticsCounts] = {}
    while cursor < end:
        buckets[bucket_key(cursor)] = AnalyticsCounts()
        if granularity == Granularity.DAY:
            cursor = _next_local_day(cursor, tz)
        else:
            cursor += timedelta(hours=1)

    return buckets
