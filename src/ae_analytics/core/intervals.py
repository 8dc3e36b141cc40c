"""
Interval tokens and their concrete time ranges.

A token is one of ``today``, ``yesterday`` or ``<N>d``. Ranges are anchored
in the caller's timezone (midnight is a local concept) and handed to the
query layer as UTC instants, half-open ``[start, end)``.
"""
import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from enum import Enum
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "UTC"
DEFAULT_INTERVAL = "1d"

_DAYS_TOKEN = re.compile(r"^(\d+)d$")

# Not a uniform "double the window" rule: tokens missing here fall back to 1d.
PREVIOUS_INTERVALS = {
    "today": "yesterday",
    "yesterday": "2d",
    "7d": "14d",
    "30d": "60d",
    "90d": "180d",
}


class Granularity(str, Enum):
    """Width of a time-series bucket."""

    HOUR = "HOUR"
    DAY = "DAY"


@dataclass(frozen=True)
class ResolvedInterval:
    """A concrete half-open ``[start, end)`` range in UTC."""

    start: datetime
    end: datetime
    granularity: Granularity


def resolve_timezone(name: str | None) -> ZoneInfo:
    """Look up an IANA zone, falling back to UTC for unknown names."""
    if not name:
        return ZoneInfo(DEFAULT_TIMEZONE)
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown timezone {name!r}, falling back to {DEFAULT_TIMEZONE}")
        return ZoneInfo(DEFAULT_TIMEZONE)


def parse_interval(token: str | None) -> int | None:
    """Return the day count of an ``<N>d`` token, or None if it isn't one."""
    match = _DAYS_TOKEN.match(token or "")
    if not match:
        return None
    days = int(match.group(1))
    return days if days >= 1 else None


def interval_granularity(token: str | None) -> Granularity:
    """Bucket width for a token: hourly for single-day views, daily otherwise."""
    if token in ("today", "yesterday"):
        return Granularity.HOUR
    days = parse_interval(token)
    if days is None or days == 1:
        return Granularity.HOUR
    return Granularity.DAY


def previous_interval(token: str | None) -> str:
    """Token used as the comparison period for ``token``."""
    return PREVIOUS_INTERVALS.get(token or "", DEFAULT_INTERVAL)


def local_midnight(day: date, tz: ZoneInfo) -> datetime:
    """Start of a calendar day in ``tz``, as a UTC instant."""
    return datetime.combine(day, time.min, tzinfo=tz).astimezone(timezone.utc)


def _utc_now(now: datetime | None) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc)


def resolve_interval(
    token: str | None,
    tz: str | None = DEFAULT_TIMEZONE,
    now: datetime | None = None,
) -> ResolvedInterval:
    """Resolve an interval token into a concrete range.

    Args:
        token: Interval token (today, yesterday, 1d, 7d, 30d, 90d, <N>d)
        tz: IANA timezone name used to find local day boundaries
        now: Current instant; defaults to the wall clock

    Returns:
        ResolvedInterval with UTC start/end and the bucket granularity.
        Unrecognized tokens resolve exactly like ``1d``.
    """
    zone = resolve_timezone(tz)
    current = _utc_now(now)
    today = current.astimezone(zone).date()

    if token == "today":
        start, end = local_midnight(today, zone), current
    elif token == "yesterday":
        start = local_midnight(today - timedelta(days=1), zone)
        end = local_midnight(today, zone)
    else:
        days = parse_interval(token) or 1
        start, end = current - timedelta(days=days), current

    return ResolvedInterval(start=start, end=end, granularity=interval_granularity(token))


def resolve_previous_interval(
    token: str | None,
    tz: str | None = DEFAULT_TIMEZONE,
    now: datetime | None = None,
) -> ResolvedInterval:
    """Resolve the comparison range for ``token`` via the previous-token table."""
    return resolve_interval(previous_interval(token), tz, now)


def date_time_range(
    token: str | None,
    tz: str | None = DEFAULT_TIMEZONE,
    now: datetime | None = None,
) -> ResolvedInterval:
    """Range covered by the time-series chart.

    Same as :func:`resolve_interval`, except the start is moved up to the
    first bucket boundary so that every bucket in the chart is complete.
    """
    from .buckets import align_to_bucket

    resolved = resolve_interval(token, tz, now)
    start = align_to_bucket(resolved.start, resolved.granularity, resolve_timezone(tz))
    return ResolvedInterval(start=start, end=resolved.end, granularity=resolved.granularity)
