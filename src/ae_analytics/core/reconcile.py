"""
Reconciling raw query rows into dashboard-ready results.
"""
import logging
import math
from collections.abc import Iterable, Mapping, Sequence
from typing import Any, TypeVar

from pydantic import BaseModel

from .buckets import parse_bucket_key
from .models import AnalyticsCounts, ChangeDirection, MetricChange, TimeSeriesPoint
from .queries import check_pagination

logger = logging.getLogger(__name__)

T = TypeVar("T")


def to_number(value: Any) -> float:
    """Coerce a backend value to a number; anything unusable counts as 0."""
    if value is None:
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number


# =========================================================================
# TIME SERIES
# =========================================================================

def merge_time_series(
    buckets: Mapping[str, AnalyticsCounts],
    rows: Iterable[Mapping[str, Any]],
) -> list[TimeSeriesPoint]:
    """Overlay query rows onto zero-seeded buckets.

    A row replaces its bucket's counts outright. Buckets without a row keep
    their zeros; rows that don't match a generated bucket are dropped.
    """
    merged = {key: counts.model_copy() for key, counts in buckets.items()}

    for row in rows:
        key = parse_bucket_key(row.get("bucket"))
        if key is None or key not in merged:
            logger.debug(f"Dropping time series row outside generated buckets: {row!r}")
            continue
        merged[key] = AnalyticsCounts(
            views=to_number(row.get("views")),
            visitors=to_number(row.get("visitors")),
            visits=to_number(row.get("visits")),
        )

    return [
        TimeSeriesPoint(date=key, **merged[key].model_dump())
        for key in sorted(merged)
    ]


# =========================================================================
# DIMENSION BREAKDOWNS
# =========================================================================

def accumulate_counts(
    rows: Iterable[Mapping[str, Any]],
    column: str,
) -> dict[str, AnalyticsCounts]:
    """Fold indicator-tagged rows into one record per dimension value.

    Every row adds to ``views``; rows flagged ``isVisit`` also add to
    ``visits`` and rows flagged ``isVisitor`` to ``visitors``.
    """
    result: dict[str, AnalyticsCounts] = {}

    for row in rows:
        value = row.get(column)
        key = "" if value is None else str(value)
        counts = result.setdefault(key, AnalyticsCounts())

        count = to_number(row.get("count"))
        if to_number(row.get("isVisit")) == 1:
            counts.visits += count
        if to_number(row.get("isVisitor")) == 1:
            counts.visitors += count
        counts.views += count

    return result


def paginate(rows: Sequence[T], page: int = 1, limit: int = 10) -> list[T]:
    """Slice one page out of rows fetched with ``LIMIT limit * page``."""
    check_pagination(page, limit)
    return list(rows[limit * (page - 1):limit * page])


# =========================================================================
# CHANGE COMPUTATION
# =========================================================================

def calculate_change(current: float, previous: float) -> MetricChange:
    """Percentage change from ``previous`` to ``current``.

    A zero previous value has no meaningful percentage change; the result
    then carries no change_percent and a neutral direction.
    """
    current = to_number(current)
    previous = to_number(previous)

    if previous == 0:
        return MetricChange(value=current, previous=previous)

    change = ((current - previous) / previous) * 100
    # Direction comes from the unrounded change; tiny changes still count.
    direction = (
        ChangeDirection.UP if change > 0
        else ChangeDirection.DOWN if change < 0
        else ChangeDirection.SAME
    )
    return MetricChange(
        value=current,
        previous=previous,
        change_percent=round(change, 1),
        change_direction=direction,
    )


def calculate_metrics_change(
    current: BaseModel | Mapping[str, float],
    previous: BaseModel | Mapping[str, float],
) -> dict[str, MetricChange]:
    """Change and display value for every metric in ``current``."""
    if isinstance(current, BaseModel):
        current = current.model_dump()
    if isinstance(previous, BaseModel):
        previous = previous.model_dump()

    changes = {}
    for name, value in current.items():
        change = calculate_change(value, previous.get(name, 0))
        change.display = format_metric_value(name, change.value)
        changes[name] = change
    return changes


def bounce_rate(total_visits: Any, bounce_visits: Any) -> float:
    """Share of visits that bounced, as a percentage."""
    total = to_number(total_visits)
    bounces = to_number(bounce_visits)
    return (bounces / total) * 100 if total > 0 else 0.0


# =========================================================================
# FORMATTING
# =========================================================================

def format_duration(seconds: float) -> str:
    """Format seconds as "0s", "42s" or "3m5s"."""
    if not seconds:
        return "0s"

    minutes = int(seconds // 60)
    remaining = int(seconds % 60)

    if minutes == 0:
        return f"{remaining}s"
    return f"{minutes}m{remaining}s"


_COUNT_UNITS = ((1, ""), (1_000, "K"), (1_000_000, "M"), (1_000_000_000, "B"))


def format_count(value: float) -> str:
    """Compact count notation: 950, 1.2K, 3.4M."""
    unit = 0
    while unit + 1 < len(_COUNT_UNITS) and abs(value) >= _COUNT_UNITS[unit + 1][0]:
        unit += 1

    scaled = round(value / _COUNT_UNITS[unit][0], 1 if unit else 0)
    # Rounding can reach the next unit (999,950 -> 1000.0K)
    if abs(scaled) >= 1000 and unit + 1 < len(_COUNT_UNITS):
        unit += 1
        scaled = round(value / _COUNT_UNITS[unit][0], 1)

    if unit == 0:
        return f"{scaled:.0f}"
    return f"{scaled:.1f}".rstrip("0").rstrip(".") + _COUNT_UNITS[unit][1]


def format_metric_value(name: str, value: float) -> str:
    if name == "bounce_rate":
        return f"{value:.1f}%"
    if name == "duration":
        return format_duration(value)
    return format_count(value)
