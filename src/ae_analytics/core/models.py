"""
Pydantic models for analytics query results.
"""
from enum import Enum

from pydantic import BaseModel, computed_field

from .intervals import Granularity
from .schema import Dimension

NOT_APPLICABLE = "n/a"


# =============================================================================
# Counts
# =============================================================================

class AnalyticsCounts(BaseModel):
    """Sampled view/visit/visitor totals for one bucket or dimension value."""
    views: float = 0
    visits: float = 0
    visitors: float = 0


class EngagementMetrics(BaseModel):
    """Session engagement for a period."""
    bounce_rate: float = 0  # Percentage (0-100)
    duration: float = 0  # Average visit duration in seconds


class CountsComparison(BaseModel):
    current: AnalyticsCounts
    previous: AnalyticsCounts


class EngagementComparison(BaseModel):
    current: EngagementMetrics
    previous: EngagementMetrics


# =============================================================================
# Change computation
# =============================================================================

class ChangeDirection(str, Enum):
    UP = "up"
    DOWN = "down"
    SAME = "same"


class MetricChange(BaseModel):
    """A metric with its change from the comparison period.

    ``change_percent`` is signed and is None when the previous value was zero
    (a percentage change is not applicable).
    """
    value: float
    previous: float
    change_percent: float | None = None
    change_direction: ChangeDirection = ChangeDirection.SAME
    display: str | None = None  # Formatted value (e.g. "45.5%", "3m5s")

    @computed_field
    @property
    def percentage(self) -> str:
        if self.change_percent is None:
            return NOT_APPLICABLE
        return f"{abs(self.change_percent):.0f}%"


class MetricSnapshot(BaseModel):
    """All headline metrics for a single period."""
    views: float = 0
    visits: float = 0
    visitors: float = 0
    bounce_rate: float = 0
    duration: float = 0


class DashboardStats(BaseModel):
    """Headline metrics for the current and previous periods."""
    interval: str
    previous_interval: str
    current: MetricSnapshot
    previous: MetricSnapshot
    changes: dict[str, MetricChange]


# =============================================================================
# Time series
# =============================================================================

class TimeSeriesPoint(BaseModel):
    """A single bucket in a time series."""
    date: str  # Bucket start, UTC, "YYYY-MM-DD HH:MM:SS"
    views: float = 0
    visitors: float = 0
    visits: float = 0

    def as_row(self) -> tuple[str, float, float, float]:
        return (self.date, self.views, self.visitors, self.visits)


class TimeSeries(BaseModel):
    granularity: Granularity
    points: list[TimeSeriesPoint]


# =============================================================================
# Breakdowns
# =============================================================================

class DimensionCount(BaseModel):
    """One row of a dimension breakdown.

    ``views`` is only populated for dimensions that report it
    (see :attr:`Dimension.includes_views`).
    """
    dimension: Dimension
    value: str
    visitors: float
    views: float | None = None


class SiteHits(BaseModel):
    site_id: str
    count: float
