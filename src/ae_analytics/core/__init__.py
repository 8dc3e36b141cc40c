"""
Core analytics module.

Contains the query builder, result reconciliation and the client for
querying Analytics Engine.
"""

from .client import AnalyticsClient, resolve_site_id
from .filters import SearchFilters, compile_filters
from .intervals import (
    Granularity,
    ResolvedInterval,
    previous_interval,
    resolve_interval,
)
from .models import (
    AnalyticsCounts,
    ChangeDirection,
    CountsComparison,
    DashboardStats,
    DimensionCount,
    EngagementComparison,
    EngagementMetrics,
    MetricChange,
    MetricSnapshot,
    SiteHits,
    TimeSeries,
    TimeSeriesPoint,
)
from .queries import QueryBuilder
from .schema import COLUMN_MAPPINGS, Dimension
from .transport import AnalyticsEngineError, QueryTransport, TransportError

__all__ = [
    "AnalyticsClient", "QueryBuilder", "QueryTransport", "resolve_site_id",
    "AnalyticsEngineError", "TransportError",
    "SearchFilters", "compile_filters",
    "Granularity", "ResolvedInterval", "resolve_interval", "previous_interval",
    "COLUMN_MAPPINGS", "Dimension",
    "AnalyticsCounts", "EngagementMetrics", "CountsComparison", "EngagementComparison",
    "ChangeDirection", "MetricChange", "MetricSnapshot", "DashboardStats",
    "TimeSeries", "TimeSeriesPoint", "DimensionCount", "SiteHits",
]
