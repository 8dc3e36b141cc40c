"""
Async client for querying dashboard metrics from Cloudflare Analytics Engine.

Each call resolves the interval, compiles filters, builds query text, runs
it through the transport and reconciles the rows. Comparison metrics run the
current and previous periods concurrently; if either query fails the whole
call fails.
"""
import asyncio
import logging
from datetime import datetime
from typing import Any

from .buckets import align_to_bucket, generate_empty_buckets
from .intervals import (
    DEFAULT_TIMEZONE,
    Granularity,
    date_time_range,
    previous_interval,
    resolve_interval,
    resolve_previous_interval,
    resolve_timezone,
)
from .models import (
    AnalyticsCounts,
    CountsComparison,
    DashboardStats,
    DimensionCount,
    EngagementComparison,
    EngagementMetrics,
    MetricSnapshot,
    SiteHits,
    TimeSeries,
    TimeSeriesPoint,
)
from .queries import Filters, QueryBuilder
from .reconcile import (
    accumulate_counts,
    bounce_rate,
    calculate_metrics_change,
    merge_time_series,
    paginate,
    to_number,
)
from .schema import Dimension
from .transport import QueryTransport, TransportError

logger = logging.getLogger(__name__)

UNKNOWN_SITE = "@unknown"


def resolve_site_id(site: str | None) -> str:
    """Map the dashboard's ``@unknown`` placeholder to the empty site id."""
    if not site or site == UNKNOWN_SITE:
        return ""
    return site


def _first_row(rows: list[dict[str, Any]]) -> dict[str, Any]:
    return rows[0] if rows else {}


def _counts_from_rows(rows: list[dict[str, Any]]) -> AnalyticsCounts:
    row = _first_row(rows)
    return AnalyticsCounts(
        views=to_number(row.get("views")),
        visitors=to_number(row.get("visitors")),
        visits=to_number(row.get("visits")),
    )


def _engagement_from_rows(rows: list[dict[str, Any]]) -> EngagementMetrics:
    row = _first_row(rows)
    return EngagementMetrics(
        bounce_rate=bounce_rate(row.get("total_visits"), row.get("bounce_visits")),
        duration=to_number(row.get("avg_duration")),
    )


class AnalyticsClient:
    """Client for querying analytics data from Analytics Engine."""

    def __init__(self, transport: QueryTransport, builder: QueryBuilder | None = None):
        self.transport = transport
        self.builder = builder or QueryBuilder()

    async def _query(self, query: str) -> list[dict[str, Any]]:
        """Execute a query against Analytics Engine."""
        return await self.transport.execute(query)

    # =========================================================================
    # CORE METRICS
    # =========================================================================

    async def get_counts(
        self,
        site_id: str,
        interval: str,
        tz: str = DEFAULT_TIMEZONE,
        filters: Filters = None,
        now: datetime | None = None,
    ) -> CountsComparison:
        """Views, visits and visitors for the interval and its comparison period."""
        current = resolve_interval(interval, tz, now)
        previous = resolve_previous_interval(interval, tz, now)

        try:
            current_rows, previous_rows = await asyncio.gather(
                self._query(self.builder.counts(site_id, current, filters)),
                self._query(self.builder.counts(site_id, previous, filters)),
            )
        except TransportError as exc:
            logger.error(f"Failed to fetch counts: {exc}")
            raise

        return CountsComparison(
            current=_counts_from_rows(current_rows),
            previous=_counts_from_rows(previous_rows),
        )

    async def get_engagement_metrics(
        self,
        site_id: str,
        interval: str,
        tz: str = DEFAULT_TIMEZONE,
        filters: Filters = None,
        now: datetime | None = None,
    ) -> EngagementComparison:
        """Bounce rate and average visit duration for both periods."""
        current = resolve_interval(interval, tz, now)
        previous = resolve_previous_interval(interval, tz, now)

        try:
            current_rows, previous_rows = await asyncio.gather(
                self._query(self.builder.engagement(site_id, current, filters)),
                self._query(self.builder.engagement(site_id, previous, filters)),
            )
        except TransportError as exc:
            logger.error(f"Failed to fetch engagement metrics: {exc}")
            raise

        return EngagementComparison(
            current=_engagement_from_rows(current_rows),
            previous=_engagement_from_rows(previous_rows),
        )

    async def get_stats(
        self,
        site_id: str,
        interval: str,
        tz: str = DEFAULT_TIMEZONE,
        filters: Filters = None,
        now: datetime | None = None,
    ) -> DashboardStats:
        """Headline metrics with their change from the comparison period."""
        counts, engagement = await asyncio.gather(
            self.get_counts(site_id, interval, tz, filters, now),
            self.get_engagement_metrics(site_id, interval, tz, filters, now),
        )

        current = MetricSnapshot(
            **counts.current.model_dump(),
            bounce_rate=engagement.current.bounce_rate,
            duration=engagement.current.duration,
        )
        previous = MetricSnapshot(
            **counts.previous.model_dump(),
            bounce_rate=engagement.previous.bounce_rate,
            duration=engagement.previous.duration,
        )

        return DashboardStats(
            interval=interval,
            previous_interval=previous_interval(interval),
            current=current,
            previous=previous,
            changes=calculate_metrics_change(current, previous),
        )

    # =========================================================================
    # TIME SERIES
    # =========================================================================

    async def get_views_grouped_by_interval(
        self,
        site_id: str,
        granularity: Granularity,
        start: datetime,
        end: datetime,
        tz: str = DEFAULT_TIMEZONE,
        filters: Filters = None,
    ) -> list[TimeSeriesPoint]:
        """Gap-free views/visitors/visits series over ``[start, end)``."""
        zone = resolve_timezone(tz)
        buckets = generate_empty_buckets(granularity, start, end, zone)

        query = self.builder.views_grouped_by_interval(
            site_id,
            granularity,
            align_to_bucket(start, Granularity(granularity), zone),
            end,
            zone,
            filters,
        )
        rows = await self._query(query)

        return merge_time_series(buckets, rows)

    async def get_time_series(
        self,
        site_id: str,
        interval: str,
        tz: str = DEFAULT_TIMEZONE,
        filters: Filters = None,
        now: datetime | None = None,
    ) -> TimeSeries:
        """Chart series for an interval token."""
        resolved = date_time_range(interval, tz, now)
        points = await self.get_views_grouped_by_interval(
            site_id,
            resolved.granularity,
            resolved.start,
            resolved.end,
            tz,
            filters,
        )
        return TimeSeries(granularity=resolved.granularity, points=points)

    # =========================================================================
    # DIMENSION BREAKDOWNS
    # =========================================================================

    async def get_all_counts_by_column(
        self,
        site_id: str,
        dimension: Dimension,
        interval: str,
        tz: str = DEFAULT_TIMEZONE,
        filters: Filters = None,
        page: int = 1,
        limit: int = 10,
        now: datetime | None = None,
    ) -> dict[str, AnalyticsCounts]:
        """Views, visits and visitors per dimension value for one page."""
        dimension = Dimension(dimension)
        resolved = resolve_interval(interval, tz, now)

        rows = await self._query(
            self.builder.counts_by_column(site_id, dimension, resolved, filters, page, limit)
        )

        # No OFFSET support: fetch through the end of the page, then slice.
        return accumulate_counts(paginate(rows, page, limit), dimension.column)

    async def get_visitor_count_by_column(
        self,
        site_id: str,
        dimension: Dimension,
        interval: str,
        tz: str = DEFAULT_TIMEZONE,
        filters: Filters = None,
        page: int = 1,
        limit: int = 10,
        now: datetime | None = None,
    ) -> list[DimensionCount]:
        """Visitors per dimension value for one page, largest first."""
        dimension = Dimension(dimension)
        resolved = resolve_interval(interval, tz, now)

        rows = await self._query(
            self.builder.visitor_count_by_column(site_id, dimension, resolved, filters, page, limit)
        )

        return [
            DimensionCount(
                dimension=dimension,
                value="" if row.get(dimension.column) is None else str(row.get(dimension.column)),
                visitors=to_number(row.get("count")),
            )
            for row in paginate(rows, page, limit)
        ]

    async def _get_counts_with_views(
        self,
        site_id: str,
        dimension: Dimension,
        interval: str,
        tz: str = DEFAULT_TIMEZONE,
        filters: Filters = None,
        page: int = 1,
        limit: int = 10,
        now: datetime | None = None,
    ) -> list[DimensionCount]:
        counts = await self.get_all_counts_by_column(
            site_id, dimension, interval, tz, filters, page, limit, now
        )
        result = [
            DimensionCount(
                dimension=dimension,
                value=value,
                visitors=record.visitors,
                views=record.views,
            )
            for value, record in counts.items()
        ]
        return sorted(result, key=lambda r: r.visitors, reverse=True)

    async def get_count_by_dimension(
        self,
        site_id: str,
        dimension: Dimension,
        interval: str,
        tz: str = DEFAULT_TIMEZONE,
        filters: Filters = None,
        page: int = 1,
        limit: int = 10,
        now: datetime | None = None,
    ) -> list[DimensionCount]:
        """Breakdown for any dimension; path and referrer include views."""
        dimension = Dimension(dimension)
        if dimension.includes_views:
            return await self._get_counts_with_views(
                site_id, dimension, interval, tz, filters, page, limit, now
            )
        return await self.get_visitor_count_by_column(
            site_id, dimension, interval, tz, filters, page, limit, now
        )

    async def get_count_by_path(
        self,
        site_id: str,
        interval: str,
        tz: str = DEFAULT_TIMEZONE,
        filters: Filters = None,
        page: int = 1,
    ) -> list[DimensionCount]:
        """Visitors and views per path."""
        return await self.get_count_by_dimension(
            site_id, Dimension.PATH, interval, tz, filters, page
        )

    async def get_count_by_referrer(
        self,
        site_id: str,
        interval: str,
        tz: str = DEFAULT_TIMEZONE,
        filters: Filters = None,
        page: int = 1,
    ) -> list[DimensionCount]:
        """Visitors and views per referrer."""
        return await self.get_count_by_dimension(
            site_id, Dimension.REFERRER, interval, tz, filters, page
        )

    async def get_count_by_country(
        self,
        site_id: str,
        interval: str,
        tz: str = DEFAULT_TIMEZONE,
        filters: Filters = None,
        page: int = 1,
    ) -> list[DimensionCount]:
        """New visitors per country."""
        return await self.get_count_by_dimension(
            site_id, Dimension.COUNTRY, interval, tz, filters, page
        )

    async def get_count_by_browser(
        self,
        site_id: str,
        interval: str,
        tz: str = DEFAULT_TIMEZONE,
        filters: Filters = None,
        page: int = 1,
    ) -> list[DimensionCount]:
        """New visitors per browser."""
        return await self.get_count_by_dimension(
            site_id, Dimension.BROWSER, interval, tz, filters, page
        )

    async def get_count_by_device(
        self,
        site_id: str,
        interval: str,
        tz: str = DEFAULT_TIMEZONE,
        filters: Filters = None,
        page: int = 1,
    ) -> list[DimensionCount]:
        """New visitors per device model."""
        return await self.get_count_by_dimension(
            site_id, Dimension.DEVICE, interval, tz, filters, page
        )

    # =========================================================================
    # SITES
    # =========================================================================

    async def get_sites_ordered_by_hits(
        self,
        interval: str,
        limit: int = 10,
        now: datetime | None = None,
    ) -> list[SiteHits]:
        """Sites with the most hits in the interval (UTC), busiest first."""
        resolved = resolve_interval(interval, DEFAULT_TIMEZONE, now)
        rows = await self._query(self.builder.sites_ordered_by_hits(resolved, limit or 10))

        return [
            SiteHits(site_id=str(row.get("siteId") or ""), count=to_number(row.get("count")))
            for row in rows
        ]
