"""
Query text for the Analytics Engine SQL API.

The API accepts SELECT statements as raw text: no bound parameters, no
OFFSET, no COALESCE. Every interpolated identifier comes from the column
mapping table and every literal goes through ``quote_literal``, so the
builder is the only place query text is assembled.
"""
import re
from collections.abc import Mapping
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from .filters import SearchFilters, compile_filters, quote_literal
from .intervals import Granularity, ResolvedInterval, resolve_timezone
from .schema import COLUMN_MAPPINGS, DATASET, SAMPLE_INTERVAL, Dimension

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

Filters = SearchFilters | Mapping[str, str | None] | None


def datetime_literal(instant: datetime) -> str:
    """Render an instant as ``toDateTime('YYYY-MM-DD HH:MM:SS')`` in UTC."""
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    utc = instant.astimezone(timezone.utc)
    return f"toDateTime('{utc.strftime('%Y-%m-%d %H:%M:%S')}')"


def check_pagination(page: int, limit: int) -> None:
    """Validate page/limit.

    Raises:
        ValueError: If either is not a positive integer
    """
    for name, value in (("page", page), ("limit", limit)):
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise ValueError(f"{name} must be a positive integer, got {value!r}")


class QueryBuilder:
    """Builds query text for the dashboard's aggregate shapes."""

    def __init__(self, dataset: str = DATASET):
        if not _IDENTIFIER.match(dataset):
            raise ValueError(f"Invalid dataset name: {dataset!r}")
        self.dataset = dataset

    def _where(
        self,
        site_id: str,
        start: datetime,
        end: datetime,
        filters: Filters,
        extra: str = "",
    ) -> str:
        """Range, site and filter predicates shared by every site-scoped query."""
        return f"""WHERE timestamp >= {datetime_literal(start)}
                AND timestamp < {datetime_literal(end)}
                AND {COLUMN_MAPPINGS['siteId']} = {quote_literal(site_id)}{extra}
                {compile_filters(filters)}"""

    # =========================================================================
    # SCALAR AGGREGATES
    # =========================================================================

    def counts(self, site_id: str, interval: ResolvedInterval, filters: Filters = None) -> str:
        """Single-row views/visitors/visits totals."""
        return f"""
            SELECT
                SUM({SAMPLE_INTERVAL}) as views,
                SUM(IF({COLUMN_MAPPINGS['newVisitor']} = 1, {SAMPLE_INTERVAL}, 0)) as visitors,
                SUM(IF({COLUMN_MAPPINGS['newSession']} = 1, {SAMPLE_INTERVAL}, 0)) as visits
            FROM {self.dataset}
            {self._where(site_id, interval.start, interval.end, filters)}"""

    def engagement(self, site_id: str, interval: ResolvedInterval, filters: Filters = None) -> str:
        """Single-row session totals used to derive bounce rate and duration.

        A bounce is a session-starting row whose session saw a single page view.
        """
        new_session = COLUMN_MAPPINGS["newSession"]
        return f"""
            SELECT
                SUM(IF({new_session} = 1, {SAMPLE_INTERVAL}, 0)) as total_visits,
                SUM(IF({COLUMN_MAPPINGS['pageViews']} = 1 AND {new_session} = 1, {SAMPLE_INTERVAL}, 0)) as bounce_visits,
                AVG(IF({new_session} = 1, {COLUMN_MAPPINGS['visitDuration']}, 0.0)) as avg_duration
            FROM {self.dataset}
            {self._where(site_id, interval.start, interval.end, filters)}"""

    # =========================================================================
    # DIMENSION BREAKDOWNS
    # =========================================================================

    def counts_by_column(
        self,
        site_id: str,
        dimension: Dimension,
        interval: ResolvedInterval,
        filters: Filters = None,
        page: int = 1,
        limit: int = 10,
    ) -> str:
        """Counts grouped by a dimension and both indicator flags.

        A single dimension value comes back split over up to four rows (one
        per isVisitor/isVisit combination). There is no OFFSET, so the query
        fetches everything up to the end of the requested page.
        """
        check_pagination(page, limit)
        column = Dimension(dimension).column
        new_visitor = COLUMN_MAPPINGS["newVisitor"]
        new_session = COLUMN_MAPPINGS["newSession"]
        return f"""
            SELECT {column},
                {new_visitor} as isVisitor,
                {new_session} as isVisit,
                SUM({SAMPLE_INTERVAL}) as count
            FROM {self.dataset}
            {self._where(site_id, interval.start, interval.end, filters)}
            GROUP BY {column}, {new_visitor}, {new_session}
            ORDER BY count DESC
            LIMIT {limit * page}"""

    def visitor_count_by_column(
        self,
        site_id: str,
        dimension: Dimension,
        interval: ResolvedInterval,
        filters: Filters = None,
        page: int = 1,
        limit: int = 10,
    ) -> str:
        """New-visitor counts grouped by a dimension, largest first."""
        check_pagination(page, limit)
        column = Dimension(dimension).column
        new_visitors_only = f" AND {COLUMN_MAPPINGS['newVisitor']} = 1"
        return f"""
            SELECT {column}, SUM({SAMPLE_INTERVAL}) as count
            FROM {self.dataset}
            {self._where(site_id, interval.start, interval.end, filters, extra=new_visitors_only)}
            GROUP BY {column}
            ORDER BY count DESC
            LIMIT {limit * page}"""

    # =========================================================================
    # TIME SERIES
    # =========================================================================

    def views_grouped_by_interval(
        self,
        site_id: str,
        granularity: Granularity,
        start: datetime,
        end: datetime,
        tz: str | ZoneInfo | None = None,
        filters: Filters = None,
    ) -> str:
        """Views/visitors/visits per time bucket, oldest first.

        Buckets are truncated in ``tz`` and returned as UTC timestamps. Empty
        buckets are not returned at all.
        """
        granularity = Granularity(granularity)
        zone = tz if isinstance(tz, ZoneInfo) else resolve_timezone(tz)
        return f"""
            SELECT
                toStartOfInterval(timestamp, INTERVAL '1' {granularity.value}, {quote_literal(zone.key)}) as _bucket,
                toDateTime(_bucket, 'Etc/UTC') as bucket,
                SUM({SAMPLE_INTERVAL}) as views,
                SUM(IF({COLUMN_MAPPINGS['newVisitor']} = 1, {SAMPLE_INTERVAL}, 0)) as visitors,
                SUM(IF({COLUMN_MAPPINGS['newSession']} = 1, {SAMPLE_INTERVAL}, 0)) as visits
            FROM {self.dataset}
            {self._where(site_id, start, end, filters)}
            GROUP BY _bucket
            ORDER BY _bucket ASC"""

    # =========================================================================
    # SITES
    # =========================================================================

    def sites_ordered_by_hits(self, interval: ResolvedInterval, limit: int = 10) -> str:
        """Hit counts per site across the whole dataset."""
        check_pagination(1, limit)
        return f"""
            SELECT SUM({SAMPLE_INTERVAL}) as count,
                {COLUMN_MAPPINGS['siteId']} as siteId
            FROM {self.dataset}
            WHERE timestamp >= {datetime_literal(interval.start)}
                AND timestamp < {datetime_literal(interval.end)}
            GROUP BY siteId
            ORDER BY count DESC
            LIMIT {limit}"""
