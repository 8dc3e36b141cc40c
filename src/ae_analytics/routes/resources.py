"""
JSON resource routes backing the dashboard cards.

Each endpoint takes the common request parameters (site, interval,
timezone, search filters and, for breakdowns, page/limit) and returns the
reconciled query results.
"""
import logging
from collections.abc import Awaitable
from typing import TypeVar

from fastapi import APIRouter, HTTPException, Query, Request

from ..config import AnalyticsConfig
from ..core.client import AnalyticsClient, resolve_site_id
from ..core.filters import SearchFilters
from ..core.schema import Dimension
from ..core.transport import TransportError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DIMENSION_ROUTES = {
    "paths": Dimension.PATH,
    "referrers": Dimension.REFERRER,
    "browsers": Dimension.BROWSER,
    "countries": Dimension.COUNTRY,
    "devices": Dimension.DEVICE,
}


async def _fetch(name: str, coro: Awaitable[T]) -> T:
    """Await a client call, turning upstream failures into a 502."""
    try:
        return await coro
    except TransportError as exc:
        logger.error(f"Query '{name}' failed: {exc}")
        raise HTTPException(
            status_code=502,
            detail="Failed to fetch data from Analytics Engine",
        ) from exc


def create_resources_router(client: AnalyticsClient, config: AnalyticsConfig) -> APIRouter:
    """Create the resource router for a configured client."""
    router = APIRouter()

    def _common(site: str, interval: str | None, timezone: str | None) -> tuple[str, str, str]:
        return (
            resolve_site_id(site),
            interval or config.default_interval,
            timezone or config.default_timezone,
        )

    @router.get("/stats")
    async def stats(
        request: Request,
        site: str = "",
        interval: str | None = None,
        timezone: str | None = None,
    ):
        """Headline counts and engagement, with change vs. the previous period."""
        site_id, interval, timezone = _common(site, interval, timezone)
        filters = SearchFilters.from_params(request.query_params)
        return await _fetch("stats", client.get_stats(site_id, interval, timezone, filters))

    @router.get("/timeseries")
    async def timeseries(
        request: Request,
        site: str = "",
        interval: str | None = None,
        timezone: str | None = None,
    ):
        """Gap-free chart data for the interval."""
        site_id, interval, timezone = _common(site, interval, timezone)
        filters = SearchFilters.from_params(request.query_params)
        series = await _fetch(
            "timeseries", client.get_time_series(site_id, interval, timezone, filters)
        )
        return {"chart_data": series.points, "interval_type": series.granularity}

    def _breakdown_endpoint(dimension: Dimension):
        async def breakdown(
            request: Request,
            site: str = "",
            interval: str | None = None,
            timezone: str | None = None,
            page: int = Query(1, ge=1),
            limit: int | None = Query(None, ge=1),
        ):
            site_id, interval, timezone = _common(site, interval, timezone)
            filters = SearchFilters.from_params(request.query_params)
            limit = limit or config.default_limit
            counts = await _fetch(
                dimension.value,
                client.get_count_by_dimension(
                    site_id, dimension, interval, timezone, filters, page, limit
                ),
            )
            return {"counts_by_property": counts, "page": page, "limit": limit}

        breakdown.__doc__ = f"Visitor counts by {dimension.value}."
        return breakdown

    for name, dimension in DIMENSION_ROUTES.items():
        router.add_api_route(f"/{name}", _breakdown_endpoint(dimension), methods=["GET"], name=name)

    @router.get("/sites")
    async def sites(limit: int = Query(10, ge=1)):
        """Sites active during the retention window, busiest first."""
        hits = await _fetch(
            "sites",
            client.get_sites_ordered_by_hits(config.retention_interval, limit),
        )
        return {"sites": [h.site_id for h in hits]}

    return router
