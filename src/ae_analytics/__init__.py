"""
Dashboard queries for Cloudflare Analytics Engine.

Usage:
    from ae_analytics import setup_analytics

    analytics = setup_analytics(
        cf_account_id="your-account-id",
        cf_api_token="your-api-token",
    )

    # Include the JSON resource routes
    app.include_router(analytics.router, prefix="/resources")

    # Or query directly
    stats = await analytics.client.get_stats("example.com", "7d", "America/New_York")
"""

import httpx

from .config import AnalyticsConfig, MissingCredentialsError
from .core import (
    AnalyticsClient,
    DashboardStats,
    Dimension,
    MetricChange,
    QueryBuilder,
    QueryTransport,
    SearchFilters,
    TimeSeriesPoint,
    TransportError,
)
from .core.schema import DATASET
from .routes import create_resources_router

__version__ = "0.1.0"
__all__ = [
    "setup_analytics", "Analytics", "AnalyticsConfig", "MissingCredentialsError",
    "AnalyticsClient", "QueryBuilder", "QueryTransport", "TransportError",
    "SearchFilters", "Dimension", "DashboardStats", "MetricChange", "TimeSeriesPoint",
]


class Analytics:
    """Main analytics interface: a configured client plus its routes."""

    def __init__(
        self,
        config: AnalyticsConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config
        self.client = AnalyticsClient(
            QueryTransport(
                cf_account_id=config.cf_account_id,
                cf_api_token=config.cf_api_token,
                transport=transport,
            ),
            QueryBuilder(config.dataset),
        )
        self.router = create_resources_router(self.client, config)


def setup_analytics(
    cf_account_id: str,
    cf_api_token: str,
    dataset: str | None = None,
    default_interval: str = "7d",
    default_timezone: str = "UTC",
) -> Analytics:
    """
    Set up analytics for a Cloudflare account.

    Args:
        cf_account_id: Cloudflare account ID
        cf_api_token: Cloudflare API token with Analytics Engine read access
        dataset: Analytics Engine dataset name (default "metricsDataset")
        default_interval: Interval used when a request doesn't specify one
        default_timezone: Timezone used when a request doesn't specify one

    Returns:
        Analytics instance with client and router

    Raises:
        MissingCredentialsError: If the account id or token is empty
    """
    config = AnalyticsConfig(
        cf_account_id=cf_account_id,
        cf_api_token=cf_api_token,
        dataset=dataset or DATASET,
        default_interval=default_interval,
        default_timezone=default_timezone,
    )
    return Analytics(config)
