"""Tests for the JSON resource routes."""

from unittest.mock import AsyncMock

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from ae_analytics import Analytics, AnalyticsConfig, setup_analytics
from ae_analytics.core.models import SiteHits
from ae_analytics.core.transport import TransportError


@pytest.fixture
def analytics():
    return setup_analytics(cf_account_id="test-account", cf_api_token="test-token")


@pytest.fixture
def client(analytics):
    app = FastAPI()
    app.include_router(analytics.router, prefix="/resources")
    return TestClient(app)


def _last_query(analytics) -> str:
    return analytics.client._query.await_args.args[0]


class TestBreakdownRoutes:
    """Dimension breakdown endpoints."""

    def test_paths_with_filter(self, analytics, client):
        analytics.client._query = AsyncMock(return_value=[
            {"blob3": "/", "isVisitor": 1, "isVisit": 1, "count": 3},
        ])

        response = client.get("/resources/paths?site=example.com&interval=7d&country=US")

        assert response.status_code == 200
        data = response.json()
        assert data["page"] == 1
        assert data["limit"] == 10
        assert data["counts_by_property"] == [{
            "dimension": "path", "value": "/", "visitors": 3.0, "views": 3.0,
        }]
        query = _last_query(analytics)
        assert "blob4 = 'US'" in query
        assert "blob8 = 'example.com'" in query

    def test_countries(self, analytics, client):
        analytics.client._query = AsyncMock(return_value=[{"blob4": "US", "count": 7}])

        response = client.get("/resources/countries?site=example.com&page=2&limit=5")

        assert response.status_code == 200
        assert response.json()["counts_by_property"] == []
        assert "LIMIT 10" in _last_query(analytics)

    @pytest.mark.parametrize("name,column", [
        ("referrers", "blob5"),
        ("browsers", "blob6"),
        ("devices", "blob7"),
    ])
    def test_each_dimension(self, analytics, client, name, column):
        analytics.client._query = AsyncMock(return_value=[])

        response = client.get(f"/resources/{name}?site=example.com")

        assert response.status_code == 200
        assert f"GROUP BY {column}" in _last_query(analytics)

    @pytest.mark.parametrize("params", ["page=0", "page=-1", "limit=0", "page=abc"])
    def test_invalid_pagination(self, analytics, client, params):
        analytics.client._query = AsyncMock(return_value=[])

        response = client.get(f"/resources/paths?site=example.com&{params}")

        assert response.status_code == 422
        analytics.client._query.assert_not_awaited()

    def test_unknown_site(self, analytics, client):
        analytics.client._query = AsyncMock(return_value=[])

        client.get("/resources/paths?site=@unknown")

        assert "blob8 = ''" in _last_query(analytics)

    def test_upstream_failure_is_502(self, analytics, client):
        analytics.client._query = AsyncMock(side_effect=TransportError("boom", status_code=500))

        response = client.get("/resources/paths?site=example.com")

        assert response.status_code == 502
        assert response.json()["detail"] == "Failed to fetch data from Analytics Engine"

    def test_malformed_response_is_502(self):
        """A response whose data isn't an array surfaces as a 502, not a 500."""
        config = AnalyticsConfig(cf_account_id="acct", cf_api_token="token")
        mock = httpx.MockTransport(lambda request: httpx.Response(200, json={"data": 5}))
        app = FastAPI()
        app.include_router(Analytics(config, transport=mock).router, prefix="/resources")

        response = TestClient(app).get("/resources/paths?site=example.com")

        assert response.status_code == 502


class TestStatsAndTimeSeries:
    """Headline and chart endpoints."""

    def test_stats(self, analytics, client):
        analytics.client._query = AsyncMock(return_value=[{
            "views": 10, "visitors": 5, "visits": 6,
            "total_visits": 6, "bounce_visits": 3, "avg_duration": 30,
        }])

        response = client.get("/resources/stats?site=example.com&interval=30d&timezone=Europe/Paris")

        assert response.status_code == 200
        data = response.json()
        assert data["interval"] == "30d"
        assert data["previous_interval"] == "60d"
        assert data["current"]["bounce_rate"] == 50.0
        assert data["changes"]["views"]["change_direction"] == "same"
        assert data["changes"]["views"]["percentage"] == "0%"

    def test_stats_uses_defaults(self, analytics, client):
        analytics.client._query = AsyncMock(return_value=[])

        response = client.get("/resources/stats?site=example.com")

        assert response.json()["interval"] == "7d"

    def test_timeseries(self, analytics, client):
        analytics.client._query = AsyncMock(return_value=[])

        response = client.get("/resources/timeseries?site=example.com&interval=7d")

        assert response.status_code == 200
        data = response.json()
        assert data["interval_type"] == "DAY"
        assert len(data["chart_data"]) == 7
        assert all(point["views"] == 0 for point in data["chart_data"])

    def test_timeseries_hourly(self, analytics, client):
        analytics.client._query = AsyncMock(return_value=[])

        response = client.get("/resources/timeseries?site=example.com&interval=1d")

        data = response.json()
        assert data["interval_type"] == "HOUR"
        assert len(data["chart_data"]) == 24


class TestSitesRoute:
    """Site list endpoint."""

    def test_sites_use_retention_window(self, analytics, client):
        analytics.client.get_sites_ordered_by_hits = AsyncMock(return_value=[
            SiteHits(site_id="a.com", count=10),
            SiteHits(site_id="b.com", count=2),
        ])

        response = client.get("/resources/sites?limit=5")

        assert response.status_code == 200
        assert response.json() == {"sites": ["a.com", "b.com"]}
        analytics.client.get_sites_ordered_by_hits.assert_awaited_once_with("90d", 5)

    def test_sites_query_spans_all_sites(self, analytics, client):
        analytics.client._query = AsyncMock(return_value=[{"siteId": "a.com", "count": 1}])

        response = client.get("/resources/sites")

        assert response.json() == {"sites": ["a.com"]}
        assert "blob8 =" not in _last_query(analytics)

    def test_custom_retention(self):
        config = AnalyticsConfig(
            cf_account_id="acct", cf_api_token="token", max_retention_days=30,
        )
        assert config.retention_interval == "30d"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
