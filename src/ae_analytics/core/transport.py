"""
HTTP transport for the Cloudflare Analytics Engine SQL API.
"""
import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

API_BASE = "https://api.cloudflare.com/client/v4/accounts"


class AnalyticsEngineError(Exception):
    """Base class for errors raised while talking to Analytics Engine."""


class TransportError(AnalyticsEngineError):
    """A query could not be completed (network failure or non-2xx status)."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        reason: str = "",
        body: str = "",
    ):
        super().__init__(message)
        self.status_code = status_code
        self.reason = reason
        self.body = body


class QueryTransport:
    """Sends query text to Analytics Engine and returns the result rows.

    Each query is a single POST with no retry. The optional ``transport`` is
    handed to httpx, which lets tests swap in ``httpx.MockTransport``.
    """

    def __init__(
        self,
        cf_account_id: str,
        cf_api_token: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.account_id = cf_account_id
        self.api_token = cf_api_token
        self.transport = transport
        self.url = f"{API_BASE}/{cf_account_id}/analytics_engine/sql"
        self.headers = {
            "content-type": "application/json;charset=UTF-8",
            "X-Source": "Cloudflare-Workers",
            "Authorization": f"Bearer {cf_api_token}",
        }

    async def execute(self, query: str) -> list[dict[str, Any]]:
        """Run a query and return the ``data`` rows of the response envelope.

        Raises:
            TransportError: On network failure, non-2xx status or a body
                that isn't a JSON object
        """
        logger.debug(f"Analytics Engine query: {query}")

        try:
            async with httpx.AsyncClient(transport=self.transport) as client:
                response = await client.post(self.url, content=query, headers=self.headers)
        except httpx.HTTPError as exc:
            logger.error(f"Analytics Engine request failed: {exc}")
            raise TransportError(f"Analytics Engine request failed: {exc}") from exc

        if not response.is_success:
            logger.error(
                f"API Error Response: status={response.status_code} "
                f"reason={response.reason_phrase} body={response.text}"
            )
            raise TransportError(
                f"Analytics Engine returned {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
                reason=response.reason_phrase,
                body=response.text,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            logger.error(f"Analytics Engine returned a non-JSON body: {response.text[:200]}")
            raise TransportError(
                "Analytics Engine returned a non-JSON body",
                status_code=response.status_code,
                body=response.text,
            ) from exc

        if not isinstance(payload, dict):
            raise TransportError(
                "Analytics Engine returned an unexpected response shape",
                status_code=response.status_code,
                body=response.text,
            )

        data = payload.get("data") or []
        if not isinstance(data, list):
            logger.error(f"Analytics Engine returned non-list data: {response.text[:200]}")
            raise TransportError(
                "Analytics Engine returned an unexpected response shape",
                status_code=response.status_code,
                body=response.text,
            )
        return [row for row in data if isinstance(row, dict)]
