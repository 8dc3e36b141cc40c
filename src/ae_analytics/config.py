"""
Configuration for ae-analytics.
"""
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass

from .core.intervals import parse_interval, resolve_timezone
from .core.schema import DATASET

logger = logging.getLogger(__name__)

MAX_RETENTION_DAYS = 90


class MissingCredentialsError(ValueError):
    """Raised when the Cloudflare account id or API token is not set."""
    pass


@dataclass
class AnalyticsConfig:
    """Configuration for a single analytics instance."""

    # Required
    cf_account_id: str
    cf_api_token: str  # Token with Account Analytics read access

    # Dataset the tracker writes to
    dataset: str = DATASET

    # Request defaults
    default_interval: str = "7d"
    default_timezone: str = "UTC"
    default_limit: int = 10

    # Analytics Engine keeps data for 90 days
    max_retention_days: int = MAX_RETENTION_DAYS

    def __post_init__(self):
        """Validate configuration after initialization."""
        if not self.cf_account_id:
            raise MissingCredentialsError("Missing credentials: CF_ACCOUNT_ID is not set.")
        if not self.cf_api_token:
            raise MissingCredentialsError("Missing credentials: CF_BEARER_TOKEN is not set.")

        if parse_interval(self.default_interval) is None and self.default_interval not in ("today", "yesterday"):
            logger.warning(
                f"Default interval {self.default_interval!r} is not recognized; "
                f"queries will fall back to 1d"
            )
        # Normalizes unknown zones to UTC (and logs the fallback)
        self.default_timezone = resolve_timezone(self.default_timezone).key

        if self.default_limit < 1:
            raise ValueError(f"default_limit must be positive, got {self.default_limit}")

    @property
    def retention_interval(self) -> str:
        """Interval token covering the whole retention window."""
        return f"{self.max_retention_days}d"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "AnalyticsConfig":
        """Build a config from ``CF_ACCOUNT_ID`` / ``CF_BEARER_TOKEN``.

        Optional overrides: ``AE_DATASET``, ``AE_DEFAULT_INTERVAL`` and
        ``AE_DEFAULT_TIMEZONE``.
        """
        env = os.environ if environ is None else environ
        return cls(
            cf_account_id=env.get("CF_ACCOUNT_ID", ""),
            cf_api_token=env.get("CF_BEARER_TOKEN", ""),
            dataset=env.get("AE_DATASET", DATASET),
            default_interval=env.get("AE_DEFAULT_INTERVAL", "7d"),
            default_timezone=env.get("AE_DEFAULT_TIMEZONE", "UTC"),
        )
