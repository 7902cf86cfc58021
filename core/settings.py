"""
Core Module - Runtime Settings.

============================================================
RESPONSIBILITY
============================================================
Loads deployment settings from the environment (and a local
.env file through python-dotenv).

Thresholds that drive scoring and classification do NOT live
here; they are per-package frozen configs. This module only
holds operational knobs: database URL, cache TTL, worker pool
size, per-wallet timeouts and data-access pricing.

============================================================
ENVIRONMENT VARIABLES
============================================================
ANALYTICS_DATABASE_URL / DATABASE_URL
DASHBOARD_CACHE_TTL_SECONDS            (default 300)
BULK_RECOMPUTE_CONCURRENCY             (default 4)
BULK_RECOMPUTE_WALLET_TIMEOUT_SECONDS  (default 30)
DATA_ACCESS_PRICE_ZEC                  (default 0.001)
DATA_ACCESS_GRANT_DAYS                 (default 30)
LOG_LEVEL                              (default INFO)

============================================================
"""

import os
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


@dataclass(frozen=True)
class AnalyticsSettings:
    """Operational settings for the analytics engine."""

    database_url: Optional[str] = None
    """SQLAlchemy URL; None lets database.engine pick its default."""

    cache_ttl_seconds: float = 300.0
    """Dashboard / time-series cache lifetime (5 minutes)."""

    bulk_concurrency: int = 4
    """Max wallets recomputed at the same time."""

    bulk_wallet_timeout_seconds: float = 30.0
    """Timeout applied to each wallet in a bulk recompute."""

    data_access_price_zec: Decimal = Decimal("0.001")
    """Price of one wallet data-access grant."""

    data_access_grant_days: int = 30
    """How long a purchased grant stays active."""

    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "AnalyticsSettings":
        """Load settings from environment variables."""
        return cls(
            database_url=os.getenv("ANALYTICS_DATABASE_URL") or os.getenv("DATABASE_URL"),
            cache_ttl_seconds=float(os.getenv("DASHBOARD_CACHE_TTL_SECONDS", "300")),
            bulk_concurrency=int(os.getenv("BULK_RECOMPUTE_CONCURRENCY", "4")),
            bulk_wallet_timeout_seconds=float(os.getenv("BULK_RECOMPUTE_WALLET_TIMEOUT_SECONDS", "30")),
            data_access_price_zec=Decimal(os.getenv("DATA_ACCESS_PRICE_ZEC", "0.001")),
            data_access_grant_days=int(os.getenv("DATA_ACCESS_GRANT_DAYS", "30")),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )

    def validate(self) -> List[str]:
        """Validate settings, return list of errors."""
        errors = []

        if self.cache_ttl_seconds <= 0:
            errors.append("cache_ttl_seconds must be positive")

        if self.bulk_concurrency < 1:
            errors.append("bulk_concurrency must be at least 1")

        if self.bulk_wallet_timeout_seconds <= 0:
            errors.append("bulk_wallet_timeout_seconds must be positive")

        if self.data_access_price_zec <= 0:
            errors.append("data_access_price_zec must be positive")

        if self.data_access_grant_days < 1:
            errors.append("data_access_grant_days must be at least 1")

        return errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cache_ttl_seconds": self.cache_ttl_seconds,
            "bulk_concurrency": self.bulk_concurrency,
            "bulk_wallet_timeout_seconds": self.bulk_wallet_timeout_seconds,
            "data_access_price_zec": str(self.data_access_price_zec),
            "data_access_grant_days": self.data_access_grant_days,
            "log_level": self.log_level,
        }


_settings: Optional[AnalyticsSettings] = None


def get_settings() -> AnalyticsSettings:
    """Get the process-wide settings, loading them on first use."""
    global _settings
    if _settings is None:
        _settings = AnalyticsSettings.from_env()
    return _settings
