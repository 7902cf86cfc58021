"""
Privacy Enforcement - Configuration.

Pricing and revenue split for monetizable wallet data. The
single-access price and grant length default to the runtime
settings (DATA_ACCESS_PRICE_ZEC, DATA_ACCESS_GRANT_DAYS).
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict

from core.exceptions import ConfigurationError
from core.settings import get_settings


# ZEC amounts are stored with 8 decimal places
ZEC_QUANTUM = Decimal("0.00000001")


@dataclass(frozen=True)
class MonetizationConfig:
    """Pricing for wallet data access."""

    single_access_price_zec: Decimal = Decimal("0.001")
    owner_share: Decimal = Decimal("0.70")
    platform_fee_share: Decimal = Decimal("0.30")
    grant_days: int = 30
    default_listing_limit: int = 50

    def validate(self) -> None:
        if self.owner_share + self.platform_fee_share != Decimal("1"):
            raise ConfigurationError(
                "Owner share and platform fee must sum to 1",
                config_key="owner_share",
                actual_value=self.owner_share + self.platform_fee_share,
            )
        if self.single_access_price_zec <= 0:
            raise ConfigurationError(
                "Access price must be positive",
                config_key="single_access_price_zec",
                actual_value=self.single_access_price_zec,
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "single_access_price_zec": str(self.single_access_price_zec),
            "owner_share": str(self.owner_share),
            "platform_fee_share": str(self.platform_fee_share),
            "grant_days": self.grant_days,
            "default_listing_limit": self.default_listing_limit,
        }


def get_default_config() -> MonetizationConfig:
    """Defaults with price and grant length taken from the environment."""
    settings = get_settings()
    return MonetizationConfig(
        single_access_price_zec=settings.data_access_price_zec,
        grant_days=settings.data_access_grant_days,
    )
