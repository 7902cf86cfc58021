"""
Privacy Enforcement Package.

============================================================
PURPOSE
============================================================
Gatekeeper for wallet data:
- Access decisions (owner / private / public / monetizable)
- Anonymized projection for non-owners
- Audited privacy mode changes with cache invalidation
- Grants, earnings and marketplace for monetizable wallets

============================================================
"""

from .types import (
    PrivacyMode,
    DataLevel,
    AccessDecision,
    TransitionCheck,
    PrivacyStats,
    EarningsSplit,
    PurchaseReceipt,
    OwnerEarningsSummary,
    MarketplaceListing,
)
from .config import MonetizationConfig, get_default_config
from .anonymizer import WalletDataAnonymizer
from .enforcer import PrivacyEnforcer, CacheInvalidator, parse_privacy_mode
from .monetization import MonetizationService, to_zec


__all__ = [
    # Types
    "PrivacyMode",
    "DataLevel",
    "AccessDecision",
    "TransitionCheck",
    "PrivacyStats",
    "EarningsSplit",
    "PurchaseReceipt",
    "OwnerEarningsSummary",
    "MarketplaceListing",
    # Config
    "MonetizationConfig",
    "get_default_config",
    # Components
    "WalletDataAnonymizer",
    "PrivacyEnforcer",
    "CacheInvalidator",
    "parse_privacy_mode",
    "MonetizationService",
    "to_zec",
]
