"""
Privacy Enforcement - Type Definitions.

============================================================
PURPOSE
============================================================
Data contracts for access decisions, privacy mode changes
and data monetization.

============================================================
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import UUID

from storage.models.wallets import AGGREGATE_PRIVACY_MODES, PRIVACY_MODES


# ============================================================
# ENUMS
# ============================================================


class PrivacyMode(str, Enum):
    """
    Per-wallet visibility tier.

    - PRIVATE: owner only; excluded from every aggregate
    - PUBLIC: anonymized projection for anyone
    - MONETIZABLE: anonymized projection for buyers with a grant
    """

    PRIVATE = "private"
    PUBLIC = "public"
    MONETIZABLE = "monetizable"

    @classmethod
    def values(cls) -> List[str]:
        return list(PRIVACY_MODES)

    @property
    def contributes_to_aggregates(self) -> bool:
        return self.value in AGGREGATE_PRIVACY_MODES


class DataLevel(str, Enum):
    """Projection handed to an allowed requester."""

    FULL = "full"
    ANONYMIZED = "anonymized"


# ============================================================
# ACCESS
# ============================================================


@dataclass(frozen=True)
class AccessDecision:
    """
    Outcome of one access check.

    requires_payment is only True for a monetizable wallet read
    by a non-owner without an active grant.
    """

    allowed: bool
    reason: str
    data_level: Optional[DataLevel] = None
    requires_payment: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "allowed": self.allowed,
            "reason": self.reason,
            "data_level": self.data_level.value if self.data_level else None,
            "requires_payment": self.requires_payment,
        }


@dataclass(frozen=True)
class TransitionCheck:
    """Result of validate_privacy_transition."""

    valid: bool
    requires_setup: bool = False
    message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "requires_setup": self.requires_setup,
            "message": self.message,
        }


@dataclass(frozen=True)
class PrivacyStats:
    """Wallet counts per privacy mode for a project."""

    private: int = 0
    public: int = 0
    monetizable: int = 0

    @property
    def total(self) -> int:
        return self.private + self.public + self.monetizable

    def to_dict(self) -> Dict[str, int]:
        return {
            "private": self.private,
            "public": self.public,
            "monetizable": self.monetizable,
            "total": self.total,
        }


# ============================================================
# MONETIZATION
# ============================================================


@dataclass(frozen=True)
class EarningsSplit:
    """A payment split between wallet owner and platform (8 decimals)."""

    total: Decimal
    owner_earnings: Decimal
    platform_fee: Decimal

    def to_dict(self) -> Dict[str, str]:
        return {
            "total": str(self.total),
            "owner_earnings": str(self.owner_earnings),
            "platform_fee": str(self.platform_fee),
        }


@dataclass(frozen=True)
class PurchaseReceipt:
    """Grant state after a recorded purchase."""

    wallet_id: UUID
    buyer_id: UUID
    owner_id: UUID
    expires_at: datetime
    purchase_count: int
    split: EarningsSplit

    def to_dict(self) -> Dict[str, Any]:
        return {
            "wallet_id": str(self.wallet_id),
            "buyer_id": str(self.buyer_id),
            "owner_id": str(self.owner_id),
            "expires_at": self.expires_at.isoformat(),
            "purchase_count": self.purchase_count,
            "split": self.split.to_dict(),
        }


@dataclass(frozen=True)
class OwnerEarningsSummary:
    """Ledger totals for one wallet owner."""

    total_sales: int = 0
    total_earnings_zec: Decimal = Decimal("0")
    total_fees_zec: Decimal = Decimal("0")
    pending_earnings_zec: Decimal = Decimal("0")
    paid_earnings_zec: Decimal = Decimal("0")

    @property
    def available_for_withdrawal_zec(self) -> Decimal:
        return self.pending_earnings_zec

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_sales": self.total_sales,
            "total_earnings_zec": str(self.total_earnings_zec),
            "total_fees_zec": str(self.total_fees_zec),
            "pending_earnings_zec": str(self.pending_earnings_zec),
            "paid_earnings_zec": str(self.paid_earnings_zec),
            "available_for_withdrawal_zec": str(self.available_for_withdrawal_zec),
        }


@dataclass(frozen=True)
class MarketplaceListing:
    """A monetizable wallet as shown to prospective buyers."""

    wallet_id: UUID
    wallet_type: str
    price_zec: Decimal
    metrics_preview: Dict[str, Any] = field(default_factory=dict)
    purchase_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "wallet_id": str(self.wallet_id),
            "wallet_type": self.wallet_type,
            "price_zec": str(self.price_zec),
            "metrics_preview": dict(self.metrics_preview),
            "popularity": {"purchase_count": self.purchase_count},
        }
