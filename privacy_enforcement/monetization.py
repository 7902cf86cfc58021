"""
Privacy Enforcement - Data Monetization.

============================================================
PURPOSE
============================================================
Bookkeeping for paid access to monetizable wallets:
1. Access grants (one per buyer and wallet, extendable)
2. Owner earnings ledger (owner share / platform fee split)
3. Marketplace listing of monetizable wallets

Invoice creation and settlement happen in the payment
collaborator; it calls record_purchase once a payment settles.

============================================================
PRICING
============================================================
- Single wallet access: 0.001 ZEC for a 30-day grant
- Split: 70% owner, 30% platform, quantized to 8 decimals;
  the owner share is total - fee so the parts sum exactly

============================================================
"""

import logging
from datetime import timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from core.clock import ClockProtocol, get_clock
from core.exceptions import NotFoundError, ValidationError
from storage.repositories.privacy import DataAccessGrantRepository, OwnerEarningRepository
from storage.repositories.scoring import ProductivityScoreRepository
from storage.repositories.transactions import ActivityRollupRepository
from storage.repositories.wallets import WalletRepository

from .config import ZEC_QUANTUM, MonetizationConfig, get_default_config
from .types import (
    EarningsSplit,
    MarketplaceListing,
    OwnerEarningsSummary,
    PrivacyMode,
    PurchaseReceipt,
)


logger = logging.getLogger(__name__)


def to_zec(amount) -> Decimal:
    """Quantize an amount to 8 decimal places."""
    return Decimal(str(amount)).quantize(ZEC_QUANTUM, rounding=ROUND_HALF_UP)


class MonetizationService:
    """Grants, earnings and marketplace for monetizable wallets."""

    def __init__(
        self,
        session: Session,
        config: Optional[MonetizationConfig] = None,
        clock: Optional[ClockProtocol] = None,
    ):
        self.config = config or get_default_config()
        self.config.validate()
        self._clock = clock or get_clock()
        self._wallets = WalletRepository(session)
        self._grants = DataAccessGrantRepository(session)
        self._earnings = OwnerEarningRepository(session)
        self._scores = ProductivityScoreRepository(session)
        self._rollups = ActivityRollupRepository(session)

    # =========================================================
    # EARNINGS
    # =========================================================

    def split_amount(self, amount) -> EarningsSplit:
        """Split a payment into owner earnings and platform fee."""
        total = to_zec(amount)
        fee = to_zec(total * self.config.platform_fee_share)
        return EarningsSplit(total=total, owner_earnings=total - fee, platform_fee=fee)

    def distribute_earnings(
        self,
        wallet_id: UUID,
        amount,
        buyer_id: Optional[UUID] = None,
    ) -> EarningsSplit:
        """
        Record the owner's share of a payment in the earnings ledger.

        Raises:
            NotFoundError: Wallet (or its owner) does not exist
        """
        owner_id = self._wallets.get_owner_id(wallet_id)
        if owner_id is None:
            raise NotFoundError("wallet", wallet_id)

        split = self.split_amount(amount)
        self._earnings.record_earning(
            owner_id=owner_id,
            wallet_id=wallet_id,
            buyer_id=buyer_id,
            amount_zec=split.total,
            owner_share_zec=split.owner_earnings,
            platform_fee_zec=split.platform_fee,
            created_at=self._clock.now(),
        )
        return split

    def get_owner_earnings(self, user_id: UUID) -> OwnerEarningsSummary:
        entries = self._earnings.list_for_owner(user_id)
        return OwnerEarningsSummary(
            total_sales=len(entries),
            total_earnings_zec=sum((e.owner_share_zec for e in entries), Decimal("0")),
            total_fees_zec=sum((e.platform_fee_zec for e in entries), Decimal("0")),
            pending_earnings_zec=sum(
                (e.owner_share_zec for e in entries if e.status == "pending"), Decimal("0")
            ),
            paid_earnings_zec=sum(
                (e.owner_share_zec for e in entries if e.status == "paid"), Decimal("0")
            ),
        )

    # =========================================================
    # GRANTS
    # =========================================================

    def record_purchase(
        self,
        wallet_id: UUID,
        buyer_id: UUID,
        amount=None,
    ) -> PurchaseReceipt:
        """
        Grant (or extend) a buyer's access after a settled payment.

        An existing grant is extended by grant_days from the later
        of now and its current expiry.

        Raises:
            NotFoundError: Unknown wallet
            ValidationError: Wallet not monetizable, or buyer owns it
        """
        wallet = self._wallets.get_by_id(wallet_id)
        if wallet is None:
            raise NotFoundError("wallet", wallet_id)

        if wallet.privacy_mode != PrivacyMode.MONETIZABLE.value:
            raise ValidationError(
                "Wallet is not available for monetization",
                field="privacy_mode",
                value=wallet.privacy_mode,
            )

        owner_id = self._wallets.get_owner_id(wallet_id)
        if owner_id == buyer_id:
            raise ValidationError("Owners cannot purchase access to their own wallet", field="buyer_id")

        price = to_zec(amount if amount is not None else self.config.single_access_price_zec)
        if price <= 0:
            raise ValidationError("Purchase amount must be positive", field="amount", value=price)

        now = self._clock.now()
        grant_length = timedelta(days=self.config.grant_days)

        grant = self._grants.get(buyer_id, wallet_id)
        if grant is None:
            grant = self._grants.create_grant(buyer_id, wallet_id, price, now + grant_length)
        else:
            grant = self._grants.extend_grant(grant, price, max(now, grant.expires_at) + grant_length)

        split = self.distribute_earnings(wallet_id, price, buyer_id=buyer_id)

        logger.info(
            f"Recorded purchase of wallet {wallet_id} by {buyer_id}: {price} ZEC, "
            f"grant until {grant.expires_at.isoformat()}"
        )
        return PurchaseReceipt(
            wallet_id=wallet_id,
            buyer_id=buyer_id,
            owner_id=owner_id,
            expires_at=grant.expires_at,
            purchase_count=grant.purchase_count,
            split=split,
        )

    def has_active_grant(self, wallet_id: UUID, buyer_id: UUID) -> bool:
        return self._grants.has_active(buyer_id, wallet_id, self._clock.now())

    # =========================================================
    # MARKETPLACE
    # =========================================================

    def get_marketplace_listing(
        self,
        min_productivity_score: Optional[int] = None,
        wallet_type: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[MarketplaceListing]:
        """
        Active monetizable wallets with an anonymized metrics preview.

        Ordered by productivity score, highest first; wallets never
        scored sort last and are dropped by a minimum-score filter.
        """
        wallets = self._wallets.list_monetizable(wallet_type=wallet_type)
        wallet_ids = [wallet.id for wallet in wallets]

        scores: Dict[UUID, int] = {
            row.wallet_id: row.total_score for row in self._scores.list_for_wallets(wallet_ids)
        }
        purchases = self._grants.purchase_counts(wallet_ids)

        active_days: Dict[UUID, int] = {}
        transactions: Dict[UUID, int] = {}
        for rollup in self._rollups.list_for_wallets(wallet_ids):
            if rollup.is_active:
                active_days[rollup.wallet_id] = active_days.get(rollup.wallet_id, 0) + 1
            transactions[rollup.wallet_id] = transactions.get(rollup.wallet_id, 0) + rollup.transaction_count

        if min_productivity_score is not None:
            wallets = [w for w in wallets if scores.get(w.id, -1) >= min_productivity_score]

        wallets.sort(key=lambda w: (w.id not in scores, -scores.get(w.id, 0)))

        listings = [
            MarketplaceListing(
                wallet_id=wallet.id,
                wallet_type=wallet.wallet_type,
                price_zec=self.config.single_access_price_zec,
                metrics_preview={
                    "active_days": active_days.get(wallet.id, 0),
                    "total_transactions": transactions.get(wallet.id, 0),
                    "productivity_score": scores.get(wallet.id, 0),
                },
                purchase_count=purchases.get(wallet.id, 0),
            )
            for wallet in wallets
        ]
        return listings[: limit or self.config.default_listing_limit]
