"""
Tests for data monetization: grants, earnings split, marketplace.
"""

import uuid
from datetime import timedelta
from decimal import Decimal

import pytest

from core.exceptions import ConfigurationError, NotFoundError, ValidationError
from privacy_enforcement.config import MonetizationConfig
from privacy_enforcement.monetization import MonetizationService, to_zec
from productivity_scoring.engine import ProductivityScoringEngine
from tests.conftest import NOW


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def service(session, clock):
    return MonetizationService(session, MonetizationConfig(), clock=clock)


@pytest.fixture
def owner(factory):
    return factory.user()


@pytest.fixture
def buyer(factory):
    return factory.user()


@pytest.fixture
def project(factory, owner):
    return factory.project(owner=owner)


class TestEarningsSplit:
    """Tests for the owner / platform split."""

    def test_default_price_split(self, service):
        split = service.split_amount(Decimal("0.001"))

        assert split.platform_fee == Decimal("0.00030000")
        assert split.owner_earnings == Decimal("0.00070000")
        assert split.owner_earnings + split.platform_fee == split.total

    def test_split_is_exact_at_eight_decimals(self, service):
        split = service.split_amount("0.00000001")
        assert split.platform_fee == Decimal("0.00000000")
        assert split.owner_earnings == Decimal("0.00000001")

    def test_to_zec_rounds_half_up(self):
        assert to_zec("0.000000005") == Decimal("0.00000001")

    def test_shares_must_sum_to_one(self, session):
        with pytest.raises(ConfigurationError):
            MonetizationService(session, MonetizationConfig(owner_share=Decimal("0.8")))


class TestPurchases:
    """Tests for grant creation and extension."""

    def test_first_purchase_creates_grant(self, service, factory, project, owner, buyer):
        wallet = factory.wallet(project, privacy_mode="monetizable")

        receipt = service.record_purchase(wallet.id, buyer.id)

        assert receipt.owner_id == owner.id
        assert receipt.purchase_count == 1
        assert receipt.expires_at == NOW + timedelta(days=30)
        assert receipt.split.owner_earnings == Decimal("0.00070000")
        assert service.has_active_grant(wallet.id, buyer.id)

    def test_repurchase_extends_from_current_expiry(self, service, factory, project, buyer, clock):
        wallet = factory.wallet(project, privacy_mode="monetizable")
        service.record_purchase(wallet.id, buyer.id)

        clock.advance(days=10)
        receipt = service.record_purchase(wallet.id, buyer.id)

        assert receipt.purchase_count == 2
        assert receipt.expires_at == NOW + timedelta(days=60)

    def test_repurchase_after_expiry_starts_from_now(self, service, factory, project, buyer, clock):
        wallet = factory.wallet(project, privacy_mode="monetizable")
        service.record_purchase(wallet.id, buyer.id)

        clock.advance(days=45)
        assert not service.has_active_grant(wallet.id, buyer.id)
        receipt = service.record_purchase(wallet.id, buyer.id)

        assert receipt.expires_at == NOW + timedelta(days=75)

    def test_owner_cannot_buy_own_wallet(self, service, factory, project, owner):
        wallet = factory.wallet(project, privacy_mode="monetizable")
        with pytest.raises(ValidationError):
            service.record_purchase(wallet.id, owner.id)

    @pytest.mark.parametrize("mode", ["private", "public"])
    def test_only_monetizable_wallets_are_sold(self, service, factory, project, buyer, mode):
        wallet = factory.wallet(project, privacy_mode=mode)
        with pytest.raises(ValidationError):
            service.record_purchase(wallet.id, buyer.id)

    def test_unknown_wallet(self, service, buyer):
        with pytest.raises(NotFoundError):
            service.record_purchase(uuid.uuid4(), buyer.id)

    def test_owner_earnings(self, service, factory, project, owner):
        wallet = factory.wallet(project, privacy_mode="monetizable")
        for _ in range(2):
            service.record_purchase(wallet.id, factory.user().id)

        earnings = service.get_owner_earnings(owner.id)

        assert earnings.total_sales == 2
        assert earnings.total_earnings_zec == Decimal("0.0014")
        assert earnings.total_fees_zec == Decimal("0.0006")
        assert earnings.available_for_withdrawal_zec == Decimal("0.0014")
        assert earnings.paid_earnings_zec == Decimal("0")


class TestMarketplace:
    """Tests for the monetizable wallet listing."""

    @pytest.fixture
    def listed(self, session, clock, factory, project):
        strong = factory.wallet(project, privacy_mode="monetizable")
        weak = factory.wallet(project, privacy_mode="monetizable", wallet_type="z")
        unscored = factory.wallet(project, privacy_mode="monetizable")
        factory.wallet(project, privacy_mode="public")
        for days_ago in range(10):
            factory.rollup(strong.id, NOW.date() - timedelta(days=days_ago))

        engine = ProductivityScoringEngine(session, clock=clock)
        engine.recompute(strong.id)
        engine.recompute(weak.id)
        return strong, weak, unscored

    def test_ordered_by_score_unscored_last(self, service, listed):
        strong, weak, unscored = listed

        listings = service.get_marketplace_listing()

        assert [item.wallet_id for item in listings] == [strong.id, weak.id, unscored.id]
        assert listings[0].metrics_preview["active_days"] == 10
        assert listings[0].price_zec == Decimal("0.001")

    def test_min_score_drops_unscored(self, service, listed):
        strong, weak, unscored = listed

        listings = service.get_marketplace_listing(min_productivity_score=0)

        assert unscored.id not in [item.wallet_id for item in listings]

    def test_filter_by_type_and_limit(self, service, listed):
        strong, weak, unscored = listed

        assert [i.wallet_id for i in service.get_marketplace_listing(wallet_type="z")] == [weak.id]
        assert len(service.get_marketplace_listing(limit=1)) == 1

    def test_listing_is_anonymized(self, service, listed, buyer):
        strong = listed[0]
        service.record_purchase(strong.id, buyer.id)

        item = service.get_marketplace_listing()[0].to_dict()

        assert item["popularity"]["purchase_count"] == 1
        assert "address" not in item
        assert "project_id" not in item
