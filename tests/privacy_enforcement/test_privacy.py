"""
Tests for privacy enforcement.

============================================================
PURPOSE
============================================================
- Access decisions for owner, private, public, monetizable
- Anonymized projection never leaks identifiers
- Mode changes take effect on the next read and are audited
- Batch changes are all or nothing
- Cache invalidators fire on every change

============================================================
"""

import uuid
from unittest.mock import MagicMock

import pytest

from core.exceptions import (
    NotFoundError,
    PaymentRequiredError,
    UnauthorizedError,
    ValidationError,
)
from privacy_enforcement.anonymizer import WalletDataAnonymizer
from privacy_enforcement.enforcer import PrivacyEnforcer
from privacy_enforcement.monetization import MonetizationService
from privacy_enforcement.types import DataLevel, PrivacyMode
from tests.conftest import NOW


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def enforcer(session, clock):
    return PrivacyEnforcer(session, clock=clock)


@pytest.fixture
def owner(factory):
    return factory.user()


@pytest.fixture
def stranger(factory):
    return factory.user()


@pytest.fixture
def project(factory, owner):
    return factory.project(owner=owner)


class TestAccessDecisions:
    """Tests for check_access and get_wallet_data."""

    def test_owner_gets_full_data_even_when_private(self, enforcer, factory, project, owner):
        wallet = factory.wallet(project, privacy_mode="private")

        decision = enforcer.check_access(wallet.id, owner.id)
        data = enforcer.get_wallet_data(wallet.id, owner.id)

        assert decision.allowed
        assert decision.reason == "Owner access"
        assert decision.data_level == DataLevel.FULL
        assert data["address"] == wallet.address

    def test_private_denied_to_others(self, enforcer, factory, project, stranger):
        wallet = factory.wallet(project, privacy_mode="private")

        decision = enforcer.check_access(wallet.id, stranger.id)
        assert not decision.allowed
        assert decision.reason == "Wallet is private"

        with pytest.raises(UnauthorizedError):
            enforcer.get_wallet_data(wallet.id, stranger.id)

    def test_public_is_anonymized(self, enforcer, factory, project, stranger):
        wallet = factory.wallet(project, privacy_mode="public")
        factory.rollup(wallet.id, NOW.date(), transaction_count=3)

        data = enforcer.get_wallet_data(wallet.id, stranger.id)

        assert data["anonymized"] is True
        assert data["wallet_type"] == "t"
        assert data["metrics"]["transaction_count"] == 3
        assert str(wallet.id) not in repr(data)
        assert wallet.address not in repr(data)

    def test_monetizable_requires_payment(self, enforcer, factory, project, stranger):
        wallet = factory.wallet(project, privacy_mode="monetizable")

        decision = enforcer.check_access(wallet.id, stranger.id)
        assert decision.requires_payment
        assert decision.reason == "Payment required for monetizable data"

        with pytest.raises(PaymentRequiredError):
            enforcer.get_wallet_data(wallet.id, stranger.id)

    def test_monetizable_with_explicit_payment(self, enforcer, factory, project, stranger):
        wallet = factory.wallet(project, privacy_mode="monetizable")

        decision = enforcer.check_access(wallet.id, stranger.id, paid=True)

        assert decision.allowed
        assert decision.reason == "Paid access granted"
        assert decision.data_level == DataLevel.ANONYMIZED

    def test_monetizable_with_active_grant(self, session, enforcer, factory, project, stranger, clock):
        wallet = factory.wallet(project, privacy_mode="monetizable")
        MonetizationService(session, clock=clock).record_purchase(wallet.id, stranger.id)

        assert enforcer.check_access(wallet.id, stranger.id).allowed

        clock.advance(days=31)
        assert enforcer.check_access(wallet.id, stranger.id).requires_payment

    def test_unknown_wallet(self, enforcer, stranger):
        with pytest.raises(NotFoundError):
            enforcer.check_access(uuid.uuid4(), stranger.id)


class TestAnonymizer:
    """Tests for the anonymized projection."""

    def test_identifiers_are_dropped(self):
        profile = {
            "id": "w-1",
            "wallet_id": "w-1",
            "address": "t1secret",
            "project_id": "p-1",
            "owner_id": "u-1",
            "user_id": "u-1",
            "wallet_type": "z",
            "active_days": 4,
            "behavior_pattern": "privacy_focused",
        }

        result = WalletDataAnonymizer().anonymize(profile)

        flat = repr(result)
        for secret in ("w-1", "t1secret", "p-1", "u-1"):
            assert secret not in flat
        assert result["wallet_type"] == "z"
        assert result["metrics"]["active_days"] == 4
        assert result["metrics"]["productivity_score"] == 0
        assert result["behavior"]["behavior_pattern"] == "privacy_focused"
        assert result["behavior"]["loyalty_score"] is None

    def test_enforcer_batch_projection(self, enforcer):
        profiles = [
            {"wallet_id": "w-1", "wallet_type": "t", "transaction_count": 3},
            {"wallet_id": "w-2", "wallet_type": "z"},
        ]

        results = enforcer.anonymize_wallet_data_batch(profiles)

        assert [r["wallet_type"] for r in results] == ["t", "z"]
        assert [r["metrics"]["transaction_count"] for r in results] == [3, 0]
        assert all(r["anonymized"] for r in results)
        assert enforcer.anonymize_wallet_data(profiles[0]) == results[0]

    @pytest.mark.parametrize("mode,contributes", [
        (PrivacyMode.PRIVATE, False),
        (PrivacyMode.PUBLIC, True),
        (PrivacyMode.MONETIZABLE, True),
    ])
    def test_aggregate_contribution(self, mode, contributes):
        assert mode.contributes_to_aggregates is contributes


class TestPrivacyModeUpdates:
    """Tests for mode changes, audit and invalidation."""

    def test_change_applies_to_next_read(self, enforcer, factory, project, owner, stranger):
        wallet = factory.wallet(project, privacy_mode="public")
        assert enforcer.check_access(wallet.id, stranger.id).allowed

        result = enforcer.update_privacy_mode(wallet.id, "private", owner.id)

        assert result["privacy_mode"] == "private"
        assert enforcer.check_privacy_mode(wallet.id) == PrivacyMode.PRIVATE
        assert not enforcer.check_access(wallet.id, stranger.id).allowed

    def test_invalidators_receive_project_id(self, session, clock, factory, project, owner):
        invalidator = MagicMock()
        enforcer = PrivacyEnforcer(session, clock=clock, invalidators=[invalidator])
        wallet = factory.wallet(project)

        enforcer.update_privacy_mode(wallet.id, "monetizable", owner.id)

        invalidator.assert_called_once_with(project.id)

    def test_failing_invalidator_does_not_block_change(self, enforcer, factory, project, owner):
        enforcer.register_invalidator(MagicMock(side_effect=RuntimeError("cache down")))
        wallet = factory.wallet(project)

        enforcer.update_privacy_mode(wallet.id, "private", owner.id)

        assert enforcer.check_privacy_mode(wallet.id) == PrivacyMode.PRIVATE

    def test_only_owner_can_change(self, enforcer, factory, project, stranger):
        wallet = factory.wallet(project)
        with pytest.raises(UnauthorizedError):
            enforcer.update_privacy_mode(wallet.id, "private", stranger.id)
        assert enforcer.check_privacy_mode(wallet.id) == PrivacyMode.PUBLIC

    def test_invalid_mode(self, enforcer, factory, project, owner):
        wallet = factory.wallet(project)
        with pytest.raises(ValidationError):
            enforcer.update_privacy_mode(wallet.id, "secret", owner.id)

    def test_audit_log_newest_first(self, enforcer, factory, project, owner, clock):
        wallet = factory.wallet(project, privacy_mode="public")

        enforcer.update_privacy_mode(wallet.id, "private", owner.id)
        clock.advance(minutes=5)
        enforcer.update_privacy_mode(wallet.id, "monetizable", owner.id)

        log = enforcer.get_privacy_audit_log(wallet.id)

        assert [entry["privacy_mode"] for entry in log] == ["monetizable", "private"]
        assert [entry["previous_mode"] for entry in log] == ["private", "public"]
        assert log[0]["changed_by"] == str(owner.id)

    def test_batch_update(self, enforcer, factory, project, owner):
        wallets = [factory.wallet(project) for _ in range(3)]

        results = enforcer.batch_update_privacy_mode([w.id for w in wallets], "private", owner.id)

        assert len(results) == 3
        assert all(enforcer.check_privacy_mode(w.id) == PrivacyMode.PRIVATE for w in wallets)

    def test_batch_update_is_all_or_nothing(self, enforcer, factory, project, owner):
        mine = factory.wallet(project)
        theirs = factory.wallet(factory.project())

        with pytest.raises(UnauthorizedError, match="Some wallets not found or access denied"):
            enforcer.batch_update_privacy_mode([mine.id, theirs.id], "private", owner.id)

        assert enforcer.check_privacy_mode(mine.id) == PrivacyMode.PUBLIC
        assert enforcer.get_privacy_audit_log(mine.id) == []

    def test_batch_update_unknown_wallet(self, enforcer, factory, project, owner):
        mine = factory.wallet(project)
        with pytest.raises(UnauthorizedError):
            enforcer.batch_update_privacy_mode([mine.id, uuid.uuid4()], "public", owner.id)

    @pytest.mark.parametrize("current,new,valid,setup", [
        ("private", "public", True, False),
        ("public", "monetizable", True, True),
        ("monetizable", "private", True, False),
        ("public", "hidden", False, False),
    ])
    def test_transition_check(self, current, new, valid, setup):
        check = PrivacyEnforcer.validate_privacy_transition(current, new)
        assert check.valid is valid
        assert check.requires_setup is setup


class TestPrivacyQueries:
    """Tests for stats and filters."""

    @pytest.fixture
    def wallets(self, factory, project):
        return {
            "private": factory.wallet(project, privacy_mode="private"),
            "public": factory.wallet(project, privacy_mode="public"),
            "monetizable": factory.wallet(project, privacy_mode="monetizable"),
        }

    def test_stats(self, enforcer, project, wallets):
        stats = enforcer.get_privacy_stats(project.id)
        assert stats.to_dict() == {"private": 1, "public": 1, "monetizable": 1, "total": 3}

    def test_aggregate_eligible_excludes_private(self, enforcer, project, wallets):
        eligible = set(enforcer.aggregate_eligible_wallet_ids(project.id))
        assert eligible == {wallets["public"].id, wallets["monetizable"].id}

    def test_filter_keeps_input_order(self, enforcer, wallets):
        ids = [wallets["monetizable"].id, wallets["private"].id, wallets["public"].id]
        assert enforcer.filter_wallets_by_privacy(ids) == [ids[0], ids[2]]

    def test_wallets_by_mode(self, enforcer, project, wallets):
        listed = enforcer.get_wallets_by_privacy_mode(project.id, "private")
        assert [item["id"] for item in listed] == [str(wallets["private"].id)]
