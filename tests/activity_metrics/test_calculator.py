"""
Tests for daily activity rollups.
"""

import uuid
from datetime import date, datetime, timedelta

import pytest

from activity_metrics.calculator import ActivityRollupCalculator, calculate_sequence_complexity
from core.exceptions import NotFoundError
from storage.repositories.transactions import ActivityRollupRepository


DAY = date(2024, 6, 10)


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def calculator(session, clock):
    return ActivityRollupCalculator(session, clock=clock)


@pytest.fixture
def wallet(factory):
    return factory.wallet(factory.project(), created_at=datetime(2024, 6, 1))


class TestSequenceComplexity:
    """Tests for the per-day complexity score."""

    def test_single_transfer(self, factory, wallet):
        tx = factory.tx(wallet.id, datetime(2024, 6, 10, 9, 0))
        # 5 for one tx, 10 for one type
        assert calculate_sequence_complexity([tx]) == 15

    def test_rapid_and_shielded_sequence(self, factory, wallet):
        first = factory.tx(wallet.id, datetime(2024, 6, 10, 9, 0), tx_type="transfer")
        second = factory.tx(
            wallet.id, datetime(2024, 6, 10, 9, 2), tx_type="shielded", is_shielded=True
        )
        # 10 (count) + 20 (types) + 5 (rapid gap) + 15 (shielded)
        assert calculate_sequence_complexity([first, second]) == 50


class TestActivityRollupCalculator:
    """Tests for rollup building and upserts."""

    def test_calculate_daily_counts_categories(self, calculator, factory, wallet):
        factory.tx(wallet.id, datetime(2024, 6, 10, 9, 0), tx_type="transfer", value_zatoshi=-500)
        factory.tx(wallet.id, datetime(2024, 6, 10, 11, 0), tx_type="swap", value_zatoshi=1500)
        factory.tx(wallet.id, datetime(2024, 6, 11, 9, 0), tx_type="bridge")

        metrics = calculator.calculate_daily(wallet.id, DAY)

        assert metrics.transaction_count == 2
        assert metrics.transfers_count == 1
        assert metrics.swaps_count == 1
        assert metrics.bridges_count == 0
        assert metrics.total_volume_zatoshi == 2000
        assert metrics.days_since_creation == 9
        assert metrics.is_active
        assert not metrics.is_returning

    def test_no_transactions_gives_none(self, calculator, wallet):
        assert calculator.calculate_daily(wallet.id, DAY) is None
        assert calculator.process_day(wallet.id, DAY) is None

    def test_unknown_wallet(self, calculator):
        with pytest.raises(NotFoundError):
            calculator.calculate_daily(uuid.uuid4(), DAY)

    def test_process_day_is_idempotent(self, calculator, factory, wallet, session):
        factory.tx(wallet.id, datetime(2024, 6, 10, 9, 0))

        first = calculator.process_day(wallet.id, DAY)
        second = calculator.process_day(wallet.id, DAY)

        assert first.id == second.id
        assert len(ActivityRollupRepository(session).list_for_wallet(wallet.id)) == 1

    def test_process_days_counts_active_wallets(self, calculator, factory, wallet):
        quiet = factory.wallet(wallet.project)
        factory.tx(wallet.id, datetime(2024, 6, 10, 9, 0))

        assert calculator.process_days([wallet.id, quiet.id], DAY) == 1

    def test_rebuild_marks_returning_days(self, calculator, factory, wallet):
        factory.tx(wallet.id, datetime(2024, 6, 10, 9, 0))
        factory.tx(wallet.id, datetime(2024, 6, 12, 9, 0))

        rollups = calculator.rebuild_wallet(wallet.id)

        assert [r.activity_date for r in rollups] == [DAY, DAY + timedelta(days=2)]
        assert [r.is_returning for r in rollups] == [False, True]

    def test_weekly_summary(self, calculator, factory, wallet):
        factory.tx(wallet.id, datetime(2024, 6, 10, 9, 0), tx_type="swap")
        factory.tx(wallet.id, datetime(2024, 6, 13, 9, 0))
        factory.tx(wallet.id, datetime(2024, 6, 20, 9, 0))
        calculator.rebuild_wallet(wallet.id)

        summary = calculator.calculate_weekly(wallet.id, DAY)

        assert summary["active_days"] == 2
        assert summary["total_transactions"] == 2
        assert summary["swaps"] == 1
        assert summary["returning_days"] == 1
