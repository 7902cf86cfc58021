"""
Activity Metrics - Daily Rollup Calculator.

============================================================
PURPOSE
============================================================
Turns a wallet's processed transactions into one activity
rollup per calendar day. The rollups feed productivity scoring,
cohort retention and every dashboard time series.

============================================================
DESIGN PRINCIPLES
============================================================
- Idempotent: re-processing a day overwrites the same row
- Days are UTC calendar days
- Volume counts absolute values (inflows and outflows alike)
- Session injected; the caller commits

============================================================
USAGE
============================================================
    calculator = ActivityRollupCalculator(session)
    calculator.rebuild_wallet(wallet_id)
    session.commit()

============================================================
"""

import logging
from dataclasses import asdict, dataclass
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from core.clock import ClockProtocol, get_clock, start_of_day
from core.exceptions import NotFoundError
from storage.models.activity import ActivityRollup
from storage.models.wallets import ProcessedTransaction
from storage.repositories.transactions import ActivityRollupRepository, TransactionRepository
from storage.repositories.wallets import WalletRepository


logger = logging.getLogger(__name__)


# Transaction types with a dedicated rollup counter
TYPE_COUNTERS = {
    "transfer": "transfers_count",
    "swap": "swaps_count",
    "bridge": "bridges_count",
    "shielded": "shielded_count",
}

RAPID_GAP_MINUTES = 5
SPACED_GAP_MINUTES = 60


@dataclass(frozen=True)
class DailyActivityMetrics:
    """Computed rollup values for one wallet-day."""

    activity_date: date
    transaction_count: int
    total_volume_zatoshi: int
    total_fees_paid: int
    transfers_count: int
    swaps_count: int
    bridges_count: int
    shielded_count: int
    is_active: bool
    is_returning: bool
    days_since_creation: int
    sequence_complexity_score: int

    def to_values(self) -> Dict[str, Any]:
        """Column values for the rollup upsert."""
        values = asdict(self)
        values.pop("activity_date")
        return values


def calculate_sequence_complexity(transactions: Sequence[ProcessedTransaction]) -> int:
    """
    Score how involved a day's transaction sequence is (0-100).

    - min(count * 5, 30) for volume of activity
    - 10 per distinct transaction type
    - 5 per gap under 5 minutes, 3 per gap over 60 minutes
    - 15 per shielded transaction
    """
    complexity = min(len(transactions) * 5, 30)
    complexity += len({tx.tx_type for tx in transactions}) * 10

    for previous, current in zip(transactions, transactions[1:]):
        gap_minutes = (current.block_timestamp - previous.block_timestamp).total_seconds() / 60
        if gap_minutes < RAPID_GAP_MINUTES:
            complexity += 5
        elif gap_minutes > SPACED_GAP_MINUTES:
            complexity += 3

    complexity += sum(15 for tx in transactions if tx.is_shielded)

    return min(complexity, 100)


class ActivityRollupCalculator:
    """
    Builds and upserts daily activity rollups.

    One instance is bound to one session.
    """

    def __init__(self, session: Session, clock: Optional[ClockProtocol] = None):
        self._session = session
        self._clock = clock or get_clock()
        self._wallets = WalletRepository(session)
        self._transactions = TransactionRepository(session)
        self._rollups = ActivityRollupRepository(session)

    # =========================================================
    # DAILY METRICS
    # =========================================================

    def calculate_daily(self, wallet_id: UUID, day: date) -> Optional[DailyActivityMetrics]:
        """
        Compute the rollup for one wallet-day without writing it.

        Returns:
            The metrics, or None if the wallet had no transactions that day

        Raises:
            NotFoundError: Unknown wallet
        """
        wallet = self._wallets.get_by_id(wallet_id)
        if wallet is None:
            raise NotFoundError("wallet", wallet_id)

        transactions = self._transactions.list_for_day(wallet_id, day)
        if not transactions:
            logger.debug(f"No transactions for wallet {wallet_id} on {day}")
            return None

        counters = {column: 0 for column in TYPE_COUNTERS.values()}
        for tx in transactions:
            column = TYPE_COUNTERS.get(tx.tx_type)
            if column:
                counters[column] += 1

        days_since_creation = (start_of_day(day) - wallet.created_at) // timedelta(days=1)

        return DailyActivityMetrics(
            activity_date=day,
            transaction_count=len(transactions),
            total_volume_zatoshi=sum(abs(tx.value_zatoshi or 0) for tx in transactions),
            total_fees_paid=sum(tx.fee_zatoshi or 0 for tx in transactions),
            is_active=True,
            is_returning=self._rollups.has_active_before(wallet_id, day),
            days_since_creation=max(0, days_since_creation),
            sequence_complexity_score=calculate_sequence_complexity(transactions),
            **counters,
        )

    def process_day(self, wallet_id: UUID, day: date) -> Optional[ActivityRollup]:
        """Calculate and upsert one wallet-day. No-op without transactions."""
        metrics = self.calculate_daily(wallet_id, day)
        if metrics is None:
            return None

        rollup = self._rollups.upsert(wallet_id, day, metrics.to_values())
        logger.debug(
            f"Rollup for wallet {wallet_id} on {day}: "
            f"{metrics.transaction_count} tx, complexity {metrics.sequence_complexity_score}"
        )
        return rollup

    def rebuild_wallet(self, wallet_id: UUID) -> List[ActivityRollup]:
        """
        Upsert a rollup for every day the wallet has transactions.

        Days are processed oldest first so is_returning sees the
        earlier rollups.
        """
        if self._wallets.get_by_id(wallet_id) is None:
            raise NotFoundError("wallet", wallet_id)

        days = sorted({tx.block_timestamp.date() for tx in self._transactions.list_for_wallet(wallet_id)})
        rollups = [self.process_day(wallet_id, day) for day in days]

        logger.info(f"Rebuilt {len(rollups)} activity rollups for wallet {wallet_id}")
        return [rollup for rollup in rollups if rollup is not None]

    def process_days(self, wallet_ids: Sequence[UUID], day: date) -> int:
        """
        Upsert one day for several wallets.

        Returns:
            Number of wallets that had activity on the day
        """
        processed = 0
        for wallet_id in wallet_ids:
            if self.process_day(wallet_id, day) is not None:
                processed += 1

        logger.info(f"Processed {processed}/{len(wallet_ids)} wallets for {day}")
        return processed

    # =========================================================
    # WEEKLY SUMMARY
    # =========================================================

    def calculate_weekly(self, wallet_id: UUID, week_start: date) -> Dict[str, Any]:
        """Aggregate the active rollups of the seven days starting at week_start."""
        week_end = week_start + timedelta(days=6)
        rollups = [
            rollup for rollup in self._rollups.list_for_wallet(
                wallet_id,
                after=week_start - timedelta(days=1),
                until=week_end,
            )
            if rollup.is_active
        ]

        complexities = [r.sequence_complexity_score or 0 for r in rollups]

        return {
            "wallet_id": str(wallet_id),
            "week_start": week_start.isoformat(),
            "week_end": week_end.isoformat(),
            "active_days": len(rollups),
            "total_transactions": sum(r.transaction_count for r in rollups),
            "total_volume_zatoshi": sum(r.total_volume_zatoshi for r in rollups),
            "total_fees_paid": sum(r.total_fees_paid for r in rollups),
            "transfers": sum(r.transfers_count for r in rollups),
            "swaps": sum(r.swaps_count for r in rollups),
            "bridges": sum(r.bridges_count for r in rollups),
            "shielded": sum(r.shielded_count for r in rollups),
            "avg_complexity": round(sum(complexities) / len(complexities), 2) if complexities else 0,
            "returning_days": sum(1 for r in rollups if r.is_returning),
        }
