"""
Transaction and Activity Repositories.

============================================================
PURPOSE
============================================================
- TransactionRepository: ordered reads over indexed transactions
  (the indexer owns writes; add_transaction is the ingest hook
  used by embedding code and tests)
- ActivityRollupRepository: idempotent upsert and windowed reads
  of daily activity rollups

============================================================
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from core.clock import end_of_day, start_of_day
from storage.models.activity import ActivityRollup
from storage.models.wallets import ProcessedTransaction
from storage.repositories.base import BaseRepository


class TransactionRepository(BaseRepository[ProcessedTransaction]):
    """Read access to a wallet's processed transactions."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, ProcessedTransaction, "TransactionRepository")

    def add_transaction(
        self,
        wallet_id: UUID,
        txid: str,
        block_timestamp: datetime,
        tx_type: str = "transfer",
        value_zatoshi: int = 0,
        fee_zatoshi: int = 0,
        is_shielded: bool = False,
        shielded_pool_entry: bool = False,
        shielded_pool_exit: bool = False,
        block_height: int = 0,
    ) -> ProcessedTransaction:
        return self._add(ProcessedTransaction(
            wallet_id=wallet_id,
            txid=txid,
            block_height=block_height,
            block_timestamp=block_timestamp,
            tx_type=tx_type,
            value_zatoshi=value_zatoshi,
            fee_zatoshi=fee_zatoshi,
            is_shielded=is_shielded,
            shielded_pool_entry=shielded_pool_entry,
            shielded_pool_exit=shielded_pool_exit,
        ))

    def list_for_wallet(
        self,
        wallet_id: UUID,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[ProcessedTransaction]:
        """Transactions in [start, end], ordered by timestamp then txid."""
        stmt = select(ProcessedTransaction).where(ProcessedTransaction.wallet_id == wallet_id)
        if start is not None:
            stmt = stmt.where(ProcessedTransaction.block_timestamp >= start)
        if end is not None:
            stmt = stmt.where(ProcessedTransaction.block_timestamp <= end)
        stmt = stmt.order_by(ProcessedTransaction.block_timestamp, ProcessedTransaction.txid)
        return self._execute_query(stmt)

    def list_for_day(self, wallet_id: UUID, day: date) -> List[ProcessedTransaction]:
        return self.list_for_wallet(wallet_id, start_of_day(day), end_of_day(day))


class ActivityRollupRepository(BaseRepository[ActivityRollup]):
    """Daily activity rollups, one row per (wallet, day)."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, ActivityRollup, "ActivityRollupRepository")

    def get(self, wallet_id: UUID, activity_date: date) -> Optional[ActivityRollup]:
        stmt = select(ActivityRollup).where(
            ActivityRollup.wallet_id == wallet_id,
            ActivityRollup.activity_date == activity_date,
        )
        return self._execute_scalar(stmt)

    def upsert(
        self,
        wallet_id: UUID,
        activity_date: date,
        values: Dict[str, Any],
    ) -> ActivityRollup:
        """Insert the day's rollup or overwrite the existing one."""
        rollup = self.get(wallet_id, activity_date)
        if rollup is None:
            return self._add(ActivityRollup(
                wallet_id=wallet_id,
                activity_date=activity_date,
                **values,
            ))

        for field, value in values.items():
            setattr(rollup, field, value)
        self._flush("upsert")
        return rollup

    def has_active_before(self, wallet_id: UUID, activity_date: date) -> bool:
        stmt = select(func.count(ActivityRollup.id)).where(
            ActivityRollup.wallet_id == wallet_id,
            ActivityRollup.activity_date < activity_date,
            ActivityRollup.is_active.is_(True),
        )
        return (self._execute_scalar(stmt) or 0) > 0

    def list_for_wallet(
        self,
        wallet_id: UUID,
        after: Optional[date] = None,
        until: Optional[date] = None,
    ) -> List[ActivityRollup]:
        """Rollups with after < activity_date <= until, oldest first."""
        stmt = select(ActivityRollup).where(ActivityRollup.wallet_id == wallet_id)
        if after is not None:
            stmt = stmt.where(ActivityRollup.activity_date > after)
        if until is not None:
            stmt = stmt.where(ActivityRollup.activity_date <= until)
        return self._execute_query(stmt.order_by(ActivityRollup.activity_date))

    def count_active(self, wallet_id: UUID) -> int:
        stmt = select(func.count(ActivityRollup.id)).where(
            ActivityRollup.wallet_id == wallet_id,
            ActivityRollup.is_active.is_(True),
        )
        return self._execute_scalar(stmt) or 0

    def list_for_wallets(
        self,
        wallet_ids: Sequence[UUID],
        start: Optional[date] = None,
        end: Optional[date] = None,
        active_only: bool = False,
    ) -> List[ActivityRollup]:
        """Rollups of several wallets with start <= activity_date <= end."""
        if not wallet_ids:
            return []
        stmt = select(ActivityRollup).where(ActivityRollup.wallet_id.in_(list(wallet_ids)))
        if start is not None:
            stmt = stmt.where(ActivityRollup.activity_date >= start)
        if end is not None:
            stmt = stmt.where(ActivityRollup.activity_date <= end)
        if active_only:
            stmt = stmt.where(ActivityRollup.is_active.is_(True))
        return self._execute_query(stmt.order_by(ActivityRollup.activity_date))
