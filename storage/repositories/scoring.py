"""
Scoring Repositories.

============================================================
PURPOSE
============================================================
Data access for derived per-wallet analytics:
- ProductivityScoreRepository: current score upsert + history
- AdoptionStageRepository: one row per (wallet, stage)
- BehaviorFlowRepository: persisted flow analysis summaries

============================================================
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from storage.models.scoring import (
    AdoptionStageRecord,
    BehaviorFlowRecord,
    ProductivityScore,
    ProductivityScoreHistory,
)
from storage.repositories.base import BaseRepository


class ProductivityScoreRepository(BaseRepository[ProductivityScore]):
    """
    Repository for productivity scores.

    The current table holds exactly one row per wallet; the
    history table is append-only.
    """

    def __init__(self, session: Session) -> None:
        super().__init__(session, ProductivityScore, "ProductivityScoreRepository")

    def get_by_wallet(self, wallet_id: UUID) -> Optional[ProductivityScore]:
        stmt = select(ProductivityScore).where(ProductivityScore.wallet_id == wallet_id)
        return self._execute_scalar(stmt)

    def upsert(self, wallet_id: UUID, values: Dict[str, Any]) -> ProductivityScore:
        score = self.get_by_wallet(wallet_id)
        if score is None:
            return self._add(ProductivityScore(wallet_id=wallet_id, **values))

        for field, value in values.items():
            setattr(score, field, value)
        self._flush("upsert")
        return score

    def list_for_wallets(self, wallet_ids: Sequence[UUID]) -> List[ProductivityScore]:
        if not wallet_ids:
            return []
        stmt = select(ProductivityScore).where(ProductivityScore.wallet_id.in_(list(wallet_ids)))
        return self._execute_query(stmt)

    # =========================================================
    # HISTORY
    # =========================================================

    def append_history(self, wallet_id: UUID, values: Dict[str, Any]) -> ProductivityScoreHistory:
        record = ProductivityScoreHistory(wallet_id=wallet_id, **values)
        self._session.add(record)
        self._flush("append_history")
        return record

    def list_history(self, wallet_id: UUID) -> List[ProductivityScoreHistory]:
        stmt = (
            select(ProductivityScoreHistory)
            .where(ProductivityScoreHistory.wallet_id == wallet_id)
            .order_by(ProductivityScoreHistory.calculated_at)
        )
        return self._execute_query(stmt)

    def latest_history_scores(
        self,
        wallet_ids: Sequence[UUID],
        at_or_before: datetime,
    ) -> Dict[UUID, int]:
        """Latest total score per wallet sampled at or before the instant."""
        if not wallet_ids:
            return {}
        stmt = (
            select(
                ProductivityScoreHistory.wallet_id,
                ProductivityScoreHistory.total_score,
                ProductivityScoreHistory.calculated_at,
            )
            .where(
                ProductivityScoreHistory.wallet_id.in_(list(wallet_ids)),
                ProductivityScoreHistory.calculated_at <= at_or_before,
            )
            .order_by(ProductivityScoreHistory.calculated_at)
        )
        latest: Dict[UUID, int] = {}
        for wallet_id, total_score, _ in self._execute_rows(stmt):
            latest[wallet_id] = total_score
        return latest


class AdoptionStageRepository(BaseRepository[AdoptionStageRecord]):
    """Repository for adoption stage rows."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, AdoptionStageRecord, "AdoptionStageRepository")

    def create_stage(
        self,
        wallet_id: UUID,
        stage_name: str,
        achieved_at: Optional[datetime] = None,
        time_to_achieve_hours: Optional[int] = None,
        conversion_probability: float = 0.0,
    ) -> AdoptionStageRecord:
        record = AdoptionStageRecord(
            wallet_id=wallet_id,
            stage_name=stage_name,
            achieved_at=achieved_at,
            time_to_achieve_hours=time_to_achieve_hours,
            conversion_probability=conversion_probability,
        )
        self._session.add(record)
        return record

    def flush(self) -> None:
        self._flush("flush")

    def list_for_wallet(self, wallet_id: UUID) -> List[AdoptionStageRecord]:
        stmt = select(AdoptionStageRecord).where(AdoptionStageRecord.wallet_id == wallet_id)
        return self._execute_query(stmt)

    def list_for_wallets(self, wallet_ids: Sequence[UUID]) -> List[AdoptionStageRecord]:
        if not wallet_ids:
            return []
        stmt = select(AdoptionStageRecord).where(
            AdoptionStageRecord.wallet_id.in_(list(wallet_ids))
        )
        return self._execute_query(stmt)

    def count_for_wallet(self, wallet_id: UUID) -> int:
        stmt = select(func.count(AdoptionStageRecord.id)).where(
            AdoptionStageRecord.wallet_id == wallet_id
        )
        return self._execute_scalar(stmt) or 0


class BehaviorFlowRepository(BaseRepository[BehaviorFlowRecord]):
    """Repository for persisted flow analyses (append-only)."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, BehaviorFlowRecord, "BehaviorFlowRepository")

    def add_analysis(self, **values: Any) -> BehaviorFlowRecord:
        return self._add(BehaviorFlowRecord(**values))

    def list_for_wallet(self, wallet_id: UUID, limit: int = 10) -> List[BehaviorFlowRecord]:
        stmt = (
            select(BehaviorFlowRecord)
            .where(BehaviorFlowRecord.wallet_id == wallet_id)
            .order_by(BehaviorFlowRecord.analyzed_at.desc())
            .limit(limit)
        )
        return self._execute_query(stmt)
