"""
Productivity Scoring Engine - Main Orchestrator.

============================================================
PURPOSE
============================================================
The ProductivityScoringEngine computes, stores and summarizes
per-wallet productivity scores.

It orchestrates:
1. Wallet lookup
2. Rollup loading (trailing windows + all-time active count)
3. Component assessment (retention, adoption, activity, diversity)
4. Weighted total and status/risk bucketing
5. Upsert of the single current row (+ optional history row)

============================================================
DESIGN PRINCIPLES
============================================================
- compute() is read-only; recompute() writes
- Recompute is idempotent: same rollups, same clock, same row
- Session injected; callers own the commit
- Bulk project recompute gives every wallet its own transaction

============================================================
USAGE
============================================================
    engine = ProductivityScoringEngine(session)
    result = engine.recompute(wallet_id)
    session.commit()

    print(f"{result.total_score} {result.status.value}")

============================================================
"""

import logging
from datetime import timedelta
from typing import Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from core.clock import ClockProtocol, get_clock
from core.exceptions import AnalyticsException, ComputationError, NotFoundError
from core.numeric import clamp, round_half_up
from database.engine import get_session_factory, transaction_scope
from storage.models.scoring import ProductivityScore
from storage.models.wallets import AGGREGATE_PRIVACY_MODES
from storage.repositories.scoring import ProductivityScoreRepository
from storage.repositories.transactions import ActivityRollupRepository
from storage.repositories.wallets import ProjectRepository, WalletRepository

from .assessors import assess_activity, assess_adoption, assess_diversity, assess_retention
from .batch import BulkRecomputeRunner
from .config import ProductivityConfig, get_default_config
from .types import (
    BatchResult,
    ComponentScores,
    ProductivityScoreResult,
    ProductivityStatus,
    ProjectProductivitySummary,
    RiskLevel,
)


logger = logging.getLogger(__name__)


_RISK_BY_STATUS = {
    ProductivityStatus.CHURN: RiskLevel.HIGH,
    ProductivityStatus.AT_RISK: RiskLevel.MEDIUM,
    ProductivityStatus.HEALTHY: RiskLevel.LOW,
}


class ProductivityScoringEngine:
    """
    Main orchestrator for productivity scoring.

    One instance is bound to one session. The session factory is
    only used by recompute_project, which opens one transaction
    per wallet.
    """

    def __init__(
        self,
        session: Session,
        config: Optional[ProductivityConfig] = None,
        clock: Optional[ClockProtocol] = None,
        session_factory: Optional[sessionmaker] = None,
    ):
        self.config = config or get_default_config()
        self.config.validate()
        self._clock = clock or get_clock()
        self._session_factory = session_factory
        self._wallets = WalletRepository(session)
        self._projects = ProjectRepository(session)
        self._rollups = ActivityRollupRepository(session)
        self._scores = ProductivityScoreRepository(session)

    # =========================================================
    # SCORING
    # =========================================================

    def classify(self, total_score: int) -> ProductivityStatus:
        """Map a total score to its status bucket."""
        if total_score < self.config.status.churn_below:
            return ProductivityStatus.CHURN
        if total_score < self.config.status.at_risk_below:
            return ProductivityStatus.AT_RISK
        return ProductivityStatus.HEALTHY

    def combine(self, wallet_id: UUID, components: ComponentScores) -> ProductivityScoreResult:
        """Weight the components into a total and bucket it."""
        weights = self.config.weights
        contributions = {
            "retention": components.retention * weights.retention,
            "adoption": components.adoption * weights.adoption,
            "activity": components.activity * weights.activity,
            "diversity": components.diversity * weights.diversity,
        }
        total = int(clamp(round_half_up(sum(contributions.values())), 0, 100))
        status = self.classify(total)

        return ProductivityScoreResult(
            wallet_id=wallet_id,
            total_score=total,
            components=components,
            status=status,
            risk_level=_RISK_BY_STATUS[status],
            weighted_contributions={k: round_half_up(v, 2) for k, v in contributions.items()},
            calculated_at=self._clock.now(),
        )

    def compute(self, wallet_id: UUID) -> ProductivityScoreResult:
        """
        Compute a wallet's productivity without writing anything.

        Raises:
            NotFoundError: Unknown wallet
            ComputationError: Scoring failed
        """
        if self._wallets.get_by_id(wallet_id) is None:
            raise NotFoundError("wallet", wallet_id)

        try:
            today = self._clock.today()
            longest_window = max(
                self.config.retention.window_days,
                self.config.activity.window_days,
                self.config.diversity.window_days,
            )
            rollups = self._rollups.list_for_wallet(
                wallet_id,
                after=today - timedelta(days=longest_window),
                until=today,
            )

            components = ComponentScores(
                retention=assess_retention(rollups, today, self.config.retention),
                adoption=assess_adoption(self._rollups.count_active(wallet_id), self.config.adoption),
                activity=assess_activity(rollups, today, self.config.activity),
                diversity=assess_diversity(rollups, today, self.config.diversity),
            )
            return self.combine(wallet_id, components)
        except AnalyticsException:
            raise
        except Exception as e:
            raise ComputationError(
                f"Productivity scoring failed for wallet {wallet_id}: {e}",
                context={"wallet_id": str(wallet_id)},
                cause=e,
            ) from e

    def recompute(self, wallet_id: UUID) -> ProductivityScoreResult:
        """
        Compute and store the wallet's current score.

        Replaces the single current row; appends a history row
        when record_history is enabled.
        """
        result = self.compute(wallet_id)

        values = result.to_values()
        self._scores.upsert(wallet_id, {**values, "risk_level": result.risk_level.value})
        if self.config.record_history:
            self._scores.append_history(wallet_id, values)

        logger.info(
            f"Productivity for wallet {wallet_id}: {result.total_score} "
            f"({result.status.value})"
        )
        return result

    def _from_row(self, row: ProductivityScore) -> ProductivityScoreResult:
        stored = self.combine(
            row.wallet_id,
            ComponentScores(
                retention=row.retention_score,
                adoption=row.adoption_score,
                activity=row.activity_score,
                diversity=row.diversity_score,
            ),
        )
        return ProductivityScoreResult(
            wallet_id=row.wallet_id,
            total_score=row.total_score,
            components=stored.components,
            status=ProductivityStatus(row.status),
            risk_level=RiskLevel(row.risk_level),
            weighted_contributions=stored.weighted_contributions,
            calculated_at=row.calculated_at,
        )

    def get_or_compute_productivity(self, wallet_id: UUID) -> ProductivityScoreResult:
        """Stored score if one exists, otherwise a fresh recompute."""
        row = self._scores.get_by_wallet(wallet_id)
        if row is not None:
            return self._from_row(row)
        return self.recompute(wallet_id)

    def get_bulk_productivity_scores(self, wallet_ids: Sequence[UUID]) -> Dict[UUID, ProductivityScoreResult]:
        """Stored scores of several wallets; wallets never scored are absent."""
        return {row.wallet_id: self._from_row(row) for row in self._scores.list_for_wallets(wallet_ids)}

    # =========================================================
    # PROJECT OPERATIONS
    # =========================================================

    def get_project_productivity_summary(self, project_id: UUID) -> ProjectProductivitySummary:
        """
        Summarize stored scores over the project's non-private wallets.

        Wallets without a stored score count toward total_wallets
        but not toward the average or the distributions.

        Raises:
            NotFoundError: Unknown project
        """
        if self._projects.get_by_id(project_id) is None:
            raise NotFoundError("project", project_id)

        wallet_ids = self._wallets.list_ids_by_project(project_id, AGGREGATE_PRIVACY_MODES)
        rows = self._scores.list_for_wallets(wallet_ids)

        status_distribution = {status.value: 0 for status in ProductivityStatus}
        risk_distribution = {risk.value: 0 for risk in RiskLevel}
        for row in rows:
            status_distribution[row.status] = status_distribution.get(row.status, 0) + 1
            risk_distribution[row.risk_level] = risk_distribution.get(row.risk_level, 0) + 1

        average = round_half_up(sum(row.total_score for row in rows) / len(rows)) if rows else 0
        healthy = status_distribution[ProductivityStatus.HEALTHY.value]
        health = round_half_up(healthy / len(wallet_ids) * 100) if wallet_ids else 0

        return ProjectProductivitySummary(
            project_id=project_id,
            total_wallets=len(wallet_ids),
            average_score=average,
            status_distribution=status_distribution,
            risk_distribution=risk_distribution,
            health_percentage=float(health),
        )

    def _recompute_in_own_scope(self, wallet_id: UUID) -> ProductivityScoreResult:
        with transaction_scope(self._session_factory or get_session_factory()) as session:
            engine = ProductivityScoringEngine(session, self.config, self._clock)
            return engine.recompute(wallet_id)

    async def recompute_project(
        self,
        project_id: UUID,
        concurrency: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
        raise_on_failure: bool = False,
        active_only: bool = True,
    ) -> BatchResult:
        """
        Recompute every wallet of a project, each in its own transaction.

        Private wallets are included: this writes per-wallet rows
        and aggregates nothing.

        Raises:
            NotFoundError: Unknown project
            PartialBatchFailure: raise_on_failure is set and a wallet failed
        """
        if self._projects.get_by_id(project_id) is None:
            raise NotFoundError("project", project_id)

        wallet_ids: List[UUID] = [
            wallet.id for wallet in self._wallets.list_by_project(project_id)
            if wallet.is_active or not active_only
        ]
        logger.info(f"Recomputing productivity for {len(wallet_ids)} wallets of project {project_id}")

        runner = BulkRecomputeRunner(
            concurrency=concurrency,
            timeout_seconds=timeout_seconds,
            raise_on_failure=raise_on_failure,
        )
        return await runner.run(wallet_ids, self._recompute_in_own_scope)
