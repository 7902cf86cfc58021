"""
Behavior Flow Engine - Main Orchestrator.

============================================================
PURPOSE
============================================================
The BehaviorFlowEngine is the entry point for flow analysis.

It orchestrates:
1. Wallet lookup and window validation
2. Transaction loading (ascending, windowed)
3. Segmentation into flows
4. Transition, metric and pattern classification
5. Loyalty prediction
6. Optional persistence of the analysis summary

============================================================
DESIGN PRINCIPLES
============================================================
- Pure analysis (analyze_transactions) separated from I/O
- An empty window is not an error: the result is None
- Project analysis skips failing wallets and keeps going
- Only wallets eligible for aggregates feed project insights

============================================================
USAGE
============================================================
    engine = BehaviorFlowEngine(session)

    analysis = engine.get_flow_analysis(wallet_id)
    if analysis:
        print(analysis.pattern.primary_pattern)
        print(analysis.loyalty_prediction.loyalty_score)

============================================================
"""

import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from core.clock import ClockProtocol, get_clock
from core.exceptions import AnalyticsException, ComputationError, NotFoundError, ValidationError
from storage.models.wallets import AGGREGATE_PRIVACY_MODES
from storage.repositories.exceptions import RepositoryException
from storage.repositories.scoring import BehaviorFlowRepository
from storage.repositories.transactions import TransactionRepository
from storage.repositories.wallets import ProjectRepository, WalletRepository

from .classifier import calculate_flow_metrics, identify_behavior_pattern
from .config import BehaviorFlowConfig, get_default_config
from .loyalty import generate_project_insights, predict_loyalty
from .segmenter import segment_flows, summarize_transitions
from .types import (
    AnalysisWindow,
    FlowAnalysis,
    FlowTransaction,
    ProjectBehaviorAnalysis,
)


logger = logging.getLogger(__name__)


class BehaviorFlowEngine:
    """
    Main orchestrator for behavior flow analysis.

    One instance is bound to one session.
    """

    def __init__(
        self,
        session: Session,
        config: Optional[BehaviorFlowConfig] = None,
        clock: Optional[ClockProtocol] = None,
    ):
        self.config = config or get_default_config()
        self._clock = clock or get_clock()
        self._wallets = WalletRepository(session)
        self._projects = ProjectRepository(session)
        self._transactions = TransactionRepository(session)
        self._flow_records = BehaviorFlowRepository(session)

    # =========================================================
    # PURE ANALYSIS
    # =========================================================

    def analyze_transactions(
        self,
        wallet_id: UUID,
        transactions: Sequence[FlowTransaction],
        window: AnalysisWindow,
    ) -> Optional[FlowAnalysis]:
        """
        Run the full analysis over an already-loaded sequence.

        Returns:
            FlowAnalysis, or None for an empty sequence
        """
        if not transactions:
            return None

        flows = segment_flows(transactions, self.config.flow)
        transitions = summarize_transitions(transactions)
        metrics = calculate_flow_metrics(flows, transactions, self.config)
        pattern = identify_behavior_pattern(flows, transitions, metrics, self.config.pattern)
        prediction = predict_loyalty(pattern, metrics, self.config.loyalty)

        return FlowAnalysis(
            wallet_id=wallet_id,
            window=window,
            flows=flows,
            transitions=transitions,
            metrics=metrics,
            pattern=pattern,
            loyalty_prediction=prediction,
            analyzed_at=self._clock.now(),
        )

    # =========================================================
    # WALLET OPERATIONS
    # =========================================================

    def default_window(self, days: Optional[int] = None) -> AnalysisWindow:
        now = self._clock.now()
        return AnalysisWindow(
            start=now - timedelta(days=days or self.config.default_window_days),
            end=now,
        )

    def get_flow_analysis(
        self,
        wallet_id: UUID,
        window: Optional[AnalysisWindow] = None,
        persist: bool = False,
    ) -> Optional[FlowAnalysis]:
        """
        Analyze a wallet's flows over a window.

        Args:
            wallet_id: Wallet to analyze
            window: Inclusive window (defaults to the trailing 30 days)
            persist: Store a summary row in wallet_behavior_flows

        Returns:
            FlowAnalysis, or None if the window holds no transactions

        Raises:
            NotFoundError: Unknown wallet
            ValidationError: Window start after window end
            ComputationError: Analysis failed
        """
        window = window or self.default_window()
        if window.start > window.end:
            raise ValidationError(
                "Analysis window start must not be after its end",
                field="window",
                value=f"{window.start.isoformat()} > {window.end.isoformat()}",
            )

        if self._wallets.get_by_id(wallet_id) is None:
            raise NotFoundError("wallet", wallet_id)

        records = self._transactions.list_for_wallet(wallet_id, window.start, window.end)
        if not records:
            logger.info(f"No transactions for wallet {wallet_id} in analysis window")
            return None

        try:
            transactions = [FlowTransaction.from_record(record) for record in records]
            analysis = self.analyze_transactions(wallet_id, transactions, window)
        except AnalyticsException:
            raise
        except Exception as e:
            raise ComputationError(
                f"Flow analysis failed for wallet {wallet_id}: {e}",
                context={"wallet_id": str(wallet_id)},
                cause=e,
            ) from e

        if persist:
            self._persist(analysis)

        logger.info(
            f"Flow analysis for wallet {wallet_id}: {analysis.metrics.total_flows} flows, "
            f"pattern {analysis.pattern.primary_pattern.value}"
        )
        return analysis

    def get_wallet_behavior_flows(self, wallet_id: UUID, limit: int = 10) -> List[Dict[str, Any]]:
        """Stored analysis summaries of a wallet, newest first."""
        return [
            {
                "id": str(record.id),
                "wallet_id": str(record.wallet_id),
                "window_start": record.window_start.isoformat(),
                "window_end": record.window_end.isoformat(),
                "total_flows": record.total_flows,
                "pattern": record.pattern,
                "confidence": record.confidence,
                "loyalty_score": record.loyalty_score,
                "privacy_efficiency_score": record.privacy_efficiency_score,
                "analyzed_at": record.analyzed_at.isoformat(),
                "summary": record.summary,
            }
            for record in self._flow_records.list_for_wallet(wallet_id, limit)
        ]

    def _persist(self, analysis: FlowAnalysis) -> None:
        self._flow_records.add_analysis(
            wallet_id=analysis.wallet_id,
            window_start=analysis.window.start,
            window_end=analysis.window.end,
            total_flows=analysis.metrics.total_flows,
            pattern=analysis.pattern.primary_pattern.value,
            confidence=analysis.pattern.confidence,
            loyalty_score=analysis.loyalty_prediction.loyalty_score,
            privacy_efficiency_score=analysis.metrics.privacy_efficiency_score,
            summary=analysis.to_dict(),
            analyzed_at=analysis.analyzed_at,
        )

    # =========================================================
    # PROJECT OPERATIONS
    # =========================================================

    def analyze_project(
        self,
        project_id: UUID,
        days: Optional[int] = None,
        persist: bool = False,
    ) -> ProjectBehaviorAnalysis:
        """
        Analyze every active, aggregate-eligible wallet of a project.

        Private wallets are excluded before any analysis. Wallets
        without transactions in the window are skipped; wallets
        whose analysis fails are logged and listed in
        failed_wallet_ids.

        Raises:
            NotFoundError: Unknown project
            ValidationError: days < 1
        """
        days = days or self.config.default_window_days
        if days < 1:
            raise ValidationError("days must be at least 1", field="days", value=days)

        if self._projects.get_by_id(project_id) is None:
            raise NotFoundError("project", project_id)

        window = self.default_window(days)
        wallets = [
            wallet for wallet in self._wallets.list_by_project(project_id, AGGREGATE_PRIVACY_MODES)
            if wallet.is_active
        ]

        analyses: List[FlowAnalysis] = []
        failed: List[UUID] = []
        for wallet in wallets:
            try:
                analysis = self.get_flow_analysis(wallet.id, window, persist=persist)
            except (AnalyticsException, RepositoryException) as e:
                logger.warning(f"Skipping wallet {wallet.id} in project analysis: {e}")
                failed.append(wallet.id)
                continue

            if analysis is not None:
                analyses.append(analysis)

        insights = generate_project_insights(analyses, self.config.insights)

        logger.info(
            f"Project behavior analysis for {project_id}: "
            f"{len(analyses)} wallets analyzed, {len(failed)} failed"
        )
        return ProjectBehaviorAnalysis(
            project_id=project_id,
            window=window,
            wallet_analyses=analyses,
            insights=insights,
            failed_wallet_ids=failed,
        )
