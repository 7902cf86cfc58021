"""
Productivity Scoring - Adoption Stage Tracker.

============================================================
PURPOSE
============================================================
Tracks each wallet through the adoption funnel:

    created -> first_tx -> feature_usage -> recurring -> high_value

and summarizes the funnel per project.

============================================================
RULES
============================================================
- Every wallet gets one row per stage; `created` is achieved
  at wallet creation with probability 1.0
- Stages are checked in funnel order against all-time
  transaction facts
- Achieved rows are never modified (monotonic)
- Unachieved rows carry a conversion probability: the product
  of actual/required ratios of the stage criteria, capped at 0.9

============================================================
"""

import logging
import math
import statistics
from datetime import timedelta
from typing import Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from core.exceptions import NotFoundError, ValidationError
from core.numeric import percentage, round_half_up
from storage.models.scoring import AdoptionStageRecord
from storage.models.wallets import AGGREGATE_PRIVACY_MODES, ProcessedTransaction
from storage.repositories.scoring import AdoptionStageRepository
from storage.repositories.transactions import TransactionRepository
from storage.repositories.wallets import ProjectRepository, WalletRepository

from .config import AdoptionStageConfig, ProductivityConfig, StageCriteria, get_default_config
from .types import (
    AdoptionStageName,
    AdoptionUpdate,
    DropOffPoint,
    FunnelStage,
    StageConversion,
    StageUpdate,
    TimeToStageMetrics,
    WalletActivityData,
    WalletAdoptionStatus,
)


logger = logging.getLogger(__name__)


def parse_stage(stage_name: str) -> AdoptionStageName:
    """
    Raises:
        ValidationError: Not one of the five stage names
    """
    try:
        return AdoptionStageName(stage_name)
    except ValueError:
        raise ValidationError(
            f"Unknown adoption stage: {stage_name}",
            field="stage_name",
            value=stage_name,
        ) from None


def collect_activity(transactions: Sequence[ProcessedTransaction]) -> WalletActivityData:
    """Fold a wallet's transactions into stage-criteria facts."""
    if not transactions:
        return WalletActivityData.empty()

    timestamps = [tx.block_timestamp for tx in transactions]
    first, last = min(timestamps), max(timestamps)

    return WalletActivityData(
        total_transactions=len(transactions),
        unique_tx_types=len({tx.tx_type for tx in transactions}),
        active_days=len({ts.date() for ts in timestamps}),
        total_volume=sum(tx.value_zatoshi for tx in transactions),
        first_tx_at=first,
        last_tx_at=last,
        time_span_days=math.ceil((last - first) / timedelta(days=1)),
    )


def _measured(criteria: StageCriteria, activity: WalletActivityData) -> List[tuple]:
    """(actual, required) pairs for every criterion the stage sets."""
    pairs = [
        (activity.total_transactions, criteria.min_transactions),
        (activity.unique_tx_types, criteria.min_tx_types),
        (activity.active_days, criteria.min_active_days),
        (activity.time_span_days, criteria.min_time_span_days),
        (activity.total_volume, criteria.min_volume_zatoshi),
    ]
    return [(actual, required) for actual, required in pairs if required > 0]


def is_stage_achieved(criteria: StageCriteria, activity: WalletActivityData) -> bool:
    return all(actual >= required for actual, required in _measured(criteria, activity))


def conversion_probability(
    criteria: StageCriteria,
    activity: WalletActivityData,
    config: AdoptionStageConfig,
) -> float:
    """Product of actual/required ratios, capped for unachieved stages."""
    probability = 1.0
    for actual, required in _measured(criteria, activity):
        probability *= max(actual, 0) / required
    return min(probability, config.max_unachieved_probability)


class AdoptionStageTracker:
    """Adoption funnel state per wallet and per project."""

    def __init__(self, session: Session, config: Optional[ProductivityConfig] = None):
        self.config = (config or get_default_config()).stages
        self._wallets = WalletRepository(session)
        self._projects = ProjectRepository(session)
        self._transactions = TransactionRepository(session)
        self._stages = AdoptionStageRepository(session)

    # =========================================================
    # WALLET OPERATIONS
    # =========================================================

    def initialize_wallet_adoption(self, wallet_id: UUID) -> List[AdoptionStageRecord]:
        """
        Create the wallet's stage rows that do not exist yet.

        Raises:
            NotFoundError: Unknown wallet
        """
        wallet = self._wallets.get_by_id(wallet_id)
        if wallet is None:
            raise NotFoundError("wallet", wallet_id)

        existing = {record.stage_name: record for record in self._stages.list_for_wallet(wallet_id)}
        created = []
        for stage in AdoptionStageName.ordered():
            if stage.value in existing:
                continue
            if stage == AdoptionStageName.CREATED:
                record = self._stages.create_stage(
                    wallet_id,
                    stage.value,
                    achieved_at=wallet.created_at,
                    time_to_achieve_hours=0,
                    conversion_probability=1.0,
                )
            else:
                record = self._stages.create_stage(wallet_id, stage.value)
            created.append(record)

        if created:
            self._stages.flush()
            logger.info(f"Initialized {len(created)} adoption stages for wallet {wallet_id}")

        return self._sorted(list(existing.values()) + created)

    def advance_adoption_stages(self, wallet_id: UUID) -> AdoptionUpdate:
        """
        Mark every newly satisfied stage as achieved.

        Rows are initialized first when missing. Achieved rows
        are left untouched; the others get a fresh probability.

        Raises:
            NotFoundError: Unknown wallet
        """
        records = self.initialize_wallet_adoption(wallet_id)
        wallet = self._wallets.get_by_id(wallet_id)
        activity = collect_activity(self._transactions.list_for_wallet(wallet_id))

        updates: List[StageUpdate] = []
        for record in records:
            stage = AdoptionStageName(record.stage_name)
            if stage == AdoptionStageName.CREATED or record.achieved_at is not None:
                continue

            criteria = self.config.criteria_for(stage.value)
            if is_stage_achieved(criteria, activity):
                achieved_at = activity.last_tx_at
                # Backfilled history can predate the wallet row
                hours = max(0, round_half_up((achieved_at - wallet.created_at) / timedelta(hours=1)))
                record.achieved_at = achieved_at
                record.time_to_achieve_hours = hours
                record.conversion_probability = 1.0
                updates.append(StageUpdate(
                    stage=stage,
                    achieved_at=achieved_at,
                    time_to_achieve_hours=hours,
                    conversion_probability=1.0,
                ))
            else:
                record.conversion_probability = conversion_probability(criteria, activity, self.config)

        self._stages.flush()

        if updates:
            logger.info(
                f"Wallet {wallet_id} reached stages: "
                f"{', '.join(update.stage.value for update in updates)}"
            )
        return AdoptionUpdate(wallet_id=wallet_id, updated_stages=updates)

    def get_wallet_adoption_status(self, wallet_id: UUID) -> WalletAdoptionStatus:
        """
        Current stage, next stage and progress of one wallet.

        Raises:
            NotFoundError: Unknown wallet
        """
        if self._wallets.get_by_id(wallet_id) is None:
            raise NotFoundError("wallet", wallet_id)

        records = self._sorted(self._stages.list_for_wallet(wallet_id))
        ordered = AdoptionStageName.ordered()

        current = AdoptionStageName.CREATED
        for record in records:
            if record.achieved_at is not None:
                current = AdoptionStageName(record.stage_name)

        position = current.position
        next_stage = ordered[position + 1] if position + 1 < len(ordered) else None
        achieved = sum(1 for record in records if record.achieved_at is not None)

        return WalletAdoptionStatus(
            wallet_id=wallet_id,
            current_stage=current,
            next_stage=next_stage,
            stages=[
                {
                    "stage_name": record.stage_name,
                    "achieved_at": record.achieved_at.isoformat() if record.achieved_at else None,
                    "time_to_achieve_hours": record.time_to_achieve_hours,
                    "conversion_probability": record.conversion_probability,
                }
                for record in records
            ],
            progress_percentage=percentage(achieved, len(records)),
        )

    # =========================================================
    # PROJECT OPERATIONS
    # =========================================================

    def _project_records(self, project_id: UUID) -> Dict[AdoptionStageName, List[AdoptionStageRecord]]:
        if self._projects.get_by_id(project_id) is None:
            raise NotFoundError("project", project_id)

        wallet_ids = self._wallets.list_ids_by_project(project_id, AGGREGATE_PRIVACY_MODES)
        by_stage: Dict[AdoptionStageName, List[AdoptionStageRecord]] = {}
        for record in self._stages.list_for_wallets(wallet_ids):
            by_stage.setdefault(AdoptionStageName(record.stage_name), []).append(record)
        return {stage: by_stage[stage] for stage in AdoptionStageName.ordered() if stage in by_stage}

    def get_project_adoption_funnel(self, project_id: UUID) -> List[FunnelStage]:
        """
        Per-stage totals over the project's non-private wallets.

        Stages no eligible wallet has a row for are omitted.

        Raises:
            NotFoundError: Unknown project
        """
        funnel = []
        for stage, records in self._project_records(project_id).items():
            achieved = [r for r in records if r.achieved_at is not None]
            hours = [r.time_to_achieve_hours for r in achieved if r.time_to_achieve_hours is not None]
            funnel.append(FunnelStage(
                stage=stage,
                total_wallets=len(records),
                achieved_wallets=len(achieved),
                conversion_rate=percentage(len(achieved), len(records)),
                avg_time_to_achieve_hours=round_half_up(statistics.fmean(hours), 2) if hours else None,
                avg_conversion_probability=round_half_up(
                    statistics.fmean(r.conversion_probability for r in records), 4
                ),
            ))
        return funnel

    def get_adoption_conversion_rates(self, project_id: UUID) -> List[StageConversion]:
        """Conversion and drop-off between consecutive funnel stages."""
        funnel = self.get_project_adoption_funnel(project_id)

        conversions = []
        for current, following in zip(funnel, funnel[1:]):
            rate = percentage(following.achieved_wallets, current.achieved_wallets)
            conversions.append(StageConversion(
                from_stage=current.stage,
                to_stage=following.stage,
                conversion_rate=rate,
                drop_off_rate=round_half_up(100 - rate, 2),
                wallets_converted=following.achieved_wallets,
                wallets_dropped=current.achieved_wallets - following.achieved_wallets,
            ))
        return conversions

    def get_time_to_stage_metrics(self, project_id: UUID) -> List[TimeToStageMetrics]:
        """Hours-to-achieve distribution of every stage with achievements."""
        metrics = []
        for stage, records in self._project_records(project_id).items():
            hours = [
                r.time_to_achieve_hours for r in records
                if r.achieved_at is not None and r.time_to_achieve_hours is not None
            ]
            if not hours:
                continue
            metrics.append(TimeToStageMetrics(
                stage=stage,
                achieved_count=len(hours),
                avg_hours=round_half_up(statistics.fmean(hours), 2),
                median_hours=float(statistics.median(hours)),
                min_hours=min(hours),
                max_hours=max(hours),
            ))
        return metrics

    def identify_drop_off_points(self, project_id: UUID) -> List[DropOffPoint]:
        """Funnel steps ordered by drop-off, worst first."""
        points = []
        for conversion in self.get_adoption_conversion_rates(project_id):
            if conversion.drop_off_rate > self.config.high_drop_off_pct:
                severity = "high"
            elif conversion.drop_off_rate > self.config.medium_drop_off_pct:
                severity = "medium"
            else:
                severity = "low"
            points.append(DropOffPoint(
                stage=conversion.to_stage,
                drop_off_rate=conversion.drop_off_rate,
                wallets_lost=conversion.wallets_dropped,
                severity=severity,
            ))
        return sorted(points, key=lambda point: point.drop_off_rate, reverse=True)

    def get_wallets_at_stage(self, project_id: UUID, stage_name: str) -> List[UUID]:
        """
        Non-private wallets whose furthest achieved stage is `stage_name`.

        Raises:
            ValidationError: Unknown stage name
            NotFoundError: Unknown project
        """
        stage = parse_stage(stage_name)

        furthest: Dict[UUID, AdoptionStageName] = {}
        for records in self._project_records(project_id).values():
            for record in records:
                if record.achieved_at is None:
                    continue
                reached = AdoptionStageName(record.stage_name)
                if record.wallet_id not in furthest or reached.position > furthest[record.wallet_id].position:
                    furthest[record.wallet_id] = reached

        return [wallet_id for wallet_id, reached in furthest.items() if reached == stage]

    @staticmethod
    def _sorted(records: List[AdoptionStageRecord]) -> List[AdoptionStageRecord]:
        return sorted(records, key=lambda record: AdoptionStageName(record.stage_name).position)
