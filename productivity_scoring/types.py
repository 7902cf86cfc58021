"""
Productivity Scoring - Type Definitions.

============================================================
PURPOSE
============================================================
Data contracts for productivity scoring, adoption stage
tracking and bulk recomputation.

============================================================
DESIGN PRINCIPLES
============================================================
- Results are immutable dataclasses with to_dict()
- Enums for discrete states (status, risk, stage)
- Components are integers in [0, 100]

============================================================
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import UUID


# ============================================================
# ENUMS
# ============================================================


class ProductivityStatus(str, Enum):
    """
    Wallet health bucket derived from the total score.

    - HEALTHY: total >= 60
    - AT_RISK: 30 <= total < 60
    - CHURN: total < 30
    """

    HEALTHY = "healthy"
    AT_RISK = "at_risk"
    CHURN = "churn"


class RiskLevel(str, Enum):
    """Churn risk paired one-to-one with ProductivityStatus."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class AdoptionStageName(str, Enum):
    """Adoption funnel stages in progression order."""

    CREATED = "created"
    FIRST_TX = "first_tx"
    FEATURE_USAGE = "feature_usage"
    RECURRING = "recurring"
    HIGH_VALUE = "high_value"

    @classmethod
    def ordered(cls) -> List["AdoptionStageName"]:
        """Return all stages in funnel order."""
        return [cls.CREATED, cls.FIRST_TX, cls.FEATURE_USAGE, cls.RECURRING, cls.HIGH_VALUE]

    @property
    def position(self) -> int:
        return AdoptionStageName.ordered().index(self)


# ============================================================
# PRODUCTIVITY
# ============================================================


@dataclass(frozen=True)
class ComponentScores:
    """The four productivity components, each 0-100."""

    retention: int
    adoption: int
    activity: int
    diversity: int

    def to_dict(self) -> Dict[str, int]:
        return {
            "retention": self.retention,
            "adoption": self.adoption,
            "activity": self.activity,
            "diversity": self.diversity,
        }


@dataclass(frozen=True)
class ProductivityScoreResult:
    """
    Output of one productivity computation.

    weighted_contributions holds each component multiplied by
    its weight, before rounding; their sum rounds to total_score.
    """

    wallet_id: UUID
    total_score: int
    components: ComponentScores
    status: ProductivityStatus
    risk_level: RiskLevel
    weighted_contributions: Dict[str, float]
    calculated_at: datetime

    def to_values(self) -> Dict[str, Any]:
        """Column values shared by the current row and the history row."""
        return {
            "total_score": self.total_score,
            "retention_score": self.components.retention,
            "adoption_score": self.components.adoption,
            "activity_score": self.components.activity,
            "diversity_score": self.components.diversity,
            "status": self.status.value,
            "calculated_at": self.calculated_at,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "wallet_id": str(self.wallet_id),
            "total_score": self.total_score,
            "components": self.components.to_dict(),
            "status": self.status.value,
            "risk_level": self.risk_level.value,
            "weighted_contributions": dict(self.weighted_contributions),
            "calculated_at": self.calculated_at.isoformat(),
        }


@dataclass(frozen=True)
class ProjectProductivitySummary:
    """Productivity roll-up over a project's aggregate-eligible wallets."""

    project_id: UUID
    total_wallets: int
    average_score: int
    status_distribution: Dict[str, int]
    risk_distribution: Dict[str, int]
    health_percentage: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "project_id": str(self.project_id),
            "total_wallets": self.total_wallets,
            "average_score": self.average_score,
            "status_distribution": dict(self.status_distribution),
            "risk_distribution": dict(self.risk_distribution),
            "health_percentage": self.health_percentage,
        }


# ============================================================
# ADOPTION
# ============================================================


@dataclass(frozen=True)
class WalletActivityData:
    """All-time transaction facts that drive stage criteria."""

    total_transactions: int
    unique_tx_types: int
    active_days: int
    total_volume: int
    first_tx_at: Optional[datetime]
    last_tx_at: Optional[datetime]
    time_span_days: int

    @classmethod
    def empty(cls) -> "WalletActivityData":
        return cls(
            total_transactions=0,
            unique_tx_types=0,
            active_days=0,
            total_volume=0,
            first_tx_at=None,
            last_tx_at=None,
            time_span_days=0,
        )


@dataclass(frozen=True)
class StageUpdate:
    """A stage newly achieved during one advancement run."""

    stage: AdoptionStageName
    achieved_at: datetime
    time_to_achieve_hours: int
    conversion_probability: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage.value,
            "achieved_at": self.achieved_at.isoformat(),
            "time_to_achieve_hours": self.time_to_achieve_hours,
            "conversion_probability": self.conversion_probability,
        }


@dataclass(frozen=True)
class AdoptionUpdate:
    """Result of advance_adoption_stages."""

    wallet_id: UUID
    updated_stages: List[StageUpdate] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "wallet_id": str(self.wallet_id),
            "updated_stages": [update.to_dict() for update in self.updated_stages],
        }


@dataclass(frozen=True)
class FunnelStage:
    """One row of the project adoption funnel."""

    stage: AdoptionStageName
    total_wallets: int
    achieved_wallets: int
    conversion_rate: float
    avg_time_to_achieve_hours: Optional[float]
    avg_conversion_probability: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage.value,
            "total_wallets": self.total_wallets,
            "achieved_wallets": self.achieved_wallets,
            "conversion_rate": self.conversion_rate,
            "avg_time_to_achieve_hours": self.avg_time_to_achieve_hours,
            "avg_conversion_probability": self.avg_conversion_probability,
        }


@dataclass(frozen=True)
class StageConversion:
    """Conversion between two consecutive funnel stages."""

    from_stage: AdoptionStageName
    to_stage: AdoptionStageName
    conversion_rate: float
    drop_off_rate: float
    wallets_converted: int
    wallets_dropped: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from_stage": self.from_stage.value,
            "to_stage": self.to_stage.value,
            "conversion_rate": self.conversion_rate,
            "drop_off_rate": self.drop_off_rate,
            "wallets_converted": self.wallets_converted,
            "wallets_dropped": self.wallets_dropped,
        }


@dataclass(frozen=True)
class TimeToStageMetrics:
    """Distribution of hours-to-achieve for one stage."""

    stage: AdoptionStageName
    achieved_count: int
    avg_hours: float
    median_hours: float
    min_hours: int
    max_hours: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage.value,
            "achieved_count": self.achieved_count,
            "avg_hours": self.avg_hours,
            "median_hours": self.median_hours,
            "min_hours": self.min_hours,
            "max_hours": self.max_hours,
        }


@dataclass(frozen=True)
class DropOffPoint:
    """A funnel step ranked by how many wallets it loses."""

    stage: AdoptionStageName
    drop_off_rate: float
    wallets_lost: int
    severity: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage.value,
            "drop_off_rate": self.drop_off_rate,
            "wallets_lost": self.wallets_lost,
            "severity": self.severity,
        }


@dataclass(frozen=True)
class WalletAdoptionStatus:
    """Where one wallet stands in the funnel."""

    wallet_id: UUID
    current_stage: AdoptionStageName
    next_stage: Optional[AdoptionStageName]
    stages: List[Dict[str, Any]]
    progress_percentage: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "wallet_id": str(self.wallet_id),
            "current_stage": self.current_stage.value,
            "next_stage": self.next_stage.value if self.next_stage else None,
            "stages": list(self.stages),
            "progress_percentage": self.progress_percentage,
        }


# ============================================================
# BULK RECOMPUTE
# ============================================================


@dataclass(frozen=True)
class WalletOutcome:
    """Outcome of one wallet in a bulk run."""

    wallet_id: UUID
    success: bool
    result: Any = None
    error: Optional[str] = None
    timed_out: bool = False
    duration_seconds: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        result = self.result.to_dict() if hasattr(self.result, "to_dict") else self.result
        return {
            "wallet_id": str(self.wallet_id),
            "success": self.success,
            "result": result,
            "error": self.error,
            "timed_out": self.timed_out,
            "duration_seconds": round(self.duration_seconds, 3),
        }


@dataclass(frozen=True)
class BatchResult:
    """Per-wallet outcomes of a bulk run, in input order."""

    outcomes: List[WalletOutcome]

    @property
    def succeeded(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.success)

    @property
    def failed(self) -> int:
        return sum(1 for outcome in self.outcomes if not outcome.success)

    @property
    def failed_wallet_ids(self) -> List[UUID]:
        return [outcome.wallet_id for outcome in self.outcomes if not outcome.success]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "succeeded": self.succeeded,
            "failed": self.failed,
            "outcomes": [outcome.to_dict() for outcome in self.outcomes],
        }
