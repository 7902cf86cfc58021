"""
Behavior Flow - Type Definitions.

============================================================
PURPOSE
============================================================
Data contracts for flow segmentation, pattern classification
and loyalty prediction.

Classification results are tagged enums and fixed dataclasses,
never free-form dicts; to_dict() produces the serialized shape
used for persistence and API responses.

============================================================
PRIVACY TRANSITIONS
============================================================
Every consecutive pair of transactions is one of:

    T -> Z   transparent_to_shielded
    Z -> T   shielded_to_transparent
    T -> T   transparent_to_transparent
    Z -> Z   shielded_to_shielded

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


class FlowType(str, Enum):
    """Classification of a single flow."""

    SINGLE_TRANSACTION = "single_transaction"
    TRANSPARENT_ONLY = "transparent_only"
    HOLDING = "holding"
    MIXING = "mixing"
    ACCUMULATION = "accumulation"
    SPENDING = "spending"
    INTERNAL_SHIELDED = "internal_shielded"


class FlowComplexity(str, Enum):
    """Complexity tier derived from a flow's transaction count."""

    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"
    ADVANCED = "advanced"

    @classmethod
    def ordered(cls) -> List["FlowComplexity"]:
        return [cls.SIMPLE, cls.MODERATE, cls.COMPLEX, cls.ADVANCED]


class PrivacyTransition(str, Enum):
    """Privacy state change between two consecutive transactions."""

    T_TO_Z = "transparent_to_shielded"
    Z_TO_T = "shielded_to_transparent"
    T_TO_T = "transparent_to_transparent"
    Z_TO_Z = "shielded_to_shielded"

    @classmethod
    def between(cls, previous_shielded: bool, current_shielded: bool) -> "PrivacyTransition":
        if not previous_shielded and current_shielded:
            return cls.T_TO_Z
        if previous_shielded and not current_shielded:
            return cls.Z_TO_T
        if not previous_shielded and not current_shielded:
            return cls.T_TO_T
        return cls.Z_TO_Z


class BehaviorPatternType(str, Enum):
    """Dominant behavior pattern of a wallet over a window."""

    SHIELDED_NATIVE = "shielded_native"
    ACCUMULATOR = "accumulator"
    HOLDER = "holder"
    CYCLER = "cycler"
    MIXER = "mixer"
    TRANSPARENT_ONLY = "transparent_only"


class PrivacyPreference(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class EngagementLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# ============================================================
# FLOWS
# ============================================================


@dataclass(frozen=True)
class FlowTransaction:
    """The transaction fields flow analysis needs."""

    txid: str
    timestamp: datetime
    is_shielded: bool
    shielded_entry: bool = False
    shielded_exit: bool = False
    value_zatoshi: int = 0
    tx_type: str = "transfer"

    @classmethod
    def from_record(cls, record: Any) -> "FlowTransaction":
        """Build from a ProcessedTransaction row."""
        return cls(
            txid=record.txid,
            timestamp=record.block_timestamp,
            is_shielded=bool(record.is_shielded),
            shielded_entry=bool(record.shielded_pool_entry),
            shielded_exit=bool(record.shielded_pool_exit),
            value_zatoshi=record.value_zatoshi or 0,
            tx_type=record.tx_type,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "txid": self.txid,
            "timestamp": self.timestamp.isoformat(),
            "is_shielded": self.is_shielded,
            "shielded_entry": self.shielded_entry,
            "shielded_exit": self.shielded_exit,
            "value_zatoshi": self.value_zatoshi,
            "tx_type": self.tx_type,
        }


@dataclass(frozen=True)
class Flow:
    """
    A contiguous segment of a wallet's transaction sequence.

    is_privacy_flow is False for transparent runs (transactions
    seen while no privacy flow was open).
    """

    flow_id: str
    transactions: List[FlowTransaction]
    transitions: List[PrivacyTransition]
    start_time: datetime
    end_time: datetime
    duration_minutes: int
    flow_type: FlowType
    complexity: FlowComplexity
    is_privacy_flow: bool = True

    @property
    def transaction_count(self) -> int:
        return len(self.transactions)

    @property
    def has_shielded(self) -> bool:
        return any(tx.is_shielded for tx in self.transactions)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "flow_id": self.flow_id,
            "transactions": [tx.to_dict() for tx in self.transactions],
            "transitions": [t.value for t in self.transitions],
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "duration_minutes": self.duration_minutes,
            "flow_type": self.flow_type.value,
            "complexity": self.complexity.value,
            "is_privacy_flow": self.is_privacy_flow,
        }


@dataclass(frozen=True)
class TransitionSummary:
    """Wallet-level transition counts and percentages."""

    counts: Dict[PrivacyTransition, int]
    percentages: Dict[PrivacyTransition, float]
    total_transitions: int

    def percentage(self, transition: PrivacyTransition) -> float:
        return self.percentages.get(transition, 0.0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "counts": {t.value: c for t, c in self.counts.items()},
            "percentages": {t.value: p for t, p in self.percentages.items()},
            "total_transitions": self.total_transitions,
        }


@dataclass(frozen=True)
class FlowMetrics:
    """Aggregate metrics over a wallet's flows."""

    total_flows: int
    avg_flow_duration_minutes: float
    avg_transactions_per_flow: float
    shielded_flow_ratio: float
    """Percentage (0-100) of flows containing a shielded transaction."""
    complexity_distribution: Dict[FlowComplexity, int]
    flow_type_distribution: Dict[FlowType, int]
    privacy_efficiency_score: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_flows": self.total_flows,
            "avg_flow_duration_minutes": self.avg_flow_duration_minutes,
            "avg_transactions_per_flow": self.avg_transactions_per_flow,
            "shielded_flow_ratio": self.shielded_flow_ratio,
            "complexity_distribution": {c.value: n for c, n in self.complexity_distribution.items()},
            "flow_type_distribution": {t.value: n for t, n in self.flow_type_distribution.items()},
            "privacy_efficiency_score": self.privacy_efficiency_score,
        }


# ============================================================
# PATTERN & LOYALTY
# ============================================================


@dataclass(frozen=True)
class BehaviorPattern:
    """Dominant pattern classification for one wallet and window."""

    primary_pattern: BehaviorPatternType
    confidence: int
    privacy_preference: PrivacyPreference
    characteristics: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "primary_pattern": self.primary_pattern.value,
            "confidence": self.confidence,
            "privacy_preference": self.privacy_preference.value,
            "characteristics": list(self.characteristics),
        }


@dataclass(frozen=True)
class LoyaltyPrediction:
    """Loyalty estimate derived from a behavior pattern and flow metrics."""

    loyalty_score: int
    retention_probability: float
    engagement_level: EngagementLevel
    risk_factors: List[str] = field(default_factory=list)
    positive_indicators: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "loyalty_score": self.loyalty_score,
            "retention_probability": self.retention_probability,
            "engagement_level": self.engagement_level.value,
            "risk_factors": list(self.risk_factors),
            "positive_indicators": list(self.positive_indicators),
        }


# ============================================================
# ANALYSIS RESULTS
# ============================================================


@dataclass(frozen=True)
class AnalysisWindow:
    """Inclusive time window [start, end]."""

    start: datetime
    end: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}


@dataclass(frozen=True)
class FlowAnalysis:
    """Complete flow analysis of one wallet over one window."""

    wallet_id: UUID
    window: AnalysisWindow
    flows: List[Flow]
    transitions: TransitionSummary
    metrics: FlowMetrics
    pattern: BehaviorPattern
    loyalty_prediction: LoyaltyPrediction
    analyzed_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "wallet_id": str(self.wallet_id),
            "window": self.window.to_dict(),
            "flows": [f.to_dict() for f in self.flows],
            "transitions": self.transitions.to_dict(),
            "metrics": self.metrics.to_dict(),
            "pattern": self.pattern.to_dict(),
            "loyalty_prediction": self.loyalty_prediction.to_dict(),
            "analyzed_at": self.analyzed_at.isoformat(),
        }


@dataclass(frozen=True)
class ProjectBehaviorInsights:
    """Project-wide summary over the analyzed wallets."""

    total_wallets_analyzed: int
    behavior_pattern_distribution: Dict[BehaviorPatternType, int]
    avg_loyalty_score: float
    high_loyalty_wallets: int
    privacy_adoption_rate: float
    common_characteristics: List[Dict[str, Any]]
    recommendations: List[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_wallets_analyzed": self.total_wallets_analyzed,
            "behavior_pattern_distribution": {
                p.value: n for p, n in self.behavior_pattern_distribution.items()
            },
            "avg_loyalty_score": self.avg_loyalty_score,
            "high_loyalty_wallets": self.high_loyalty_wallets,
            "privacy_adoption_rate": self.privacy_adoption_rate,
            "common_characteristics": list(self.common_characteristics),
            "recommendations": list(self.recommendations),
        }


@dataclass(frozen=True)
class ProjectBehaviorAnalysis:
    """Per-wallet analyses of a project plus the insights over them."""

    project_id: UUID
    window: AnalysisWindow
    wallet_analyses: List[FlowAnalysis]
    insights: ProjectBehaviorInsights
    failed_wallet_ids: List[UUID] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "project_id": str(self.project_id),
            "window": self.window.to_dict(),
            "wallet_analyses": [a.to_dict() for a in self.wallet_analyses],
            "insights": self.insights.to_dict(),
            "failed_wallet_ids": [str(w) for w in self.failed_wallet_ids],
        }
