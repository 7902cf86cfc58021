"""
Productivity Scoring - Configuration.

============================================================
PURPOSE
============================================================
Weights, step thresholds, status buckets and adoption stage
criteria for productivity scoring.

============================================================
THRESHOLD OVERVIEW
============================================================
Total = 0.30 * retention + 0.25 * adoption
      + 0.25 * activity  + 0.20 * diversity

Status:  < 30 churn / high risk
         < 60 at_risk / medium risk
         else healthy / low risk

============================================================
YAML OVERRIDES
============================================================
    weights:
      retention: 0.4
      diversity: 0.1
    record_history: false

Unknown keys are ignored; missing sections keep defaults.

============================================================
"""

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

import yaml

from core.exceptions import ConfigurationError


# (threshold, points) steps are checked top to bottom; first match wins.
Steps = Tuple[Tuple[float, int], ...]


# ============================================================
# WEIGHTS
# ============================================================


@dataclass(frozen=True)
class ScoreWeights:
    """Component weights of the total score. Must sum to 1.0."""

    retention: float = 0.30
    adoption: float = 0.25
    activity: float = 0.25
    diversity: float = 0.20

    def total(self) -> float:
        return self.retention + self.adoption + self.activity + self.diversity

    def to_dict(self) -> Dict[str, float]:
        return {
            "retention": self.retention,
            "adoption": self.adoption,
            "activity": self.activity,
            "diversity": self.diversity,
        }


# ============================================================
# COMPONENT CONFIGURATION
# ============================================================


@dataclass(frozen=True)
class RetentionConfig:
    """
    Retention over the trailing window.

    Sum of frequency, recency, volume and diversity points,
    capped at max_score. No rollups at all scores 0.
    """

    window_days: int = 30

    # Distinct active days (>=)
    frequency_steps: Steps = ((15, 30), (8, 20), (4, 10), (1, 5))

    # Days since the last active day (<=)
    recency_steps: Steps = ((1, 30), (3, 20), (7, 10), (14, 5))

    # Total volume in zatoshi (>); zero volume scores 0
    volume_steps: Steps = ((1e8, 20), (1e7, 15), (1e6, 10), (0, 5))

    diversity_points_per_category: int = 5
    diversity_cap: int = 20

    max_score: int = 100

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class AdoptionScoreConfig:
    """Adoption by all-time active rollup count (>=)."""

    steps: Steps = ((30, 100), (15, 75), (7, 50), (3, 25))

    def to_dict(self) -> Dict[str, Any]:
        return {"steps": self.steps}


@dataclass(frozen=True)
class ActivityScoreConfig:
    """Activity by active days in the trailing window (>=)."""

    window_days: int = 7
    steps: Steps = ((7, 100), (4, 75), (2, 50), (1, 25))

    def to_dict(self) -> Dict[str, Any]:
        return {"window_days": self.window_days, "steps": self.steps}


@dataclass(frozen=True)
class DiversityScoreConfig:
    """25 points per transaction category used in the window."""

    window_days: int = 30
    points_per_category: int = 25
    max_score: int = 100

    def to_dict(self) -> Dict[str, Any]:
        return {
            "window_days": self.window_days,
            "points_per_category": self.points_per_category,
            "max_score": self.max_score,
        }


@dataclass(frozen=True)
class StatusThresholds:
    """Total score below churn_below is churn, below at_risk_below at risk."""

    churn_below: int = 30
    at_risk_below: int = 60

    def to_dict(self) -> Dict[str, int]:
        return {"churn_below": self.churn_below, "at_risk_below": self.at_risk_below}


# ============================================================
# ADOPTION STAGE CRITERIA
# ============================================================


@dataclass(frozen=True)
class StageCriteria:
    """
    Trigger of one adoption stage.

    Every set minimum must hold. Unset minimums (0) are not
    part of the stage and not part of its probability.
    """

    min_transactions: int = 0
    min_tx_types: int = 0
    min_active_days: int = 0
    min_time_span_days: int = 0
    min_volume_zatoshi: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class AdoptionStageConfig:
    """Criteria per stage; `created` is achieved at wallet creation."""

    first_tx: StageCriteria = field(
        default_factory=lambda: StageCriteria(min_transactions=1)
    )
    feature_usage: StageCriteria = field(
        default_factory=lambda: StageCriteria(min_transactions=3, min_tx_types=2)
    )
    recurring: StageCriteria = field(
        default_factory=lambda: StageCriteria(
            min_transactions=5, min_active_days=3, min_time_span_days=7
        )
    )
    high_value: StageCriteria = field(
        default_factory=lambda: StageCriteria(
            min_transactions=10,
            min_active_days=7,
            min_time_span_days=30,
            min_volume_zatoshi=1_000_000,
        )
    )

    # Probability of an unachieved stage never exceeds this
    max_unachieved_probability: float = 0.9

    # Drop-off severity (drop-off % strictly above)
    high_drop_off_pct: float = 70.0
    medium_drop_off_pct: float = 50.0

    def criteria_for(self, stage_name: str) -> StageCriteria:
        return getattr(self, stage_name)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "first_tx": self.first_tx.to_dict(),
            "feature_usage": self.feature_usage.to_dict(),
            "recurring": self.recurring.to_dict(),
            "high_value": self.high_value.to_dict(),
            "max_unachieved_probability": self.max_unachieved_probability,
            "high_drop_off_pct": self.high_drop_off_pct,
            "medium_drop_off_pct": self.medium_drop_off_pct,
        }


# ============================================================
# MASTER CONFIGURATION
# ============================================================


@dataclass(frozen=True)
class ProductivityConfig:
    """Master configuration for productivity scoring and adoption."""

    weights: ScoreWeights = field(default_factory=ScoreWeights)
    retention: RetentionConfig = field(default_factory=RetentionConfig)
    adoption: AdoptionScoreConfig = field(default_factory=AdoptionScoreConfig)
    activity: ActivityScoreConfig = field(default_factory=ActivityScoreConfig)
    diversity: DiversityScoreConfig = field(default_factory=DiversityScoreConfig)
    status: StatusThresholds = field(default_factory=StatusThresholds)
    stages: AdoptionStageConfig = field(default_factory=AdoptionStageConfig)

    # Append a history row on every recompute (feeds the productivity time series)
    record_history: bool = True

    def validate(self) -> None:
        """
        Raises:
            ConfigurationError: Weights do not sum to 1 or buckets overlap
        """
        if abs(self.weights.total() - 1.0) > 1e-9:
            raise ConfigurationError(
                "Productivity weights must sum to 1.0",
                config_key="weights",
                actual_value=self.weights.total(),
            )
        if not 0 <= self.status.churn_below <= self.status.at_risk_below <= 100:
            raise ConfigurationError(
                "Status thresholds must satisfy 0 <= churn_below <= at_risk_below <= 100",
                config_key="status",
                actual_value=self.status.to_dict(),
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "weights": self.weights.to_dict(),
            "retention": self.retention.to_dict(),
            "adoption": self.adoption.to_dict(),
            "activity": self.activity.to_dict(),
            "diversity": self.diversity.to_dict(),
            "status": self.status.to_dict(),
            "stages": self.stages.to_dict(),
            "record_history": self.record_history,
        }


def get_default_config() -> ProductivityConfig:
    """Get default configuration."""
    return ProductivityConfig()


def _steps(value: Any) -> Steps:
    return tuple((threshold, int(points)) for threshold, points in value)


def _build_section(section_class: type, data: Optional[Dict[str, Any]]) -> Any:
    known = {f.name for f in fields(section_class)}
    values = {}
    for key, value in (data or {}).items():
        if key not in known:
            continue
        values[key] = _steps(value) if key.endswith("steps") else value
    return section_class(**values)


def _build_stages(data: Optional[Dict[str, Any]]) -> AdoptionStageConfig:
    data = dict(data or {})
    for stage in ("first_tx", "feature_usage", "recurring", "high_value"):
        if stage in data:
            data[stage] = _build_section(StageCriteria, data[stage])
    known = {f.name for f in fields(AdoptionStageConfig)}
    return AdoptionStageConfig(**{k: v for k, v in data.items() if k in known})


def load_config(path: Optional[Union[str, Path]] = None) -> ProductivityConfig:
    """
    Load configuration from a YAML file or return defaults.

    Args:
        path: Optional path to YAML config file

    Raises:
        ConfigurationError: File is not a YAML mapping or fails validation
    """
    if path is None or not Path(path).exists():
        return get_default_config()

    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ConfigurationError(
            "Productivity config must be a YAML mapping",
            config_key=str(path),
            actual_value=type(data).__name__,
        )

    config = ProductivityConfig(
        weights=_build_section(ScoreWeights, data.get("weights")),
        retention=_build_section(RetentionConfig, data.get("retention")),
        adoption=_build_section(AdoptionScoreConfig, data.get("adoption")),
        activity=_build_section(ActivityScoreConfig, data.get("activity")),
        diversity=_build_section(DiversityScoreConfig, data.get("diversity")),
        status=_build_section(StatusThresholds, data.get("status")),
        stages=_build_stages(data.get("stages")),
        record_history=bool(data.get("record_history", True)),
    )
    config.validate()
    return config
