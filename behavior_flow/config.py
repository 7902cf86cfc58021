"""
Behavior Flow - Configuration.

============================================================
PURPOSE
============================================================
Threshold values for flow classification, behavior pattern
detection and loyalty prediction.

Engines receive a BehaviorFlowConfig; nothing in the
segmenter, classifier or loyalty model hard-codes a number.

============================================================
THRESHOLD OVERVIEW
============================================================
- Flow:    holding vs mixing split at 24h, complexity tiers
- Pattern: shielded ratio, transition percentages, duration
- Loyalty: base 50, per-pattern deltas, metric bonuses
- Insights: high-loyalty cut-off, characteristic prevalence

============================================================
YAML OVERRIDES
============================================================
    flow:
      holding_duration_minutes: 2880
    loyalty:
      base_score: 40

Unknown keys are ignored; missing sections keep defaults.

============================================================
"""

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from core.exceptions import ConfigurationError


# ============================================================
# FLOW CONFIGURATION
# ============================================================


@dataclass(frozen=True)
class FlowConfig:
    """
    Thresholds for classifying individual flows.

    Complexity tiers by transaction count:
    - simple    <= 2
    - moderate  <= 5
    - complex   <= 10
    - advanced  above
    """

    # Entry + exit flows longer than this are holding, else mixing
    holding_duration_minutes: float = 1440.0  # 24 hours

    simple_max_transactions: int = 2
    moderate_max_transactions: int = 5
    complex_max_transactions: int = 10

    def to_dict(self) -> Dict[str, Any]:
        return {
            "holding_duration_minutes": self.holding_duration_minutes,
            "simple_max_transactions": self.simple_max_transactions,
            "moderate_max_transactions": self.moderate_max_transactions,
            "complex_max_transactions": self.complex_max_transactions,
        }


# ============================================================
# EFFICIENCY CONFIGURATION
# ============================================================


@dataclass(frozen=True)
class EfficiencyConfig:
    """Weights of the 0-100 privacy efficiency score."""

    shielded_ratio_weight: float = 40.0     # shielded tx / all tx
    flow_type_points: float = 10.0          # per distinct flow type
    flow_type_cap: float = 30.0
    optimal_flow_weight: float = 30.0       # (holding + mixing) / flows

    def to_dict(self) -> Dict[str, Any]:
        return {
            "shielded_ratio_weight": self.shielded_ratio_weight,
            "flow_type_points": self.flow_type_points,
            "flow_type_cap": self.flow_type_cap,
            "optimal_flow_weight": self.optimal_flow_weight,
        }


# ============================================================
# PATTERN CONFIGURATION
# ============================================================


@dataclass(frozen=True)
class PatternConfig:
    """
    Thresholds for the dominant behavior pattern.

    Rules are evaluated top to bottom; the first match wins.
    """

    shielded_native_ratio: float = 0.8      # shielded flow ratio >= 80%
    accumulator_z_to_z_pct: float = 50.0    # Z->Z transitions > 50%
    holder_duration_minutes: float = 1440.0  # avg flow duration > 24h
    cycling_transition_pct: float = 30.0    # T->Z and Z->T both > 30%
    cycler_symmetry_pct: float = 10.0       # |T->Z - Z->T| < 10 points
    occasional_mixer_ratio: float = 0.2     # shielded flow ratio > 20%

    # Extra characteristics
    complex_flow_avg_transactions: float = 5.0
    quick_operation_minutes: float = 60.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "shielded_native_ratio": self.shielded_native_ratio,
            "accumulator_z_to_z_pct": self.accumulator_z_to_z_pct,
            "holder_duration_minutes": self.holder_duration_minutes,
            "cycling_transition_pct": self.cycling_transition_pct,
            "cycler_symmetry_pct": self.cycler_symmetry_pct,
            "occasional_mixer_ratio": self.occasional_mixer_ratio,
            "complex_flow_avg_transactions": self.complex_flow_avg_transactions,
            "quick_operation_minutes": self.quick_operation_minutes,
        }


# ============================================================
# LOYALTY CONFIGURATION
# ============================================================


@dataclass(frozen=True)
class LoyaltyConfig:
    """Base score and adjustments of the loyalty prediction."""

    base_score: int = 50

    # Per-pattern deltas
    shielded_native_delta: int = 30
    accumulator_delta: int = 25
    holder_delta: int = 20
    cycler_delta: int = 15
    mixer_delta: int = 10
    transparent_only_delta: int = -10

    # Metric adjustments
    long_duration_minutes: float = 1440.0
    long_duration_bonus: int = 15
    efficiency_threshold: int = 70
    efficiency_bonus: int = 10
    many_flows_threshold: int = 5
    many_flows_bonus: int = 10
    single_flow_penalty: int = -5
    complexity_bonus: int = 5

    # Retention = loyalty * 0.8 + shielded_flow_ratio * 0.3
    retention_loyalty_weight: float = 0.8
    retention_shielded_weight: float = 0.3

    # Engagement tiers
    high_engagement_score: int = 75
    medium_engagement_score: int = 50

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


# ============================================================
# INSIGHTS CONFIGURATION
# ============================================================


@dataclass(frozen=True)
class InsightsConfig:
    """Project-level insight thresholds."""

    high_loyalty_score: int = 75
    common_characteristic_share: float = 0.2   # present in 20%+ of wallets
    low_adoption_rate: float = 30.0            # % of wallets using privacy
    low_loyalty_score: float = 50.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "high_loyalty_score": self.high_loyalty_score,
            "common_characteristic_share": self.common_characteristic_share,
            "low_adoption_rate": self.low_adoption_rate,
            "low_loyalty_score": self.low_loyalty_score,
        }


# ============================================================
# MASTER CONFIGURATION
# ============================================================


@dataclass(frozen=True)
class BehaviorFlowConfig:
    """Master configuration for behavior flow analysis."""

    flow: FlowConfig = field(default_factory=FlowConfig)
    efficiency: EfficiencyConfig = field(default_factory=EfficiencyConfig)
    pattern: PatternConfig = field(default_factory=PatternConfig)
    loyalty: LoyaltyConfig = field(default_factory=LoyaltyConfig)
    insights: InsightsConfig = field(default_factory=InsightsConfig)

    # Default analysis window for project runs
    default_window_days: int = 30

    def to_dict(self) -> Dict[str, Any]:
        return {
            "flow": self.flow.to_dict(),
            "efficiency": self.efficiency.to_dict(),
            "pattern": self.pattern.to_dict(),
            "loyalty": self.loyalty.to_dict(),
            "insights": self.insights.to_dict(),
            "default_window_days": self.default_window_days,
        }


def get_default_config() -> BehaviorFlowConfig:
    """Get default configuration."""
    return BehaviorFlowConfig()


def _build_section(section_class: type, data: Optional[Dict[str, Any]]) -> Any:
    known = {f.name for f in fields(section_class)}
    return section_class(**{k: v for k, v in (data or {}).items() if k in known})


def load_config(path: Optional[Union[str, Path]] = None) -> BehaviorFlowConfig:
    """
    Load configuration from a YAML file or return defaults.

    Args:
        path: Optional path to YAML config file

    Raises:
        ConfigurationError: File exists but is not a YAML mapping
    """
    if path is None or not Path(path).exists():
        return get_default_config()

    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ConfigurationError(
            "Behavior flow config must be a YAML mapping",
            config_key=str(path),
            actual_value=type(data).__name__,
        )

    return BehaviorFlowConfig(
        flow=_build_section(FlowConfig, data.get("flow")),
        efficiency=_build_section(EfficiencyConfig, data.get("efficiency")),
        pattern=_build_section(PatternConfig, data.get("pattern")),
        loyalty=_build_section(LoyaltyConfig, data.get("loyalty")),
        insights=_build_section(InsightsConfig, data.get("insights")),
        default_window_days=data.get("default_window_days", 30),
    )
