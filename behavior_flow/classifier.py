"""
Behavior Flow - Classifier.

============================================================
PURPOSE
============================================================
Pure classification functions:
- Flow type and complexity tier of a single flow
- Aggregate flow metrics and privacy efficiency score
- Dominant behavior pattern of a wallet

Aggregates count privacy flows only. Transparent runs are
returned by the segmenter for coverage but never scored.

No I/O. Every threshold comes from BehaviorFlowConfig.

============================================================
FLOW TYPE RULES (first match wins)
============================================================
1. one transaction                 -> single_transaction
2. no shielded transaction         -> transparent_only
3. entry and exit, long duration   -> holding
4. entry and exit                  -> mixing
5. entry only                      -> accumulation
6. exit only                       -> spending
7. otherwise                       -> internal_shielded

============================================================
"""

from typing import Dict, List, Sequence

from core.numeric import percentage, round_half_up

from .config import BehaviorFlowConfig, EfficiencyConfig, FlowConfig, PatternConfig
from .types import (
    BehaviorPattern,
    BehaviorPatternType,
    Flow,
    FlowComplexity,
    FlowMetrics,
    FlowTransaction,
    FlowType,
    PrivacyPreference,
    PrivacyTransition,
    TransitionSummary,
)


OPTIMAL_FLOW_TYPES = (FlowType.HOLDING, FlowType.MIXING)


# ============================================================
# SINGLE FLOW
# ============================================================


def classify_complexity(transaction_count: int, config: FlowConfig) -> FlowComplexity:
    """Step function of the transaction count."""
    if transaction_count <= config.simple_max_transactions:
        return FlowComplexity.SIMPLE
    if transaction_count <= config.moderate_max_transactions:
        return FlowComplexity.MODERATE
    if transaction_count <= config.complex_max_transactions:
        return FlowComplexity.COMPLEX
    return FlowComplexity.ADVANCED


def classify_flow_type(
    transactions: Sequence[FlowTransaction],
    duration_minutes: float,
    config: FlowConfig,
) -> FlowType:
    if len(transactions) == 1:
        return FlowType.SINGLE_TRANSACTION

    if not any(tx.is_shielded for tx in transactions):
        return FlowType.TRANSPARENT_ONLY

    has_entry = any(tx.shielded_entry for tx in transactions)
    has_exit = any(tx.shielded_exit for tx in transactions)

    if has_entry and has_exit:
        if duration_minutes > config.holding_duration_minutes:
            return FlowType.HOLDING
        return FlowType.MIXING

    if has_entry:
        return FlowType.ACCUMULATION

    if has_exit:
        return FlowType.SPENDING

    return FlowType.INTERNAL_SHIELDED


# ============================================================
# AGGREGATE METRICS
# ============================================================


def privacy_flows(flows: Sequence[Flow]) -> List[Flow]:
    """Flows opened by a shielded transaction."""
    return [flow for flow in flows if flow.is_privacy_flow]


def calculate_privacy_efficiency(
    flows: Sequence[Flow],
    transactions: Sequence[FlowTransaction],
    config: EfficiencyConfig,
) -> int:
    """
    Privacy efficiency score (0-100).

    shielded tx ratio * 40
    + min(distinct flow types * 10, 30)
    + share of holding/mixing flows * 30
    """
    flows = privacy_flows(flows)
    if not flows or not transactions:
        return 0

    shielded = sum(1 for tx in transactions if tx.is_shielded)
    score = shielded / len(transactions) * config.shielded_ratio_weight

    distinct_types = len({flow.flow_type for flow in flows})
    score += min(distinct_types * config.flow_type_points, config.flow_type_cap)

    optimal = sum(1 for flow in flows if flow.flow_type in OPTIMAL_FLOW_TYPES)
    score += optimal / len(flows) * config.optimal_flow_weight

    return min(100, round_half_up(score))


def calculate_flow_metrics(
    flows: Sequence[Flow],
    transactions: Sequence[FlowTransaction],
    config: BehaviorFlowConfig,
) -> FlowMetrics:
    complexity_distribution: Dict[FlowComplexity, int] = {
        tier: 0 for tier in FlowComplexity.ordered()
    }
    flow_type_distribution: Dict[FlowType, int] = {}

    flows = privacy_flows(flows)
    if not flows:
        return FlowMetrics(
            total_flows=0,
            avg_flow_duration_minutes=0.0,
            avg_transactions_per_flow=0.0,
            shielded_flow_ratio=0.0,
            complexity_distribution=complexity_distribution,
            flow_type_distribution=flow_type_distribution,
            privacy_efficiency_score=0,
        )

    for flow in flows:
        complexity_distribution[flow.complexity] += 1
        flow_type_distribution[flow.flow_type] = flow_type_distribution.get(flow.flow_type, 0) + 1

    total_duration = sum(flow.duration_minutes for flow in flows)
    total_transactions = sum(flow.transaction_count for flow in flows)
    shielded_flows = sum(1 for flow in flows if flow.has_shielded)

    return FlowMetrics(
        total_flows=len(flows),
        avg_flow_duration_minutes=round_half_up(total_duration / len(flows), 2),
        avg_transactions_per_flow=round_half_up(total_transactions / len(flows), 2),
        shielded_flow_ratio=percentage(shielded_flows, len(flows)),
        complexity_distribution=complexity_distribution,
        flow_type_distribution=flow_type_distribution,
        privacy_efficiency_score=calculate_privacy_efficiency(flows, transactions, config.efficiency),
    )


# ============================================================
# BEHAVIOR PATTERN
# ============================================================


def identify_behavior_pattern(
    flows: Sequence[Flow],
    transitions: TransitionSummary,
    metrics: FlowMetrics,
    config: PatternConfig,
) -> BehaviorPattern:
    """Match the wallet against the pattern rules, first match wins."""
    flows = privacy_flows(flows)
    if not flows:
        return BehaviorPattern(
            primary_pattern=BehaviorPatternType.TRANSPARENT_ONLY,
            confidence=0,
            privacy_preference=PrivacyPreference.LOW,
        )

    shielded_ratio = metrics.shielded_flow_ratio / 100
    avg_duration = metrics.avg_flow_duration_minutes
    t_to_z = transitions.percentage(PrivacyTransition.T_TO_Z)
    z_to_t = transitions.percentage(PrivacyTransition.Z_TO_T)
    z_to_z = transitions.percentage(PrivacyTransition.Z_TO_Z)

    characteristics: List[str] = []
    primary = BehaviorPatternType.TRANSPARENT_ONLY
    confidence = 0
    preference = PrivacyPreference.LOW

    if shielded_ratio >= config.shielded_native_ratio:
        primary, confidence, preference = BehaviorPatternType.SHIELDED_NATIVE, 90, PrivacyPreference.HIGH
        characteristics.append("Primarily uses shielded transactions")
    elif z_to_z > config.accumulator_z_to_z_pct:
        primary, confidence, preference = BehaviorPatternType.ACCUMULATOR, 85, PrivacyPreference.HIGH
        characteristics.append("Accumulates funds in shielded pool")
    elif avg_duration > config.holder_duration_minutes:
        primary, confidence, preference = BehaviorPatternType.HOLDER, 80, PrivacyPreference.MEDIUM
        characteristics.append("Holds funds in shielded pool for extended periods")
    elif t_to_z > config.cycling_transition_pct and z_to_t > config.cycling_transition_pct:
        if abs(t_to_z - z_to_t) < config.cycler_symmetry_pct:
            primary, confidence, preference = BehaviorPatternType.CYCLER, 75, PrivacyPreference.MEDIUM
            characteristics.append("Regularly cycles between transparent and shielded")
        else:
            primary, confidence, preference = BehaviorPatternType.MIXER, 70, PrivacyPreference.MEDIUM
            characteristics.append("Uses shielded pool for transaction mixing")
    elif shielded_ratio > config.occasional_mixer_ratio:
        primary, confidence, preference = BehaviorPatternType.MIXER, 60, PrivacyPreference.LOW
        characteristics.append("Occasional privacy usage")

    if metrics.avg_transactions_per_flow > config.complex_flow_avg_transactions:
        characteristics.append("Complex transaction flows")

    if avg_duration < config.quick_operation_minutes:
        characteristics.append("Quick privacy operations")

    return BehaviorPattern(
        primary_pattern=primary,
        confidence=confidence,
        privacy_preference=preference,
        characteristics=characteristics,
    )
