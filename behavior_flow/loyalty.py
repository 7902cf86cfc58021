"""
Behavior Flow - Loyalty Prediction and Project Insights.

============================================================
PURPOSE
============================================================
- predict_loyalty: turns a wallet's pattern and flow metrics
  into a 0-100 loyalty score, retention probability and
  engagement tier
- generate_project_insights: summarizes many wallet analyses
  into distribution, adoption rate and recommendations

============================================================
LOYALTY MODEL
============================================================
Start at the base score (50), then:
- add the delta of the matched pattern
- add bonuses for long flows, efficient privacy usage, many
  flows and complex flows; subtract for a single flow
- clamp to [0, 100]

retention = min(100, loyalty * 0.8 + shielded_flow_ratio * 0.3)

============================================================
"""

from typing import Dict, List, Sequence

from core.numeric import clamp, percentage, round_half_up

from .config import InsightsConfig, LoyaltyConfig
from .types import (
    BehaviorPattern,
    BehaviorPatternType,
    EngagementLevel,
    FlowAnalysis,
    FlowComplexity,
    FlowMetrics,
    LoyaltyPrediction,
    ProjectBehaviorInsights,
)


PATTERN_INDICATORS = {
    BehaviorPatternType.SHIELDED_NATIVE: "Native shielded user - high privacy commitment",
    BehaviorPatternType.ACCUMULATOR: "Accumulates in shielded pool - long-term holder",
    BehaviorPatternType.HOLDER: "Extended shielded holding periods",
    BehaviorPatternType.CYCLER: "Regular privacy usage patterns",
    BehaviorPatternType.MIXER: "Active privacy-conscious user",
}


def _pattern_delta(pattern: BehaviorPatternType, config: LoyaltyConfig) -> int:
    return {
        BehaviorPatternType.SHIELDED_NATIVE: config.shielded_native_delta,
        BehaviorPatternType.ACCUMULATOR: config.accumulator_delta,
        BehaviorPatternType.HOLDER: config.holder_delta,
        BehaviorPatternType.CYCLER: config.cycler_delta,
        BehaviorPatternType.MIXER: config.mixer_delta,
        BehaviorPatternType.TRANSPARENT_ONLY: config.transparent_only_delta,
    }[pattern]


def predict_loyalty(
    pattern: BehaviorPattern,
    metrics: FlowMetrics,
    config: LoyaltyConfig,
) -> LoyaltyPrediction:
    """Score loyalty from a behavior pattern and its flow metrics."""
    positive: List[str] = []
    risks: List[str] = []

    score = config.base_score + _pattern_delta(pattern.primary_pattern, config)
    if pattern.primary_pattern == BehaviorPatternType.TRANSPARENT_ONLY:
        risks.append("No privacy feature usage")
    else:
        positive.append(PATTERN_INDICATORS[pattern.primary_pattern])

    if metrics.avg_flow_duration_minutes > config.long_duration_minutes:
        score += config.long_duration_bonus
        positive.append("Long-term engagement patterns")

    if metrics.privacy_efficiency_score > config.efficiency_threshold:
        score += config.efficiency_bonus
        positive.append("Efficient privacy usage")

    if metrics.total_flows > config.many_flows_threshold:
        score += config.many_flows_bonus
        positive.append("Multiple privacy sessions")
    elif metrics.total_flows == 1:
        score += config.single_flow_penalty
        risks.append("Limited privacy exploration")

    complex_flows = (
        metrics.complexity_distribution.get(FlowComplexity.COMPLEX, 0)
        + metrics.complexity_distribution.get(FlowComplexity.ADVANCED, 0)
    )
    if complex_flows > 0:
        score += config.complexity_bonus
        positive.append("Sophisticated privacy usage")

    loyalty_score = int(clamp(score, 0, 100))
    retention = min(
        100.0,
        loyalty_score * config.retention_loyalty_weight
        + metrics.shielded_flow_ratio * config.retention_shielded_weight,
    )

    if loyalty_score >= config.high_engagement_score:
        engagement = EngagementLevel.HIGH
    elif loyalty_score >= config.medium_engagement_score:
        engagement = EngagementLevel.MEDIUM
    else:
        engagement = EngagementLevel.LOW

    return LoyaltyPrediction(
        loyalty_score=loyalty_score,
        retention_probability=round_half_up(retention, 2),
        engagement_level=engagement,
        risk_factors=risks,
        positive_indicators=positive,
    )


def generate_project_insights(
    analyses: Sequence[FlowAnalysis],
    config: InsightsConfig,
) -> ProjectBehaviorInsights:
    """Summarize wallet analyses into project-wide insights."""
    if not analyses:
        return ProjectBehaviorInsights(
            total_wallets_analyzed=0,
            behavior_pattern_distribution={},
            avg_loyalty_score=0.0,
            high_loyalty_wallets=0,
            privacy_adoption_rate=0.0,
            common_characteristics=[],
            recommendations=[],
        )

    total = len(analyses)

    distribution: Dict[BehaviorPatternType, int] = {}
    for analysis in analyses:
        pattern = analysis.pattern.primary_pattern
        distribution[pattern] = distribution.get(pattern, 0) + 1

    loyalty_scores = [a.loyalty_prediction.loyalty_score for a in analyses]
    avg_loyalty = round_half_up(sum(loyalty_scores) / total, 2)
    high_loyalty = sum(1 for s in loyalty_scores if s >= config.high_loyalty_score)

    privacy_users = sum(
        1 for a in analyses
        if a.pattern.primary_pattern != BehaviorPatternType.TRANSPARENT_ONLY
    )
    adoption_rate = percentage(privacy_users, total)

    characteristic_counts: Dict[str, int] = {}
    for analysis in analyses:
        for characteristic in analysis.pattern.characteristics:
            characteristic_counts[characteristic] = characteristic_counts.get(characteristic, 0) + 1

    common = sorted(
        (
            {"characteristic": characteristic, "prevalence": count}
            for characteristic, count in characteristic_counts.items()
            if count >= total * config.common_characteristic_share
        ),
        key=lambda item: item["prevalence"],
        reverse=True,
    )

    recommendations: List[str] = []
    if adoption_rate < config.low_adoption_rate:
        recommendations.append("Low privacy adoption - consider privacy education campaigns")

    if avg_loyalty < config.low_loyalty_score:
        recommendations.append("Below average loyalty - focus on user engagement and retention")

    dominant_pattern = max(distribution.items(), key=lambda item: item[1])[0]
    if dominant_pattern == BehaviorPatternType.TRANSPARENT_ONLY:
        recommendations.append("Many users not utilizing privacy features - improve privacy UX")

    return ProjectBehaviorInsights(
        total_wallets_analyzed=total,
        behavior_pattern_distribution=distribution,
        avg_loyalty_score=avg_loyalty,
        high_loyalty_wallets=high_loyalty,
        privacy_adoption_rate=adoption_rate,
        common_characteristics=common,
        recommendations=recommendations,
    )
