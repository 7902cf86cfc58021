"""
Behavior Flow Package.

============================================================
PURPOSE
============================================================
Segments a wallet's transactions into privacy flows,
classifies the wallet's dominant behavior pattern and predicts
loyalty. Project analysis rolls wallet results up into
insights and recommendations.

============================================================
COMPONENTS
============================================================
- segmenter: flow segmentation and transition counts
- classifier: flow type, complexity, metrics, pattern
- loyalty: loyalty prediction and project insights
- engine: BehaviorFlowEngine (I/O and orchestration)
- config: thresholds (frozen dataclasses, YAML overrides)

============================================================
"""

from .types import (
    FlowType,
    FlowComplexity,
    PrivacyTransition,
    BehaviorPatternType,
    PrivacyPreference,
    EngagementLevel,
    FlowTransaction,
    Flow,
    TransitionSummary,
    FlowMetrics,
    BehaviorPattern,
    LoyaltyPrediction,
    AnalysisWindow,
    FlowAnalysis,
    ProjectBehaviorInsights,
    ProjectBehaviorAnalysis,
)
from .config import (
    BehaviorFlowConfig,
    FlowConfig,
    EfficiencyConfig,
    PatternConfig,
    LoyaltyConfig,
    InsightsConfig,
    get_default_config,
    load_config,
)
from .segmenter import segment_flows, summarize_transitions
from .classifier import (
    classify_complexity,
    classify_flow_type,
    calculate_flow_metrics,
    calculate_privacy_efficiency,
    identify_behavior_pattern,
)
from .loyalty import predict_loyalty, generate_project_insights
from .engine import BehaviorFlowEngine


__all__ = [
    # Types
    "FlowType",
    "FlowComplexity",
    "PrivacyTransition",
    "BehaviorPatternType",
    "PrivacyPreference",
    "EngagementLevel",
    "FlowTransaction",
    "Flow",
    "TransitionSummary",
    "FlowMetrics",
    "BehaviorPattern",
    "LoyaltyPrediction",
    "AnalysisWindow",
    "FlowAnalysis",
    "ProjectBehaviorInsights",
    "ProjectBehaviorAnalysis",
    # Config
    "BehaviorFlowConfig",
    "FlowConfig",
    "EfficiencyConfig",
    "PatternConfig",
    "LoyaltyConfig",
    "InsightsConfig",
    "get_default_config",
    "load_config",
    # Functions
    "segment_flows",
    "summarize_transitions",
    "classify_complexity",
    "classify_flow_type",
    "calculate_flow_metrics",
    "calculate_privacy_efficiency",
    "identify_behavior_pattern",
    "predict_loyalty",
    "generate_project_insights",
    # Engine
    "BehaviorFlowEngine",
]
