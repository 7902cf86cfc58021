"""
Productivity Scoring Package.

============================================================
PURPOSE
============================================================
Per-wallet productivity scores, adoption funnel tracking and
bounded bulk recomputation.

============================================================
COMPONENTS
============================================================
- assessors: retention, adoption, activity, diversity steps
- engine: ProductivityScoringEngine (compute, recompute, summary)
- adoption: AdoptionStageTracker (stages, funnel, drop-off)
- batch: BulkRecomputeRunner (semaphore + per-wallet timeout)
- config: weights and thresholds (frozen dataclasses, YAML overrides)

============================================================
"""

from .types import (
    ProductivityStatus,
    RiskLevel,
    AdoptionStageName,
    ComponentScores,
    ProductivityScoreResult,
    ProjectProductivitySummary,
    WalletActivityData,
    StageUpdate,
    AdoptionUpdate,
    FunnelStage,
    StageConversion,
    TimeToStageMetrics,
    DropOffPoint,
    WalletAdoptionStatus,
    WalletOutcome,
    BatchResult,
)
from .config import (
    ProductivityConfig,
    ScoreWeights,
    RetentionConfig,
    AdoptionScoreConfig,
    ActivityScoreConfig,
    DiversityScoreConfig,
    StatusThresholds,
    StageCriteria,
    AdoptionStageConfig,
    get_default_config,
    load_config,
)
from .assessors import (
    step_score,
    assess_retention,
    assess_adoption,
    assess_activity,
    assess_diversity,
)
from .batch import BulkRecomputeRunner
from .adoption import (
    AdoptionStageTracker,
    collect_activity,
    conversion_probability,
    is_stage_achieved,
    parse_stage,
)
from .engine import ProductivityScoringEngine


__all__ = [
    # Types
    "ProductivityStatus",
    "RiskLevel",
    "AdoptionStageName",
    "ComponentScores",
    "ProductivityScoreResult",
    "ProjectProductivitySummary",
    "WalletActivityData",
    "StageUpdate",
    "AdoptionUpdate",
    "FunnelStage",
    "StageConversion",
    "TimeToStageMetrics",
    "DropOffPoint",
    "WalletAdoptionStatus",
    "WalletOutcome",
    "BatchResult",
    # Config
    "ProductivityConfig",
    "ScoreWeights",
    "RetentionConfig",
    "AdoptionScoreConfig",
    "ActivityScoreConfig",
    "DiversityScoreConfig",
    "StatusThresholds",
    "StageCriteria",
    "AdoptionStageConfig",
    "get_default_config",
    "load_config",
    # Assessors
    "step_score",
    "assess_retention",
    "assess_adoption",
    "assess_activity",
    "assess_diversity",
    # Adoption
    "AdoptionStageTracker",
    "collect_activity",
    "conversion_probability",
    "is_stage_achieved",
    "parse_stage",
    # Engines
    "BulkRecomputeRunner",
    "ProductivityScoringEngine",
]
