"""
Productivity Scoring - Component Assessors.

============================================================
PURPOSE
============================================================
Step functions turning activity rollups into the four
productivity components.

Each assessor:
1. Takes the rollups it needs and the reference day
2. Applies threshold steps from the config
3. Returns an integer score in [0, 100]

============================================================
DESIGN PRINCIPLES
============================================================
- Pure functions: same input = same output
- No database access (the engine loads the rollups)
- "Trailing N days" means activity_date > today - N

============================================================
"""

import operator
from datetime import date, timedelta
from typing import Any, Callable, Sequence

from core.numeric import clamp

from .config import (
    ActivityScoreConfig,
    AdoptionScoreConfig,
    DiversityScoreConfig,
    RetentionConfig,
    Steps,
)


CATEGORY_COUNTERS = ("transfers_count", "swaps_count", "bridges_count", "shielded_count")


def step_score(
    value: float,
    steps: Steps,
    compare: Callable[[float, float], bool] = operator.ge,
    default: int = 0,
) -> int:
    """Points of the first step whose threshold matches `value`."""
    for threshold, points in steps:
        if compare(value, threshold):
            return points
    return default


def trailing(rollups: Sequence[Any], today: date, days: int) -> list:
    """Rollups dated strictly after today - days."""
    boundary = today - timedelta(days=days)
    return [rollup for rollup in rollups if rollup.activity_date > boundary]


def categories_used(rollups: Sequence[Any]) -> int:
    """Number of transaction categories with at least one transaction."""
    return sum(
        1 for counter in CATEGORY_COUNTERS
        if sum(getattr(rollup, counter) for rollup in rollups) > 0
    )


def active_dates(rollups: Sequence[Any]) -> set:
    return {rollup.activity_date for rollup in rollups if rollup.is_active}


# ============================================================
# COMPONENTS
# ============================================================


def assess_retention(rollups: Sequence[Any], today: date, config: RetentionConfig) -> int:
    """
    Retention over the trailing window.

    Args:
        rollups: The wallet's rollups (any range; windowed here)
        today: Reference day
        config: Retention thresholds

    Returns:
        Score in [0, 100]; 0 when the window holds no rollups
    """
    window = trailing(rollups, today, config.window_days)
    if not window:
        return 0

    dates = active_dates(window)

    frequency = step_score(len(dates), config.frequency_steps)

    recency = 0
    if dates:
        days_since_last = (today - max(dates)).days
        recency = step_score(days_since_last, config.recency_steps, operator.le)

    volume_total = sum(rollup.total_volume_zatoshi for rollup in window)
    volume = step_score(volume_total, config.volume_steps, operator.gt)

    diversity = min(
        categories_used(window) * config.diversity_points_per_category,
        config.diversity_cap,
    )

    return int(min(frequency + recency + volume + diversity, config.max_score))


def assess_adoption(active_rollup_count: int, config: AdoptionScoreConfig) -> int:
    """Adoption from the all-time count of active rollups."""
    return step_score(active_rollup_count, config.steps)


def assess_activity(rollups: Sequence[Any], today: date, config: ActivityScoreConfig) -> int:
    """Activity from distinct active days in the trailing week."""
    window = trailing(rollups, today, config.window_days)
    return step_score(len(active_dates(window)), config.steps)


def assess_diversity(rollups: Sequence[Any], today: date, config: DiversityScoreConfig) -> int:
    """Points per transaction category used in the trailing window."""
    window = trailing(rollups, today, config.window_days)
    score = categories_used(window) * config.points_per_category
    return int(clamp(score, 0, config.max_score))
