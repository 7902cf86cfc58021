"""
Activity Metrics Package.

Builds daily per-wallet activity rollups from processed
transactions. Every scoring and dashboard component reads
these rollups rather than raw transactions.
"""

from .calculator import (
    ActivityRollupCalculator,
    DailyActivityMetrics,
    calculate_sequence_complexity,
)


__all__ = [
    "ActivityRollupCalculator",
    "DailyActivityMetrics",
    "calculate_sequence_complexity",
]
