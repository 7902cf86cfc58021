"""
Dashboard Aggregation - Types.

Value objects returned by the dashboard service. Dashboards
themselves are plain dicts so they can be cached and exported
without conversion.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class TimeSeriesMetric(str, Enum):
    """Metrics available as a daily time series."""

    ACTIVE_WALLETS = "active_wallets"
    TRANSACTIONS = "transactions"
    PRODUCTIVITY = "productivity"


class CohortType(str, Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class ExportFormat(str, Enum):
    JSON = "json"
    CSV = "csv"


@dataclass(frozen=True)
class TimeSeriesPoint:
    """One day of a metric time series."""

    date: date
    value: float

    def to_dict(self) -> Dict[str, Any]:
        return {"date": self.date.isoformat(), "value": self.value}


@dataclass(frozen=True)
class CohortRetention:
    """Retention of wallets created in the same period."""

    cohort_type: CohortType
    period_start: date
    wallet_count: int
    # Week number (1..4) -> % of cohort wallets active that week
    retention: Dict[int, float]

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "cohort_type": self.cohort_type.value,
            "period_start": self.period_start.isoformat(),
            "wallet_count": self.wallet_count,
        }
        for week, rate in sorted(self.retention.items()):
            result[f"retention_week_{week}"] = rate
        return result


@dataclass(frozen=True)
class CohortSummary:
    """Averages over all cohorts of one type."""

    cohort_type: CohortType
    cohort_count: int
    avg_retention_week_1: float
    avg_retention_week_2: float
    avg_retention_week_4: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cohort_type": self.cohort_type.value,
            "cohort_count": self.cohort_count,
            "avg_retention_week_1": self.avg_retention_week_1,
            "avg_retention_week_2": self.avg_retention_week_2,
            "avg_retention_week_4": self.avg_retention_week_4,
        }


@dataclass(frozen=True)
class ReportSection:
    """Tabular section shared by every export format."""

    title: str
    columns: List[str]
    rows: List[List[Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "columns": list(self.columns),
            "rows": [list(row) for row in self.rows],
        }


@dataclass(frozen=True)
class ExportedReport:
    """Rendered report plus integrity metadata."""

    format: ExportFormat
    content: str
    content_type: str
    file_extension: str
    checksum: str
    exported_at: datetime
    payload: Optional[Dict[str, Any]] = None

    @property
    def size_bytes(self) -> int:
        return len(self.content.encode("utf-8"))
