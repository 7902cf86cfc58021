"""
Dashboard Aggregation Package.

============================================================
PURPOSE
============================================================
Project-level aggregates over non-private wallets, served
through a single-flight TTL cache:
- Dashboard sections and wallet health buckets
- Weekly / monthly cohort retention
- Daily metric time series
- JSON / CSV report export

============================================================
"""

from .types import (
    TimeSeriesMetric,
    CohortType,
    ExportFormat,
    TimeSeriesPoint,
    CohortRetention,
    CohortSummary,
    ReportSection,
    ExportedReport,
)
from .cache import SingleFlightCache
from .cohorts import build_cohorts, period_start, summarize_cohorts
from .exporters import (
    CsvFormatter,
    FormatterFactory,
    JsonFormatter,
    build_report_sections,
    parse_export_format,
)
from .service import DashboardService, InsightProvider


__all__ = [
    # Types
    "TimeSeriesMetric",
    "CohortType",
    "ExportFormat",
    "TimeSeriesPoint",
    "CohortRetention",
    "CohortSummary",
    "ReportSection",
    "ExportedReport",
    # Cache
    "SingleFlightCache",
    # Cohorts
    "build_cohorts",
    "period_start",
    "summarize_cohorts",
    # Export
    "CsvFormatter",
    "FormatterFactory",
    "JsonFormatter",
    "build_report_sections",
    "parse_export_format",
    # Service
    "DashboardService",
    "InsightProvider",
]
