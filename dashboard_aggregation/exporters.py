"""
Dashboard Aggregation - Report Exporters.

============================================================
PURPOSE
============================================================
Render a project dashboard as a downloadable report:
- JSON (structured sections plus the full dashboard)
- CSV (flat sections: OVERVIEW, PRODUCTIVITY, ADOPTION FUNNEL)

Both formats are rendered from the same ReportSection list,
so the values in the two outputs are identical. Floats are
written unrounded in both.

============================================================
REQUIREMENTS
============================================================
Every export carries:
- Export timestamp
- SHA-256 checksum of the rendered content

============================================================
"""

import csv
import hashlib
import io
import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Sequence, Union

from core.exceptions import ValidationError

from .types import ExportedReport, ExportFormat, ReportSection


logger = logging.getLogger(__name__)


# ============================================================
# SECTIONS
# ============================================================

def build_report_sections(dashboard: Dict[str, Any]) -> List[ReportSection]:
    """Tabular view of a dashboard payload."""
    overview = dashboard.get("overview", {})
    productivity = dashboard.get("productivity", {})

    return [
        ReportSection(
            title="OVERVIEW",
            columns=["Metric", "Value"],
            rows=[
                ["Total Wallets", overview.get("total_wallets", 0)],
                ["Active Wallets", overview.get("active_wallets", 0)],
                ["Total Transactions", overview.get("total_transactions", 0)],
                ["Total Volume (ZEC)", overview.get("total_volume_zec", 0.0)],
                ["Avg Productivity Score", overview.get("avg_productivity_score", 0.0)],
            ],
        ),
        ReportSection(
            title="PRODUCTIVITY",
            columns=["Metric", "Value"],
            rows=[
                ["Avg Total Score", productivity.get("avg_total_score", 0.0)],
                ["Avg Retention Score", productivity.get("avg_retention_score", 0.0)],
                ["Avg Adoption Score", productivity.get("avg_adoption_score", 0.0)],
                ["Avg Activity Score", productivity.get("avg_activity_score", 0.0)],
                ["Avg Diversity Score", productivity.get("avg_diversity_score", 0.0)],
                ["At-Risk Wallets", productivity.get("at_risk_wallets", 0)],
                ["Churn Wallets", productivity.get("churn_wallets", 0)],
            ],
        ),
        ReportSection(
            title="ADOPTION FUNNEL",
            columns=["Stage", "Wallet Count", "Avg Time (hours)"],
            rows=[
                [stage["stage"], stage["wallet_count"], stage["avg_time_hours"]]
                for stage in dashboard.get("adoption", [])
            ],
        ),
    ]


# ============================================================
# BASE FORMATTER
# ============================================================

class BaseFormatter(ABC):
    """Base class for report formatters."""

    @property
    @abstractmethod
    def format(self) -> ExportFormat:
        """Output format this formatter produces."""

    @property
    @abstractmethod
    def content_type(self) -> str:
        """MIME type of the output."""

    @property
    @abstractmethod
    def file_extension(self) -> str:
        """File extension for the output."""

    @abstractmethod
    def render(
        self,
        sections: Sequence[ReportSection],
        dashboard: Dict[str, Any],
        exported_at: datetime,
    ) -> ExportedReport:
        """Render sections into a report."""

    def _calculate_checksum(self, content: Union[str, bytes]) -> str:
        """Calculate SHA-256 checksum of content."""
        if isinstance(content, str):
            content = content.encode("utf-8")
        return hashlib.sha256(content).hexdigest()


# ============================================================
# JSON FORMATTER
# ============================================================

class JsonFormatter(BaseFormatter):
    """Formats a report as JSON."""

    def __init__(self, pretty: bool = True):
        self._pretty = pretty

    @property
    def format(self) -> ExportFormat:
        return ExportFormat.JSON

    @property
    def content_type(self) -> str:
        return "application/json"

    @property
    def file_extension(self) -> str:
        return ".json"

    def _dumps(self, payload: Dict[str, Any]) -> str:
        if self._pretty:
            return json.dumps(payload, indent=2, default=str)
        return json.dumps(payload, default=str)

    def render(
        self,
        sections: Sequence[ReportSection],
        dashboard: Dict[str, Any],
        exported_at: datetime,
    ) -> ExportedReport:
        payload: Dict[str, Any] = {
            "sections": [section.to_dict() for section in sections],
            "dashboard": dashboard,
            "metadata": {"exported_at": exported_at.isoformat()},
        }

        # Checksum covers the payload before the checksum is added
        checksum = self._calculate_checksum(self._dumps(payload))
        payload["metadata"]["checksum"] = checksum

        return ExportedReport(
            format=self.format,
            content=self._dumps(payload),
            content_type=self.content_type,
            file_extension=self.file_extension,
            checksum=checksum,
            exported_at=exported_at,
            payload=payload,
        )


# ============================================================
# CSV FORMATTER
# ============================================================

class CsvFormatter(BaseFormatter):
    """Formats a report as flat CSV, one block per section."""

    def __init__(self, delimiter: str = ","):
        self._delimiter = delimiter

    @property
    def format(self) -> ExportFormat:
        return ExportFormat.CSV

    @property
    def content_type(self) -> str:
        return "text/csv"

    @property
    def file_extension(self) -> str:
        return ".csv"

    @staticmethod
    def _cell(value: Any) -> Any:
        if value is None:
            return ""
        return value

    def render(
        self,
        sections: Sequence[ReportSection],
        dashboard: Dict[str, Any],
        exported_at: datetime,
    ) -> ExportedReport:
        output = io.StringIO()
        writer = csv.writer(output, delimiter=self._delimiter, lineterminator="\n")

        for index, section in enumerate(sections):
            if index:
                writer.writerow([])
            writer.writerow([section.title])
            writer.writerow(section.columns)
            for row in section.rows:
                writer.writerow([self._cell(value) for value in row])

        content = output.getvalue()
        return ExportedReport(
            format=self.format,
            content=content,
            content_type=self.content_type,
            file_extension=self.file_extension,
            checksum=self._calculate_checksum(content),
            exported_at=exported_at,
        )


# ============================================================
# FORMATTER FACTORY
# ============================================================

def parse_export_format(value: Union[str, ExportFormat]) -> ExportFormat:
    try:
        return ExportFormat(value.lower() if isinstance(value, str) else value)
    except ValueError:
        raise ValidationError(
            f"Unknown export format: {value}",
            field="format",
            value=value,
        ) from None


class FormatterFactory:
    """Factory for creating formatters."""

    @staticmethod
    def create(export_format: Union[str, ExportFormat]) -> BaseFormatter:
        """
        Create a formatter for the given format.

        Raises:
            ValidationError: Unsupported format
        """
        export_format = parse_export_format(export_format)
        if export_format == ExportFormat.JSON:
            return JsonFormatter()
        return CsvFormatter()
