"""
Dashboard Aggregation - Dashboard Service.

============================================================
PURPOSE
============================================================
Project-level read model over wallet analytics:
- Dashboard (overview, productivity, cohorts, adoption,
  alerts, recommendations)
- Daily time series for a metric
- Wallet health buckets
- JSON / CSV report export

============================================================
PRINCIPLES
============================================================
- READ-ONLY: never writes wallet data
- Every aggregate runs over the project's non-private wallets
  (PrivacyEnforcer.aggregate_eligible_wallet_ids)
- Results are cached per project; privacy mode changes
  invalidate the project's entries before they take effect
  for readers
- Alert and recommendation providers are optional; a failing
  provider degrades its section to an empty list

============================================================
USAGE
============================================================
    service = DashboardService(session, enforcer=enforcer)
    dashboard = await service.get_dashboard(project_id)
    series = await service.get_time_series(project_id, "transactions", days=7)
    report = await service.export_report(project_id, "csv")

============================================================
"""

import inspect
import logging
import statistics
from datetime import timedelta
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Union
from uuid import UUID

from sqlalchemy.orm import Session

from core.clock import ClockProtocol, end_of_day, get_clock
from core.exceptions import NotFoundError, ValidationError
from core.numeric import round_half_up
from privacy_enforcement.enforcer import PrivacyEnforcer
from productivity_scoring.adoption import AdoptionStageTracker
from productivity_scoring.config import ProductivityConfig
from productivity_scoring.types import ProductivityStatus, RiskLevel
from storage.repositories.scoring import ProductivityScoreRepository
from storage.repositories.transactions import ActivityRollupRepository
from storage.repositories.wallets import ProjectRepository, WalletRepository

from .cache import SingleFlightCache
from .cohorts import build_cohorts, summarize_cohorts
from .exporters import FormatterFactory, build_report_sections, parse_export_format
from .types import CohortType, ExportedReport, ExportFormat, TimeSeriesMetric, TimeSeriesPoint


logger = logging.getLogger(__name__)


ZATOSHI_PER_ZEC = 100_000_000
MAX_TIME_SERIES_DAYS = 365
MAX_RECOMMENDATIONS = 5

# Called with the project id; may return an awaitable
InsightProvider = Callable[[UUID], Union[Iterable[Dict[str, Any]], Awaitable[Iterable[Dict[str, Any]]]]]


def _mean(values: List[float]) -> float:
    return round_half_up(statistics.fmean(values), 2) if values else 0.0


# ============================================================
# DASHBOARD SERVICE
# ============================================================

class DashboardService:
    """
    Cached project dashboards.

    Registers its invalidate() with the enforcer so privacy
    mode changes drop the affected project's entries.
    """

    def __init__(
        self,
        session: Session,
        cache: Optional[SingleFlightCache] = None,
        enforcer: Optional[PrivacyEnforcer] = None,
        clock: Optional[ClockProtocol] = None,
        alert_provider: Optional[InsightProvider] = None,
        recommendation_provider: Optional[InsightProvider] = None,
        config: Optional[ProductivityConfig] = None,
    ):
        self._clock = clock or get_clock()
        self._cache = cache or SingleFlightCache()
        self._enforcer = enforcer or PrivacyEnforcer(session, clock=self._clock)
        self._enforcer.register_invalidator(self.invalidate)

        self._alert_provider = alert_provider
        self._recommendation_provider = recommendation_provider

        self._projects = ProjectRepository(session)
        self._wallets = WalletRepository(session)
        self._rollups = ActivityRollupRepository(session)
        self._scores = ProductivityScoreRepository(session)
        self._adoption = AdoptionStageTracker(session, config)

    @property
    def cache(self) -> SingleFlightCache:
        return self._cache

    def _require_project(self, project_id: UUID) -> None:
        if self._projects.get_by_id(project_id) is None:
            raise NotFoundError("project", project_id)

    # --------------------------------------------------------
    # DASHBOARD
    # --------------------------------------------------------

    async def get_dashboard(self, project_id: UUID) -> Dict[str, Any]:
        """
        Full project dashboard, cached under dashboard:{project_id}.

        Raises:
            NotFoundError: Unknown project
        """
        self._require_project(project_id)
        return await self._cache.get_or_compute(
            f"dashboard:{project_id}",
            lambda: self._build_dashboard(project_id),
        )

    async def _build_dashboard(self, project_id: UUID) -> Dict[str, Any]:
        wallet_ids = self._enforcer.aggregate_eligible_wallet_ids(project_id)

        dashboard = {
            "project_id": str(project_id),
            "overview": self._overview(wallet_ids),
            "productivity": self._productivity(wallet_ids),
            "cohorts": self._cohorts(project_id, wallet_ids),
            "adoption": self._adoption_section(project_id),
            "alerts": await self._collect("alerts", self._alert_provider, project_id),
            "recommendations": (
                await self._collect("recommendations", self._recommendation_provider, project_id)
            )[:MAX_RECOMMENDATIONS],
            "generated_at": self._clock.now().isoformat(),
        }

        logger.info(f"Built dashboard for project {project_id} over {len(wallet_ids)} wallets")
        return dashboard

    def _overview(self, wallet_ids: List[UUID]) -> Dict[str, Any]:
        rollups = self._rollups.list_for_wallets(wallet_ids)
        scores = self._scores.list_for_wallets(wallet_ids)
        volume = sum(r.total_volume_zatoshi for r in rollups)

        return {
            "total_wallets": len(wallet_ids),
            "active_wallets": len({r.wallet_id for r in rollups if r.is_active}),
            "total_transactions": sum(r.transaction_count for r in rollups),
            "total_volume_zec": volume / ZATOSHI_PER_ZEC,
            "avg_productivity_score": _mean([s.total_score for s in scores]),
        }

    def _productivity(self, wallet_ids: List[UUID]) -> Dict[str, Any]:
        scores = self._scores.list_for_wallets(wallet_ids)
        return {
            "scored_wallets": len(scores),
            "avg_total_score": _mean([s.total_score for s in scores]),
            "avg_retention_score": _mean([s.retention_score for s in scores]),
            "avg_adoption_score": _mean([s.adoption_score for s in scores]),
            "avg_activity_score": _mean([s.activity_score for s in scores]),
            "avg_diversity_score": _mean([s.diversity_score for s in scores]),
            "at_risk_wallets": sum(1 for s in scores if s.status == ProductivityStatus.AT_RISK.value),
            "churn_wallets": sum(1 for s in scores if s.status == ProductivityStatus.CHURN.value),
        }

    def _cohorts(self, project_id: UUID, wallet_ids: List[UUID]) -> Dict[str, Any]:
        eligible = set(wallet_ids)
        wallets = [w for w in self._wallets.list_by_project(project_id) if w.id in eligible]
        rollups = self._rollups.list_for_wallets(wallet_ids, active_only=True)

        section: Dict[str, Any] = {"summary": []}
        for cohort_type in CohortType:
            rows = build_cohorts(wallets, rollups, cohort_type)
            section[cohort_type.value] = [row.to_dict() for row in rows]
            section["summary"].append(summarize_cohorts(cohort_type, rows).to_dict())
        return section

    def _adoption_section(self, project_id: UUID) -> List[Dict[str, Any]]:
        stages = []
        previous = None
        for stage in self._adoption.get_project_adoption_funnel(project_id):
            conversion = None
            if previous is not None:
                conversion = (
                    round_half_up(stage.achieved_wallets / previous * 100, 2) if previous else 0.0
                )
            stages.append({
                "stage": stage.stage.value,
                "wallet_count": stage.achieved_wallets,
                "avg_time_hours": stage.avg_time_to_achieve_hours,
                "conversion_from_previous": conversion,
            })
            previous = stage.achieved_wallets
        return stages

    async def _collect(
        self,
        section: str,
        provider: Optional[InsightProvider],
        project_id: UUID,
    ) -> List[Dict[str, Any]]:
        if provider is None:
            return []
        try:
            items = provider(project_id)
            if inspect.isawaitable(items):
                items = await items
            return list(items or [])
        except Exception as e:
            logger.warning(f"Dashboard {section} provider failed for project {project_id}: {e}")
            return []

    # --------------------------------------------------------
    # CACHE CONTROL
    # --------------------------------------------------------

    def invalidate(self, project_id: UUID) -> int:
        """Drop every cached aggregate of one project."""
        removed = 0
        for prefix in (f"dashboard:{project_id}", f"timeseries:{project_id}:", f"health:{project_id}"):
            removed += self._cache.invalidate(prefix)
        logger.info(f"Invalidated {removed} cached aggregates for project {project_id}")
        return removed

    def clear_cache(self, pattern: Optional[str] = None) -> int:
        """Drop cached entries whose key starts with pattern (all when None)."""
        prefix = pattern.rstrip("*") if pattern else None
        return self._cache.invalidate(prefix or None)

    # --------------------------------------------------------
    # TIME SERIES
    # --------------------------------------------------------

    async def get_time_series(
        self,
        project_id: UUID,
        metric: Union[str, TimeSeriesMetric],
        days: int = 30,
    ) -> List[TimeSeriesPoint]:
        """
        Daily values of a metric, oldest first, ending today.

        Raises:
            ValidationError: Unknown metric or days outside 1..365
            NotFoundError: Unknown project
        """
        try:
            metric = TimeSeriesMetric(metric)
        except ValueError:
            raise ValidationError(f"Unknown metric: {metric}", field="metric", value=metric) from None

        if not isinstance(days, int) or isinstance(days, bool) or not 1 <= days <= MAX_TIME_SERIES_DAYS:
            raise ValidationError(
                f"days must be between 1 and {MAX_TIME_SERIES_DAYS}",
                field="days",
                value=days,
            )

        self._require_project(project_id)
        return await self._cache.get_or_compute(
            f"timeseries:{project_id}:{metric.value}:{days}",
            lambda: self._build_time_series(project_id, metric, days),
        )

    def _build_time_series(
        self,
        project_id: UUID,
        metric: TimeSeriesMetric,
        days: int,
    ) -> List[TimeSeriesPoint]:
        wallet_ids = self._enforcer.aggregate_eligible_wallet_ids(project_id)
        today = self._clock.today()
        window = [today - timedelta(days=offset) for offset in range(days - 1, -1, -1)]

        if metric == TimeSeriesMetric.PRODUCTIVITY:
            points = []
            for day in window:
                latest = self._scores.latest_history_scores(wallet_ids, end_of_day(day))
                points.append(TimeSeriesPoint(date=day, value=_mean(list(latest.values()))))
            return points

        values: Dict[Any, float] = {day: 0 for day in window}
        active: Dict[Any, set] = {day: set() for day in window}
        for rollup in self._rollups.list_for_wallets(wallet_ids, start=window[0], end=today):
            values[rollup.activity_date] += rollup.transaction_count
            if rollup.is_active:
                active[rollup.activity_date].add(rollup.wallet_id)

        if metric == TimeSeriesMetric.ACTIVE_WALLETS:
            return [TimeSeriesPoint(date=day, value=len(active[day])) for day in window]
        return [TimeSeriesPoint(date=day, value=values[day]) for day in window]

    # --------------------------------------------------------
    # HEALTH
    # --------------------------------------------------------

    async def get_wallet_health_dashboard(self, project_id: UUID) -> Dict[str, Any]:
        """
        Score buckets by status and risk level over eligible wallets.

        Raises:
            NotFoundError: Unknown project
        """
        self._require_project(project_id)
        return await self._cache.get_or_compute(
            f"health:{project_id}",
            lambda: self._build_health(project_id),
        )

    def _build_health(self, project_id: UUID) -> Dict[str, Any]:
        wallet_ids = self._enforcer.aggregate_eligible_wallet_ids(project_id)
        scores = self._scores.list_for_wallets(wallet_ids)

        def bucket(attribute: str, values: Iterable[str]) -> Dict[str, Dict[str, Any]]:
            result = {}
            for value in values:
                members = [s.total_score for s in scores if getattr(s, attribute) == value]
                result[value] = {"count": len(members), "avg_score": _mean(members)}
            return result

        return {
            "project_id": str(project_id),
            "total_wallets": len(wallet_ids),
            "scored_wallets": len(scores),
            "by_status": bucket("status", [s.value for s in ProductivityStatus]),
            "by_risk_level": bucket("risk_level", [r.value for r in RiskLevel]),
            "generated_at": self._clock.now().isoformat(),
        }

    # --------------------------------------------------------
    # EXPORT
    # --------------------------------------------------------

    async def export_report(
        self,
        project_id: UUID,
        export_format: Union[str, ExportFormat] = ExportFormat.JSON,
    ) -> ExportedReport:
        """
        Render the project dashboard as JSON or CSV.

        Raises:
            ValidationError: Unknown format
            NotFoundError: Unknown project
        """
        export_format = parse_export_format(export_format)
        dashboard = await self.get_dashboard(project_id)

        formatter = FormatterFactory.create(export_format)
        report = formatter.render(build_report_sections(dashboard), dashboard, self._clock.now())
        logger.info(f"Exported {export_format.value} report for project {project_id} ({report.size_bytes} bytes)")
        return report
