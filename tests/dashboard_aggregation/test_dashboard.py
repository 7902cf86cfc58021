"""
Tests for the Dashboard Service.

============================================================
PURPOSE
============================================================
- Dashboard sections over non-private wallets only
- Privacy mode changes invalidate cached aggregates
- Time series shape and validation
- Health buckets
- JSON / CSV export

============================================================
"""

import hashlib
import json
import uuid
from datetime import date, datetime, timedelta
from types import SimpleNamespace
from unittest.mock import patch

import pytest

from core.exceptions import NotFoundError, ValidationError
from dashboard_aggregation.cache import SingleFlightCache
from dashboard_aggregation.cohorts import build_cohorts, period_start, summarize_cohorts
from dashboard_aggregation.exporters import CsvFormatter, JsonFormatter, build_report_sections
from dashboard_aggregation.service import DashboardService
from dashboard_aggregation.types import CohortType, ExportFormat
from privacy_enforcement.enforcer import PrivacyEnforcer
from productivity_scoring.adoption import AdoptionStageTracker
from productivity_scoring.config import ProductivityConfig
from productivity_scoring.engine import ProductivityScoringEngine
from tests.conftest import NOW


TODAY = NOW.date()


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def owner(factory):
    return factory.user()


@pytest.fixture
def project(factory, owner):
    return factory.project(owner=owner)


@pytest.fixture
def enforcer(session, clock):
    return PrivacyEnforcer(session, clock=clock)


@pytest.fixture
def service(session, clock, enforcer):
    return DashboardService(
        session,
        cache=SingleFlightCache(ttl_seconds=300, clock=clock),
        enforcer=enforcer,
        clock=clock,
    )


@pytest.fixture
def populated(session, clock, factory, project):
    """
    Public wallet with activity, idle monetizable wallet and a
    busy private wallet that must never show up in aggregates.
    """
    public = factory.wallet(project, privacy_mode="public")
    idle = factory.wallet(project, privacy_mode="monetizable")
    hidden = factory.wallet(project, privacy_mode="private")

    factory.rollup(public.id, TODAY, transaction_count=3, volume=200_000_000)
    factory.rollup(public.id, TODAY - timedelta(days=2))
    factory.rollup(public.id, date(2024, 4, 24))
    factory.rollup(hidden.id, TODAY, transaction_count=50, volume=5_000_000_000)

    engine = ProductivityScoringEngine(session, clock=clock)
    tracker = AdoptionStageTracker(session)
    for wallet in (public, idle, hidden):
        engine.recompute(wallet.id)
        tracker.advance_adoption_stages(wallet.id)

    return SimpleNamespace(public=public, idle=idle, hidden=hidden)


# ============================================================
# DASHBOARD
# ============================================================

class TestDashboard:
    """Tests for get_dashboard."""

    @pytest.mark.asyncio
    async def test_overview_excludes_private_wallets(self, service, project, populated):
        dashboard = await service.get_dashboard(project.id)
        overview = dashboard["overview"]

        assert overview["total_wallets"] == 2
        assert overview["active_wallets"] == 1
        assert overview["total_transactions"] == 5
        assert overview["total_volume_zec"] == pytest.approx(2.002)

    @pytest.mark.asyncio
    async def test_productivity_section(self, service, project, populated):
        productivity = (await service.get_dashboard(project.id))["productivity"]

        # public: 60 retention, 25 adoption, 50 activity, 25 diversity -> 42
        assert productivity["scored_wallets"] == 2
        assert productivity["avg_total_score"] == 21.0
        assert productivity["at_risk_wallets"] == 1
        assert productivity["churn_wallets"] == 1

    @pytest.mark.asyncio
    async def test_adoption_section(self, service, project, populated):
        adoption = (await service.get_dashboard(project.id))["adoption"]

        assert adoption[0] == {
            "stage": "created",
            "wallet_count": 2,
            "avg_time_hours": 0.0,
            "conversion_from_previous": None,
        }
        assert adoption[1]["stage"] == "first_tx"
        assert adoption[1]["conversion_from_previous"] == 0.0

    @pytest.mark.asyncio
    async def test_cohort_section(self, service, project, populated):
        cohorts = (await service.get_dashboard(project.id))["cohorts"]

        weekly = cohorts["weekly"][0]
        assert weekly["period_start"] == "2024-04-15"
        assert weekly["wallet_count"] == 2
        assert weekly["retention_week_1"] == 50.0
        assert [s["cohort_type"] for s in cohorts["summary"]] == ["weekly", "monthly"]

    @pytest.mark.asyncio
    async def test_dashboard_is_cached(self, service, project, populated):
        first = await service.get_dashboard(project.id)
        second = await service.get_dashboard(project.id)

        assert second is first
        assert service.cache.stats()["computations"] == 1

    @pytest.mark.asyncio
    async def test_privacy_change_invalidates_dashboard(self, service, enforcer, project, owner, populated):
        before = await service.get_dashboard(project.id)
        assert before["overview"]["total_wallets"] == 2

        enforcer.update_privacy_mode(populated.public.id, "private", owner.id)
        after = await service.get_dashboard(project.id)

        assert after["overview"]["total_wallets"] == 1
        assert after["overview"]["total_transactions"] == 0

    @pytest.mark.asyncio
    async def test_unknown_project(self, service):
        with pytest.raises(NotFoundError):
            await service.get_dashboard(uuid.uuid4())

    @pytest.mark.asyncio
    async def test_failing_provider_gives_empty_section(self, session, clock, project, populated):
        def alerts(project_id):
            raise RuntimeError("alert store down")

        async def recommendations(project_id):
            return [{"title": f"Tip {n}"} for n in range(8)]

        service = DashboardService(
            session,
            clock=clock,
            alert_provider=alerts,
            recommendation_provider=recommendations,
        )
        dashboard = await service.get_dashboard(project.id)

        assert dashboard["alerts"] == []
        assert len(dashboard["recommendations"]) == 5

    def test_adoption_tracker_shares_the_service_config(self, session, clock):
        config = ProductivityConfig(record_history=False)

        with patch("dashboard_aggregation.service.AdoptionStageTracker") as tracker_class:
            DashboardService(session, clock=clock, config=config)

        tracker_class.assert_called_once_with(session, config)

    @pytest.mark.asyncio
    async def test_clear_cache_pattern(self, service, project, populated):
        await service.get_dashboard(project.id)
        await service.get_time_series(project.id, "transactions", days=7)

        assert service.clear_cache(f"timeseries:{project.id}:*") == 1
        assert service.cache.stats()["entries"] == 1


# ============================================================
# TIME SERIES
# ============================================================

class TestTimeSeries:
    """Tests for get_time_series."""

    @pytest.mark.asyncio
    async def test_transactions(self, service, project, populated):
        points = await service.get_time_series(project.id, "transactions", days=7)

        assert len(points) == 7
        assert points[0].date == TODAY - timedelta(days=6)
        assert points[-1].date == TODAY
        assert points[-1].value == 3
        assert points[-3].value == 1
        assert points[0].to_dict() == {"date": (TODAY - timedelta(days=6)).isoformat(), "value": 0}

    @pytest.mark.asyncio
    async def test_active_wallets(self, service, project, populated):
        points = await service.get_time_series(project.id, "active_wallets", days=3)
        assert [p.value for p in points] == [1, 0, 1]

    @pytest.mark.asyncio
    async def test_productivity_from_history(self, service, project, populated):
        points = await service.get_time_series(project.id, "productivity", days=2)
        assert [p.value for p in points] == [0.0, 21.0]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("days", [0, 366, "7", 7.5])
    async def test_invalid_days(self, service, project, days):
        with pytest.raises(ValidationError):
            await service.get_time_series(project.id, "transactions", days=days)

    @pytest.mark.asyncio
    async def test_unknown_metric(self, service, project):
        with pytest.raises(ValidationError):
            await service.get_time_series(project.id, "volume")

    @pytest.mark.asyncio
    async def test_unknown_project(self, service):
        with pytest.raises(NotFoundError):
            await service.get_time_series(uuid.uuid4(), "transactions")


# ============================================================
# HEALTH
# ============================================================

class TestWalletHealth:
    """Tests for get_wallet_health_dashboard."""

    @pytest.mark.asyncio
    async def test_buckets(self, service, project, populated):
        health = await service.get_wallet_health_dashboard(project.id)

        assert health["total_wallets"] == 2
        assert health["by_status"]["at_risk"] == {"count": 1, "avg_score": 42.0}
        assert health["by_status"]["churn"] == {"count": 1, "avg_score": 0.0}
        assert health["by_status"]["healthy"] == {"count": 0, "avg_score": 0.0}
        assert health["by_risk_level"]["medium"]["count"] == 1


# ============================================================
# EXPORT
# ============================================================

class TestExport:
    """Tests for export_report."""

    @pytest.mark.asyncio
    async def test_json_checksum(self, service, project, populated):
        report = await service.export_report(project.id, "json")

        assert report.format == ExportFormat.JSON
        assert report.file_extension == ".json"
        payload = json.loads(report.content)
        checksum = payload["metadata"].pop("checksum")
        recomputed = hashlib.sha256(json.dumps(payload, indent=2, default=str).encode("utf-8")).hexdigest()
        assert checksum == recomputed == report.checksum
        assert payload["dashboard"]["overview"]["total_wallets"] == 2

    @pytest.mark.asyncio
    async def test_csv_sections(self, service, project, populated):
        report = await service.export_report(project.id, ExportFormat.CSV)

        lines = report.content.split("\n")
        assert lines[:3] == ["OVERVIEW", "Metric,Value", "Total Wallets,2"]
        assert any(line.startswith("Total Volume (ZEC),2.002") for line in lines)
        assert "ADOPTION FUNNEL" in lines
        assert "created,2,0.0" in lines
        assert report.content_type == "text/csv"
        assert report.checksum == hashlib.sha256(report.content.encode("utf-8")).hexdigest()

    def test_csv_and_json_carry_the_same_values(self):
        dashboard = {
            "overview": {"total_wallets": 1, "total_volume_zec": 0.00012345, "avg_productivity_score": 33.3333},
            "adoption": [{"stage": "first_tx", "wallet_count": 1, "avg_time_hours": 12.75}],
        }
        sections = build_report_sections(dashboard)
        exported_at = datetime(2024, 6, 1)

        payload = json.loads(JsonFormatter().render(sections, dashboard, exported_at).content)
        csv_lines = CsvFormatter().render(sections, dashboard, exported_at).content.split("\n")

        for section in payload["sections"]:
            for row in section["rows"]:
                assert ",".join(str(value) for value in row) in csv_lines
        assert "Total Volume (ZEC),0.00012345" in csv_lines

    @pytest.mark.asyncio
    async def test_unknown_format(self, service, project):
        with pytest.raises(ValidationError):
            await service.export_report(project.id, "xlsx")


# ============================================================
# COHORTS
# ============================================================

class TestCohorts:
    """Tests for the pure cohort builders."""

    def test_period_start(self):
        created = datetime(2024, 4, 18, 15, 0)
        assert period_start(created, CohortType.WEEKLY) == date(2024, 4, 15)
        assert period_start(created, CohortType.MONTHLY) == date(2024, 4, 1)

    def test_retention_by_week(self):
        first = SimpleNamespace(id="a", created_at=datetime(2024, 4, 15))
        second = SimpleNamespace(id="b", created_at=datetime(2024, 4, 17))
        rollups = [
            SimpleNamespace(wallet_id="a", activity_date=date(2024, 4, 23), is_active=True),
            SimpleNamespace(wallet_id="b", activity_date=date(2024, 4, 30), is_active=True),
            SimpleNamespace(wallet_id="b", activity_date=date(2024, 4, 24), is_active=False),
        ]

        rows = build_cohorts([first, second], rollups, CohortType.WEEKLY)

        assert len(rows) == 1
        assert rows[0].retention == {1: 50.0, 2: 50.0, 3: 0.0, 4: 0.0}

    def test_summary_of_no_cohorts(self):
        summary = summarize_cohorts(CohortType.MONTHLY, [])
        assert summary.cohort_count == 0
        assert summary.avg_retention_week_1 == 0.0
