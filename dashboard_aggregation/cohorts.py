"""
Dashboard Aggregation - Cohort Retention.

Wallets are grouped by the period they were created in
(weekly cohorts start on Monday, monthly cohorts on the 1st).
Retention for week n is the share of cohort wallets with an
active rollup in days [7n, 7n + 7) after the period start.
"""

import statistics
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Sequence, Set, Tuple
from uuid import UUID

from core.numeric import percentage, round_half_up
from storage.models.activity import ActivityRollup
from storage.models.wallets import Wallet

from .types import CohortRetention, CohortSummary, CohortType


RETENTION_WEEKS = (1, 2, 3, 4)


def period_start(created_at: datetime, cohort_type: CohortType) -> date:
    """First day of the cohort period containing created_at."""
    day = created_at.date()
    if cohort_type == CohortType.WEEKLY:
        return day - timedelta(days=day.weekday())
    return day.replace(day=1)


def group_cohorts(
    wallets: Iterable[Wallet],
    cohort_type: CohortType,
) -> Dict[date, List[UUID]]:
    cohorts: Dict[date, List[UUID]] = {}
    for wallet in wallets:
        cohorts.setdefault(period_start(wallet.created_at, cohort_type), []).append(wallet.id)
    return dict(sorted(cohorts.items()))


def build_cohorts(
    wallets: Sequence[Wallet],
    rollups: Iterable[ActivityRollup],
    cohort_type: CohortType,
) -> List[CohortRetention]:
    """Retention rows for every cohort, oldest period first."""
    active_weeks: Dict[UUID, Set[Tuple[date, int]]] = {}
    cohorts = group_cohorts(wallets, cohort_type)
    start_of: Dict[UUID, date] = {
        wallet_id: start for start, members in cohorts.items() for wallet_id in members
    }

    for rollup in rollups:
        if not rollup.is_active or rollup.wallet_id not in start_of:
            continue
        start = start_of[rollup.wallet_id]
        offset = (rollup.activity_date - start).days
        if offset < 0:
            continue
        active_weeks.setdefault(rollup.wallet_id, set()).add((start, offset // 7))

    rows = []
    for start, members in cohorts.items():
        retention = {}
        for week in RETENTION_WEEKS:
            retained = sum(1 for wallet_id in members if (start, week) in active_weeks.get(wallet_id, ()))
            retention[week] = percentage(retained, len(members))
        rows.append(CohortRetention(
            cohort_type=cohort_type,
            period_start=start,
            wallet_count=len(members),
            retention=retention,
        ))
    return rows


def _average(values: List[float]) -> float:
    return round_half_up(statistics.fmean(values), 2) if values else 0.0


def summarize_cohorts(cohort_type: CohortType, rows: Sequence[CohortRetention]) -> CohortSummary:
    return CohortSummary(
        cohort_type=cohort_type,
        cohort_count=len(rows),
        avg_retention_week_1=_average([row.retention[1] for row in rows]),
        avg_retention_week_2=_average([row.retention[2] for row in rows]),
        avg_retention_week_4=_average([row.retention[4] for row in rows]),
    )
