"""
Shared fixtures for the wallet analytics test suite.

Every test gets a fresh in-memory SQLite database and a
MockClock pinned to 2024-06-15 12:00 UTC.
"""

from datetime import date, datetime, timedelta
from typing import Optional
from uuid import UUID

import pytest

from core.clock import MockClock, set_clock
from database.engine import create_all_tables, get_engine, get_session_factory, init_engine
from storage.repositories.transactions import ActivityRollupRepository, TransactionRepository
from storage.repositories.wallets import ProjectRepository, UserRepository, WalletRepository


NOW = datetime(2024, 6, 15, 12, 0, 0)


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def clock():
    """Mock clock shared with the global clock for the test."""
    mock = MockClock(NOW)
    set_clock(mock)
    yield mock
    set_clock(None)


@pytest.fixture
def db_engine():
    """Fresh in-memory database with every analytics table."""
    engine = init_engine("sqlite://")
    create_all_tables(engine)
    yield engine
    get_engine().dispose()


@pytest.fixture
def session_factory(db_engine):
    return get_session_factory()


@pytest.fixture
def session(session_factory):
    session = session_factory()
    yield session
    session.rollback()
    session.close()


class DataFactory:
    """Builds users, projects, wallets, transactions and rollups."""

    def __init__(self, session):
        self.session = session
        self.users = UserRepository(session)
        self.projects = ProjectRepository(session)
        self.wallets = WalletRepository(session)
        self.transactions = TransactionRepository(session)
        self.rollups = ActivityRollupRepository(session)
        self._counter = 0

    def _next(self) -> int:
        self._counter += 1
        return self._counter

    def user(self):
        n = self._next()
        return self.users.create_user(email=f"user{n}@example.com", name=f"User {n}")

    def project(self, owner=None):
        owner = owner or self.user()
        return self.projects.create_project(owner.id, name=f"Project {self._next()}")

    def wallet(
        self,
        project,
        privacy_mode: str = "public",
        created_at: Optional[datetime] = None,
        wallet_type: str = "t",
        is_active: bool = True,
    ):
        return self.wallets.create_wallet(
            project_id=project.id,
            address=f"t1addr{self._next():06d}",
            wallet_type=wallet_type,
            privacy_mode=privacy_mode,
            created_at=created_at or NOW - timedelta(days=60),
            is_active=is_active,
        )

    def tx(
        self,
        wallet_id: UUID,
        timestamp: datetime,
        tx_type: str = "transfer",
        value_zatoshi: int = 100_000,
        is_shielded: bool = False,
        entry: bool = False,
        exit: bool = False,
    ):
        return self.transactions.add_transaction(
            wallet_id=wallet_id,
            txid=f"tx{self._next():08d}",
            block_timestamp=timestamp,
            tx_type=tx_type,
            value_zatoshi=value_zatoshi,
            is_shielded=is_shielded,
            shielded_pool_entry=entry,
            shielded_pool_exit=exit,
        )

    def rollup(
        self,
        wallet_id: UUID,
        activity_date: date,
        transaction_count: int = 1,
        volume: int = 100_000,
        transfers: int = 1,
        swaps: int = 0,
        bridges: int = 0,
        shielded: int = 0,
        is_active: bool = True,
    ):
        return self.rollups.upsert(wallet_id, activity_date, {
            "transaction_count": transaction_count,
            "total_volume_zatoshi": volume,
            "total_fees_paid": 0,
            "transfers_count": transfers,
            "swaps_count": swaps,
            "bridges_count": bridges,
            "shielded_count": shielded,
            "is_active": is_active,
            "is_returning": False,
            "days_since_creation": 0,
        })


@pytest.fixture
def factory(session):
    return DataFactory(session)
