"""
Tests for the persistence layer: session scopes and error mapping.
"""

from datetime import date, datetime

import pytest
from sqlalchemy import func, select

from database.engine import (
    DatabasePersistenceError,
    transaction_scope,
    verify_database_connection,
    verify_required_tables,
)
from storage.models import User
from storage.repositories import (
    ActivityRollupRepository,
    DuplicateRecordError,
    RepositoryException,
    TransactionRepository,
    UserRepository,
)


def count_users(session_factory) -> int:
    with session_factory() as session:
        return session.execute(select(func.count(User.id))).scalar_one()


class TestDatabaseEngine:
    """Tests for engine helpers against in-memory SQLite."""

    def test_connection_and_tables(self, db_engine):
        assert verify_database_connection()
        assert verify_required_tables(db_engine) == []

    def test_transaction_scope_commits(self, session_factory):
        with transaction_scope(session_factory) as session:
            UserRepository(session).create_user("a@example.com")

        assert count_users(session_factory) == 1

    def test_transaction_scope_rolls_back(self, session_factory):
        with pytest.raises(ValueError):
            with transaction_scope(session_factory) as session:
                UserRepository(session).create_user("a@example.com")
                raise ValueError("abort")

        assert count_users(session_factory) == 0

    def test_repository_errors_roll_back_the_scope(self, session_factory, factory, session):
        wallet = factory.wallet(factory.project())
        session.commit()

        with pytest.raises(DuplicateRecordError):
            with transaction_scope(session_factory) as scoped:
                transactions = TransactionRepository(scoped)
                transactions.add_transaction(wallet.id, "dup", datetime(2024, 6, 1))
                transactions.add_transaction(wallet.id, "dup", datetime(2024, 6, 2))

        session.expire_all()
        assert TransactionRepository(session).list_for_wallet(wallet.id) == []


class TestRepositoryErrors:
    """Tests for SQLAlchemy error mapping."""

    def test_duplicate_transaction(self, factory):
        wallet = factory.wallet(factory.project())
        factory.transactions.add_transaction(wallet.id, "abc", datetime(2024, 6, 1))

        with pytest.raises(DuplicateRecordError) as exc_info:
            factory.transactions.add_transaction(wallet.id, "abc", datetime(2024, 6, 1))

        error = exc_info.value
        assert isinstance(error, RepositoryException)
        assert error.repository_name == "TransactionRepository"
        assert error.operation == "add"
        assert "Duplicate record" in str(error)

    def test_rollup_upsert_updates_in_place(self, factory, session):
        wallet = factory.wallet(factory.project())
        rollups = ActivityRollupRepository(session)

        first = factory.rollup(wallet.id, date(2024, 6, 1), transaction_count=1)
        second = factory.rollup(wallet.id, date(2024, 6, 1), transaction_count=4)

        assert first.id == second.id
        assert rollups.get(wallet.id, date(2024, 6, 1)).transaction_count == 4

    def test_persistence_error_is_not_a_repository_error(self):
        assert not issubclass(DatabasePersistenceError, RepositoryException)
