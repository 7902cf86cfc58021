"""
Database Persistence Layer - Core Engine.

============================================================
PURPOSE
============================================================
Engine and session management for the analytics store.

- One process-wide engine, created lazily from the environment
- Session factory with explicit commit/rollback scopes
- Hard failures (DatabasePersistenceError) on persistence errors

============================================================
CONFIGURATION
============================================================
ANALYTICS_DATABASE_URL or DATABASE_URL selects the database.
Without either, a local SQLite file is used for development.

init_engine(url) replaces the process engine, which is how
tests bind everything to an in-memory SQLite database.

============================================================
"""

import os
import logging
from typing import Optional, Generator
from contextlib import contextmanager

from sqlalchemy import create_engine, text, event, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.exc import SQLAlchemyError, OperationalError
from sqlalchemy.pool import QueuePool, StaticPool

from dotenv import load_dotenv

from storage.models.base import Base

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///wallet_analytics.db"

# =============================================================
# DATABASE ENGINE
# =============================================================

_engine: Optional[Engine] = None
_SessionFactory: Optional[sessionmaker] = None


def get_database_url() -> str:
    """Get database URL from environment."""
    url = os.getenv("ANALYTICS_DATABASE_URL") or os.getenv("DATABASE_URL")
    if url and url.startswith("postgresql+asyncpg"):
        # Sessions here are synchronous
        url = url.replace("postgresql+asyncpg", "postgresql")

    if not url:
        url = DEFAULT_DATABASE_URL
        logger.warning(f"DATABASE_URL not set, using default: {url}")

    return url


def create_database_engine(
    database_url: Optional[str] = None,
    pool_size: int = 10,
    max_overflow: int = 20,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
    echo: bool = False,
) -> Engine:
    """
    Create SQLAlchemy engine with connection pooling.

    SQLite URLs get a StaticPool with cross-thread access so the
    in-memory database is shared by every session (tests and the
    bulk recompute worker threads).

    Args:
        database_url: Explicit URL, defaults to the environment
        pool_size: Number of connections to keep in pool
        max_overflow: Max connections beyond pool_size
        pool_timeout: Seconds to wait for available connection
        pool_recycle: Recycle connections after N seconds
        echo: Log SQL statements

    Returns:
        SQLAlchemy Engine
    """
    url = database_url or get_database_url()

    logger.info(f"Creating database engine for: {url.split('@')[-1]}")

    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
            echo=echo,
        )
    else:
        engine = create_engine(
            url,
            poolclass=QueuePool,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            echo=echo,
        )

    @event.listens_for(engine, "connect")
    def on_connect(dbapi_conn, connection_record):
        logger.debug("Database connection established")

    return engine


def init_engine(database_url: Optional[str] = None, echo: bool = False) -> Engine:
    """
    Create the process engine, replacing any existing one.

    Returns:
        The new engine
    """
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()

    _engine = create_database_engine(database_url, echo=echo)
    _SessionFactory = None
    return _engine


def get_engine() -> Engine:
    """Get the database engine, creating if necessary."""
    global _engine
    if _engine is None:
        _engine = create_database_engine()
    return _engine


def get_session_factory() -> sessionmaker:
    """Get session factory, creating if necessary."""
    global _SessionFactory

    if _SessionFactory is None:
        _SessionFactory = sessionmaker(
            bind=get_engine(),
            autoflush=False,
            expire_on_commit=False,
        )

    return _SessionFactory


# =============================================================
# SESSION MANAGEMENT
# =============================================================


def get_session() -> Session:
    """
    Get a new database session.

    IMPORTANT: Caller is responsible for committing/closing.
    Prefer using get_db_session() or transaction_scope().
    """
    return get_session_factory()()


@contextmanager
def get_db_session() -> Generator[Session, None, None]:
    """
    Context manager for database sessions with automatic cleanup.

    Usage:
        with get_db_session() as session:
            engine = ProductivityScoringEngine(session)
            engine.get_or_compute_productivity(wallet_id)
            session.commit()

    On exception the session is rolled back and the error re-raised.
    """
    session = get_session()
    try:
        yield session
    except Exception as e:
        logger.error(f"Session error, rolling back: {e}")
        session.rollback()
        raise
    finally:
        session.close()


@contextmanager
def transaction_scope(
    factory: Optional[sessionmaker] = None,
) -> Generator[Session, None, None]:
    """
    Context manager for explicit transaction boundaries.

    Commits only if no exception occurs.
    Rolls back on ANY exception. SQLAlchemy failures are raised
    as DatabasePersistenceError; analytics errors pass through.

    Args:
        factory: Session factory to use (defaults to the process one)
    """
    session = (factory or get_session_factory())()
    try:
        yield session
        session.commit()
        logger.debug("Database transaction committed successfully")
    except SQLAlchemyError as e:
        logger.error(f"Database transaction failed, rolling back: {e}")
        session.rollback()
        raise DatabasePersistenceError(f"Transaction failed: {e}") from e
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# =============================================================
# DATABASE INITIALIZATION
# =============================================================


def verify_database_connection() -> bool:
    """
    Verify database connection is working.

    Raises:
        DatabaseConnectionError if connection fails
    """
    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
            logger.info("Database connection verified successfully")
            return True
    except OperationalError as e:
        logger.error(f"Database connection failed: {e}")
        raise DatabaseConnectionError(f"Cannot connect to database: {e}") from e


def create_all_tables(engine: Optional[Engine] = None) -> None:
    """
    Create all analytics tables.

    Intended for embedded and test use; production schemas are
    managed by migrations outside this package.

    Raises:
        DatabaseInitializationError if table creation fails
    """
    # Registers every model on Base.metadata
    import storage.models  # noqa: F401

    engine = engine or get_engine()

    try:
        Base.metadata.create_all(bind=engine)
        logger.info(f"Created {len(Base.metadata.tables)} analytics tables")
    except SQLAlchemyError as e:
        logger.error(f"Failed to create database tables: {e}")
        raise DatabaseInitializationError(f"Table creation failed: {e}") from e


def verify_required_tables(engine: Optional[Engine] = None) -> list:
    """Return the required tables that are missing."""
    existing = set(inspect(engine or get_engine()).get_table_names())
    missing = [table for table in REQUIRED_TABLES if table not in existing]

    for table in REQUIRED_TABLES:
        if table in missing:
            logger.warning(f"  [!!] Table missing: {table}")
        else:
            logger.info(f"  [OK] Table verified: {table}")

    return missing


# =============================================================
# CONSTANTS
# =============================================================

REQUIRED_TABLES = [
    "users",
    "projects",
    "wallets",
    "processed_transactions",
    "wallet_activity_metrics",
    "wallet_productivity_scores",
    "wallet_productivity_score_history",
    "wallet_adoption_stages",
    "wallet_privacy_audit_log",
    "wallet_behavior_flows",
    "data_access_grants",
    "wallet_owner_earnings",
]


# =============================================================
# CUSTOM EXCEPTIONS
# =============================================================


class DatabasePersistenceError(Exception):
    """Raised when database persistence fails."""
    pass


class DatabaseConnectionError(DatabasePersistenceError):
    """Raised when database connection fails."""
    pass


class DatabaseInitializationError(DatabasePersistenceError):
    """Raised when database initialization fails."""
    pass


__all__ = [
    "Base",
    "DEFAULT_DATABASE_URL",
    "get_database_url",
    "create_database_engine",
    "init_engine",
    "get_engine",
    "get_session_factory",
    "get_session",
    "get_db_session",
    "transaction_scope",
    "verify_database_connection",
    "create_all_tables",
    "verify_required_tables",
    "REQUIRED_TABLES",
    "DatabasePersistenceError",
    "DatabaseConnectionError",
    "DatabaseInitializationError",
]
