"""
Database Package Initialization.

============================================================
PERSISTENCE LAYER
============================================================

Engine and session management for the wallet analytics
store. Every write runs inside an explicit transaction scope
and every failure raises a hard exception.

============================================================
"""

from .engine import (
    Base,
    DEFAULT_DATABASE_URL,
    get_database_url,
    create_database_engine,
    init_engine,
    get_engine,
    get_session_factory,
    get_session,
    get_db_session,
    transaction_scope,
    verify_database_connection,
    create_all_tables,
    verify_required_tables,
    REQUIRED_TABLES,
    DatabasePersistenceError,
    DatabaseConnectionError,
    DatabaseInitializationError,
)


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
