"""
Repository Layer Package.

============================================================
PURPOSE
============================================================
The Repository Layer is the ONLY gateway to persistent storage.
All database access goes through repository classes.

============================================================
ARCHITECTURE PRINCIPLES
============================================================
1. One repository per model (or tightly related set)
2. Session Injection: sessions are injected, never created here
3. Repositories flush, callers commit
4. All DB errors wrapped in repository exceptions

============================================================
REPOSITORY GROUPS
============================================================

IDENTITY
--------
- UserRepository, ProjectRepository, WalletRepository

TRANSACTIONS & ACTIVITY
-----------------------
- TransactionRepository: Indexed transactions (read-only here)
- ActivityRollupRepository: Daily rollups

SCORING
-------
- ProductivityScoreRepository: Current score + history
- AdoptionStageRepository: Adoption funnel rows
- BehaviorFlowRepository: Flow analysis summaries

PRIVACY & MONETIZATION
----------------------
- PrivacyAuditRepository: Mode change audit log
- DataAccessGrantRepository: Paid access grants
- OwnerEarningRepository: Earnings ledger

============================================================
"""

# =============================================================
# EXCEPTIONS
# =============================================================
from storage.repositories.exceptions import (
    RepositoryException,
    DatabaseOperationError,
    DuplicateRecordError,
    ConstraintViolationError,
    RepositoryConnectionError,
    QueryError,
)

# =============================================================
# BASE REPOSITORY
# =============================================================
from storage.repositories.base import BaseRepository

# =============================================================
# DOMAIN REPOSITORIES
# =============================================================
from storage.repositories.wallets import (
    UserRepository,
    ProjectRepository,
    WalletRepository,
)
from storage.repositories.transactions import (
    TransactionRepository,
    ActivityRollupRepository,
)
from storage.repositories.scoring import (
    ProductivityScoreRepository,
    AdoptionStageRepository,
    BehaviorFlowRepository,
)
from storage.repositories.privacy import (
    PrivacyAuditRepository,
    DataAccessGrantRepository,
    OwnerEarningRepository,
)

# =============================================================
# PUBLIC API
# =============================================================
__all__ = [
    # Exceptions
    "RepositoryException",
    "DatabaseOperationError",
    "DuplicateRecordError",
    "ConstraintViolationError",
    "RepositoryConnectionError",
    "QueryError",

    # Base
    "BaseRepository",

    # Identity
    "UserRepository",
    "ProjectRepository",
    "WalletRepository",

    # Transactions & Activity
    "TransactionRepository",
    "ActivityRollupRepository",

    # Scoring
    "ProductivityScoreRepository",
    "AdoptionStageRepository",
    "BehaviorFlowRepository",

    # Privacy & Monetization
    "PrivacyAuditRepository",
    "DataAccessGrantRepository",
    "OwnerEarningRepository",
]
