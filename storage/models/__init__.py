"""
Storage Models Package.

This package contains all ORM models for the wallet analytics
database. Models are organized by domain.

============================================================
MODEL ORGANIZATION
============================================================

Domain 1: Identity & Transactions (wallets.py)
- User
- Project
- Wallet
- ProcessedTransaction

Domain 2: Activity (activity.py)
- ActivityRollup

Domain 3: Scoring (scoring.py)
- ProductivityScore
- ProductivityScoreHistory
- AdoptionStageRecord
- BehaviorFlowRecord

Domain 4: Privacy & Monetization (privacy.py)
- PrivacyAuditLog
- DataAccessGrant
- OwnerEarning

============================================================
DESIGN PRINCIPLES
============================================================

- All models use explicit column definitions
- All timestamps are naive UTC
- Foreign keys are explicitly defined
- No business logic in models

============================================================
"""

from storage.models.base import Base, TimestampMixin

from storage.models.wallets import (
    User,
    Project,
    Wallet,
    ProcessedTransaction,
)

from storage.models.activity import ActivityRollup

from storage.models.scoring import (
    ProductivityScore,
    ProductivityScoreHistory,
    AdoptionStageRecord,
    BehaviorFlowRecord,
)

from storage.models.privacy import (
    PrivacyAuditLog,
    DataAccessGrant,
    OwnerEarning,
)

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    # Identity & Transactions
    "User",
    "Project",
    "Wallet",
    "ProcessedTransaction",
    # Activity
    "ActivityRollup",
    # Scoring
    "ProductivityScore",
    "ProductivityScoreHistory",
    "AdoptionStageRecord",
    "BehaviorFlowRecord",
    # Privacy
    "PrivacyAuditLog",
    "DataAccessGrant",
    "OwnerEarning",
]
