"""
Privacy and Monetization ORM Models.

============================================================
PURPOSE
============================================================
Models backing privacy-mode auditing and paid data access.

============================================================
DATA LIFECYCLE ROLE
============================================================
- PrivacyAuditLog: IMMUTABLE (append-only, one row per change)
- DataAccessGrant: UPSERTED (one row per buyer and wallet)
- OwnerEarning: IMMUTABLE ledger (status moves pending -> paid
  outside this package)

============================================================
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from storage.models.base import Base, TimestampMixin, utc_now


class PrivacyAuditLog(Base):
    """One privacy-mode change of a wallet."""

    __tablename__ = "wallet_privacy_audit_log"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        comment="Unique identifier for the audit entry"
    )

    wallet_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("wallets.id", ondelete="CASCADE"),
        nullable=False,
        comment="Wallet whose mode changed"
    )

    privacy_mode: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="Mode after the change"
    )

    previous_mode: Mapped[Optional[str]] = mapped_column(
        String(20),
        nullable=True,
        comment="Mode before the change"
    )

    changed_by: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        nullable=False,
        comment="User who made the change"
    )

    changed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        nullable=False,
        default=utc_now
    )

    __table_args__ = (
        Index("idx_privacy_audit_wallet_time", "wallet_id", "changed_at"),
    )


class DataAccessGrant(Base, TimestampMixin):
    """Paid, time-bounded right for a buyer to view a monetizable wallet."""

    __tablename__ = "data_access_grants"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        comment="Unique identifier for the grant"
    )

    buyer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        nullable=False,
        comment="User who purchased access"
    )

    wallet_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("wallets.id", ondelete="CASCADE"),
        nullable=False,
        comment="Wallet the grant covers"
    )

    amount_paid_zec: Mapped[Decimal] = mapped_column(
        Numeric(20, 8),
        nullable=False,
        comment="Total paid for this grant"
    )

    purchase_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
        comment="Number of purchases folded into the grant"
    )

    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        nullable=False,
        comment="Access ends at this instant"
    )

    __table_args__ = (
        UniqueConstraint("buyer_id", "wallet_id", name="uq_grant_buyer_wallet"),
        Index("idx_grants_wallet", "wallet_id"),
    )


class OwnerEarning(Base):
    """Ledger row crediting a wallet owner for one data sale."""

    __tablename__ = "wallet_owner_earnings"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        comment="Unique identifier for the ledger row"
    )

    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        nullable=False,
        comment="Credited wallet owner"
    )

    wallet_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("wallets.id", ondelete="CASCADE"),
        nullable=False
    )

    buyer_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)

    amount_zec: Mapped[Decimal] = mapped_column(
        Numeric(20, 8),
        nullable=False,
        comment="Gross sale amount"
    )

    owner_share_zec: Mapped[Decimal] = mapped_column(Numeric(20, 8), nullable=False)
    platform_fee_zec: Mapped[Decimal] = mapped_column(Numeric(20, 8), nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="pending",
        comment="pending or paid"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        nullable=False,
        default=utc_now
    )

    __table_args__ = (
        Index("idx_earnings_owner", "owner_id"),
    )
