"""
Activity Rollup ORM Model.

============================================================
PURPOSE
============================================================
Daily per-wallet activity rollups derived from processed
transactions. Every productivity component, cohort and time
series reads these rows.

============================================================
DATA LIFECYCLE ROLE
============================================================
- Stage: DERIVED
- Mutability: UPSERTED (one row per wallet per day)
- Source: processed_transactions
- Consumers: productivity scoring, dashboard aggregation

============================================================
"""

import uuid
from datetime import date
from typing import Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    Date,
    ForeignKey,
    Index,
    Integer,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from storage.models.base import Base, TimestampMixin


class ActivityRollup(Base, TimestampMixin):
    """One wallet's activity on one calendar day (UTC)."""

    __tablename__ = "wallet_activity_metrics"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        comment="Unique identifier for the rollup"
    )

    wallet_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("wallets.id", ondelete="CASCADE"),
        nullable=False,
        comment="Wallet the rollup belongs to"
    )

    activity_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
        comment="Calendar day (UTC)"
    )

    # Volume
    transaction_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_volume_zatoshi: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
        comment="Sum of absolute values"
    )
    total_fees_paid: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    # Per-type counts
    transfers_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    swaps_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    bridges_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    shielded_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Flags
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_returning: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        comment="An earlier active day exists"
    )

    days_since_creation: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    sequence_complexity_score: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        comment="0-100 score of the day's transaction sequence"
    )

    __table_args__ = (
        UniqueConstraint("wallet_id", "activity_date", name="uq_activity_wallet_date"),
        Index("idx_activity_date", "activity_date"),
    )

    def __repr__(self) -> str:
        return (
            f"<ActivityRollup(wallet={self.wallet_id}, date={self.activity_date}, "
            f"tx={self.transaction_count})>"
        )
