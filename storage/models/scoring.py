"""
Scoring Domain ORM Models.

============================================================
PURPOSE
============================================================
Models for storing per-wallet analytics outputs: productivity
scores, adoption stages and behavior flow analyses.

============================================================
DATA LIFECYCLE ROLE
============================================================
- Stage: DERIVED
- Mutability:
  - ProductivityScore: UPSERTED (single current row per wallet)
  - ProductivityScoreHistory: IMMUTABLE (append-only)
  - AdoptionStageRecord: MONOTONIC (achieved_at never cleared)
  - BehaviorFlowRecord: IMMUTABLE (append-only)
- Source: wallet_activity_metrics, processed_transactions
- Consumers: dashboard aggregation, privacy projections

============================================================
MODELS
============================================================
- ProductivityScore: Current productivity score
- ProductivityScoreHistory: Score trend samples
- AdoptionStageRecord: One row per (wallet, stage)
- BehaviorFlowRecord: Persisted flow analysis summary

============================================================
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    JSON,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from storage.models.base import Base, TimestampMixin, utc_now


class ProductivityScore(Base, TimestampMixin):
    """
    Current productivity score of a wallet.

    Exactly one row per wallet; recompute overwrites it.
    """

    __tablename__ = "wallet_productivity_scores"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        comment="Unique identifier for the score row"
    )

    wallet_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("wallets.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        comment="Scored wallet"
    )

    total_score: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Weighted total 0-100"
    )

    retention_score: Mapped[int] = mapped_column(Integer, nullable=False)
    adoption_score: Mapped[int] = mapped_column(Integer, nullable=False)
    activity_score: Mapped[int] = mapped_column(Integer, nullable=False)
    diversity_score: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="healthy, at_risk, churn"
    )

    risk_level: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="low, medium, high"
    )

    calculated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        nullable=False,
        default=utc_now,
        comment="When the score was computed"
    )

    def __repr__(self) -> str:
        return f"<ProductivityScore(wallet={self.wallet_id}, total={self.total_score})>"


class ProductivityScoreHistory(Base):
    """Append-only trend sample written on every recompute."""

    __tablename__ = "wallet_productivity_score_history"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        comment="Unique identifier for the sample"
    )

    wallet_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("wallets.id", ondelete="CASCADE"),
        nullable=False,
        comment="Scored wallet"
    )

    total_score: Mapped[int] = mapped_column(Integer, nullable=False)
    retention_score: Mapped[int] = mapped_column(Integer, nullable=False)
    adoption_score: Mapped[int] = mapped_column(Integer, nullable=False)
    activity_score: Mapped[int] = mapped_column(Integer, nullable=False)
    diversity_score: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)

    calculated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        nullable=False,
        comment="When the sample was computed"
    )

    __table_args__ = (
        Index("idx_score_history_wallet_time", "wallet_id", "calculated_at"),
    )


class AdoptionStageRecord(Base, TimestampMixin):
    """
    One adoption milestone of a wallet.

    achieved_at is monotonic: once set it is never cleared or moved.
    """

    __tablename__ = "wallet_adoption_stages"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        comment="Unique identifier for the stage row"
    )

    wallet_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("wallets.id", ondelete="CASCADE"),
        nullable=False,
        comment="Wallet progressing through the funnel"
    )

    stage_name: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        comment="created, first_tx, feature_usage, recurring, high_value"
    )

    achieved_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=False),
        nullable=True,
        comment="When the stage was reached (NULL = not yet)"
    )

    time_to_achieve_hours: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        comment="Hours from wallet creation to achievement"
    )

    conversion_probability: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        default=0.0,
        comment="Estimated probability of reaching this stage"
    )

    __table_args__ = (
        UniqueConstraint("wallet_id", "stage_name", name="uq_adoption_wallet_stage"),
    )

    def __repr__(self) -> str:
        return f"<AdoptionStageRecord(wallet={self.wallet_id}, stage={self.stage_name})>"


class BehaviorFlowRecord(Base):
    """Persisted summary of one flow analysis run."""

    __tablename__ = "wallet_behavior_flows"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        comment="Unique identifier for the analysis row"
    )

    wallet_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("wallets.id", ondelete="CASCADE"),
        nullable=False,
        comment="Analyzed wallet"
    )

    window_start: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    window_end: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    total_flows: Mapped[int] = mapped_column(Integer, nullable=False)
    pattern: Mapped[str] = mapped_column(String(30), nullable=False)
    confidence: Mapped[int] = mapped_column(Integer, nullable=False)
    loyalty_score: Mapped[int] = mapped_column(Integer, nullable=False)
    privacy_efficiency_score: Mapped[int] = mapped_column(Integer, nullable=False)

    summary: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
        comment="Serialized flow analysis (metrics, transitions, prediction)"
    )

    analyzed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        nullable=False,
        default=utc_now
    )

    __table_args__ = (
        Index("idx_behavior_flows_wallet_time", "wallet_id", "analyzed_at"),
    )
