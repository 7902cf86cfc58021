"""
Identity and Transaction ORM Models.

============================================================
PURPOSE
============================================================
Models for the ownership chain (user -> project -> wallet) and
the indexed transactions the analytics engine reads.

============================================================
DATA LIFECYCLE ROLE
============================================================
- Stage: SOURCE
- Mutability: wallets are MUTABLE (privacy mode, activity flag);
  processed transactions are IMMUTABLE (written by the indexer)
- Consumers: every analytics package

============================================================
MODELS
============================================================
- User: Account that owns projects
- Project: Group of wallets owned by one user
- Wallet: Tracked address with its privacy mode
- ProcessedTransaction: One indexed transaction of a wallet

============================================================
"""

import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from storage.models.base import Base, TimestampMixin, utc_now


# Allowed wallets.privacy_mode values
PRIVACY_MODES = ("private", "public", "monetizable")

# Modes whose wallets may contribute to cross-wallet aggregates
AGGREGATE_PRIVACY_MODES = ("public", "monetizable")


class User(Base, TimestampMixin):
    """Account owning projects and, through them, wallets."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        comment="Unique identifier for the user"
    )

    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
        comment="Login email"
    )

    name: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        comment="Display name"
    )

    projects: Mapped[List["Project"]] = relationship(back_populates="owner")

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email})>"


class Project(Base, TimestampMixin):
    """A user's project; the unit every dashboard aggregates over."""

    __tablename__ = "projects"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        comment="Unique identifier for the project"
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        comment="Owning user"
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Project name"
    )

    description: Mapped[Optional[str]] = mapped_column(
        String(1000),
        nullable=True,
        comment="Free-text description"
    )

    owner: Mapped["User"] = relationship(back_populates="projects")
    wallets: Mapped[List["Wallet"]] = relationship(back_populates="project")

    __table_args__ = (
        Index("idx_projects_user_id", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<Project(id={self.id}, name={self.name})>"


class Wallet(Base):
    """
    A tracked wallet address inside a project.

    ============================================================
    PRIVACY
    ============================================================
    privacy_mode is one of private / public / monetizable and is
    read directly from this row on every access decision.
    Changes are audited in wallet_privacy_audit_log.

    ============================================================
    """

    __tablename__ = "wallets"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        comment="Unique identifier for the wallet"
    )

    project_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        comment="Owning project"
    )

    address: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="On-chain address"
    )

    wallet_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="t",
        comment="Address type: t (transparent), z (shielded), u (unified)"
    )

    network: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="mainnet",
        comment="Network the address lives on"
    )

    privacy_mode: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="private",
        comment="Visibility tier: private, public, monetizable"
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        comment="Whether the wallet is still tracked"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        nullable=False,
        default=utc_now,
        comment="When the wallet was added (adoption clock starts here)"
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
        comment="Last update timestamp (UTC)"
    )

    project: Mapped["Project"] = relationship(back_populates="wallets")

    __table_args__ = (
        Index("idx_wallets_project_id", "project_id"),
        Index("idx_wallets_privacy_mode", "privacy_mode"),
    )

    def __repr__(self) -> str:
        return f"<Wallet(id={self.id}, address={self.address}, mode={self.privacy_mode})>"


class ProcessedTransaction(Base):
    """
    One indexed transaction of a wallet.

    Written by the indexer, read-only to the analytics engine.
    Ordered by block_timestamp, with txid as tie-break.
    """

    __tablename__ = "processed_transactions"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        comment="Unique identifier for the row"
    )

    wallet_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("wallets.id", ondelete="CASCADE"),
        nullable=False,
        comment="Wallet the transaction belongs to"
    )

    txid: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
        comment="Transaction hash"
    )

    block_height: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Block height"
    )

    block_timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        nullable=False,
        comment="Block time (UTC)"
    )

    tx_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="transfer",
        comment="transfer, swap, bridge, shielded, other"
    )

    value_zatoshi: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
        comment="Signed value in zatoshi"
    )

    fee_zatoshi: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
        comment="Fee in zatoshi"
    )

    is_shielded: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        comment="Transaction touches the shielded pool"
    )

    shielded_pool_entry: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        comment="Funds move into the shielded pool"
    )

    shielded_pool_exit: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        comment="Funds move out of the shielded pool"
    )

    __table_args__ = (
        UniqueConstraint("wallet_id", "txid", name="uq_processed_tx_wallet_txid"),
        Index("idx_processed_tx_wallet_time", "wallet_id", "block_timestamp"),
    )

    def __repr__(self) -> str:
        return f"<ProcessedTransaction(txid={self.txid}, type={self.tx_type})>"
