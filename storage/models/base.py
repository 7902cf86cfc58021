"""
Base ORM Model and Mixins.

============================================================
PURPOSE
============================================================
Provides the declarative base and common mixins used by all
ORM models of the analytics store.

============================================================
COMPONENTS
============================================================
- Base: SQLAlchemy declarative base for all models
- TimestampMixin: Common timestamp columns
- utc_now: Column default that reads the engine clock

All timestamps are naive UTC so values round-trip unchanged
through every backend (SQLite drops tzinfo).

============================================================
"""

from datetime import datetime

from sqlalchemy import DateTime
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from core.clock import get_clock


def utc_now() -> datetime:
    """Current naive UTC time from the global clock."""
    return get_clock().now()


class Base(DeclarativeBase):
    """
    Declarative base for all ORM models.

    All models in the analytics store inherit from this base.
    """

    type_annotation_map = {
        datetime: DateTime(timezone=False),
    }


class TimestampMixin:
    """
    Mixin providing standard timestamp columns.

    Usage:
        class MyModel(Base, TimestampMixin):
            __tablename__ = "my_table"
            ...
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        nullable=False,
        default=utc_now,
        comment="Record creation timestamp (UTC)"
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
        comment="Last update timestamp (UTC)"
    )
