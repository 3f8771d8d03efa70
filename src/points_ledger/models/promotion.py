"""Promotion definitions and one-time usage tracking."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import (
    Column,
    DateTime,
    Enum as SqlEnum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import relationship

from points_ledger.db.base import Base


class PromotionType(str, Enum):
    """Recurring promotions apply on every eligible purchase; one-time ones once per account."""

    AUTOMATIC = "automatic"
    ONE_TIME = "one-time"


class Promotion(Base):
    __tablename__ = "promotions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=False)
    type = Column(
        SqlEnum(
            PromotionType,
            name="promotion_type",
            values_callable=lambda members: [member.value for member in members],
        ),
        nullable=False,
    )
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=False)
    min_spending = Column(Numeric(12, 2), nullable=True)
    rate = Column(Numeric(8, 4), nullable=True)
    points = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    usages = relationship("PromotionUsage", back_populates="promotion", cascade="all, delete-orphan")

    def is_active(self, now: datetime) -> bool:
        """Whether ``now`` falls inside the half-open window ``[start_time, end_time)``."""

        return as_utc(self.start_time) <= now < as_utc(self.end_time)

    def has_started(self, now: datetime) -> bool:
        return as_utc(self.start_time) <= now


class PromotionUsage(Base):
    """Append-only record of a one-time promotion consumed by an account."""

    __tablename__ = "promotion_usages"
    __table_args__ = (
        UniqueConstraint("promotion_id", "account_id", name="uq_promotion_usages_promotion_account"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    promotion_id = Column(Integer, ForeignKey("promotions.id", ondelete="CASCADE"), nullable=False, index=True)
    account_id = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    transaction_id = Column(Integer, ForeignKey("point_transactions.id"), nullable=True)
    used_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    promotion = relationship("Promotion", back_populates="usages")


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
