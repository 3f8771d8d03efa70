"""Point transaction log."""

from __future__ import annotations

from enum import Enum

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum as SqlEnum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Table,
    false,
    func,
)
from sqlalchemy.orm import relationship

from points_ledger.db.base import Base


class TransactionKind(str, Enum):
    """Kinds of balance-affecting transactions."""

    PURCHASE = "purchase"
    REDEMPTION = "redemption"
    TRANSFER = "transfer"
    ADJUSTMENT = "adjustment"
    EVENT = "event"


transaction_promotions = Table(
    "transaction_promotions",
    Base.metadata,
    Column("transaction_id", Integer, ForeignKey("point_transactions.id", ondelete="CASCADE"), primary_key=True),
    Column("promotion_id", Integer, ForeignKey("promotions.id"), primary_key=True),
)


class PointTransaction(Base):
    """Immutable ledger record.

    ``amount`` is the signed effect on the owner's balance: negative for
    redemptions and transfer debit legs. Only ``suspicious`` (purchases) and
    ``settled`` (redemptions) change after creation.
    """

    __tablename__ = "point_transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    account_id = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    kind = Column(
        SqlEnum(
            TransactionKind,
            name="point_transaction_kind",
            values_callable=lambda members: [member.value for member in members],
        ),
        nullable=False,
        index=True,
    )
    amount = Column(Integer, nullable=False)
    spent = Column(Numeric(12, 2), nullable=True)
    related_id = Column(Integer, ForeignKey("point_transactions.id"), nullable=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=True)
    suspicious = Column(Boolean, nullable=False, default=False, server_default=false())
    settled = Column(Boolean, nullable=True)
    reopened = Column(Boolean, nullable=False, default=False, server_default=false())
    settled_at = Column(DateTime(timezone=True), nullable=True)
    processed_by_id = Column(Integer, ForeignKey("accounts.id"), nullable=True)
    note = Column(String(255), nullable=False, default="", server_default="")
    created_by_id = Column(Integer, ForeignKey("accounts.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    promotions = relationship("Promotion", secondary=transaction_promotions, lazy="selectin")

    @property
    def is_applied(self) -> bool:
        """Whether ``amount`` is currently reflected in the owner's balance."""

        if self.kind == TransactionKind.PURCHASE:
            return not self.suspicious
        if self.kind == TransactionKind.REDEMPTION:
            return bool(self.settled)
        return True
