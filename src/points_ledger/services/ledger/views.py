"""Serializable results of ledger operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from points_ledger.models.transaction import PointTransaction, TransactionKind


@dataclass(slots=True)
class TransactionView:
    """Snapshot of a transaction taken inside the committing unit of work."""

    id: int
    account_id: int
    kind: TransactionKind
    amount: int
    note: str
    created_at: datetime
    spent: Decimal | None = None
    related_id: int | None = None
    event_id: int | None = None
    promotion_ids: list[int] = field(default_factory=list)
    suspicious: bool = False
    settled: bool | None = None
    created_by_id: int | None = None
    processed_by_id: int | None = None
    balance: int | None = None

    @property
    def earned(self) -> int:
        """Points actually credited by a purchase (zero while quarantined)."""

        if self.kind == TransactionKind.PURCHASE and self.suspicious:
            return 0
        return self.amount

    @classmethod
    def from_record(cls, record: PointTransaction, *, balance: int | None = None) -> "TransactionView":
        return cls(
            id=record.id,
            account_id=record.account_id,
            kind=record.kind,
            amount=int(record.amount),
            note=record.note or "",
            created_at=record.created_at,
            spent=Decimal(record.spent) if record.spent is not None else None,
            related_id=record.related_id,
            event_id=record.event_id,
            promotion_ids=sorted(promotion.id for promotion in record.promotions),
            suspicious=bool(record.suspicious),
            settled=record.settled,
            created_by_id=record.created_by_id,
            processed_by_id=record.processed_by_id,
            balance=balance,
        )


@dataclass(slots=True)
class TransferView:
    """Both legs of a transfer; each leg's ``related_id`` is the other's ``id``."""

    sender: TransactionView
    recipient: TransactionView


@dataclass(slots=True)
class BalanceView:
    account_id: int
    points: int
    reserved: int

    @property
    def available(self) -> int:
        return self.points - self.reserved


__all__ = ["BalanceView", "TransactionView", "TransferView"]
