"""Request and response models for the transaction endpoints."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt

from points_ledger.services.ledger.views import BalanceView, TransactionView, TransferView


def _to_camel(value: str) -> str:
    parts = value.split("_")
    return parts[0] + "".join(word.capitalize() for word in parts[1:])


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=_to_camel)


class _TransactionRequest(_CamelModel):
    model_config = ConfigDict(extra="forbid")

    remark: str = Field(default="", description="Free-form note stored with the transaction")


class PurchaseRequest(_TransactionRequest):
    type: Literal["purchase"]
    utorid: str = Field(..., min_length=1, max_length=8)
    spent: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    promotion_ids: list[StrictInt] = Field(default_factory=list)


class AdjustmentRequest(_TransactionRequest):
    type: Literal["adjustment"]
    utorid: str = Field(..., min_length=1, max_length=8)
    amount: StrictInt
    related_id: StrictInt


class RedemptionRequest(_TransactionRequest):
    type: Literal["redemption"]
    amount: StrictInt = Field(..., gt=0)


class TransferRequest(_TransactionRequest):
    type: Literal["transfer"]
    amount: StrictInt = Field(..., gt=0)


class EventRewardRequest(_TransactionRequest):
    type: Literal["event"]
    utorid: str = Field(..., min_length=1, max_length=8)
    amount: StrictInt = Field(..., gt=0)


# Bodies accepted by POST /transactions; the "type" field selects the variant.
CashierTransactionRequest = Union[PurchaseRequest, AdjustmentRequest]


class SuspiciousUpdateRequest(_CamelModel):
    suspicious: StrictBool


class ProcessedUpdateRequest(_CamelModel):
    processed: StrictBool


class TransactionResponse(_CamelModel):
    id: int
    account_id: int
    type: str
    amount: int
    earned: int
    spent: Decimal | None = None
    related_id: int | None = None
    event_id: int | None = None
    promotion_ids: list[int] = Field(default_factory=list)
    suspicious: bool = False
    processed: bool | None = None
    remark: str = ""
    created_by: int | None = None
    processed_by: int | None = None
    balance: int | None = None
    created_at: datetime

    @classmethod
    def from_view(cls, view: TransactionView) -> "TransactionResponse":
        return cls(
            id=view.id,
            account_id=view.account_id,
            type=view.kind.value,
            amount=view.amount,
            earned=view.earned,
            spent=view.spent,
            related_id=view.related_id,
            event_id=view.event_id,
            promotion_ids=view.promotion_ids,
            suspicious=view.suspicious,
            processed=view.settled,
            remark=view.note,
            created_by=view.created_by_id,
            processed_by=view.processed_by_id,
            balance=view.balance,
            created_at=view.created_at,
        )


class TransferResponse(_CamelModel):
    sender: TransactionResponse
    recipient: TransactionResponse

    @classmethod
    def from_view(cls, view: TransferView) -> "TransferResponse":
        return cls(
            sender=TransactionResponse.from_view(view.sender),
            recipient=TransactionResponse.from_view(view.recipient),
        )


class BalanceResponse(_CamelModel):
    account_id: int
    points: int
    reserved: int
    available: int

    @classmethod
    def from_view(cls, view: BalanceView) -> "BalanceResponse":
        return cls(
            account_id=view.account_id,
            points=view.points,
            reserved=view.reserved,
            available=view.available,
        )


__all__ = [
    "AdjustmentRequest",
    "BalanceResponse",
    "CashierTransactionRequest",
    "EventRewardRequest",
    "ProcessedUpdateRequest",
    "PurchaseRequest",
    "RedemptionRequest",
    "SuspiciousUpdateRequest",
    "TransactionResponse",
    "TransferRequest",
    "TransferResponse",
]
