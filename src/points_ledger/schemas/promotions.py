from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, StrictInt

from points_ledger.models.promotion import Promotion, PromotionType
from points_ledger.services.ledger.promotions import PromotionFields


def _to_camel(value: str) -> str:
    parts = value.split("_")
    return parts[0] + "".join(word.capitalize() for word in parts[1:])


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=_to_camel)


class PromotionCreateRequest(_CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1, max_length=1000)
    type: PromotionType
    start_time: datetime
    end_time: datetime
    min_spending: Decimal | None = Field(default=None, ge=0)
    rate: Decimal | None = Field(default=None, gt=0)
    points: StrictInt | None = Field(default=None, ge=0)

    def to_fields(self) -> PromotionFields:
        return PromotionFields(
            name=self.name,
            description=self.description,
            type=self.type,
            start_time=self.start_time,
            end_time=self.end_time,
            min_spending=self.min_spending,
            rate=self.rate,
            points=self.points,
        )


class PromotionUpdateRequest(_CamelModel):
    """Partial update; only fields present in the request body are applied."""

    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, min_length=1, max_length=1000)
    type: PromotionType | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    min_spending: Decimal | None = Field(default=None, ge=0)
    rate: Decimal | None = Field(default=None, gt=0)
    points: StrictInt | None = Field(default=None, ge=0)

    def changes(self) -> dict[str, object]:
        return self.model_dump(exclude_unset=True, by_alias=False)


class PromotionResponse(_CamelModel):
    id: int
    name: str
    description: str
    type: PromotionType
    start_time: datetime
    end_time: datetime
    min_spending: Decimal | None = None
    rate: Decimal | None = None
    points: int | None = None

    @classmethod
    def from_model(cls, promotion: Promotion) -> "PromotionResponse":
        return cls(
            id=promotion.id,
            name=promotion.name,
            description=promotion.description,
            type=promotion.type,
            start_time=promotion.start_time,
            end_time=promotion.end_time,
            min_spending=promotion.min_spending,
            rate=promotion.rate,
            points=promotion.points,
        )


__all__ = ["PromotionCreateRequest", "PromotionResponse", "PromotionUpdateRequest"]
