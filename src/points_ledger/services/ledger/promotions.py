"""Promotion validation for purchases and the promotion edit lifecycle."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Iterable, Sequence

from loguru import logger
from sqlalchemy import exists, select
from sqlalchemy.ext.asyncio import AsyncSession

from points_ledger.models.promotion import Promotion, PromotionType, PromotionUsage, as_utc
from points_ledger.models.transaction import transaction_promotions
from points_ledger.services.ledger.errors import (
    InvalidInputError,
    InvalidPromotionError,
    InvalidStateError,
    NotFoundError,
)


PROMOTION_NAME_MAX_LENGTH = 100
PROMOTION_DESCRIPTION_MAX_LENGTH = 1000
_EDITABLE_FIELDS = frozenset(
    {"name", "description", "type", "start_time", "end_time", "min_spending", "rate", "points"}
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_promotion_ids(promotion_ids: Iterable[Any] | None) -> list[int]:
    """Validate a requested promotion id list: positive integers, no duplicates."""

    normalized: list[int] = []
    seen: set[int] = set()
    for value in promotion_ids or []:
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise InvalidInputError(f"Invalid promotion identifier: {value!r}")
        if value in seen:
            raise InvalidInputError(f"Duplicate promotion identifier: {value}")
        seen.add(value)
        normalized.append(value)
    return normalized


class PromotionEvaluator:
    """Resolves the promotions a spender may apply to a purchase.

    Validation only reads: the caller records one-time usage in the same
    commit that credits the purchase, so a retried validation has no effect.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def validate(
        self,
        spender_id: int,
        promotion_ids: Sequence[int] | None,
        spent: Decimal,
        *,
        now: datetime | None = None,
    ) -> list[Promotion]:
        requested = normalize_promotion_ids(promotion_ids)
        if not requested:
            return []

        now = now or _utcnow()
        spent = Decimal(str(spent)) if not isinstance(spent, Decimal) else spent

        result = await self._session.execute(select(Promotion).where(Promotion.id.in_(requested)))
        by_id = {promotion.id: promotion for promotion in result.scalars()}

        usage_result = await self._session.execute(
            select(PromotionUsage.promotion_id).where(
                PromotionUsage.account_id == spender_id,
                PromotionUsage.promotion_id.in_(requested),
            )
        )
        already_used = set(usage_result.scalars())

        applicable: list[Promotion] = []
        for promotion_id in requested:
            promotion = by_id.get(promotion_id)
            if promotion is None:
                raise self._reject(promotion_id, spender_id, "Promotion does not exist")
            if not promotion.is_active(now):
                raise self._reject(promotion_id, spender_id, "Promotion is not active")
            if promotion.type == PromotionType.ONE_TIME and promotion_id in already_used:
                raise self._reject(promotion_id, spender_id, "One-time promotion already used")
            if promotion.min_spending is not None and Decimal(promotion.min_spending) > spent:
                raise self._reject(promotion_id, spender_id, "Minimum spend not met")
            applicable.append(promotion)
        return applicable

    @staticmethod
    def _reject(promotion_id: int, spender_id: int, reason: str) -> InvalidPromotionError:
        logger.info(
            "Rejected promotion",
            promotion_id=promotion_id,
            spender_id=spender_id,
            reason=reason,
        )
        return InvalidPromotionError(f"{reason}: promotion {promotion_id}", promotion_id=promotion_id)


@dataclass
class PromotionFields:
    """Validated promotion attributes."""

    name: str
    description: str
    type: PromotionType
    start_time: datetime
    end_time: datetime
    min_spending: Decimal | None = None
    rate: Decimal | None = None
    points: int | None = None


class PromotionService:
    """Create, edit and delete promotions while they are still mutable."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_promotion(self, promotion_id: int) -> Promotion:
        promotion = await self._session.get(Promotion, promotion_id)
        if promotion is None:
            raise NotFoundError(f"Promotion {promotion_id} not found")
        return promotion

    async def create_promotion(self, fields: PromotionFields, *, now: datetime | None = None) -> Promotion:
        now = now or _utcnow()
        self._validate(fields)
        if as_utc(fields.start_time) <= now:
            raise InvalidInputError("Promotion start time must be in the future")

        promotion = Promotion(
            name=fields.name.strip(),
            description=fields.description.strip(),
            type=fields.type,
            start_time=fields.start_time,
            end_time=fields.end_time,
            min_spending=fields.min_spending,
            rate=fields.rate,
            points=fields.points,
        )
        self._session.add(promotion)
        await self._session.commit()
        await self._session.refresh(promotion)
        logger.info("Created promotion", promotion_id=promotion.id, type=promotion.type.value)
        return promotion

    async def update_promotion(
        self,
        promotion_id: int,
        changes: dict[str, Any],
        *,
        now: datetime | None = None,
    ) -> Promotion:
        """Apply ``changes`` to a promotion that has not started yet."""

        now = now or _utcnow()
        if not changes:
            raise InvalidInputError("No promotion fields to update")
        unknown = set(changes) - _EDITABLE_FIELDS
        if unknown:
            raise InvalidInputError(f"Unsupported promotion fields: {', '.join(sorted(unknown))}")

        promotion = await self.get_promotion(promotion_id)
        if promotion.has_started(now):
            raise InvalidStateError(f"Promotion {promotion_id} has already started")

        merged = PromotionFields(
            name=changes.get("name", promotion.name),
            description=changes.get("description", promotion.description),
            type=changes.get("type", promotion.type),
            start_time=changes.get("start_time", promotion.start_time),
            end_time=changes.get("end_time", promotion.end_time),
            min_spending=changes.get("min_spending", promotion.min_spending),
            rate=changes.get("rate", promotion.rate),
            points=changes.get("points", promotion.points),
        )
        self._validate(merged)
        if "start_time" in changes and as_utc(merged.start_time) <= now:
            raise InvalidInputError("Promotion start time must be in the future")

        for key, value in changes.items():
            if isinstance(value, str) and key in {"name", "description"}:
                value = value.strip()
            setattr(promotion, key, value)
        await self._session.commit()
        await self._session.refresh(promotion)
        logger.info("Updated promotion", promotion_id=promotion.id, fields=sorted(changes))
        return promotion

    async def delete_promotion(self, promotion_id: int, *, now: datetime | None = None) -> None:
        """Delete a promotion that has not started or was never applied to a transaction."""

        now = now or _utcnow()
        promotion = await self.get_promotion(promotion_id)
        if promotion.has_started(now) and await self._is_used(promotion_id):
            raise InvalidStateError(f"Promotion {promotion_id} has been used and cannot be deleted")

        await self._session.delete(promotion)
        await self._session.commit()
        logger.info("Deleted promotion", promotion_id=promotion_id)

    async def _is_used(self, promotion_id: int) -> bool:
        stmt = select(
            exists().where(transaction_promotions.c.promotion_id == promotion_id)
        )
        result = await self._session.execute(stmt)
        return bool(result.scalar())

    @staticmethod
    def _validate(fields: PromotionFields) -> None:
        name = (fields.name or "").strip()
        if not name or len(fields.name) > PROMOTION_NAME_MAX_LENGTH:
            raise InvalidInputError("Promotion name must be 1-100 characters")
        description = (fields.description or "").strip()
        if not description or len(fields.description) > PROMOTION_DESCRIPTION_MAX_LENGTH:
            raise InvalidInputError("Promotion description must be 1-1000 characters")
        if not isinstance(fields.type, PromotionType):
            raise InvalidInputError(f"Unsupported promotion type: {fields.type!r}")
        if fields.min_spending is not None and Decimal(fields.min_spending) < Decimal("0"):
            raise InvalidInputError("Minimum spending cannot be negative")
        if fields.rate is not None and Decimal(fields.rate) <= Decimal("0"):
            raise InvalidInputError("Promotion rate must be positive")
        if fields.points is not None and (
            isinstance(fields.points, bool) or not isinstance(fields.points, int) or fields.points < 0
        ):
            raise InvalidInputError("Promotion points must be a non-negative integer")
        start = as_utc(fields.start_time)
        end = as_utc(fields.end_time)
        if end <= start:
            raise InvalidInputError("Promotion end time must be after its start time")
        if fields.rate is None and fields.points is None:
            raise InvalidInputError("A promotion needs a rate or a points bonus")


__all__ = [
    "PromotionEvaluator",
    "PromotionFields",
    "PromotionService",
    "normalize_promotion_ids",
]
