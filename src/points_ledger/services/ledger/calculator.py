"""Points accrual for purchases."""

from __future__ import annotations

from decimal import ROUND_FLOOR, Decimal
from typing import Iterable, Protocol

from points_ledger.core.settings import settings
from points_ledger.services.ledger.errors import InvalidInputError


class PromotionBonus(Protocol):
    points: int | None
    rate: Decimal | None


def _floor(value: Decimal) -> int:
    return int(value.to_integral_value(rounding=ROUND_FLOOR))


def _to_decimal(value: object) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() keeps binary float noise (0.07 -> 0.07000000000000000666) out of the floor
    return Decimal(str(value))


def compute_points(
    spent: Decimal,
    promotions: Iterable[PromotionBonus] = (),
    *,
    point_value: Decimal | None = None,
    rate_scale: int | None = None,
) -> int:
    """Return the points earned for ``spent`` with the given promotions applied.

    Base accrual is ``floor(spent / point_value)``. Each promotion adds its flat
    ``points`` bonus and ``floor(spent * rate_scale * rate)`` for its rate bonus.
    """

    spent = _to_decimal(spent)
    if spent < Decimal("0"):
        raise InvalidInputError("Spend amount cannot be negative")

    value = _to_decimal(point_value if point_value is not None else settings.point_value)
    scale = _to_decimal(rate_scale if rate_scale is not None else settings.promotion_rate_scale)

    earned = _floor(spent / value)
    for promotion in promotions:
        if promotion.points:
            earned += int(promotion.points)
        if promotion.rate:
            earned += _floor(spent * scale * _to_decimal(promotion.rate))
    return earned


__all__ = ["PromotionBonus", "compute_points"]
