"""Promotion management endpoints (managers only)."""

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from points_ledger.api.dependencies.security import require_role
from points_ledger.db.session import get_session
from points_ledger.models.account import AccountRoleEnum
from points_ledger.schemas.promotions import (
    PromotionCreateRequest,
    PromotionResponse,
    PromotionUpdateRequest,
)
from points_ledger.services.ledger import PromotionService


router = APIRouter(
    prefix="/promotions",
    tags=["Promotions"],
    dependencies=[Depends(require_role(AccountRoleEnum.MANAGER))],
)


@router.post("", response_model=PromotionResponse, status_code=status.HTTP_201_CREATED)
async def create_promotion(
    payload: PromotionCreateRequest,
    db: AsyncSession = Depends(get_session),
) -> PromotionResponse:
    promotion = await PromotionService(db).create_promotion(payload.to_fields())
    return PromotionResponse.from_model(promotion)


@router.get("/{promotion_id}", response_model=PromotionResponse)
async def get_promotion(
    promotion_id: int,
    db: AsyncSession = Depends(get_session),
) -> PromotionResponse:
    promotion = await PromotionService(db).get_promotion(promotion_id)
    return PromotionResponse.from_model(promotion)


@router.patch("/{promotion_id}", response_model=PromotionResponse)
async def update_promotion(
    promotion_id: int,
    payload: PromotionUpdateRequest,
    db: AsyncSession = Depends(get_session),
) -> PromotionResponse:
    promotion = await PromotionService(db).update_promotion(promotion_id, payload.changes())
    return PromotionResponse.from_model(promotion)


@router.delete("/{promotion_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_promotion(
    promotion_id: int,
    db: AsyncSession = Depends(get_session),
) -> Response:
    await PromotionService(db).delete_promotion(promotion_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
