"""Member-facing ledger endpoints: redemptions, transfers and balances."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from points_ledger.api.dependencies.security import is_at_least
from points_ledger.api.dependencies.session import require_member_session
from points_ledger.db.session import get_session
from points_ledger.models.account import Account, AccountRoleEnum
from points_ledger.schemas.transactions import (
    BalanceResponse,
    RedemptionRequest,
    TransactionResponse,
    TransferRequest,
    TransferResponse,
)
from points_ledger.services.ledger import TransactionStateMachine


router = APIRouter(prefix="/users", tags=["Users"])


@router.post(
    "/me/transactions",
    response_model=TransactionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Request a redemption",
)
async def create_redemption(
    payload: RedemptionRequest,
    caller: Account = Depends(require_member_session),
    db: AsyncSession = Depends(get_session),
) -> TransactionResponse:
    view = await TransactionStateMachine(db).create_redemption(caller.id, payload.amount, payload.remark)
    return TransactionResponse.from_view(view)


@router.get("/me/points", response_model=BalanceResponse)
async def get_own_points(
    caller: Account = Depends(require_member_session),
    db: AsyncSession = Depends(get_session),
) -> BalanceResponse:
    view = await TransactionStateMachine(db).balance(caller.id)
    return BalanceResponse.from_view(view)


@router.post(
    "/{user_id}/transactions",
    response_model=TransferResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Transfer points to another member",
)
async def create_transfer(
    user_id: int,
    payload: TransferRequest,
    caller: Account = Depends(require_member_session),
    db: AsyncSession = Depends(get_session),
) -> TransferResponse:
    view = await TransactionStateMachine(db).create_transfer(caller.id, user_id, payload.amount, payload.remark)
    return TransferResponse.from_view(view)


@router.get("/{user_id}/points", response_model=BalanceResponse)
async def get_points(
    user_id: int,
    caller: Account = Depends(require_member_session),
    db: AsyncSession = Depends(get_session),
) -> BalanceResponse:
    if caller.id != user_id and not is_at_least(caller, AccountRoleEnum.MANAGER):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="manager role required")
    view = await TransactionStateMachine(db).balance(user_id)
    return BalanceResponse.from_view(view)
