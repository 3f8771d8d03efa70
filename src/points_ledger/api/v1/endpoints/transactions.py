"""Cashier and manager transaction endpoints."""

from typing import Annotated

from fastapi import APIRouter, Body, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from points_ledger.api.dependencies.security import is_at_least, require_role
from points_ledger.api.dependencies.session import resolve_account
from points_ledger.db.session import get_session
from points_ledger.models.account import Account, AccountRoleEnum
from points_ledger.schemas.transactions import (
    AdjustmentRequest,
    CashierTransactionRequest,
    ProcessedUpdateRequest,
    PurchaseRequest,
    SuspiciousUpdateRequest,
    TransactionResponse,
)
from points_ledger.services.ledger import SuspiciousQuarantineController, TransactionStateMachine


router = APIRouter(prefix="/transactions", tags=["Transactions"])


@router.post(
    "",
    response_model=TransactionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record a purchase or an adjustment",
)
async def create_transaction(
    payload: Annotated[CashierTransactionRequest, Body(discriminator="type")],
    caller: Account = Depends(require_role(AccountRoleEnum.CASHIER)),
    db: AsyncSession = Depends(get_session),
) -> TransactionResponse:
    account = await resolve_account(db, payload.utorid)
    machine = TransactionStateMachine(db)

    if isinstance(payload, PurchaseRequest):
        view = await machine.create_purchase(
            account.id,
            caller.id,
            payload.spent,
            payload.promotion_ids,
            payload.remark,
        )
    elif isinstance(payload, AdjustmentRequest):
        if not is_at_least(caller, AccountRoleEnum.MANAGER):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="manager role required")
        view = await machine.create_adjustment(
            account.id,
            payload.amount,
            payload.related_id,
            payload.remark,
            created_by_id=caller.id,
        )
    else:  # pragma: no cover - the discriminator rejects other types
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unsupported transaction type")

    return TransactionResponse.from_view(view)


@router.get(
    "/{transaction_id}",
    response_model=TransactionResponse,
    dependencies=[Depends(require_role(AccountRoleEnum.MANAGER))],
)
async def get_transaction(
    transaction_id: int,
    db: AsyncSession = Depends(get_session),
) -> TransactionResponse:
    view = await TransactionStateMachine(db).get_transaction(transaction_id)
    return TransactionResponse.from_view(view)


@router.patch(
    "/{transaction_id}/suspicious",
    response_model=TransactionResponse,
    dependencies=[Depends(require_role(AccountRoleEnum.MANAGER))],
    summary="Quarantine or release a purchase",
)
async def set_transaction_suspicious(
    transaction_id: int,
    payload: SuspiciousUpdateRequest,
    db: AsyncSession = Depends(get_session),
) -> TransactionResponse:
    view = await SuspiciousQuarantineController(db).set_suspicious(transaction_id, payload.suspicious)
    return TransactionResponse.from_view(view)


@router.patch(
    "/{transaction_id}/processed",
    response_model=TransactionResponse,
    summary="Settle a pending redemption or reopen a settled one",
)
async def set_transaction_processed(
    transaction_id: int,
    payload: ProcessedUpdateRequest,
    caller: Account = Depends(require_role(AccountRoleEnum.CASHIER)),
    db: AsyncSession = Depends(get_session),
) -> TransactionResponse:
    view = await TransactionStateMachine(db).set_redemption_settled(
        transaction_id,
        payload.processed,
        processed_by_id=caller.id,
    )
    return TransactionResponse.from_view(view)
