from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from points_ledger.api.dependencies.security import require_role
from points_ledger.api.dependencies.session import resolve_account
from points_ledger.db.session import get_session
from points_ledger.models.account import Account, AccountRoleEnum
from points_ledger.schemas.transactions import EventRewardRequest, TransactionResponse
from points_ledger.services.ledger import TransactionStateMachine


router = APIRouter(prefix="/events", tags=["Events"])


@router.post(
    "/{event_id}/transactions",
    response_model=TransactionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Award event points to a participant",
)
async def grant_event_reward(
    event_id: int,
    payload: EventRewardRequest,
    caller: Account = Depends(require_role(AccountRoleEnum.MANAGER)),
    db: AsyncSession = Depends(get_session),
) -> TransactionResponse:
    recipient = await resolve_account(db, payload.utorid)
    view = await TransactionStateMachine(db).grant_event_reward(
        event_id,
        recipient.id,
        payload.amount,
        caller.id,
        payload.remark,
    )
    return TransactionResponse.from_view(view)
