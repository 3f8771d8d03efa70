from typing import Awaitable, Callable

from fastapi import Depends, HTTPException, status

from points_ledger.api.dependencies.session import require_member_session
from points_ledger.models.account import Account, AccountRoleEnum


def require_role(minimum: AccountRoleEnum) -> Callable[..., Awaitable[Account]]:
    """Dependency factory rejecting callers whose role ranks below ``minimum``."""

    async def _require_role(account: Account = Depends(require_member_session)) -> Account:
        if account.role_enum.rank < minimum.rank:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"{minimum.value} role required",
            )
        return account

    return _require_role


def is_at_least(account: Account, minimum: AccountRoleEnum) -> bool:
    return account.role_enum.rank >= minimum.rank
