"""Authoritative balance store and append-only transaction log."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from points_ledger.models.account import Account
from points_ledger.models.transaction import PointTransaction, TransactionKind
from points_ledger.services.ledger.errors import InsufficientBalanceError, NotFoundError
from points_ledger.services.ledger.locks import AccountLockRegistry, get_account_locks


class Ledger:
    """Owns every write to ``Account.points``.

    Callers mutate balances inside ``serialize()`` so that reads and writes for
    one account never interleave with another request's. Nothing here commits;
    the enclosing operation commits the balance change together with the
    records it appended.
    """

    def __init__(self, session: AsyncSession, *, locks: AccountLockRegistry | None = None) -> None:
        self._session = session
        self._locks = locks or get_account_locks()

    @asynccontextmanager
    async def serialize(self, *account_ids: int) -> AsyncIterator[None]:
        async with self._locks.hold(*account_ids):
            yield

    async def load_account(self, account_id: int, *, for_update: bool = False) -> Account:
        """Fetch an account, re-reading the row so a cached instance never hides a concurrent write."""

        stmt = select(Account).where(Account.id == account_id).execution_options(populate_existing=True)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self._session.execute(stmt)
        account = result.scalar_one_or_none()
        if account is None:
            raise NotFoundError(f"Account {account_id} not found")
        return account

    async def lock_accounts(self, *account_ids: int) -> dict[int, Account]:
        """Row-lock accounts in ascending id order, matching ``serialize``."""

        accounts: dict[int, Account] = {}
        for account_id in sorted(set(account_ids)):
            accounts[account_id] = await self.load_account(account_id, for_update=True)
        return accounts

    async def current_balance(self, account_id: int) -> int:
        account = await self.load_account(account_id)
        return int(account.points or 0)

    async def apply_delta(
        self,
        account_id: int,
        amount: int,
        *,
        require_non_negative: bool = False,
    ) -> int:
        """Add ``amount`` to the balance and return the new balance.

        With ``require_non_negative`` a result below zero raises
        ``InsufficientBalanceError`` and leaves the balance untouched.
        Adjustments and quarantine reversals pass ``False``: a correction may
        legitimately push an account negative.
        """

        account = await self.load_account(account_id, for_update=True)
        balance_before = int(account.points or 0)
        new_balance = balance_before + int(amount)
        if require_non_negative and new_balance < 0:
            logger.warning(
                "Rejected ledger debit",
                account_id=account_id,
                balance=balance_before,
                amount=amount,
            )
            raise InsufficientBalanceError(
                f"Account {account_id} balance {balance_before} cannot cover {-amount} points",
                available=balance_before,
                requested=-int(amount),
            )

        account.points = new_balance
        await self._session.flush()
        logger.debug(
            "Applied ledger delta",
            account_id=account_id,
            amount=amount,
            balance_before=balance_before,
            balance_after=new_balance,
        )
        return new_balance

    async def append(self, transaction: PointTransaction) -> PointTransaction:
        """Persist a new transaction record and assign its identifier."""

        self._session.add(transaction)
        await self._session.flush()
        return transaction

    async def reserved_redemptions(self, account_id: int, *, exclude_id: int | None = None) -> int:
        """Points earmarked by the account's unsettled redemptions."""

        stmt = select(func.coalesce(func.sum(func.abs(PointTransaction.amount)), 0)).where(
            PointTransaction.account_id == account_id,
            PointTransaction.kind == TransactionKind.REDEMPTION,
            PointTransaction.settled.is_(False),
        )
        if exclude_id is not None:
            stmt = stmt.where(PointTransaction.id != exclude_id)
        result = await self._session.execute(stmt)
        return int(result.scalar_one() or 0)

    async def available_points(self, account_id: int) -> int:
        """Balance minus pending redemption reservations."""

        balance = await self.current_balance(account_id)
        reserved = await self.reserved_redemptions(account_id)
        return balance - reserved

    async def applied_total(self, account_id: int) -> int:
        """Recompute the balance from the log; equals ``current_balance`` when the ledger is consistent."""

        stmt = select(PointTransaction).where(PointTransaction.account_id == account_id)
        result = await self._session.execute(stmt)
        return sum(int(txn.amount) for txn in result.scalars() if txn.is_applied)


__all__ = ["Ledger"]
