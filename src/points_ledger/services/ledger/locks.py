from __future__ import annotations

import asyncio
import weakref
from contextlib import AsyncExitStack, asynccontextmanager
from threading import Lock
from typing import AsyncIterator


class AccountLockRegistry:
    """Per-account mutexes serializing read-modify-write cycles on balances.

    Locks are held in a weak-valued map: once no coroutine holds or waits on a
    lock it is dropped, so the registry does not grow with the account table.
    """

    def __init__(self) -> None:
        self._guard = Lock()
        self._locks: weakref.WeakValueDictionary[int, asyncio.Lock] = weakref.WeakValueDictionary()

    def _lock_for(self, account_id: int) -> asyncio.Lock:
        with self._guard:
            lock = self._locks.get(account_id)
            if lock is None:
                lock = asyncio.Lock()
                self._locks[account_id] = lock
            return lock

    @asynccontextmanager
    async def hold(self, *account_ids: int) -> AsyncIterator[None]:
        """Acquire the locks for ``account_ids`` in ascending id order."""

        ordered = sorted(set(account_ids))
        locks = [self._lock_for(account_id) for account_id in ordered]
        async with AsyncExitStack() as stack:
            for lock in locks:
                await stack.enter_async_context(lock)
            yield

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


_REGISTRY = AccountLockRegistry()


def get_account_locks() -> AccountLockRegistry:
    return _REGISTRY


__all__ = ["AccountLockRegistry", "get_account_locks"]
