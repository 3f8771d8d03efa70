from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator

from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from points_ledger.core.settings import settings
from points_ledger.models.transaction import PointTransaction
from points_ledger.observability.ledger import LedgerObservabilityStore, get_ledger_store
from points_ledger.services.ledger.errors import InvalidInputError, LedgerError, NotFoundError
from points_ledger.services.ledger.ledger import Ledger


class LedgerOperationService:
    """Shared plumbing for services that commit one ledger operation per call."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        ledger: Ledger | None = None,
        observability: LedgerObservabilityStore | None = None,
    ) -> None:
        self._session = session
        self._ledger = ledger or Ledger(session)
        self._observability = observability or get_ledger_store()

    @property
    def ledger(self) -> Ledger:
        return self._ledger

    @asynccontextmanager
    async def _atomic(self, operation: str) -> AsyncIterator[None]:
        """Roll back every pending write if the operation fails before its commit."""

        try:
            yield
        except LedgerError as exc:
            await self._session.rollback()
            self._observability.record_rejection(operation, exc.code)
            logger.warning("Ledger operation rejected", operation=operation, error=exc.code, detail=str(exc))
            raise
        except SQLAlchemyError:
            await self._session.rollback()
            self._observability.record_rejection(operation, "storage_error")
            logger.exception("Ledger operation failed", operation=operation)
            raise

    async def _load_transaction(self, transaction_id: int, *, for_update: bool = False) -> PointTransaction:
        stmt = (
            select(PointTransaction)
            .where(PointTransaction.id == transaction_id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self._session.execute(stmt)
        transaction = result.scalar_one_or_none()
        if transaction is None:
            raise NotFoundError(f"Transaction {transaction_id} not found")
        return transaction

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    @staticmethod
    def _require_note(note: str | None) -> str:
        if note is None:
            return ""
        if not isinstance(note, str):
            raise InvalidInputError("Note must be a string")
        if len(note) > settings.note_max_length:
            raise InvalidInputError(f"Note exceeds {settings.note_max_length} characters")
        return note

    @staticmethod
    def _require_points(value: object, *, allow_negative: bool = False) -> int:
        """Integer point amount; strictly positive unless ``allow_negative`` (then only non-zero)."""

        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidInputError(f"Point amount must be an integer, got {value!r}")
        if value == 0 or (value < 0 and not allow_negative):
            raise InvalidInputError(f"Invalid point amount: {value}")
        return value

    @staticmethod
    def _require_id(value: object, label: str) -> int:
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise InvalidInputError(f"Invalid {label} identifier: {value!r}")
        return value


__all__ = ["LedgerOperationService"]
