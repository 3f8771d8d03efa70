from __future__ import annotations

from loguru import logger

from points_ledger.models.transaction import TransactionKind
from points_ledger.services.ledger.base import LedgerOperationService
from points_ledger.services.ledger.errors import InvalidInputError, InvalidStateError
from points_ledger.services.ledger.views import TransactionView


class SuspiciousQuarantineController(LedgerOperationService):
    """Flags purchases as suspicious and withholds (or restores) their credit.

    Flagging debits the stored amount and clearing credits it back, so any
    sequence of toggles leaves the balance equal to the applied total.
    """

    async def set_suspicious(self, transaction_id: int, suspicious: bool) -> TransactionView:
        async with self._atomic("quarantine"):
            if not isinstance(suspicious, bool):
                raise InvalidInputError("suspicious must be a boolean")
            transaction_id = self._require_id(transaction_id, "transaction")

            record = await self._load_transaction(transaction_id)
            if record.kind != TransactionKind.PURCHASE:
                raise InvalidStateError(f"Transaction {transaction_id} is not a purchase")
            account_id = record.account_id

            async with self._ledger.serialize(account_id):
                record = await self._load_transaction(transaction_id, for_update=True)
                if bool(record.suspicious) == suspicious:
                    balance = await self._ledger.current_balance(account_id)
                    view = TransactionView.from_record(record, balance=balance)
                    await self._session.commit()
                    return view

                amount = int(record.amount)
                # Reversals may leave the balance negative if the points were already spent.
                delta = -amount if suspicious else amount
                balance = await self._ledger.apply_delta(account_id, delta)
                record.suspicious = suspicious
                await self._session.flush()

                view = TransactionView.from_record(record, balance=balance)
                await self._session.commit()

        self._observability.record_quarantine_toggle(suspicious)
        logger.info(
            "Purchase quarantine changed",
            transaction_id=transaction_id,
            account_id=account_id,
            suspicious=suspicious,
            delta=delta,
            balance=balance,
        )
        return view


__all__ = ["SuspiciousQuarantineController"]
