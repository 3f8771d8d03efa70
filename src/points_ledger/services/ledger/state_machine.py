"""Transaction creation and lifecycle transitions for the points ledger."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Sequence

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from points_ledger.models.event import Event
from points_ledger.models.promotion import PromotionType, PromotionUsage
from points_ledger.models.transaction import PointTransaction, TransactionKind
from points_ledger.observability.ledger import LedgerObservabilityStore
from points_ledger.services.ledger.base import LedgerOperationService
from points_ledger.services.ledger.calculator import compute_points
from points_ledger.services.ledger.errors import (
    AccountNotEligibleError,
    InsufficientBalanceError,
    InvalidInputError,
    InvalidPromotionError,
    InvalidStateError,
    NotFoundError,
)
from points_ledger.services.ledger.ledger import Ledger
from points_ledger.services.ledger.promotions import PromotionEvaluator, normalize_promotion_ids
from points_ledger.services.ledger.views import BalanceView, TransactionView, TransferView


class RedemptionState(str, Enum):
    PENDING = "pending"
    SETTLED = "settled"


class TransactionStateMachine(LedgerOperationService):
    """Creates transactions of every kind and drives redemption settlement.

    Each public call is one unit of work: input is validated first, the
    affected accounts are locked in ascending id order, state is re-read under
    the lock, and the balance change, the appended record(s) and any promotion
    usage are committed together.
    """

    _ALLOWED_REDEMPTION_TRANSITIONS: dict[RedemptionState, set[RedemptionState]] = {
        RedemptionState.PENDING: {RedemptionState.SETTLED},
        RedemptionState.SETTLED: {RedemptionState.PENDING},
    }

    def __init__(
        self,
        session: AsyncSession,
        *,
        ledger: Ledger | None = None,
        evaluator: PromotionEvaluator | None = None,
        observability: LedgerObservabilityStore | None = None,
    ) -> None:
        super().__init__(session, ledger=ledger, observability=observability)
        self._evaluator = evaluator or PromotionEvaluator(session)

    async def create_purchase(
        self,
        spender_id: int,
        cashier_id: int,
        spent: Decimal | int | float | str,
        promotion_ids: Sequence[int] | None = None,
        note: str | None = "",
    ) -> TransactionView:
        """Credit a purchase, quarantining it when the cashier is flagged."""

        async with self._atomic("purchase"):
            spent = self._require_spend(spent)
            note = self._require_note(note)
            requested = normalize_promotion_ids(promotion_ids)
            spender_id = self._require_id(spender_id, "spender")
            cashier_id = self._require_id(cashier_id, "cashier")

            async with self._ledger.serialize(spender_id):
                spender = await self._ledger.load_account(spender_id, for_update=True)
                cashier = await self._ledger.load_account(cashier_id)
                promotions = await self._evaluator.validate(spender_id, requested, spent)
                earned = compute_points(spent, promotions)
                quarantined = bool(cashier.suspicious)

                record = PointTransaction(
                    account_id=spender_id,
                    kind=TransactionKind.PURCHASE,
                    amount=earned,
                    spent=spent,
                    suspicious=quarantined,
                    settled=None,
                    reopened=False,
                    note=note,
                    created_by_id=cashier_id,
                    created_at=self._now(),
                    promotions=list(promotions),
                )
                await self._ledger.append(record)

                for promotion in promotions:
                    if promotion.type == PromotionType.ONE_TIME:
                        self._session.add(
                            PromotionUsage(
                                promotion_id=promotion.id,
                                account_id=spender_id,
                                transaction_id=record.id,
                                used_at=record.created_at,
                            )
                        )
                try:
                    await self._session.flush()
                except IntegrityError as exc:
                    raise InvalidPromotionError("One-time promotion already used") from exc

                if quarantined:
                    balance = int(spender.points or 0)
                else:
                    balance = await self._ledger.apply_delta(spender_id, earned)

                view = TransactionView.from_record(record, balance=balance)
                await self._session.commit()

        self._observability.record_transaction(TransactionKind.PURCHASE.value, view.earned)
        logger.info(
            "Recorded purchase",
            transaction_id=view.id,
            account_id=spender_id,
            cashier_id=cashier_id,
            earned=earned,
            quarantined=quarantined,
            promotion_ids=view.promotion_ids,
        )
        return view

    async def create_adjustment(
        self,
        spender_id: int,
        amount: int,
        related_transaction_id: int,
        note: str | None = "",
        *,
        created_by_id: int | None = None,
    ) -> TransactionView:
        """Apply a signed manual correction referencing an existing transaction."""

        async with self._atomic("adjustment"):
            amount = self._require_points(amount, allow_negative=True)
            note = self._require_note(note)
            spender_id = self._require_id(spender_id, "spender")
            related_transaction_id = self._require_id(related_transaction_id, "related transaction")

            async with self._ledger.serialize(spender_id):
                await self._ledger.load_account(spender_id, for_update=True)
                if created_by_id is not None:
                    await self._ledger.load_account(created_by_id)
                related = await self._session.get(PointTransaction, related_transaction_id)
                if related is None:
                    raise InvalidStateError(
                        f"Cannot adjust missing transaction {related_transaction_id}"
                    )

                balance = await self._ledger.apply_delta(spender_id, amount)
                record = PointTransaction(
                    account_id=spender_id,
                    kind=TransactionKind.ADJUSTMENT,
                    amount=amount,
                    related_id=related_transaction_id,
                    suspicious=False,
                    settled=None,
                    reopened=False,
                    note=note,
                    created_by_id=created_by_id,
                    created_at=self._now(),
                    promotions=[],
                )
                await self._ledger.append(record)
                view = TransactionView.from_record(record, balance=balance)
                await self._session.commit()

        self._observability.record_transaction(TransactionKind.ADJUSTMENT.value, amount)
        logger.info(
            "Recorded adjustment",
            transaction_id=view.id,
            account_id=spender_id,
            amount=amount,
            related_id=related_transaction_id,
        )
        return view

    async def create_transfer(
        self,
        sender_id: int,
        recipient_id: int,
        amount: int,
        note: str | None = "",
    ) -> TransferView:
        """Move points between two verified accounts as a pair of linked legs."""

        async with self._atomic("transfer"):
            amount = self._require_points(amount)
            note = self._require_note(note)
            sender_id = self._require_id(sender_id, "sender")
            recipient_id = self._require_id(recipient_id, "recipient")
            if sender_id == recipient_id:
                raise InvalidInputError("Cannot transfer points to the same account")

            async with self._ledger.serialize(sender_id, recipient_id):
                accounts = await self._ledger.lock_accounts(sender_id, recipient_id)
                sender, recipient = accounts[sender_id], accounts[recipient_id]
                if not sender.verified:
                    raise AccountNotEligibleError(f"Account {sender_id} is not verified")
                if not recipient.verified:
                    raise AccountNotEligibleError(f"Account {recipient_id} is not verified")

                reserved = await self._ledger.reserved_redemptions(sender_id)
                available = int(sender.points or 0) - reserved
                if available < amount:
                    raise InsufficientBalanceError(
                        f"Account {sender_id} has {available} points available, {amount} requested",
                        available=available,
                        requested=amount,
                    )

                sender_balance = await self._ledger.apply_delta(
                    sender_id, -amount, require_non_negative=True
                )
                recipient_balance = await self._ledger.apply_delta(recipient_id, amount)

                created_at = self._now()
                debit = PointTransaction(
                    account_id=sender_id,
                    kind=TransactionKind.TRANSFER,
                    amount=-amount,
                    suspicious=False,
                    settled=None,
                    reopened=False,
                    note=note,
                    created_by_id=sender_id,
                    created_at=created_at,
                    promotions=[],
                )
                await self._ledger.append(debit)
                credit = PointTransaction(
                    account_id=recipient_id,
                    kind=TransactionKind.TRANSFER,
                    amount=amount,
                    related_id=debit.id,
                    suspicious=False,
                    settled=None,
                    reopened=False,
                    note=note,
                    created_by_id=sender_id,
                    created_at=created_at,
                    promotions=[],
                )
                await self._ledger.append(credit)
                debit.related_id = credit.id
                await self._session.flush()

                view = TransferView(
                    sender=TransactionView.from_record(debit, balance=sender_balance),
                    recipient=TransactionView.from_record(credit, balance=recipient_balance),
                )
                await self._session.commit()

        self._observability.record_transaction(TransactionKind.TRANSFER.value, amount)
        logger.info(
            "Recorded transfer",
            sender_transaction_id=view.sender.id,
            recipient_transaction_id=view.recipient.id,
            sender_id=sender_id,
            recipient_id=recipient_id,
            amount=amount,
        )
        return view

    async def create_redemption(self, user_id: int, amount: int, note: str | None = "") -> TransactionView:
        """Reserve points for a redemption; the balance is debited on settlement."""

        async with self._atomic("redemption"):
            amount = self._require_points(amount)
            note = self._require_note(note)
            user_id = self._require_id(user_id, "account")

            async with self._ledger.serialize(user_id):
                account = await self._ledger.load_account(user_id, for_update=True)
                if not account.verified:
                    raise AccountNotEligibleError(f"Account {user_id} is not verified")

                reserved = await self._ledger.reserved_redemptions(user_id)
                available = int(account.points or 0) - reserved
                if available < amount:
                    raise InsufficientBalanceError(
                        f"Account {user_id} has {available} points available, {amount} requested",
                        available=available,
                        requested=amount,
                    )

                record = PointTransaction(
                    account_id=user_id,
                    kind=TransactionKind.REDEMPTION,
                    amount=-amount,
                    suspicious=False,
                    settled=False,
                    reopened=False,
                    note=note,
                    created_by_id=user_id,
                    created_at=self._now(),
                    promotions=[],
                )
                await self._ledger.append(record)
                view = TransactionView.from_record(record, balance=int(account.points or 0))
                await self._session.commit()

        self._observability.record_transaction(TransactionKind.REDEMPTION.value, 0)
        logger.info("Recorded redemption request", transaction_id=view.id, account_id=user_id, amount=amount)
        return view

    async def set_redemption_settled(
        self,
        transaction_id: int,
        settled: bool,
        *,
        processed_by_id: int | None = None,
    ) -> TransactionView:
        """Settle a pending redemption, or reopen a settled one (once)."""

        async with self._atomic("redemption_settlement"):
            if not isinstance(settled, bool):
                raise InvalidInputError("settled must be a boolean")
            transaction_id = self._require_id(transaction_id, "transaction")

            record = await self._load_transaction(transaction_id)
            if record.kind != TransactionKind.REDEMPTION:
                raise InvalidStateError(f"Transaction {transaction_id} is not a redemption")
            account_id = record.account_id

            async with self._ledger.serialize(account_id):
                record = await self._load_transaction(transaction_id, for_update=True)
                if processed_by_id is not None:
                    await self._ledger.load_account(processed_by_id)

                current = RedemptionState.SETTLED if record.settled else RedemptionState.PENDING
                target = RedemptionState.SETTLED if settled else RedemptionState.PENDING
                if target not in self._ALLOWED_REDEMPTION_TRANSITIONS[current]:
                    raise InvalidStateError(
                        f"Redemption {transaction_id} is already {current.value}"
                    )
                if target == RedemptionState.PENDING and record.reopened:
                    raise InvalidStateError(
                        f"Redemption {transaction_id} has already been reopened once"
                    )

                reserved_amount = abs(int(record.amount))
                if target == RedemptionState.SETTLED:
                    balance = await self._ledger.apply_delta(
                        account_id, -reserved_amount, require_non_negative=True
                    )
                    record.settled = True
                    record.settled_at = self._now()
                    record.processed_by_id = processed_by_id
                else:
                    balance = await self._ledger.apply_delta(account_id, reserved_amount)
                    record.settled = False
                    record.reopened = True
                    record.settled_at = None
                await self._session.flush()

                view = TransactionView.from_record(record, balance=balance)
                await self._session.commit()

        self._observability.record_redemption_transition(settled)
        logger.info(
            "Redemption state changed",
            transaction_id=transaction_id,
            account_id=account_id,
            from_state=current.value,
            to_state=target.value,
            processed_by_id=processed_by_id,
        )
        return view

    async def grant_event_reward(
        self,
        event_id: int,
        recipient_id: int,
        amount: int,
        organizer_id: int,
        note: str | None = "",
    ) -> TransactionView:
        """Credit a participant and draw the same amount from the event's reward budget."""

        async with self._atomic("event"):
            amount = self._require_points(amount)
            note = self._require_note(note)
            event_id = self._require_id(event_id, "event")
            recipient_id = self._require_id(recipient_id, "recipient")

            async with self._ledger.serialize(recipient_id):
                await self._ledger.load_account(recipient_id, for_update=True)
                await self._ledger.load_account(organizer_id)
                exists = await self._session.execute(select(Event.id).where(Event.id == event_id))
                if exists.scalar_one_or_none() is None:
                    raise NotFoundError(f"Event {event_id} not found")

                # Conditional decrement: the budget check and the write are one statement.
                drawn = await self._session.execute(
                    update(Event)
                    .where(Event.id == event_id, Event.points_remain >= amount)
                    .values(
                        points_remain=Event.points_remain - amount,
                        points_awarded=Event.points_awarded + amount,
                    )
                    .execution_options(synchronize_session=False)
                )
                if drawn.rowcount != 1:
                    raise InsufficientBalanceError(
                        f"Event {event_id} reward budget cannot cover {amount} points",
                        requested=amount,
                    )

                balance = await self._ledger.apply_delta(recipient_id, amount)
                record = PointTransaction(
                    account_id=recipient_id,
                    kind=TransactionKind.EVENT,
                    amount=amount,
                    event_id=event_id,
                    suspicious=False,
                    settled=None,
                    reopened=False,
                    note=note,
                    created_by_id=organizer_id,
                    created_at=self._now(),
                    promotions=[],
                )
                await self._ledger.append(record)
                view = TransactionView.from_record(record, balance=balance)
                await self._session.commit()

        self._observability.record_transaction(TransactionKind.EVENT.value, amount)
        logger.info(
            "Recorded event reward",
            transaction_id=view.id,
            event_id=event_id,
            account_id=recipient_id,
            amount=amount,
        )
        return view

    async def get_transaction(self, transaction_id: int) -> TransactionView:
        record = await self._load_transaction(transaction_id)
        return TransactionView.from_record(record)

    async def balance(self, account_id: int) -> BalanceView:
        points = await self._ledger.current_balance(account_id)
        reserved = await self._ledger.reserved_redemptions(account_id)
        return BalanceView(account_id=account_id, points=points, reserved=reserved)

    @staticmethod
    def _require_spend(value: object) -> Decimal:
        if isinstance(value, bool):
            raise InvalidInputError("Spend amount must be a number")
        try:
            spent = value if isinstance(value, Decimal) else Decimal(str(value))
        except (InvalidOperation, ValueError) as exc:
            raise InvalidInputError(f"Invalid spend amount: {value!r}") from exc
        if not spent.is_finite() or spent <= Decimal("0"):
            raise InvalidInputError(f"Spend amount must be positive, got {value!r}")
        return spent


__all__ = ["RedemptionState", "TransactionStateMachine"]
