"""Errors raised by the points ledger core."""

from __future__ import annotations


class LedgerError(RuntimeError):
    """Base exception for ledger failures. Raised before or instead of any committed effect."""

    code = "ledger_error"


class InvalidInputError(LedgerError):
    """Malformed amount, unknown kind or missing field."""

    code = "invalid_input"


class InvalidPromotionError(LedgerError):
    """A requested promotion is unknown, inactive, already used or below its minimum spend."""

    code = "invalid_promotion"

    def __init__(self, message: str, *, promotion_id: int | None = None) -> None:
        super().__init__(message)
        self.promotion_id = promotion_id


class InsufficientBalanceError(LedgerError):
    """A debit would leave a balance (or an event budget) below zero."""

    code = "insufficient_balance"

    def __init__(self, message: str, *, available: int | None = None, requested: int | None = None) -> None:
        super().__init__(message)
        self.available = available
        self.requested = requested


class InvalidStateError(LedgerError):
    """The requested transition is not allowed from the record's current state."""

    code = "invalid_state"


class AccountNotEligibleError(InvalidStateError):
    """The account is not verified for redemptions or transfers."""

    code = "account_not_eligible"


class NotFoundError(LedgerError):
    """Unknown account, transaction, promotion or event."""

    code = "not_found"


__all__ = [
    "AccountNotEligibleError",
    "InsufficientBalanceError",
    "InvalidInputError",
    "InvalidPromotionError",
    "InvalidStateError",
    "LedgerError",
    "NotFoundError",
]
