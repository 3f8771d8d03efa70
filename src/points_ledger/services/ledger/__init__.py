"""Points ledger core: balances, transactions, promotions and quarantine."""

from .calculator import compute_points
from .errors import (
    AccountNotEligibleError,
    InsufficientBalanceError,
    InvalidInputError,
    InvalidPromotionError,
    InvalidStateError,
    LedgerError,
    NotFoundError,
)
from .ledger import Ledger
from .locks import AccountLockRegistry, get_account_locks
from .promotions import PromotionEvaluator, PromotionFields, PromotionService, normalize_promotion_ids
from .quarantine import SuspiciousQuarantineController
from .state_machine import RedemptionState, TransactionStateMachine
from .views import BalanceView, TransactionView, TransferView

__all__ = [
    "AccountLockRegistry",
    "AccountNotEligibleError",
    "BalanceView",
    "InsufficientBalanceError",
    "InvalidInputError",
    "InvalidPromotionError",
    "InvalidStateError",
    "Ledger",
    "LedgerError",
    "NotFoundError",
    "PromotionEvaluator",
    "PromotionFields",
    "PromotionService",
    "RedemptionState",
    "SuspiciousQuarantineController",
    "TransactionStateMachine",
    "TransactionView",
    "TransferView",
    "compute_points",
    "get_account_locks",
    "normalize_promotion_ids",
]
