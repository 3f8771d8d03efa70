"""SQLAlchemy models package."""

from .account import Account, AccountRoleEnum  # noqa: F401
from .event import Event  # noqa: F401
from .promotion import Promotion, PromotionType, PromotionUsage  # noqa: F401
from .transaction import PointTransaction, TransactionKind, transaction_promotions  # noqa: F401
