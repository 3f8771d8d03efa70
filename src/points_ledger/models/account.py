"""Account subset read and written by the points ledger."""

from __future__ import annotations

from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, Integer, String, false, func

from points_ledger.db.base import Base


class AccountRoleEnum(str, Enum):
    REGULAR = "regular"
    CASHIER = "cashier"
    MANAGER = "manager"
    SUPERUSER = "superuser"

    @property
    def rank(self) -> int:
        return _ROLE_RANK[self]


_ROLE_RANK = {
    AccountRoleEnum.REGULAR: 1,
    AccountRoleEnum.CASHIER: 2,
    AccountRoleEnum.MANAGER: 3,
    AccountRoleEnum.SUPERUSER: 4,
}


class Account(Base):
    """Loyalty account. Profile fields belong to account management; the ledger only writes ``points``."""

    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    utorid = Column(String(8), nullable=False, unique=True, index=True)
    name = Column(String(50), nullable=True)
    role = Column(
        String(length=16),
        nullable=False,
        default=AccountRoleEnum.REGULAR.value,
        server_default=AccountRoleEnum.REGULAR.value,
    )
    points = Column(Integer, nullable=False, default=0, server_default="0")
    suspicious = Column(Boolean, nullable=False, default=False, server_default=false())
    verified = Column(Boolean, nullable=False, default=False, server_default=false())
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    @property
    def role_enum(self) -> AccountRoleEnum:
        return AccountRoleEnum(self.role)
