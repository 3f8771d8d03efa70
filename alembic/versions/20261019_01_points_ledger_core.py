"""Create points ledger tables.

Revision ID: 20261019_01
Revises:
Create Date: 2026-10-19
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "20261019_01"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


promotion_type = sa.Enum("automatic", "one-time", name="promotion_type")
transaction_kind = sa.Enum(
    "purchase",
    "redemption",
    "transfer",
    "adjustment",
    "event",
    name="point_transaction_kind",
)


def upgrade() -> None:
    op.create_table(
        "accounts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("utorid", sa.String(length=8), nullable=False),
        sa.Column("name", sa.String(length=50), nullable=True),
        sa.Column("role", sa.String(length=16), nullable=False, server_default="regular"),
        sa.Column("points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("suspicious", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_accounts_utorid", "accounts", ["utorid"], unique=True)

    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("points_remain", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("points_awarded", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("points_remain >= 0", name="ck_events_points_remain_non_negative"),
    )

    op.create_table(
        "promotions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("type", promotion_type, nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("min_spending", sa.Numeric(12, 2), nullable=True),
        sa.Column("rate", sa.Numeric(8, 4), nullable=True),
        sa.Column("points", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        "point_transactions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("account_id", sa.Integer(), nullable=False),
        sa.Column("kind", transaction_kind, nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("spent", sa.Numeric(12, 2), nullable=True),
        sa.Column("related_id", sa.Integer(), nullable=True),
        sa.Column("event_id", sa.Integer(), nullable=True),
        sa.Column("suspicious", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("settled", sa.Boolean(), nullable=True),
        sa.Column("reopened", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("settled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("processed_by_id", sa.Integer(), nullable=True),
        sa.Column("note", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("created_by_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["account_id"], ["accounts.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["related_id"], ["point_transactions.id"]),
        sa.ForeignKeyConstraint(["event_id"], ["events.id"]),
        sa.ForeignKeyConstraint(["processed_by_id"], ["accounts.id"]),
        sa.ForeignKeyConstraint(["created_by_id"], ["accounts.id"]),
    )
    op.create_index("ix_point_transactions_account_id", "point_transactions", ["account_id"])
    op.create_index("ix_point_transactions_kind", "point_transactions", ["kind"])

    op.create_table(
        "transaction_promotions",
        sa.Column("transaction_id", sa.Integer(), primary_key=True),
        sa.Column("promotion_id", sa.Integer(), primary_key=True),
        sa.ForeignKeyConstraint(["transaction_id"], ["point_transactions.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["promotion_id"], ["promotions.id"]),
    )

    op.create_table(
        "promotion_usages",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("promotion_id", sa.Integer(), nullable=False),
        sa.Column("account_id", sa.Integer(), nullable=False),
        sa.Column("transaction_id", sa.Integer(), nullable=True),
        sa.Column("used_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["promotion_id"], ["promotions.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["account_id"], ["accounts.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["transaction_id"], ["point_transactions.id"]),
        sa.UniqueConstraint("promotion_id", "account_id", name="uq_promotion_usages_promotion_account"),
    )
    op.create_index("ix_promotion_usages_promotion_id", "promotion_usages", ["promotion_id"])
    op.create_index("ix_promotion_usages_account_id", "promotion_usages", ["account_id"])


def downgrade() -> None:
    op.drop_index("ix_promotion_usages_account_id", table_name="promotion_usages")
    op.drop_index("ix_promotion_usages_promotion_id", table_name="promotion_usages")
    op.drop_table("promotion_usages")
    op.drop_table("transaction_promotions")
    op.drop_index("ix_point_transactions_kind", table_name="point_transactions")
    op.drop_index("ix_point_transactions_account_id", table_name="point_transactions")
    op.drop_table("point_transactions")
    op.drop_table("promotions")
    op.drop_table("events")
    op.drop_index("ix_accounts_utorid", table_name="accounts")
    op.drop_table("accounts")

    bind = op.get_bind()
    transaction_kind.drop(bind, checkfirst=True)
    promotion_type.drop(bind, checkfirst=True)
