"""initial schema: users, accounts, transactions, budgets

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001_initial_schema"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

account_type = sa.Enum("CURRENT", "SAVINGS", name="account_type")
txn_type = sa.Enum("INCOME", "EXPENSE", name="txn_type")
txn_status = sa.Enum("PENDING", "COMPLETED", "FAILED", name="txn_status")
recurring_interval = sa.Enum("DAILY", "WEEKLY", "MONTHLY", "YEARLY", name="recurring_interval")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "user",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=320), nullable=False, unique=True),
        sa.Column("name", sa.String(length=100), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        "account",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("user.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("type", account_type, nullable=False),
        sa.Column("balance", sa.Numeric(18, 2), nullable=False, server_default="0"),
        sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "name", name="uq_account_name"),
    )
    op.create_index("ix_account_user_default", "account", ["user_id", "is_default"])

    op.create_table(
        "transaction",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("user.id", ondelete="CASCADE"), nullable=False),
        sa.Column("account_id", sa.Integer(), sa.ForeignKey("account.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", txn_type, nullable=False),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("occurred_at", sa.DateTime(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(length=50), nullable=True),
        sa.Column("receipt_url", sa.String(length=500), nullable=True),
        sa.Column("is_recurring", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("recurring_interval", recurring_interval, nullable=True),
        sa.Column("next_recurring_date", sa.DateTime(), nullable=True),
        sa.Column("last_processed", sa.DateTime(), nullable=True),
        sa.Column("status", txn_status, nullable=False, server_default="COMPLETED"),
        *_timestamps(),
        sa.CheckConstraint("amount >= 0", name="ck_txn_amount_non_negative"),
        sa.CheckConstraint(
            "(NOT is_recurring AND recurring_interval IS NULL) OR (is_recurring AND recurring_interval IS NOT NULL)",
            name="ck_txn_recurring_interval",
        ),
    )
    op.create_index("ix_txn_account_date", "transaction", ["account_id", "occurred_at"])
    op.create_index("ix_txn_user_date", "transaction", ["user_id", "occurred_at"])
    op.create_index("ix_txn_recurring_due", "transaction", ["is_recurring", "status", "next_recurring_date"])

    op.create_table(
        "budget",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("user.id", ondelete="CASCADE"), nullable=False, unique=True),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("last_alert_sent", sa.DateTime(), nullable=True),
        *_timestamps(),
    )


def downgrade() -> None:
    op.drop_table("budget")
    op.drop_index("ix_txn_recurring_due", table_name="transaction")
    op.drop_index("ix_txn_user_date", table_name="transaction")
    op.drop_index("ix_txn_account_date", table_name="transaction")
    op.drop_table("transaction")
    op.drop_index("ix_account_user_default", table_name="account")
    op.drop_table("account")
    op.drop_table("user")

    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        for enum in (recurring_interval, txn_status, txn_type, account_type):
            enum.drop(bind, checkfirst=True)
