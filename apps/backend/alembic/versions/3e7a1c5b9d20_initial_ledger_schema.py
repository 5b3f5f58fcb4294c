"""Initial ledger schema: users, accounts, transfer groups and transactions

Revision ID: 3e7a1c5b9d20
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "3e7a1c5b9d20"
down_revision = None
branch_labels = None
depends_on = None


account_type = sa.Enum("cash", "bank", "credit_card", "savings", name="account_type")
txn_type = sa.Enum("income", "expense", "transfer", name="txn_type")
division = sa.Enum("office", "personal", name="division")
transfer_type = sa.Enum("transfer_out", "transfer_in", name="transfer_type")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("createdAt", sa.DateTime(), nullable=False, server_default=sa.text("(CURRENT_TIMESTAMP)")),
        sa.Column("updatedAt", sa.DateTime(), nullable=False, server_default=sa.text("(CURRENT_TIMESTAMP)")),
    ]


def upgrade() -> None:
    op.create_table(
        "user",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False, unique=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        "userprofile",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("userId", sa.Integer(), sa.ForeignKey("user.id"), nullable=False, unique=True),
        sa.Column("display_name", sa.String(length=100), nullable=True),
        sa.Column("base_currency", sa.String(length=3), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "account",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("userId", sa.Integer(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("type", account_type, nullable=False, server_default="cash"),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="INR"),
        sa.Column("openingBalance", sa.Numeric(18, 4), nullable=False, server_default="0"),
        sa.Column("balance", sa.Numeric(18, 4), nullable=False, server_default="0"),
        *_timestamps(),
        sa.UniqueConstraint("userId", "name", name="uq_account_name"),
    )
    op.create_index("ix_account_userId", "account", ["userId"])

    op.create_table(
        "transfergroup",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "transaction",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("userId", sa.Integer(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("accountId", sa.Integer(), sa.ForeignKey("account.id", ondelete="SET NULL"), nullable=True),
        sa.Column("toAccountId", sa.Integer(), sa.ForeignKey("account.id", ondelete="SET NULL"), nullable=True),
        sa.Column("type", txn_type, nullable=False),
        sa.Column("amount", sa.Numeric(18, 4), nullable=False),
        sa.Column("category", sa.String(length=100), nullable=True),
        sa.Column("division", division, nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("date", sa.DateTime(), nullable=False),
        sa.Column("transferType", transfer_type, nullable=True),
        sa.Column(
            "transferGroupId",
            sa.Integer(),
            sa.ForeignKey("transfergroup.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("isBalanceNeutral", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.CheckConstraint("amount > 0", name="ck_transaction_amount_positive"),
        sa.CheckConstraint(
            '"toAccountId" IS NULL OR "accountId" IS NULL OR "toAccountId" != "accountId"',
            name="ck_transaction_distinct_accounts",
        ),
    )
    op.create_index("ix_transaction_user_date", "transaction", ["userId", "date"])
    op.create_index("ix_transaction_user_type", "transaction", ["userId", "type"])
    op.create_index("ix_transaction_user_category", "transaction", ["userId", "category"])
    op.create_index("ix_transaction_account", "transaction", ["accountId"])
    op.create_index("ix_transaction_to_account", "transaction", ["toAccountId"])


def downgrade() -> None:
    op.drop_index("ix_transaction_to_account", table_name="transaction")
    op.drop_index("ix_transaction_account", table_name="transaction")
    op.drop_index("ix_transaction_user_category", table_name="transaction")
    op.drop_index("ix_transaction_user_type", table_name="transaction")
    op.drop_index("ix_transaction_user_date", table_name="transaction")
    op.drop_table("transaction")
    op.drop_table("transfergroup")
    op.drop_index("ix_account_userId", table_name="account")
    op.drop_table("account")
    op.drop_table("userprofile")
    op.drop_table("user")
