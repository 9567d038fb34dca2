"""Create energy_readings, token_ledger and balances

Revision ID: 5b1e0c7a9d42
Revises:
Create Date: 2026-10-18 00:00:00.000000
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = "5b1e0c7a9d42"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "energy_readings",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("generated_kw", sa.Float(), nullable=False),
        sa.Column("consumed_kw", sa.Float(), nullable=False),
        sa.Column("exported_surplus_kw", sa.Float(), nullable=False),
        sa.Column("tokens_earned", sa.Float(), nullable=False),
        sa.Column(
            "timestamp", sa.DateTime(timezone=True),
            server_default=sa.func.now(), nullable=True,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("exported_surplus_kw >= 0", name="ck_readings_surplus_non_negative"),
        sa.CheckConstraint("tokens_earned >= 0", name="ck_readings_tokens_non_negative"),
    )
    op.create_index(
        "ix_energy_readings_user_time", "energy_readings", ["user_id", "timestamp"],
    )

    op.create_table(
        "token_ledger",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("category", sa.String(20), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True),
            server_default=sa.func.now(), nullable=True,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("amount >= 0", name="ck_token_ledger_amount_non_negative"),
    )
    op.create_index("ix_token_ledger_user_time", "token_ledger", ["user_id", "created_at"])

    op.create_table(
        "balances",
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("current_balance", sa.Float(), nullable=False),
        sa.Column("lifetime_earnings", sa.Float(), nullable=False),
        sa.Column("todays_earnings", sa.Float(), nullable=False),
        sa.Column(
            "last_updated", sa.DateTime(timezone=True),
            server_default=sa.func.now(), nullable=True,
        ),
        sa.PrimaryKeyConstraint("user_id"),
        sa.CheckConstraint("current_balance >= 0", name="ck_balances_current_non_negative"),
        sa.CheckConstraint(
            "current_balance <= lifetime_earnings",
            name="ck_balances_current_within_lifetime",
        ),
    )
    op.create_index("ix_balances_lifetime_desc", "balances", ["lifetime_earnings"])


def downgrade() -> None:
    op.drop_index("ix_balances_lifetime_desc", table_name="balances")
    op.drop_table("balances")
    op.drop_index("ix_token_ledger_user_time", table_name="token_ledger")
    op.drop_table("token_ledger")
    op.drop_index("ix_energy_readings_user_time", table_name="energy_readings")
    op.drop_table("energy_readings")
