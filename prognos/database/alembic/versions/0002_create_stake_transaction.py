"""Create stake_transaction table

Revision ID: 0002_create_stake_transaction
Revises: 0001_create_pool_prediction
Create Date: 2026-10-20 09:00:00
"""
from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy import inspect


revision = "0002_create_stake_transaction"
down_revision = "0001_create_pool_prediction"
branch_labels = None
depends_on = None


def upgrade() -> None:
    bind = op.get_bind()
    if "stake_transaction" in inspect(bind).get_table_names():
        return

    op.create_table(
        "stake_transaction",
        sa.Column("transaction_id", sa.String(length=66), nullable=False),
        sa.Column("pool_id", sa.String(length=36), nullable=False),
        sa.Column("subject_id", sa.String(length=128), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("transaction_id", name="pk_stake_transaction"),
        sa.ForeignKeyConstraint(
            ["pool_id"],
            ["pool.pool_id"],
            name="fk_stake_transaction_pool_id_pool",
            ondelete="CASCADE",
        ),
        sa.CheckConstraint("amount > 0", name="ck_stake_transaction_amount_positive"),
    )
    op.create_index("ix_stake_transaction_pool_id", "stake_transaction", ["pool_id"])


def downgrade() -> None:
    op.drop_index("ix_stake_transaction_pool_id", table_name="stake_transaction")
    op.drop_table("stake_transaction")
