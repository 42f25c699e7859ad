"""Create pool and prediction tables

Revision ID: 0001_create_pool_prediction
Revises:
Create Date: 2026-10-19 12:00:00
"""
from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy import inspect


revision = "0001_create_pool_prediction"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    bind = op.get_bind()
    existing_tables = inspect(bind).get_table_names()

    if "pool" not in existing_tables:
        op.create_table(
            "pool",
            sa.Column("pool_id", sa.String(length=36), nullable=False),
            sa.Column("title", sa.String(length=200), nullable=False),
            sa.Column("description", sa.Text(), nullable=False, server_default=""),
            sa.Column("tag", sa.String(length=64), nullable=False, server_default=""),
            sa.Column("image", sa.String(length=512), nullable=True),
            sa.Column("deadline", sa.DateTime(timezone=True), nullable=False),
            sa.Column("total_stake", sa.Float(), nullable=False, server_default="0"),
            sa.Column("outcome_value", sa.Float(), nullable=True),
            sa.Column("is_resolved", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("pool_id", name="pk_pool"),
            sa.CheckConstraint("total_stake >= 0", name="ck_pool_total_stake_non_negative"),
            sa.CheckConstraint(
                "outcome_value IS NULL OR (outcome_value >= 0 AND outcome_value <= 100)",
                name="ck_pool_outcome_value_range",
            ),
        )
        op.create_index("ix_pool_unresolved_deadline", "pool", ["is_resolved", "deadline"])

    if "prediction" not in existing_tables:
        op.create_table(
            "prediction",
            sa.Column("prediction_id", sa.String(length=36), nullable=False),
            sa.Column("pool_id", sa.String(length=36), nullable=False),
            sa.Column("subject_id", sa.String(length=128), nullable=False),
            sa.Column("prediction_value", sa.String(length=32), nullable=False),
            sa.Column("stake_amount", sa.Float(), nullable=False, server_default="0"),
            sa.Column("claimable_reward", sa.Float(), nullable=True),
            sa.Column("claimed", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("prediction_id", name="pk_prediction"),
            sa.ForeignKeyConstraint(
                ["pool_id"],
                ["pool.pool_id"],
                name="fk_prediction_pool_id_pool",
                ondelete="CASCADE",
            ),
            sa.UniqueConstraint("pool_id", "subject_id", name="uq_prediction_pool_subject"),
            sa.CheckConstraint("stake_amount >= 0", name="ck_prediction_stake_amount_non_negative"),
        )
        op.create_index("ix_prediction_pool_id", "prediction", ["pool_id"])


def downgrade() -> None:
    op.drop_index("ix_prediction_pool_id", table_name="prediction")
    op.drop_table("prediction")
    op.drop_index("ix_pool_unresolved_deadline", table_name="pool")
    op.drop_table("pool")
