"""Participant predictions on a pool."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, Float, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, utcnow


class Prediction(Base):
    __tablename__ = "prediction"

    prediction_id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    pool_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("pool.pool_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Pool this prediction belongs to",
    )
    subject_id: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
        comment="Identifier of the predicting party (wallet address)",
    )
    prediction_value: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        comment="Raw value: yes, no, or a percent as text",
    )
    stake_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    claimable_reward: Mapped[float | None] = mapped_column(
        Float,
        comment="Written once when the pool resolves",
    )
    claimed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    __table_args__ = (
        UniqueConstraint("pool_id", "subject_id", name="uq_prediction_pool_subject"),
        CheckConstraint("stake_amount >= 0", name="stake_amount_non_negative"),
    )


__all__ = ["Prediction"]
