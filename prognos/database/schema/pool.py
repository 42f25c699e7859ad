"""Prediction pools."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, Float, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, utcnow


class Pool(Base):
    __tablename__ = "pool"

    pool_id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
        comment="Primary key for the pool",
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    tag: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    image: Mapped[str | None] = mapped_column(String(512))
    deadline: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        comment="Stakes and votes are refused after this instant (UTC)",
    )
    total_stake: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        default=0.0,
        comment="Sum of accepted stakes; only grows until resolution",
    )
    outcome_value: Mapped[float | None] = mapped_column(
        Float,
        comment="Ground-truth value in [0,100]; set once at resolution",
    )
    is_resolved: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        comment="Flips false -> true exactly once",
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    __table_args__ = (
        CheckConstraint("total_stake >= 0", name="total_stake_non_negative"),
        CheckConstraint(
            "outcome_value IS NULL OR (outcome_value >= 0 AND outcome_value <= 100)",
            name="outcome_value_range",
        ),
        Index("ix_pool_unresolved_deadline", "is_resolved", "deadline"),
    )


__all__ = ["Pool"]
