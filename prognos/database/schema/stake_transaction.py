"""Ledger transactions that funded a stake. A transaction funds at most one stake."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, Float, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, utcnow


class StakeTransaction(Base):
    __tablename__ = "stake_transaction"

    transaction_id: Mapped[str] = mapped_column(String(66), primary_key=True)
    pool_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("pool.pool_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    subject_id: Mapped[str] = mapped_column(String(128), nullable=False)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    verified: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        comment="True when the ledger confirmed the transfer",
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (CheckConstraint("amount > 0", name="amount_positive"),)


__all__ = ["StakeTransaction"]
