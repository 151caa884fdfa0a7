"""Daily usage aggregation model."""
from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import List

from sqlalchemy import (
    BigInteger, Date, DateTime, ForeignKey, Integer, Numeric, UniqueConstraint, func
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ccstats.db.base import Base


class UsageDaily(Base):
    """Stores one user's usage totals for one calendar day."""

    __tablename__ = "usage_daily"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    date: Mapped[dt.date] = mapped_column(Date, index=True, nullable=False)
    input_tokens: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    output_tokens: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    cache_creation_input_tokens: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0
    )
    cache_read_input_tokens: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0
    )
    total_tokens: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    total_cost: Mapped[Decimal] = mapped_column(
        Numeric(10, 4), nullable=False, default=Decimal("0")
    )
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    user: Mapped["User"] = relationship("User", back_populates="usage")
    models: Mapped[List["ModelUsage"]] = relationship(
        "ModelUsage",
        back_populates="usage_daily",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        UniqueConstraint("user_id", "date", name="uq_usage_daily_user_date"),
    )

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<UsageDaily user={self.user_id} date={self.date}>"
