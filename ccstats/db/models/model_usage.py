"""Per-model breakdown of a day's usage."""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import BigInteger, DateTime, ForeignKey, Index, Integer, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ccstats.db.base import Base


class ModelUsage(Base):
    """Portion of a daily usage row attributable to one provider/model pair."""

    __tablename__ = "model_usage"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    usage_daily_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("usage_daily.id", ondelete="CASCADE"), nullable=False
    )
    model: Mapped[str] = mapped_column(String(100), nullable=False)
    provider: Mapped[str] = mapped_column(String(50), nullable=False)
    input_tokens: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    output_tokens: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    cache_creation_input_tokens: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0
    )
    cache_read_input_tokens: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0
    )
    cost: Mapped[Decimal] = mapped_column(Numeric(10, 4), nullable=False, default=Decimal("0"))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    usage_daily: Mapped["UsageDaily"] = relationship("UsageDaily", back_populates="models")

    __table_args__ = (
        Index("ix_model_usage_daily_model", "usage_daily_id", "model"),
    )

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<ModelUsage {self.provider}/{self.model} day={self.usage_daily_id}>"
