"""Free-form user tag model."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ccstats.core.constants import TAG_MAX_LENGTH
from ccstats.db.base import Base


class Tag(Base):
    """A label attached to a user; unique per user regardless of case."""

    __tablename__ = "tags"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    name: Mapped[str] = mapped_column(String(TAG_MAX_LENGTH), index=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    user: Mapped["User"] = relationship("User", back_populates="tags")

    __table_args__ = (
        Index("ix_tags_user_id_name", "user_id", "name"),
    )

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<Tag {self.name} user={self.user_id}>"


# Case-insensitive uniqueness per user needs an expression index.
Index("uq_tags_user_lower_name", Tag.user_id, func.lower(Tag.name), unique=True)
