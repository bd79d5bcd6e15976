"""Rate-limit counter table. One active fixed window per (key, endpoint)."""

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from eventra.db.base import Base, TimestampMixin


class RateLimitRow(Base, TimestampMixin):
    __tablename__ = "rate_limits"
    __table_args__ = (
        UniqueConstraint("key", "endpoint", name="uq_rate_limits_key_endpoint"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    key: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    endpoint: Mapped[str] = mapped_column(String(255), nullable=False)
    count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reset_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
