"""Event table."""

from datetime import datetime

from sqlalchemy import JSON, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from eventra.db.base import Base, TimestampMixin


class EventRow(Base, TimestampMixin):
    __tablename__ = "events"
    __table_args__ = (
        Index("ix_events_type_timestamp", "event_type", "timestamp"),
    )

    event_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    event_type: Mapped[str] = mapped_column(String(255), nullable=False)
    source: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    user_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    session_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    duration: Mapped[int | None] = mapped_column(Integer, nullable=True)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending", index=True)
    tags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    data: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    extra_data: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)
