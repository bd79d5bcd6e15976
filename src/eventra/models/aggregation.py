"""Pydantic models for time-bucketed aggregation."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from eventra.models.enums import EventStatus, TimeInterval


class AggregationQuery(BaseModel):
    """Requested aggregation window. ``interval`` is suggested when omitted."""

    model_config = ConfigDict(extra="forbid")

    start_time: datetime
    end_time: datetime
    interval: TimeInterval | None = None
    event_type: str | None = None
    source: str | None = None
    user_id: str | None = None
    session_id: str | None = None
    status: EventStatus | None = None

    def filters(self) -> dict:
        return {
            k: v
            for k, v in {
                "event_type": self.event_type,
                "source": self.source,
                "user_id": self.user_id,
                "session_id": self.session_id,
                "status": self.status,
            }.items()
            if v is not None
        }


class Bucket(BaseModel):
    """Half-open window ``[start, end)``."""

    start: datetime
    end: datetime


class AggregationPlan(BaseModel):
    interval: TimeInterval
    view_name: str
    postgres_interval: str
    buckets: list[Bucket]


class AggregateRow(BaseModel):
    """One row returned by the store for a (bucket, event type, source) group."""

    bucket: datetime
    event_type: str
    source: str
    count: int
    avg_duration: float | None = None


class AggregateBucket(BaseModel):
    bucket_start: datetime
    bucket_end: datetime
    count: int = 0
    by_event_type: dict[str, int] = Field(default_factory=dict)


class AggregationResult(BaseModel):
    interval: TimeInterval
    view_name: str
    start_time: datetime
    end_time: datetime
    buckets: list[AggregateBucket]
