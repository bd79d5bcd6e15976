"""Pydantic models for events, batch ingestion and raw queries."""

from datetime import datetime, timezone
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_serializer

from eventra.models.enums import EventStatus, ItemStatus, SortDirection

MAX_STRING_LENGTH = 255
MAX_TAGS = 10


class EventInput(BaseModel):
    """A single event submitted for ingestion."""

    model_config = ConfigDict(extra="forbid")

    timestamp: datetime | None = None
    event_type: str = Field(..., min_length=1, max_length=MAX_STRING_LENGTH)
    source: str = Field(..., min_length=1, max_length=MAX_STRING_LENGTH)
    data: dict[str, Any] = Field(default_factory=dict)
    user_id: str | None = Field(None, max_length=MAX_STRING_LENGTH)
    session_id: str | None = Field(None, max_length=MAX_STRING_LENGTH)
    duration: int | None = Field(None, ge=0)
    priority: int = Field(1, ge=1, le=5)
    status: EventStatus = EventStatus.PENDING
    tags: list[str] = Field(default_factory=list, max_length=MAX_TAGS)
    metadata: dict[str, Any] | None = None


class EventModel(BaseModel):
    """A stored event. Absent optional fields are omitted on output."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    event_id: str
    timestamp: datetime
    event_type: str
    source: str
    data: dict[str, Any]
    user_id: str | None = None
    session_id: str | None = None
    duration: int | None = None
    priority: int = 1
    status: EventStatus
    tags: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] | None = Field(None, validation_alias=AliasChoices("extra_data", "metadata"))
    created_at: datetime
    updated_at: datetime

    @field_validator("timestamp", "created_at", "updated_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # SQLite returns naive datetimes; everything is stored as UTC.
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @model_serializer(mode="wrap")
    def _drop_absent(self, handler):
        return {k: v for k, v in handler(self).items() if v is not None}


class BatchEventsRequest(BaseModel):
    events: list[EventInput]


class ItemResult(BaseModel):
    """Outcome of one item of a batch submission, in input position."""

    status: ItemStatus
    id: str
    event: EventModel | None = None
    error: str | None = None
    input: EventInput | None = None


class BatchSummary(BaseModel):
    total: int
    success: int
    failed: int


class BatchResponse(BaseModel):
    results: list[ItemResult]
    summary: BatchSummary


class OrderBy(BaseModel):
    field: str = Field("timestamp", pattern=r"^(timestamp|event_type|source|priority|status)$")
    direction: SortDirection = SortDirection.DESC


class EventFilter(BaseModel):
    """Filter for raw event queries."""

    start_time: datetime
    end_time: datetime
    page: int = Field(1, ge=1)
    page_size: int = Field(20, ge=1, le=100)
    event_type: str | None = None
    source: str | None = None
    user_id: str | None = None
    session_id: str | None = None
    status: EventStatus | None = None
    min_priority: int | None = Field(None, ge=1, le=5)
    order_by: OrderBy = Field(default_factory=OrderBy)


class EventTypeCount(BaseModel):
    event_type: str
    count: int


class EventStats(BaseModel):
    total_events: int
    unique_users: int
    unique_sessions: int
    unique_sources: int
    avg_duration: float
    status_breakdown: dict[str, int]
    top_event_types: list[EventTypeCount]
