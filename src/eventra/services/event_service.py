"""Event operations exposed by the HTTP API.

Wires the store, batch coordinator, aggregation planner and webhook
dispatcher together. Every call is logged through ``monitored``.
"""

import logging
from datetime import datetime, timedelta

from eventra.db.base import to_utc
from eventra.errors.exceptions import NotFoundError, ValidationError
from eventra.events.background import BackgroundTasks
from eventra.events.webhook_dispatcher import EVENT_CREATED, WebhookDispatcher
from eventra.models.aggregation import AggregationQuery, AggregationResult
from eventra.models.enums import EventStatus
from eventra.models.event import BatchResponse, EventFilter, EventInput, EventModel, EventStats
from eventra.services.aggregation import AggregationPlanner
from eventra.services.batch_ingestion import BatchIngestionCoordinator
from eventra.services.event_store import EventStore
from eventra.services.id_generator import EVENT_PREFIX, is_generated_id
from eventra.services.monitoring import monitored

logger = logging.getLogger(__name__)


def validate_date_range(start: datetime, end: datetime, max_days: int) -> None:
    """General range rule for raw queries and statistics."""
    if to_utc(end) <= to_utc(start):
        raise ValidationError("End time must be after start time")
    if to_utc(end) - to_utc(start) > timedelta(days=max_days):
        raise ValidationError(
            f"Date range cannot exceed {max_days} days",
            {"max_days": max_days},
        )


class EventService:
    def __init__(
        self,
        store: EventStore,
        coordinator: BatchIngestionCoordinator,
        planner: AggregationPlanner,
        dispatcher: WebhookDispatcher | None = None,
        tasks: BackgroundTasks | None = None,
        max_date_range_days: int = 90,
    ):
        self.store = store
        self.coordinator = coordinator
        self.planner = planner
        self.dispatcher = dispatcher
        self.tasks = tasks or BackgroundTasks()
        self.max_date_range_days = max_date_range_days

    def _notify_created(self, event: EventModel) -> None:
        if self.dispatcher is None:
            return
        self.tasks.spawn(
            self.dispatcher.trigger(EVENT_CREATED, event.model_dump(mode="json")),
            name=f"webhooks:{event.event_id}",
        )

    async def create_event(self, item: EventInput) -> EventModel:
        event = await monitored("create_event", self.store.create, item)
        self._notify_created(event)
        return event

    async def create_batch(self, items: list[EventInput]) -> BatchResponse:
        results = await monitored("create_batch", self.coordinator.ingest_batch, items)
        summary = self.coordinator.summarize(results)
        logger.info(
            "Batch ingested",
            extra={"total": summary.total, "success": summary.success, "failed": summary.failed},
        )
        return BatchResponse(results=results, summary=summary)

    async def find_raw(self, query: EventFilter) -> tuple[list[EventModel], int]:
        validate_date_range(query.start_time, query.end_time, self.max_date_range_days)
        return await monitored("find_raw_events", self.store.find_many, query)

    async def get_stats(self, start: datetime, end: datetime) -> EventStats:
        validate_date_range(start, end, self.max_date_range_days)
        return await monitored("get_event_stats", self.store.stats, start, end)

    async def aggregate(self, query: AggregationQuery) -> AggregationResult:
        return await monitored("aggregate_events", self.planner.aggregate, query)

    async def get(self, event_id: str) -> EventModel:
        if not is_generated_id(event_id, EVENT_PREFIX):
            raise NotFoundError("Event", event_id)
        event = await monitored("get_event", self.store.get, event_id)
        if event is None:
            raise NotFoundError("Event", event_id)
        return event

    async def archive(self, event_id: str) -> EventModel:
        return await monitored("archive_event", self.store.update_status, event_id, EventStatus.ARCHIVED)

    async def reprocess(self, event_id: str) -> EventModel:
        return await monitored("reprocess_event", self.store.update_status, event_id, EventStatus.PENDING)

    async def delete(self, event_id: str) -> None:
        await monitored("delete_event", self.store.delete, event_id)
