"""FastAPI dependency providers. Builds services from app state."""

import asyncio

from fastapi import Depends, Request

from eventra.config import settings
from eventra.events.background import BackgroundTasks
from eventra.events.webhook_config import WebhookDeliveryConfig
from eventra.events.webhook_dispatcher import WebhookDispatcher
from eventra.services.aggregation import AggregationPlanner
from eventra.services.batch_ingestion import BatchIngestionCoordinator
from eventra.services.event_service import EventService
from eventra.services.event_store import EventStore
from eventra.services.export_service import ExportService
from eventra.services.webhook_service import WebhookService


def get_background_tasks(request: Request) -> BackgroundTasks:
    return request.app.state.tasks


def get_webhook_dispatcher(request: Request) -> WebhookDispatcher:
    state = request.app.state
    return WebhookDispatcher(
        state.db_session_factory,
        WebhookDeliveryConfig(
            timeout=settings.webhook_timeout_seconds,
            retry_delays=tuple(settings.webhook_retry_delays_seconds),
        ),
        transport=getattr(state, "webhook_transport", None),
        sleep=getattr(state, "webhook_sleep", None) or asyncio.sleep,
    )


def get_event_service(
    request: Request,
    dispatcher: WebhookDispatcher = Depends(get_webhook_dispatcher),
    tasks: BackgroundTasks = Depends(get_background_tasks),
) -> EventService:
    store = EventStore(request.app.state.db_session_factory)
    coordinator = BatchIngestionCoordinator(
        store,
        dispatcher=dispatcher,
        tasks=tasks,
        chunk_size=settings.batch_chunk_size,
        max_concurrent_chunks=settings.batch_max_concurrent_chunks,
        max_batch_size=settings.batch_max_size,
    )
    return EventService(
        store,
        coordinator,
        AggregationPlanner(store),
        dispatcher=dispatcher,
        tasks=tasks,
        max_date_range_days=settings.max_date_range_days,
    )


def get_export_service(events: EventService = Depends(get_event_service)) -> ExportService:
    return ExportService(events, max_rows=settings.export_max_rows)


def get_webhook_service(request: Request) -> WebhookService:
    return WebhookService(request.app.state.db_session_factory)
