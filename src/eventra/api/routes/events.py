"""Event ingestion, query and lifecycle routes."""

from datetime import datetime

from fastapi import APIRouter, Depends, Query

from eventra.api.middleware.rate_limit import enforce_rate_limit
from eventra.dependencies import get_event_service
from eventra.models.aggregation import AggregationQuery
from eventra.models.common import Pagination
from eventra.models.enums import EventStatus, SortDirection, TimeInterval
from eventra.models.event import BatchEventsRequest, EventFilter, EventInput, OrderBy
from eventra.services.event_service import EventService

router = APIRouter(tags=["Events"], dependencies=[Depends(enforce_rate_limit)])


@router.post("/events", status_code=201)
async def create_event(
    event: EventInput,
    service: EventService = Depends(get_event_service),
) -> dict:
    created = await service.create_event(event)
    return created.model_dump(mode="json")


@router.post("/events/batch", status_code=201)
async def create_events_batch(
    body: BatchEventsRequest,
    service: EventService = Depends(get_event_service),
) -> dict:
    response = await service.create_batch(body.events)
    return response.model_dump(mode="json", exclude_none=True)


@router.get("/events/raw")
async def get_raw_events(
    start_time: datetime,
    end_time: datetime,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    event_type: str | None = None,
    source: str | None = None,
    user_id: str | None = None,
    session_id: str | None = None,
    status: EventStatus | None = None,
    min_priority: int | None = Query(None, ge=1, le=5),
    order_by: str = Query("timestamp", pattern=r"^(timestamp|event_type|source|priority|status)$"),
    order_direction: SortDirection = SortDirection.DESC,
    service: EventService = Depends(get_event_service),
) -> dict:
    query = EventFilter(
        start_time=start_time,
        end_time=end_time,
        page=page,
        page_size=page_size,
        event_type=event_type,
        source=source,
        user_id=user_id,
        session_id=session_id,
        status=status,
        min_priority=min_priority,
        order_by=OrderBy(field=order_by, direction=order_direction),
    )
    events, total = await service.find_raw(query)
    return {
        "events": [e.model_dump(mode="json") for e in events],
        "pagination": Pagination.build(page, page_size, total).model_dump(),
    }


@router.get("/events/stats")
async def get_event_stats(
    start_time: datetime,
    end_time: datetime,
    service: EventService = Depends(get_event_service),
) -> dict:
    stats = await service.get_stats(start_time, end_time)
    return stats.model_dump(mode="json")


@router.get("/events/aggregated")
async def get_aggregated_events(
    start_time: datetime,
    end_time: datetime,
    interval: TimeInterval | None = None,
    event_type: str | None = None,
    source: str | None = None,
    user_id: str | None = None,
    session_id: str | None = None,
    status: EventStatus | None = None,
    service: EventService = Depends(get_event_service),
) -> dict:
    result = await service.aggregate(
        AggregationQuery(
            start_time=start_time,
            end_time=end_time,
            interval=interval,
            event_type=event_type,
            source=source,
            user_id=user_id,
            session_id=session_id,
            status=status,
        )
    )
    return result.model_dump(mode="json")


@router.get("/events/{event_id}")
async def get_event(
    event_id: str,
    service: EventService = Depends(get_event_service),
) -> dict:
    event = await service.get(event_id)
    return event.model_dump(mode="json")


@router.post("/events/{event_id}/archive")
async def archive_event(
    event_id: str,
    service: EventService = Depends(get_event_service),
) -> dict:
    event = await service.archive(event_id)
    return event.model_dump(mode="json")


@router.post("/events/{event_id}/reprocess")
async def reprocess_event(
    event_id: str,
    service: EventService = Depends(get_event_service),
) -> dict:
    event = await service.reprocess(event_id)
    return event.model_dump(mode="json")


@router.delete("/events/{event_id}", status_code=204)
async def delete_event(
    event_id: str,
    service: EventService = Depends(get_event_service),
) -> None:
    await service.delete(event_id)
