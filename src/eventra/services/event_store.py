"""Durable event store adapter on top of the async session factory.

Every call runs in its own session and transaction, so concurrent creates
never share a session and one failing write cannot roll back another.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from eventra.db.base import to_utc, utcnow
from eventra.errors.exceptions import ConflictError, DatabaseError, NotFoundError
from eventra.models.aggregation import AggregateRow
from eventra.models.enums import EventStatus
from eventra.models.event import EventFilter, EventInput, EventModel, EventStats
from eventra.repositories.event_repo import EventRepository
from eventra.services.id_generator import EVENT_PREFIX, generate_id

logger = logging.getLogger(__name__)


class EventStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @asynccontextmanager
    async def _repository(self, operation: str, commit: bool = False) -> AsyncIterator[EventRepository]:
        try:
            async with self._session_factory() as session:
                yield EventRepository(session)
                if commit:
                    await session.commit()
        except IntegrityError as exc:
            logger.warning("Event store conflict during %s: %s", operation, exc.orig)
            raise ConflictError(f"Event store conflict during {operation}") from exc
        except SQLAlchemyError as exc:
            logger.error("Event store failure during %s: %s", operation, exc)
            raise DatabaseError(f"Event store failure during {operation}") from exc

    async def create(self, event: EventInput) -> EventModel:
        async with self._repository("create", commit=True) as repo:
            row = await repo.create(
                event_id=generate_id(EVENT_PREFIX),
                timestamp=to_utc(event.timestamp) if event.timestamp else utcnow(),
                event_type=event.event_type,
                source=event.source,
                user_id=event.user_id,
                session_id=event.session_id,
                duration=event.duration,
                priority=event.priority,
                status=event.status.value,
                tags=list(event.tags),
                data=dict(event.data),
                extra_data=event.metadata,
            )
            return EventModel.model_validate(row)

    async def get(self, event_id: str) -> EventModel | None:
        async with self._repository("get") as repo:
            row = await repo.get(event_id)
            return EventModel.model_validate(row) if row else None

    async def find_many(self, query: EventFilter) -> tuple[list[EventModel], int]:
        query = query.model_copy(
            update={"start_time": to_utc(query.start_time), "end_time": to_utc(query.end_time)}
        )
        async with self._repository("find_many") as repo:
            rows, total = await repo.find_many(query)
            return [EventModel.model_validate(row) for row in rows], total

    async def stats(self, start: datetime, end: datetime) -> EventStats:
        async with self._repository("stats") as repo:
            return await repo.stats(to_utc(start), to_utc(end))

    async def query_aggregates(
        self,
        view_name: str,
        postgres_interval: str,
        start: datetime,
        end: datetime,
        filters: dict | None = None,
    ) -> list[AggregateRow]:
        async with self._repository("query_aggregates") as repo:
            return await repo.query_aggregates(view_name, postgres_interval, to_utc(start), to_utc(end), filters)

    async def refresh_views(self, view_names: list[str]) -> None:
        async with self._repository("refresh_views", commit=True) as repo:
            await repo.refresh_views(view_names)

    async def update_status(self, event_id: str, status: EventStatus) -> EventModel:
        async with self._repository("update_status", commit=True) as repo:
            row = await repo.get(event_id)
            if row is None:
                raise NotFoundError("Event", event_id)
            await repo.update(row, status=status.value, updated_at=utcnow())
            return EventModel.model_validate(row)

    async def delete(self, event_id: str) -> None:
        async with self._repository("delete", commit=True) as repo:
            if not await repo.delete(event_id):
                raise NotFoundError("Event", event_id)
