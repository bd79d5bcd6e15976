"""Event repository."""

import re
from datetime import datetime, timedelta

from sqlalchemy import func, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from eventra.db.base import to_utc
from eventra.db.models.event import EventRow
from eventra.models.aggregation import AggregateRow
from eventra.models.event import EventFilter, EventStats, EventTypeCount
from eventra.repositories.base import BaseRepository

_VIEW_NAME = re.compile(r"^events_(1m|5m|15m|1h|1d)$")
_PG_INTERVAL = re.compile(r"^(\d+) (minute|hour|day)s?$")
_UNIT_SECONDS = {"minute": 60, "hour": 3600, "day": 86400}

# Filter keys accepted by aggregate queries, mapped to event columns.
_AGGREGATE_FILTERS = ("event_type", "source", "user_id", "session_id", "status")


def parse_interval(postgres_interval: str) -> timedelta:
    """Convert a PostgreSQL interval literal such as ``"15 minutes"`` to a timedelta."""
    match = _PG_INTERVAL.match(postgres_interval)
    if not match:
        raise ValueError(f"Unsupported interval literal: {postgres_interval!r}")
    return timedelta(seconds=int(match.group(1)) * _UNIT_SECONDS[match.group(2)])


class EventRepository(BaseRepository):
    def __init__(self, session: AsyncSession):
        super().__init__(session, EventRow)

    async def get(self, event_id: str) -> EventRow | None:
        return await self.get_by_id("event_id", event_id)

    async def delete(self, event_id: str) -> bool:
        return await self.delete_by_id("event_id", event_id)

    def _filter_conditions(self, query: EventFilter) -> list:
        conditions = [
            EventRow.timestamp >= query.start_time,
            EventRow.timestamp <= query.end_time,
        ]
        if query.event_type:
            conditions.append(EventRow.event_type == query.event_type)
        if query.source:
            conditions.append(EventRow.source == query.source)
        if query.user_id:
            conditions.append(EventRow.user_id == query.user_id)
        if query.session_id:
            conditions.append(EventRow.session_id == query.session_id)
        if query.status:
            conditions.append(EventRow.status == query.status)
        if query.min_priority:
            conditions.append(EventRow.priority >= query.min_priority)
        return conditions

    async def find_many(self, query: EventFilter) -> tuple[list[EventRow], int]:
        """Return one page of events matching the filter plus the total match count."""
        conditions = self._filter_conditions(query)
        order_column = getattr(EventRow, query.order_by.field)
        order = order_column.asc() if query.order_by.direction == "asc" else order_column.desc()

        stmt = (
            select(EventRow)
            .where(*conditions)
            .order_by(order, EventRow.event_id)
            .offset((query.page - 1) * query.page_size)
            .limit(query.page_size)
        )
        result = await self.session.execute(stmt)
        rows = list(result.scalars().all())
        total = await self.count_where(*conditions)
        return rows, total

    async def stats(self, start: datetime, end: datetime) -> EventStats:
        in_range = (EventRow.timestamp >= start, EventRow.timestamp <= end)

        totals_stmt = select(
            func.count(),
            func.count(func.distinct(EventRow.user_id)),
            func.count(func.distinct(EventRow.session_id)),
            func.count(func.distinct(EventRow.source)),
            func.avg(EventRow.duration),
        ).where(*in_range)
        total, users, sessions, sources, avg_duration = (await self.session.execute(totals_stmt)).one()

        status_stmt = (
            select(EventRow.status, func.count())
            .where(*in_range)
            .group_by(EventRow.status)
        )
        status_breakdown = {status: count for status, count in (await self.session.execute(status_stmt)).all()}

        count_col = func.count().label("cnt")
        top_stmt = (
            select(EventRow.event_type, count_col)
            .where(*in_range)
            .group_by(EventRow.event_type)
            .order_by(count_col.desc(), EventRow.event_type)
            .limit(10)
        )
        top = [
            EventTypeCount(event_type=event_type, count=count)
            for event_type, count in (await self.session.execute(top_stmt)).all()
        ]

        return EventStats(
            total_events=total,
            unique_users=users,
            unique_sessions=sessions,
            unique_sources=sources,
            avg_duration=float(avg_duration or 0),
            status_breakdown=status_breakdown,
            top_event_types=top,
        )

    async def query_aggregates(
        self,
        view_name: str,
        postgres_interval: str,
        start: datetime,
        end: datetime,
        filters: dict | None = None,
    ) -> list[AggregateRow]:
        """Count events per ``[bucket, event_type, source]`` over ``[start, end)``.

        Buckets are anchored at ``start`` so they line up with the planner's
        bucket boundaries. PostgreSQL reads the precomputed view; other
        dialects aggregate the events table directly.
        """
        if not _VIEW_NAME.match(view_name):
            raise ValueError(f"Unknown aggregate view: {view_name!r}")
        width = parse_interval(postgres_interval)
        filters = {k: v for k, v in (filters or {}).items() if k in _AGGREGATE_FILTERS and v is not None}

        if self.session.get_bind().dialect.name == "postgresql":
            return await self._query_view(view_name, postgres_interval, start, end, filters)
        return await self._query_table(width, start, end, filters)

    async def _query_view(
        self, view_name: str, postgres_interval: str, start: datetime, end: datetime, filters: dict
    ) -> list[AggregateRow]:
        where = "".join(f" AND {column} = :{column}" for column in filters)
        stmt = text(
            f"SELECT date_bin(INTERVAL '{postgres_interval}', timestamp, :start) AS bucket, "
            f"event_type, source, count(*) AS count, avg(duration) AS avg_duration "
            f"FROM {view_name} "
            f"WHERE timestamp >= :start AND timestamp < :end{where} "
            f"GROUP BY bucket, event_type, source "
            f"ORDER BY bucket"
        )
        result = await self.session.execute(stmt, {"start": start, "end": end, **filters})
        return [AggregateRow.model_validate(dict(row._mapping)) for row in result]

    async def _query_table(
        self, width: timedelta, start: datetime, end: datetime, filters: dict
    ) -> list[AggregateRow]:
        conditions = [EventRow.timestamp >= start, EventRow.timestamp < end]
        conditions.extend(getattr(EventRow, column) == value for column, value in filters.items())
        stmt = select(
            EventRow.timestamp, EventRow.event_type, EventRow.source, EventRow.duration
        ).where(*conditions)
        result = await self.session.execute(stmt)

        naive_start = to_utc(start).replace(tzinfo=None)
        groups: dict[tuple, list] = {}
        for timestamp, event_type, source, duration in result.all():
            ts = to_utc(timestamp).replace(tzinfo=None)
            offset = (ts - naive_start) // width
            bucket = to_utc(start) + offset * width
            groups.setdefault((bucket, event_type, source), []).append(duration)

        rows = []
        for (bucket, event_type, source), durations in sorted(groups.items()):
            known = [d for d in durations if d is not None]
            rows.append(
                AggregateRow(
                    bucket=bucket,
                    event_type=event_type,
                    source=source,
                    count=len(durations),
                    avg_duration=sum(known) / len(known) if known else None,
                )
            )
        return rows

    async def refresh_views(self, view_names: list[str]) -> None:
        """Refresh the aggregate materialized views (PostgreSQL only)."""
        if self.session.get_bind().dialect.name != "postgresql":
            return
        for view_name in view_names:
            if not _VIEW_NAME.match(view_name):
                raise ValueError(f"Unknown aggregate view: {view_name!r}")
            await self.session.execute(text(f"REFRESH MATERIALIZED VIEW {view_name}"))
