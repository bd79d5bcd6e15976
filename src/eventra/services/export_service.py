"""Raw and aggregated event export as JSON or CSV attachments."""

import csv
import io
import json
import logging
from dataclasses import dataclass
from datetime import datetime

from eventra.db.base import to_utc
from eventra.errors.exceptions import ValidationError
from eventra.models.aggregation import AggregationQuery, AggregationResult
from eventra.models.enums import ExportFormat, SortDirection, TimeInterval
from eventra.models.event import EventFilter, EventModel, OrderBy
from eventra.services.event_service import EventService
from eventra.services.monitoring import monitored

logger = logging.getLogger(__name__)

EVENT_COLUMNS = (
    "event_id",
    "timestamp",
    "event_type",
    "source",
    "user_id",
    "session_id",
    "duration",
    "priority",
    "status",
    "tags",
    "data",
    "metadata",
    "created_at",
    "updated_at",
)

CONTENT_TYPES = {
    ExportFormat.JSON: "application/json",
    ExportFormat.CSV: "text/csv",
}


@dataclass(frozen=True)
class ExportResult:
    data: str
    content_type: str
    filename: str


def parse_format(value: str) -> ExportFormat:
    try:
        return ExportFormat(value.lower())
    except ValueError:
        allowed = [f.value for f in ExportFormat]
        raise ValidationError(
            f"Unsupported export format. Must be one of: {', '.join(allowed)}",
            {"allowed": allowed},
        ) from None


def export_filename(prefix: str, start: datetime, end: datetime, fmt: ExportFormat) -> str:
    return f"{prefix}_{to_utc(start):%Y-%m-%d}_{to_utc(end):%Y-%m-%d}.{fmt.value}"


def _cell(value) -> str:
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"), default=str)
    return str(value)


def _write_csv(header: list[str], rows: list[list]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(header)
    writer.writerows([_cell(v) for v in row] for row in rows)
    return buf.getvalue()


def events_to_csv(events: list[EventModel]) -> str:
    rows = []
    for event in events:
        record = event.model_dump(mode="json")
        rows.append([record.get(col) for col in EVENT_COLUMNS])
    return _write_csv(list(EVENT_COLUMNS), rows)


def aggregation_to_csv(result: AggregationResult) -> str:
    """One row per bucket, with a count column per event type seen in the range."""
    event_types = sorted({t for b in result.buckets for t in b.by_event_type})
    header = ["bucket_start", "bucket_end", "count", *event_types]
    rows = [
        [
            b.bucket_start.isoformat(),
            b.bucket_end.isoformat(),
            b.count,
            *(b.by_event_type.get(t, 0) for t in event_types),
        ]
        for b in result.buckets
    ]
    return _write_csv(header, rows)


class ExportService:
    """Renders query results for download.

    Raw exports page through ``EventService.find_raw`` newest first and stop
    at ``max_rows``; aggregated exports render one ``AggregationResult``.
    """

    def __init__(self, events: EventService, max_rows: int = 1000, page_size: int = 100):
        self.events = events
        self.max_rows = max_rows
        self.page_size = page_size

    async def _collect_raw(self, start: datetime, end: datetime) -> list[EventModel]:
        collected: list[EventModel] = []
        page = 1
        while len(collected) < self.max_rows:
            batch, total = await self.events.find_raw(
                EventFilter(
                    start_time=start,
                    end_time=end,
                    page=page,
                    page_size=self.page_size,
                    order_by=OrderBy(field="timestamp", direction=SortDirection.DESC),
                )
            )
            collected.extend(batch)
            if not batch or page * self.page_size >= total:
                break
            page += 1
        if len(collected) > self.max_rows:
            logger.info("Raw export truncated to %d events", self.max_rows)
        return collected[: self.max_rows]

    async def _export_raw(self, start: datetime, end: datetime, fmt: ExportFormat) -> ExportResult:
        events = await self._collect_raw(start, end)
        if fmt == ExportFormat.CSV:
            data = events_to_csv(events)
        else:
            data = json.dumps([e.model_dump(mode="json") for e in events], indent=2)
        logger.info("Exported raw events", extra={"rows": len(events), "format": fmt.value})
        return ExportResult(data, CONTENT_TYPES[fmt], export_filename("events", start, end, fmt))

    async def export_raw_events(self, start: datetime, end: datetime, fmt: str) -> ExportResult:
        return await monitored("export_raw_events", self._export_raw, start, end, parse_format(fmt))

    async def _export_aggregated(
        self, query: AggregationQuery, fmt: ExportFormat
    ) -> ExportResult:
        result = await self.events.aggregate(query)
        if fmt == ExportFormat.CSV:
            data = aggregation_to_csv(result)
        else:
            data = json.dumps(result.model_dump(mode="json"), indent=2)
        return ExportResult(
            data,
            CONTENT_TYPES[fmt],
            export_filename("aggregated_events", query.start_time, query.end_time, fmt),
        )

    async def export_aggregated_events(
        self,
        start: datetime,
        end: datetime,
        fmt: str,
        interval: TimeInterval | None = None,
    ) -> ExportResult:
        query = AggregationQuery(start_time=start, end_time=end, interval=interval)
        return await monitored("export_aggregated_events", self._export_aggregated, query, parse_format(fmt))
