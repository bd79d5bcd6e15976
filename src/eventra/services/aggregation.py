"""Time-bucketed aggregation planning.

Maps a requested granularity onto one of the precomputed ``events_*`` views,
bounds the query window for that granularity, and folds store rows into
contiguous ``[bucket_start, bucket_end)`` windows anchored at ``start``.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from eventra.db.base import to_utc
from eventra.errors.exceptions import ValidationError
from eventra.models.aggregation import (
    AggregateBucket,
    AggregationPlan,
    AggregationQuery,
    AggregationResult,
    Bucket,
)
from eventra.models.enums import TimeInterval
from eventra.services.event_store import EventStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IntervalConfig:
    view_name: str
    postgres_interval: str
    width: timedelta
    max_span: timedelta


INTERVAL_CONFIGS: dict[TimeInterval, IntervalConfig] = {
    TimeInterval.ONE_MINUTE: IntervalConfig("events_1m", "1 minute", timedelta(minutes=1), timedelta(hours=24)),
    TimeInterval.FIVE_MINUTES: IntervalConfig("events_5m", "5 minutes", timedelta(minutes=5), timedelta(days=7)),
    TimeInterval.FIFTEEN_MINUTES: IntervalConfig("events_15m", "15 minutes", timedelta(minutes=15), timedelta(days=30)),
    TimeInterval.ONE_HOUR: IntervalConfig("events_1h", "1 hour", timedelta(hours=1), timedelta(days=90)),
    TimeInterval.ONE_DAY: IntervalConfig("events_1d", "1 day", timedelta(days=1), timedelta(days=365)),
}


def get_config(interval: TimeInterval | str) -> IntervalConfig:
    try:
        return INTERVAL_CONFIGS[TimeInterval(interval)]
    except ValueError:
        raise ValidationError(
            f"Invalid interval: {interval}",
            {"allowed": [i.value for i in TimeInterval]},
        ) from None


def validate_range(interval: TimeInterval | str, start: datetime, end: datetime) -> IntervalConfig:
    """Check ``[start, end)`` against the interval's maximum span."""
    config = get_config(interval)
    start, end = to_utc(start), to_utc(end)
    if end <= start:
        raise ValidationError("End time must be after start time")
    if end - start > config.max_span:
        raise ValidationError(
            f"Time range too large for {TimeInterval(interval).value} interval. "
            f"Maximum range is {config.max_span.days} days.",
            {"interval": TimeInterval(interval).value, "max_days": config.max_span.days},
        )
    return config


def suggest_interval(start: datetime, end: datetime) -> TimeInterval:
    """Finest interval whose maximum span still covers the range."""
    span = to_utc(end) - to_utc(start)
    for interval, config in INTERVAL_CONFIGS.items():
        if span <= config.max_span:
            return interval
    return TimeInterval.ONE_DAY


def generate_buckets(
    start: datetime, end: datetime, interval: TimeInterval | str | None = None
) -> list[Bucket]:
    start, end = to_utc(start), to_utc(end)
    if end <= start:
        return []
    width = get_config(interval or suggest_interval(start, end)).width

    buckets = []
    bucket_start = start
    while bucket_start < end:
        bucket_end = min(bucket_start + width, end)
        buckets.append(Bucket(start=bucket_start, end=bucket_end))
        bucket_start = bucket_end
    return buckets


def plan(interval: TimeInterval | str, start: datetime, end: datetime) -> AggregationPlan:
    config = validate_range(interval, start, end)
    return AggregationPlan(
        interval=TimeInterval(interval),
        view_name=config.view_name,
        postgres_interval=config.postgres_interval,
        buckets=generate_buckets(start, end, interval),
    )


class AggregationPlanner:
    def __init__(self, store: EventStore):
        self.store = store

    async def aggregate(self, query: AggregationQuery) -> AggregationResult:
        start, end = to_utc(query.start_time), to_utc(query.end_time)
        interval = query.interval or suggest_interval(start, end)
        agg_plan = plan(interval, start, end)
        width = INTERVAL_CONFIGS[agg_plan.interval].width

        rows = await self.store.query_aggregates(
            agg_plan.view_name,
            agg_plan.postgres_interval,
            start,
            end,
            {k: str(v) for k, v in query.filters().items()},
        )

        buckets = [AggregateBucket(bucket_start=b.start, bucket_end=b.end) for b in agg_plan.buckets]
        for row in rows:
            index = int((to_utc(row.bucket) - start) // width)
            if not 0 <= index < len(buckets):
                logger.warning("Dropping aggregate row outside the planned range: %s", row.bucket)
                continue
            bucket = buckets[index]
            bucket.count += row.count
            bucket.by_event_type[row.event_type] = bucket.by_event_type.get(row.event_type, 0) + row.count

        return AggregationResult(
            interval=agg_plan.interval,
            view_name=agg_plan.view_name,
            start_time=start,
            end_time=end,
            buckets=buckets,
        )
