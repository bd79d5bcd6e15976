"""Aggregation planner tests: range validation, interval choice, bucketing."""

from datetime import datetime, timedelta, timezone

import pytest

from eventra.errors.exceptions import ValidationError
from eventra.models.aggregation import AggregateRow, AggregationQuery
from eventra.models.enums import TimeInterval
from eventra.models.event import EventInput
from eventra.services.aggregation import (
    AggregationPlanner,
    generate_buckets,
    get_config,
    plan,
    suggest_interval,
    validate_range,
)
from eventra.services.event_store import EventStore

T0 = datetime(2025, 6, 1, 0, 0, 0, tzinfo=timezone.utc)


class CapturingStore:
    def __init__(self, rows: list[AggregateRow] | None = None):
        self.rows = rows or []
        self.calls = []

    async def query_aggregates(self, view_name, postgres_interval, start, end, filters=None):
        self.calls.append((view_name, postgres_interval, start, end, filters))
        return self.rows


def test_unknown_interval_rejected():
    with pytest.raises(ValidationError):
        get_config("2h")


def test_end_before_start_rejected():
    with pytest.raises(ValidationError, match="End time must be after start time"):
        validate_range("1h", T0, T0)
    with pytest.raises(ValidationError):
        validate_range("1h", T0, T0 - timedelta(minutes=1))


@pytest.mark.parametrize(
    "interval, max_span, days",
    [
        ("1m", timedelta(hours=24), 1),
        ("5m", timedelta(days=7), 7),
        ("15m", timedelta(days=30), 30),
        ("1h", timedelta(days=90), 90),
        ("1d", timedelta(days=365), 365),
    ],
)
def test_span_limit_per_interval(interval, max_span, days):
    # Exactly the maximum is accepted
    validate_range(interval, T0, T0 + max_span)

    with pytest.raises(ValidationError) as exc_info:
        validate_range(interval, T0, T0 + max_span + timedelta(seconds=1))
    assert exc_info.value.message == (
        f"Time range too large for {interval} interval. Maximum range is {days} days."
    )


@pytest.mark.parametrize(
    "span, expected",
    [
        (timedelta(minutes=5), TimeInterval.ONE_MINUTE),
        (timedelta(hours=24), TimeInterval.ONE_MINUTE),
        (timedelta(hours=25), TimeInterval.FIVE_MINUTES),
        (timedelta(days=7), TimeInterval.FIVE_MINUTES),
        (timedelta(days=20), TimeInterval.FIFTEEN_MINUTES),
        (timedelta(days=60), TimeInterval.ONE_HOUR),
        (timedelta(days=200), TimeInterval.ONE_DAY),
        (timedelta(days=1000), TimeInterval.ONE_DAY),
    ],
)
def test_suggest_interval(span, expected):
    assert suggest_interval(T0, T0 + span) == expected


@pytest.mark.parametrize(
    "span, interval",
    [
        (timedelta(hours=3), "1h"),
        (timedelta(hours=3, minutes=20), "1h"),
        (timedelta(minutes=7, seconds=30), "5m"),
        (timedelta(seconds=20), "1m"),
        (timedelta(days=10, hours=5), "1d"),
        (timedelta(hours=2), None),
    ],
)
def test_buckets_cover_range_exactly(span, interval):
    end = T0 + span
    buckets = generate_buckets(T0, end, interval)

    assert buckets[0].start == T0
    assert buckets[-1].end == end
    for current, following in zip(buckets, buckets[1:]):
        assert current.end == following.start
    width = get_config(interval or suggest_interval(T0, end)).width
    assert all(timedelta(0) < b.end - b.start <= width for b in buckets)


def test_sub_bucket_range_yields_one_clipped_bucket():
    buckets = generate_buckets(T0, T0 + timedelta(minutes=10), "1h")
    assert len(buckets) == 1
    assert buckets[0].end == T0 + timedelta(minutes=10)


def test_empty_range_yields_no_buckets():
    assert generate_buckets(T0, T0, "1h") == []
    assert generate_buckets(T0, T0 - timedelta(hours=1), "1h") == []


def test_plan_resolves_view():
    result = plan("15m", T0, T0 + timedelta(hours=1))
    assert result.view_name == "events_15m"
    assert result.postgres_interval == "15 minutes"
    assert len(result.buckets) == 4


async def test_invalid_range_never_reaches_store():
    store = CapturingStore()
    with pytest.raises(ValidationError):
        await AggregationPlanner(store).aggregate(
            AggregationQuery(start_time=T0, end_time=T0 + timedelta(days=2), interval=TimeInterval.ONE_MINUTE)
        )
    assert store.calls == []


async def test_aggregate_folds_rows_into_buckets():
    rows = [
        AggregateRow(bucket=T0, event_type="click", source="web", count=2),
        AggregateRow(bucket=T0, event_type="view", source="web", count=1),
        AggregateRow(bucket=T0 + timedelta(hours=2), event_type="click", source="ios", count=4),
    ]
    store = CapturingStore(rows)
    query = AggregationQuery(
        start_time=T0, end_time=T0 + timedelta(hours=3), interval=TimeInterval.ONE_HOUR, source="web"
    )
    result = await AggregationPlanner(store).aggregate(query)

    assert store.calls == [("events_1h", "1 hour", T0, T0 + timedelta(hours=3), {"source": "web"})]
    assert [b.count for b in result.buckets] == [3, 0, 4]
    assert result.buckets[0].by_event_type == {"click": 2, "view": 1}
    assert result.buckets[1].by_event_type == {}


async def test_aggregate_suggests_interval_when_omitted():
    store = CapturingStore()
    result = await AggregationPlanner(store).aggregate(
        AggregationQuery(start_time=T0, end_time=T0 + timedelta(days=3))
    )
    assert result.interval == TimeInterval.FIVE_MINUTES
    assert result.view_name == "events_5m"


async def test_aggregate_against_database_store(session_factory):
    store = EventStore(session_factory)
    for minutes, event_type in [(5, "click"), (10, "click"), (70, "view"), (179, "click"), (180, "click")]:
        await store.create(
            EventInput(timestamp=T0 + timedelta(minutes=minutes), event_type=event_type, source="web", duration=100)
        )
    await store.create(EventInput(timestamp=T0 + timedelta(minutes=15), event_type="click", source="ios"))

    planner = AggregationPlanner(store)
    result = await planner.aggregate(
        AggregationQuery(start_time=T0, end_time=T0 + timedelta(hours=3), interval=TimeInterval.ONE_HOUR)
    )
    # The event at exactly end_time falls outside [start, end)
    assert [b.count for b in result.buckets] == [3, 1, 1]
    assert result.buckets[0].by_event_type == {"click": 3}

    filtered = await planner.aggregate(
        AggregationQuery(
            start_time=T0,
            end_time=T0 + timedelta(hours=3),
            interval=TimeInterval.ONE_HOUR,
            source="web",
        )
    )
    assert [b.count for b in filtered.buckets] == [2, 1, 1]
