"""Event API tests: ingestion, queries, lifecycle, rate limiting, webhook trigger."""

import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from eventra.api.middleware.rate_limit import setup_rate_limiter
from eventra.config import Settings
from eventra.errors.exceptions import DatabaseError

T0 = datetime(2025, 6, 1, tzinfo=timezone.utc)
RANGE = {"start_time": T0.isoformat(), "end_time": (T0 + timedelta(days=1)).isoformat()}


def event_body(**overrides) -> dict:
    body = {
        "timestamp": (T0 + timedelta(minutes=30)).isoformat(),
        "event_type": "page_view",
        "source": "web",
        "data": {"path": "/pricing"},
    }
    body.update(overrides)
    return body


async def create_event(client, **overrides) -> dict:
    response = await client.post("/api/v1/events", json=event_body(**overrides))
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_create_event(client):
    response = await client.post("/api/v1/events", json=event_body(duration=120, tags=["a", "b"]))
    assert response.status_code == 201
    data = response.json()
    assert data["event_id"].startswith("evt_")
    assert data["event_type"] == "page_view"
    assert data["status"] == "pending"
    assert data["priority"] == 1
    assert data["duration"] == 120
    assert data["tags"] == ["a", "b"]
    # Absent optional fields are omitted
    assert "user_id" not in data
    assert "metadata" not in data


@pytest.mark.asyncio
async def test_create_event_defaults_timestamp(client):
    body = event_body()
    del body["timestamp"]
    response = await client.post("/api/v1/events", json=body)
    assert response.status_code == 201
    assert response.json()["timestamp"]


@pytest.mark.asyncio
async def test_invalid_event_returns_validation_envelope(client):
    response = await client.post("/api/v1/events", json=event_body(priority=9), headers={"X-Trace-Id": "trc_bad"})
    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert error["trace_id"] == "trc_bad"
    assert response.json()["schema_version"] == "1.0"


@pytest.mark.asyncio
async def test_unknown_fields_rejected(client):
    response = await client.post("/api/v1/events", json=event_body(colour="red"))
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_get_event_and_not_found(client):
    created = await create_event(client, metadata={"ip": "10.0.0.1"})

    response = await client.get(f"/api/v1/events/{created['event_id']}")
    assert response.status_code == 200
    assert response.json()["metadata"] == {"ip": "10.0.0.1"}

    missing = await client.get("/api/v1/events/evt_missing")
    assert missing.status_code == 404
    assert missing.json()["error"]["code"] == "NOT_FOUND"


@pytest.mark.asyncio
async def test_archive_and_reprocess(client):
    created = await create_event(client)
    event_id = created["event_id"]

    archived = await client.post(f"/api/v1/events/{event_id}/archive")
    assert archived.status_code == 200
    assert archived.json()["status"] == "archived"

    reprocessed = await client.post(f"/api/v1/events/{event_id}/reprocess")
    assert reprocessed.json()["status"] == "pending"

    missing = await client.post("/api/v1/events/evt_missing/archive")
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_delete_event(client):
    created = await create_event(client)
    response = await client.delete(f"/api/v1/events/{created['event_id']}")
    assert response.status_code == 204
    assert (await client.get(f"/api/v1/events/{created['event_id']}")).status_code == 404
    assert (await client.delete(f"/api/v1/events/{created['event_id']}")).status_code == 404


@pytest.mark.asyncio
async def test_batch_create(client):
    events = [event_body(event_type=f"type_{i}") for i in range(5)]
    response = await client.post("/api/v1/events/batch", json={"events": events})
    assert response.status_code == 201
    data = response.json()
    assert data["summary"] == {"total": 5, "success": 5, "failed": 0}
    assert [r["event"]["event_type"] for r in data["results"]] == [f"type_{i}" for i in range(5)]
    assert all(r["status"] == "created" for r in data["results"])


@pytest.mark.asyncio
async def test_oversized_batch_rejected_and_nothing_stored(client):
    events = [event_body() for _ in range(1001)]
    response = await client.post("/api/v1/events/batch", json={"events": events})
    assert response.status_code == 400
    assert response.json()["error"]["details"] == {"max_batch_size": 1000, "received": 1001}

    raw = await client.get("/api/v1/events/raw", params=RANGE)
    assert raw.json()["pagination"]["total"] == 0


@pytest.mark.asyncio
async def test_empty_batch_rejected(client):
    response = await client.post("/api/v1/events/batch", json={"events": []})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_raw_query_filters_and_paginates(client):
    for i in range(5):
        await create_event(client, timestamp=(T0 + timedelta(minutes=i)).isoformat(), source="web")
    await create_event(client, source="ios")

    response = await client.get(
        "/api/v1/events/raw",
        params={**RANGE, "source": "web", "page_size": 2, "order_by": "timestamp", "order_direction": "asc"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["pagination"] == {"page": 1, "page_size": 2, "total": 5, "total_pages": 3}
    stamps = [e["timestamp"] for e in data["events"]]
    assert stamps == sorted(stamps)
    assert all(e["source"] == "web" for e in data["events"])


@pytest.mark.asyncio
async def test_raw_query_range_validation(client):
    too_long = {"start_time": T0.isoformat(), "end_time": (T0 + timedelta(days=91)).isoformat()}
    response = await client.get("/api/v1/events/raw", params=too_long)
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    backwards = {"start_time": RANGE["end_time"], "end_time": RANGE["start_time"]}
    assert (await client.get("/api/v1/events/raw", params=backwards)).status_code == 400


@pytest.mark.asyncio
async def test_stats(client):
    await create_event(client, event_type="click", user_id="u1", duration=100)
    await create_event(client, event_type="click", user_id="u2", duration=300)
    await create_event(client, event_type="view", user_id="u1")

    response = await client.get("/api/v1/events/stats", params=RANGE)
    assert response.status_code == 200
    stats = response.json()
    assert stats["total_events"] == 3
    assert stats["unique_users"] == 2
    assert stats["avg_duration"] == 200
    assert stats["status_breakdown"] == {"pending": 3}
    assert stats["top_event_types"][0] == {"event_type": "click", "count": 2}


@pytest.mark.asyncio
async def test_aggregated(client):
    await create_event(client, timestamp=(T0 + timedelta(minutes=10)).isoformat())
    await create_event(client, timestamp=(T0 + timedelta(hours=2, minutes=5)).isoformat())

    params = {"start_time": T0.isoformat(), "end_time": (T0 + timedelta(hours=3)).isoformat(), "interval": "1h"}
    response = await client.get("/api/v1/events/aggregated", params=params)
    assert response.status_code == 200
    data = response.json()
    assert data["view_name"] == "events_1h"
    assert [b["count"] for b in data["buckets"]] == [1, 0, 1]


@pytest.mark.asyncio
async def test_aggregated_range_too_large(client):
    params = {"start_time": T0.isoformat(), "end_time": (T0 + timedelta(days=2)).isoformat(), "interval": "1m"}
    response = await client.get("/api/v1/events/aggregated", params=params)
    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Time range too large for 1m interval. Maximum range is 1 days."


@pytest.mark.asyncio
async def test_aggregated_unknown_interval(client):
    params = {**RANGE, "interval": "2h"}
    response = await client.get("/api/v1/events/aggregated", params=params)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_created_event_triggers_webhook(app, client):
    received: list[httpx.Request] = []

    def receiver(request: httpx.Request) -> httpx.Response:
        received.append(request)
        return httpx.Response(200, json={"ok": True})

    app.state.webhook_transport = httpx.MockTransport(receiver)
    hook = await client.post(
        "/api/v1/webhooks",
        json={
            "name": "audit",
            "url": "https://hooks.example.com/audit",
            "secret": "a-very-long-secret-value",
            "events": ["event.created"],
        },
    )
    assert hook.status_code == 201

    created = await create_event(client)
    await app.state.tasks.drain(timeout=5)

    assert len(received) == 1
    assert received[0].headers["X-Event-Type"] == "event.created"
    assert json.loads(received[0].content)["event_id"] == created["event_id"]

    deliveries = await client.get("/api/v1/webhooks/deliveries", params={"webhook_id": hook.json()["webhook_id"]})
    assert [d["status"] for d in deliveries.json()["deliveries"]] == ["success"]


@pytest.mark.asyncio
async def test_rate_limit_headers_on_success(client):
    response = await client.get("/api/v1/events/raw", params=RANGE)
    assert response.headers["X-RateLimit-Limit"] == "100"
    assert response.headers["X-RateLimit-Remaining"] == "99"
    assert int(response.headers["X-RateLimit-Reset"]) > 0


@pytest.mark.asyncio
async def test_rate_limit_rejects_over_limit(app, client, session_factory):
    setup_rate_limiter(app, session_factory, Settings(rate_limit_max=2))

    for _ in range(2):
        assert (await client.get("/api/v1/events/raw", params=RANGE)).status_code == 200

    response = await client.get("/api/v1/events/raw", params=RANGE)
    assert response.status_code == 429
    assert response.json()["error"]["code"] == "RATE_LIMIT"
    assert response.headers["X-RateLimit-Limit"] == "2"
    assert response.headers["X-RateLimit-Remaining"] == "0"
    assert "X-RateLimit-Reset" in response.headers

    # Counted per route template, so another endpoint is unaffected
    assert (await client.get("/api/v1/events/stats", params=RANGE)).status_code == 200


@pytest.mark.asyncio
async def test_rate_limit_keyed_by_api_key(app, client, session_factory):
    setup_rate_limiter(app, session_factory, Settings(rate_limit_max=1))

    assert (await client.get("/api/v1/events/raw", params=RANGE, headers={"X-API-Key": "key-a"})).status_code == 200
    assert (await client.get("/api/v1/events/raw", params=RANGE, headers={"X-API-Key": "key-b"})).status_code == 200
    assert (await client.get("/api/v1/events/raw", params=RANGE, headers={"X-API-Key": "key-a"})).status_code == 429


@pytest.mark.asyncio
async def test_health_is_not_rate_limited(app, client, session_factory):
    setup_rate_limiter(app, session_factory, Settings(rate_limit_max=1))
    for _ in range(3):
        assert (await client.get("/api/v1/health")).status_code == 200


class BrokenLimiter:
    async def check_and_consume(self, key, endpoint):
        raise DatabaseError("Failed to check rate limit")


@pytest.mark.asyncio
async def test_rate_limiter_failure_surfaces_by_default(app, client):
    app.state.rate_limiter = BrokenLimiter()
    app.state.rate_limit_fail_open = False
    response = await client.get("/api/v1/events/raw", params=RANGE)
    assert response.status_code == 500
    assert response.json()["error"]["code"] == "DATABASE_ERROR"


@pytest.mark.asyncio
async def test_rate_limiter_failure_can_fail_open(app, client):
    app.state.rate_limiter = BrokenLimiter()
    app.state.rate_limit_fail_open = True
    response = await client.get("/api/v1/events/raw", params=RANGE)
    assert response.status_code == 200
