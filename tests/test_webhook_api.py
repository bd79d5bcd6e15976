"""Webhook management API tests."""

import pytest

WEBHOOK = {
    "name": "billing",
    "url": "https://hooks.example.com/billing",
    "secret": "0123456789abcdef-secret",
    "events": ["event.created"],
    "headers": {"X-Team": "billing"},
}


async def create_webhook(client, **overrides) -> dict:
    response = await client.post("/api/v1/webhooks", json={**WEBHOOK, **overrides})
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_create_webhook_hides_secret(client):
    data = await create_webhook(client)
    assert data["webhook_id"].startswith("whk_")
    assert data["enabled"] is True
    assert data["retry_count"] == 3
    assert data["headers"] == {"X-Team": "billing"}
    assert "secret" not in data


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides",
    [
        {"secret": "short"},
        {"secret": "x" * 65},
        {"events": []},
        {"url": "not-a-url"},
        {"retry_count": 11},
        {"headers": {"X-Team": "équipe"}},
        {"headers": {"X-Team": "ops\r\nX-Injected: 1"}},
        {"headers": {"Bad Header": "x"}},
    ],
)
async def test_create_webhook_validation(client, overrides):
    response = await client.post("/api/v1/webhooks", json={**WEBHOOK, **overrides})
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_get_webhook(client):
    created = await create_webhook(client)
    response = await client.get(f"/api/v1/webhooks/{created['webhook_id']}")
    assert response.status_code == 200
    assert response.json()["name"] == "billing"
    assert "secret" not in response.json()

    missing = await client.get("/api/v1/webhooks/whk_missing")
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_list_webhooks_with_enabled_filter(client):
    await create_webhook(client, name="one")
    await create_webhook(client, name="two", enabled=False)
    await create_webhook(client, name="three")

    response = await client.get("/api/v1/webhooks", params={"page_size": 2})
    data = response.json()
    assert data["pagination"] == {"page": 1, "page_size": 2, "total": 3, "total_pages": 2}
    assert len(data["webhooks"]) == 2
    assert all("secret" not in w for w in data["webhooks"])

    enabled = await client.get("/api/v1/webhooks", params={"enabled": "true"})
    assert sorted(w["name"] for w in enabled.json()["webhooks"]) == ["one", "three"]


@pytest.mark.asyncio
async def test_update_webhook(client):
    created = await create_webhook(client)
    response = await client.patch(
        f"/api/v1/webhooks/{created['webhook_id']}",
        json={"enabled": False, "retry_count": 5, "url": "https://hooks.example.com/v2"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["enabled"] is False
    assert data["retry_count"] == 5
    assert data["url"] == "https://hooks.example.com/v2"
    assert data["name"] == "billing"

    missing = await client.patch("/api/v1/webhooks/whk_missing", json={"enabled": False})
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_update_webhook_rejects_non_ascii_header(client):
    created = await create_webhook(client)
    response = await client.patch(
        f"/api/v1/webhooks/{created['webhook_id']}",
        json={"headers": {"X-Team": "équipe"}},
    )
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_delete_webhook(client):
    created = await create_webhook(client)
    response = await client.delete(f"/api/v1/webhooks/{created['webhook_id']}")
    assert response.status_code == 204
    assert (await client.get(f"/api/v1/webhooks/{created['webhook_id']}")).status_code == 404
    assert (await client.delete(f"/api/v1/webhooks/{created['webhook_id']}")).status_code == 404


@pytest.mark.asyncio
async def test_deliveries_empty_log(client):
    response = await client.get("/api/v1/webhooks/deliveries", params={"status": "failed"})
    assert response.status_code == 200
    assert response.json() == {
        "deliveries": [],
        "pagination": {"page": 1, "page_size": 20, "total": 0, "total_pages": 0},
    }
